"""Ranking services: color sampling, bucket classification, candidate
aggregation and per-bucket selection."""

from chromafm.services.bucket_classifier import classify
from chromafm.services.candidate_aggregator import CandidateAggregator, PoolSource, rank_weight
from chromafm.services.color_sampler import ColorSampler, sample_image_bytes
from chromafm.services.selector import BucketSelector, enforce_unique_tops, stable_hash

__all__ = [
    "BucketSelector",
    "CandidateAggregator",
    "ColorSampler",
    "PoolSource",
    "classify",
    "enforce_unique_tops",
    "rank_weight",
    "sample_image_bytes",
    "stable_hash",
]
