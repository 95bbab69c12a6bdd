"""Computation pipeline: primary selection plus staged backfill."""

from chromafm.pipeline.backfill import (
    BackfillPipeline,
    BackfillStage,
    BackfillState,
    default_stages,
)
from chromafm.pipeline.orchestrator import ColorBucketPipeline

__all__ = [
    "BackfillPipeline",
    "BackfillStage",
    "BackfillState",
    "ColorBucketPipeline",
    "default_stages",
]
