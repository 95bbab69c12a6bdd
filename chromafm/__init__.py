"""chromaFM: ranks a listener's albums into ten cover-color buckets."""

__version__ = "0.1.0"
