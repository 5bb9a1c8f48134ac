"""Chat backend: message storage with embedding ingestion and backfill."""

__version__ = "0.1.0"
