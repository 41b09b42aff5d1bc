"""Show import service: document and email ingestion for show records."""

__version__ = "0.1.0"
