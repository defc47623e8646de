"""A top-like terminal dashboard for Elasticsearch ingestion rates."""

__version__ = "0.1.0"
