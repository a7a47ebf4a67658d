"""Collect news articles from multiple websites into timestamped JSON."""

__version__ = "1.0.0"
