"""Resumable, chunked dumps of the trait graph database to a ZIP of CSV tables."""

__version__ = "1.0.0"
