"""Bulk upload pipeline for aquaculture daily cage records."""

__version__ = "0.1.0"
