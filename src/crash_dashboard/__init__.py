"""Crash dashboard: sample, bucket and estimate crash reports by signature."""

__version__ = "0.1.0"
