"""Transcript acquisition and normalization for video references."""

__version__ = "0.3.0"
