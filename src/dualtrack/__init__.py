"""Dual-track weight plan analysis: planned trajectory versus actual trend."""

__version__ = "0.1.0"
