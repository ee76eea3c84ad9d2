"""Blast - video feed backend with change proposals and version promotion."""

__version__ = "0.1.0"
