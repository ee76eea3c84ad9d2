"""API route modules."""

from blast.api.routes import changes, health, videos

__all__ = ["changes", "health", "videos"]
