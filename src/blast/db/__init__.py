"""Database layer."""

from blast.db.models import Base, DocumentModel

__all__ = ["Base", "DocumentModel"]
