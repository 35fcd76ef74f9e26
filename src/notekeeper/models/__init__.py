"""Data models for the notekeeper storage core."""

from notekeeper.models.schema import Folder, Note

__all__ = ["Folder", "Note"]
