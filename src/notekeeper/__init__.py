"""
notekeeper - the persistence core of a note-taking application.

Stores notes and folders in SQLite, keeps an FTS5 search index in step with
note content, and serializes all access through a single connection.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("notekeeper")
except PackageNotFoundError:
    __version__ = "0.1.0"
