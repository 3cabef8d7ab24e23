"""
NexusNotes - the local data layer of a desktop note-taking application.
This package implements the persistence and query layer for a hierarchical
notebook tree containing markdown notes, tags, substring search and
backlinks, stored in a single local SQLite database.

This version uses synchronous operations.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("nexus-notes")
except PackageNotFoundError:
    __version__ = "0.3.0"
