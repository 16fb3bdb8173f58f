"""Persisted records of the dialogue index.

Mirrors the rows of the SQLite store: libraries own files, files own
subtitle tracks, tracks own conversations and conversations own lines.
"""

from __future__ import annotations

import sqlite3

from pydantic import BaseModel


class Library(BaseModel):
    """A configured root directory containing media files."""

    id: int
    path: str  # Relative to the configured root directory
    search_by_default: bool = True
    still_exists: bool = True

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Library":
        return cls(
            id=row["id"],
            path=row["path"],
            search_by_default=bool(row["search_by_default"]),
            still_exists=bool(row["still_exists"]),
        )


class LibraryFile(BaseModel):
    """A tracked file within a library, with change-detection metadata."""

    id: int
    library_id: int
    path: str  # POSIX path relative to the library root
    last_modified: float  # mtime in milliseconds
    size: int
    still_exists: bool = True
    indexed: bool = False

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "LibraryFile":
        return cls(
            id=row["id"],
            library_id=row["library_id"],
            path=row["path"],
            last_modified=row["last_modified"],
            size=row["size"],
            still_exists=bool(row["still_exists"]),
            indexed=bool(row["indexed"]),
        )

    def matches_stat(self, size: int, last_modified: float) -> bool:
        """True when the on-disk size and mtime equal the stored ones."""
        return self.size == size and self.last_modified == last_modified


class Track(BaseModel):
    """One subtitle stream within a file's container."""

    id: int
    file_id: int
    track_number: int  # Stream index within the container
    language: str | None = None
    title: str | None = None


class Conversation(BaseModel):
    """A contiguous run of dialogue lines grouped by temporal proximity."""

    id: int
    track_id: int
    indexed_text: str


class Line(BaseModel):
    """One timed dialogue utterance within a conversation."""

    id: int
    conversation_id: int
    raw_text: str
    display_text: str
    start_ms: int
    end_ms: int


class ConversationHit(BaseModel):
    """A conversation matching a search, with where it was found."""

    conversation_id: int
    library_path: str
    file_path: str
    track_number: int
    language: str | None = None
    indexed_text: str
    start_ms: int
    end_ms: int
