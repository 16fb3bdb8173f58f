"""Data models for subtitle-index.

This module provides Pydantic models for persisted index records and for the
in-memory dialogue data produced during extraction.
"""

from __future__ import annotations

from subtitle_index.models.dialogue import (
    ConversationDraft,
    DialogueEvent,
    LineDraft,
    SubtitleStream,
    TrackDraft,
)
from subtitle_index.models.library import (
    Conversation,
    ConversationHit,
    Library,
    LibraryFile,
    Line,
    Track,
)

__all__ = [
    # Persisted records
    "Library",
    "LibraryFile",
    "Track",
    "Conversation",
    "Line",
    "ConversationHit",
    # Extraction data
    "SubtitleStream",
    "DialogueEvent",
    "LineDraft",
    "ConversationDraft",
    "TrackDraft",
]
