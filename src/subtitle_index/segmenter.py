"""Grouping timed dialogue into conversations.

A conversation is a run of events in which no event starts more than
``gap_threshold`` seconds after the latest end seen so far. Overlapping
events extend the run, so a long line spoken under several short ones keeps
them all in one conversation.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable

from subtitle_index.config import DEFAULT_CONVERSATION_GAP_SECONDS
from subtitle_index.models import ConversationDraft, DialogueEvent, LineDraft

# \N hard break, \n soft break, \h hard space
_LINE_BREAK_ESCAPE = re.compile(r"\\[Nnh]")


def normalize_indexed_text(text: str) -> str:
    """Replace ASS line-break escapes with single spaces."""
    return _LINE_BREAK_ESCAPE.sub(" ", text)


def to_milliseconds(seconds: float) -> int:
    """Round seconds to the nearest millisecond (halves round up)."""
    return math.floor(seconds * 1000 + 0.5)


def _close(buffer: list[DialogueEvent]) -> ConversationDraft:
    text = "\n".join(event.combined_text for event in buffer)
    return ConversationDraft(
        indexed_text=normalize_indexed_text(text),
        lines=[
            LineDraft(
                raw_text=event.raw_text,
                display_text=event.combined_text,
                start_ms=to_milliseconds(event.start),
                end_ms=to_milliseconds(event.end),
            )
            for event in buffer
        ],
    )


def segment(
    events: Iterable[DialogueEvent],
    gap_threshold: float = DEFAULT_CONVERSATION_GAP_SECONDS,
) -> list[ConversationDraft]:
    """Split dialogue events into conversations.

    Events are sorted by start time; ``sorted`` is stable, so events sharing
    a start keep their parse order.

    Args:
        events: Dialogue events in any order
        gap_threshold: Longest silence (seconds) inside one conversation

    Returns:
        Conversations in chronological order
    """
    ordered = sorted(events, key=lambda event: event.start)
    if not ordered:
        return []

    conversations = []
    buffer: list[DialogueEvent] = []
    cursor = ordered[0].start

    for i, event in enumerate(ordered):
        buffer.append(event)
        cursor = max(cursor, event.end)

        is_last = i + 1 == len(ordered)
        if is_last or ordered[i + 1].start > cursor + gap_threshold:
            conversations.append(_close(buffer))
            buffer = []

    return conversations
