"""Subtitle markup parsing.

Turns ASS text (as produced by FFmpeg's ``-f ass`` muxer) into dialogue
events. Parsing itself is delegated to pysubs2.
"""

from __future__ import annotations

import pysubs2
from pysubs2.exceptions import Pysubs2Error

from subtitle_index.errors import MarkupParseError
from subtitle_index.models import DialogueEvent


def combined_text(raw_text: str) -> str:
    """Strip ``{...}`` override blocks, keeping the text and its escapes."""
    return pysubs2.SSAEvent.OVERRIDE_SEQUENCE.sub("", raw_text)


def parse_ass(text: str) -> list[DialogueEvent]:
    """Parse ASS markup into dialogue events.

    Comment events are dropped. Events are returned in file order; callers
    must not rely on them being sorted by time.

    Args:
        text: ASS document text

    Returns:
        List of DialogueEvent

    Raises:
        MarkupParseError: If the document cannot be parsed
    """
    if not text.strip():
        return []

    try:
        subs = pysubs2.SSAFile.from_string(text, format_="ass")
    except (Pysubs2Error, ValueError, KeyError) as e:
        raise MarkupParseError(f"Failed to parse subtitle markup: {e}") from e

    return [
        DialogueEvent(
            start=event.start / 1000,
            end=event.end / 1000,
            raw_text=event.text,
            combined_text=combined_text(event.text),
        )
        for event in subs.events
        if not event.is_comment
    ]
