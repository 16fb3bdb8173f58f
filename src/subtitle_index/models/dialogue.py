"""In-memory dialogue data produced during extraction.

These models carry a file's extraction results from ffprobe/ffmpeg and the
subtitle parser through segmentation, up to the point where the store
assigns identifiers to them.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class SubtitleStream(BaseModel):
    """A stream reported by ffprobe."""

    index: int
    codec_type: str
    codec_name: str | None = None
    language: str | None = None
    title: str | None = None

    @property
    def is_subtitle(self) -> bool:
        return self.codec_type == "subtitle"

    @classmethod
    def from_probe(cls, stream: dict) -> "SubtitleStream":
        """Create from one entry of ffprobe's ``streams`` list."""
        tags = stream.get("tags") or {}
        return cls(
            index=int(stream["index"]),
            codec_type=stream.get("codec_type") or "unknown",
            codec_name=stream.get("codec_name"),
            language=tags.get("language") or None,
            title=tags.get("title") or None,
        )


class DialogueEvent(BaseModel):
    """A parsed dialogue event.

    Times are in seconds. ``raw_text`` is the event text exactly as written
    in the subtitle markup; ``combined_text`` has override blocks removed but
    keeps line-break escapes such as ``\\N``.
    """

    start: float
    end: float
    raw_text: str
    combined_text: str


class LineDraft(BaseModel):
    """A line waiting to be persisted."""

    raw_text: str
    display_text: str
    start_ms: int
    end_ms: int


class ConversationDraft(BaseModel):
    """A conversation waiting to be persisted."""

    indexed_text: str
    lines: list[LineDraft] = Field(default_factory=list)

    @property
    def end_ms(self) -> int:
        """Latest end among the lines, not just the last line's end."""
        return max((line.end_ms for line in self.lines), default=0)


class TrackDraft(BaseModel):
    """A subtitle track and its conversations, before persistence."""

    track_number: int
    language: str | None = None
    title: str | None = None
    conversations: list[ConversationDraft] = Field(default_factory=list)
    error: str | None = None  # Set when extraction of this track failed
