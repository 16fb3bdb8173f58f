"""Subtitle extraction for unindexed files.

For each file that is present but not indexed, every subtitle stream is
demuxed, parsed and segmented into conversations, then the file's derived
data is replaced in one store transaction. Files are processed one at a
time, so at most one FFmpeg process runs at once.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from subtitle_index.config import IndexerConfig
from subtitle_index.errors import ErrorContext, ProbeError
from subtitle_index.ffmpeg import FFmpegWrapper
from subtitle_index.logging import get_logger, log_operation_complete
from subtitle_index.markup import parse_ass
from subtitle_index.models import Library, LibraryFile, SubtitleStream, TrackDraft
from subtitle_index.segmenter import segment
from subtitle_index.store import SubtitleStore

logger = get_logger(__name__)


@dataclass
class IndexSummary:
    """Totals for an indexing pass."""

    files: int = 0
    tracks: int = 0
    conversations: int = 0
    lines: int = 0
    failed_tracks: int = 0
    failed_files: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "files": self.files,
            "tracks": self.tracks,
            "conversations": self.conversations,
            "lines": self.lines,
            "failed_tracks": self.failed_tracks,
            "failed_files": len(self.failed_files),
        }


class IndexingService:
    """Extracts and stores the dialogue of unindexed files.

    Example:
        service = IndexingService(store, config, FFmpegWrapper())
        summary = service.index_files()
    """

    def __init__(
        self,
        store: SubtitleStore,
        config: IndexerConfig,
        ffmpeg: FFmpegWrapper,
    ):
        self.store = store
        self.config = config
        self.ffmpeg = ffmpeg

    def index_files(self) -> IndexSummary:
        """Index every present, unindexed file in every present library.

        A store failure on one file is logged and the pass moves on; files
        already committed stay committed. A missing FFmpeg or FFprobe binary
        aborts the pass, leaving the current file unindexed.

        Raises:
            FFmpegNotFoundError: If FFmpeg or FFprobe is not available
        """
        summary = IndexSummary()
        for library in self.store.list_libraries(still_exists_only=True):
            for library_file in self.store.list_unindexed_files(library.id):
                log = logger.with_context(library=library.path, file=library_file.path)
                with ErrorContext("index file", suppress=True, log=log) as ctx:
                    tracks, counts = self.index_file(library, library_file)
                if ctx.error is not None:
                    summary.failed_files.append(f"{library.path}/{library_file.path}")
                    continue

                summary.files += 1
                summary.tracks += counts["tracks"]
                summary.conversations += counts["conversations"]
                summary.lines += counts["lines"]
                summary.failed_tracks += sum(1 for t in tracks if t.error)
        return summary

    def index_file(
        self,
        library: Library,
        library_file: LibraryFile,
    ) -> tuple[list[TrackDraft], dict[str, int]]:
        """Extract one file's subtitle tracks and replace its stored dialogue.

        The file is marked indexed even when some or all tracks fail, so it
        is not retried until its size or modification time changes.

        Returns:
            The track drafts and the stored row counts
        """
        started = time.monotonic()
        absolute_path = self.config.library_root(library.path) / library_file.path
        log = logger.with_context(library=library.path, file=library_file.path)

        streams = self._probe(absolute_path, log)
        subtitle_streams = [s for s in streams if s.is_subtitle]

        tracks = [self._extract_track(absolute_path, stream, log) for stream in subtitle_streams]
        counts = self.store.replace_file_index(library_file.id, tracks)

        log_operation_complete(
            log,
            "index file",
            duration=time.monotonic() - started,
            **counts,
        )
        return tracks, counts

    def _probe(self, absolute_path, log) -> list[SubtitleStream]:
        """List a file's streams; a failed probe means no streams."""
        try:
            return self.ffmpeg.probe_streams(absolute_path)
        except ProbeError as e:
            log.info(f"Probe failed, treating as no streams: {e.message}")
            return []

    def _extract_track(self, absolute_path, stream: SubtitleStream, log) -> TrackDraft:
        track = TrackDraft(
            track_number=stream.index,
            language=stream.language,
            title=stream.title,
        )

        with ErrorContext(
            "extract track",
            context={"stream": stream.index, "codec": stream.codec_name},
            suppress=True,
            log=log,
        ) as ctx:
            markup = self.ffmpeg.extract_subtitle_ass(absolute_path, stream.index)
            events = parse_ass(markup)
            track.conversations = segment(events, self.config.conversation_gap_seconds)

        if ctx.error is not None:
            track.error = str(ctx.error)
            track.conversations = []
        else:
            log.debug(
                "Extracted track",
                extra={"stream": stream.index, "conversations": len(track.conversations)},
            )
        return track
