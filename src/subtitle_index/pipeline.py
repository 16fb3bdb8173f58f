"""The full indexing pass: libraries, files, then dialogue."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from subtitle_index.config import IndexerConfig
from subtitle_index.extraction import IndexingService, IndexSummary
from subtitle_index.ffmpeg import FFmpegWrapper, create_ffmpeg_wrapper
from subtitle_index.inventory import (
    ScanSummary,
    check_library_existence,
    scan_files,
    sync_libraries,
)
from subtitle_index.logging import get_logger, log_operation_complete, log_operation_start
from subtitle_index.store import SubtitleStore

logger = get_logger(__name__)


@dataclass
class PipelineResult:
    """What one pass did."""

    libraries: dict[str, bool] = field(default_factory=dict)  # path -> exists
    scan: ScanSummary = field(default_factory=ScanSummary)
    index: IndexSummary = field(default_factory=IndexSummary)
    duration: float = 0.0


def perform_scans(
    config: IndexerConfig,
    store: SubtitleStore,
    ffmpeg: FFmpegWrapper | None = None,
) -> PipelineResult:
    """Run library sync, existence check, file scan and indexing in order.

    Each stage may be re-run any number of times; repeated passes over an
    unchanged library leave the store unchanged.

    Args:
        config: Indexer configuration
        store: Initialized index store
        ffmpeg: FFmpeg wrapper (created from config when omitted)

    Returns:
        PipelineResult

    Raises:
        ConfigurationError: If first-time discovery cannot read the root
        FFmpegNotFoundError: If FFmpeg or FFprobe is not available
    """
    started = time.monotonic()
    log_operation_start(logger, "scan", root=str(config.root_directory))

    if ffmpeg is None:
        ffmpeg = create_ffmpeg_wrapper(
            config.ffmpeg,
            probe_timeout=config.probe_timeout,
            demux_timeout=config.demux_timeout,
        )

    result = PipelineResult()
    sync_libraries(store, config)
    result.libraries = check_library_existence(store, config)
    result.scan = scan_files(store, config)
    result.index = IndexingService(store, config, ffmpeg).index_files()
    result.duration = time.monotonic() - started

    log_operation_complete(
        logger,
        "scan",
        duration=result.duration,
        **result.scan.to_dict(),
        indexed_files=result.index.files,
    )
    return result
