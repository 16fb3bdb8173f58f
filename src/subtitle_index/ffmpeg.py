"""FFmpeg wrapper for subtitle stream inspection and extraction.

Provides the two external capabilities the indexer relies on: listing a
container's streams with FFprobe, and demuxing one subtitle stream to
Advanced SubStation Alpha text with FFmpeg. Every invocation has a
deadline; a child that overruns it is killed before the error is raised.
"""

from __future__ import annotations

import json
import subprocess
from pathlib import Path

from subtitle_index.errors import DemuxError, FFmpegNotFoundError, ProbeError
from subtitle_index.ffmpeg_binary import (
    FFmpegConfig,
    get_ffmpeg_path,
    get_ffprobe_path,
    subprocess_flags,
)
from subtitle_index.logging import get_logger
from subtitle_index.models import SubtitleStream

logger = get_logger(__name__)


class FFmpegWrapper:
    """Runs FFprobe and FFmpeg against media files."""

    def __init__(
        self,
        config: FFmpegConfig | None = None,
        probe_timeout: float = 30.0,
        demux_timeout: float = 300.0,
    ) -> None:
        """Initialize FFmpeg wrapper.

        Args:
            config: Optional FFmpeg binary configuration.
            probe_timeout: Deadline in seconds for one FFprobe call.
            demux_timeout: Deadline in seconds for one FFmpeg demux call.

        Raises:
            FFmpegNotFoundError: If FFmpeg or FFprobe is not available.
        """
        self._config = config or FFmpegConfig()
        self._ffmpeg_path = get_ffmpeg_path(self._config)
        self._ffprobe_path = get_ffprobe_path(self._config)
        self.probe_timeout = probe_timeout
        self.demux_timeout = demux_timeout

        if self._ffmpeg_path is None:
            raise FFmpegNotFoundError(
                "FFmpeg not found. Please install imageio-ffmpeg or add FFmpeg to PATH."
            )
        if self._ffprobe_path is None:
            raise FFmpegNotFoundError(
                "FFprobe not found. Please add FFprobe to PATH or set FFPROBE_PATH."
            )

    @property
    def ffmpeg_path(self) -> str:
        return self._ffmpeg_path

    @property
    def ffprobe_path(self) -> str:
        return self._ffprobe_path

    def _run(
        self,
        cmd: list[str],
        timeout: float,
        error_cls: type[ProbeError] | type[DemuxError],
        context: dict,
    ) -> subprocess.CompletedProcess:
        """Run a command, translating every failure into ``error_cls``.

        ``subprocess.run`` kills the child when the timeout expires, so no
        process outlives a failed call.
        """
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                timeout=timeout,
                stdin=subprocess.DEVNULL,
                creationflags=subprocess_flags(),
            )
        except subprocess.TimeoutExpired as e:
            raise error_cls(f"{Path(cmd[0]).name} timed out after {timeout} seconds", context) from e
        except FileNotFoundError as e:
            raise FFmpegNotFoundError(f"Executable not found: {cmd[0]}") from e
        except OSError as e:
            raise error_cls(f"Failed to run {Path(cmd[0]).name}: {e}", context) from e

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise error_cls(
                f"{Path(cmd[0]).name} exited with code {result.returncode}: {stderr or 'no output'}",
                context,
            )
        return result

    def probe_streams(self, media_path: str | Path) -> list[SubtitleStream]:
        """List every stream in a media file.

        Args:
            media_path: Absolute path to the media file.

        Returns:
            Streams in container order.

        Raises:
            ProbeError: If FFprobe fails, times out, or returns bad JSON.
        """
        media_path = str(media_path)
        context = {"path": media_path}
        args = [
            self._ffprobe_path,
            "-v", "quiet",
            "-print_format", "json",
            "-show_streams",
            media_path,
        ]
        result = self._run(args, self.probe_timeout, ProbeError, context)

        try:
            data = json.loads(result.stdout.decode("utf-8", errors="replace") or "{}")
            return [SubtitleStream.from_probe(s) for s in data.get("streams", [])]
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise ProbeError(f"Failed to parse FFprobe output: {e}", context) from e

    def extract_subtitle_ass(self, media_path: str | Path, stream_index: int) -> str:
        """Demux one subtitle stream and render it as ASS text.

        Args:
            media_path: Absolute path to the media file.
            stream_index: Container stream index (as reported by FFprobe).

        Returns:
            The stream converted to Advanced SubStation Alpha markup.

        Raises:
            DemuxError: If FFmpeg fails or times out.
        """
        media_path = str(media_path)
        context = {"path": media_path, "stream": stream_index}
        args = [
            self._ffmpeg_path,
            "-nostdin",
            "-v", "error",
            "-i", media_path,
            "-map", f"0:{stream_index}",
            "-f", "ass",
            "-",
        ]
        logger.debug("Demuxing subtitle stream", extra=context)
        result = self._run(args, self.demux_timeout, DemuxError, context)
        return result.stdout.decode("utf-8", errors="replace")


def create_ffmpeg_wrapper(
    config: FFmpegConfig | None = None,
    probe_timeout: float = 30.0,
    demux_timeout: float = 300.0,
) -> FFmpegWrapper:
    """Factory function to create an FFmpegWrapper instance.

    Raises:
        FFmpegNotFoundError: If FFmpeg or FFprobe is not available.
    """
    return FFmpegWrapper(config, probe_timeout=probe_timeout, demux_timeout=demux_timeout)
