"""Locating the FFmpeg and FFprobe executables.

Uses imageio-ffmpeg's bundled FFmpeg where available, with custom paths and
the system PATH as alternatives. FFprobe is never bundled by imageio-ffmpeg,
so it is looked for next to the bundled FFmpeg and then on PATH.
"""

from __future__ import annotations

import platform
import shutil
import subprocess
import sys
from pathlib import Path
from typing import NamedTuple

from pydantic import BaseModel, Field


class ToolInfo(NamedTuple):
    """Information about an FFmpeg-suite executable."""

    name: str
    path: str
    version: str
    available: bool
    source: str  # "custom", "imageio", "system", or "not_found"


class FFmpegConfig(BaseModel):
    """Configuration for FFmpeg binary location."""

    custom_ffmpeg_path: str | None = Field(
        default=None,
        description="Custom path to FFmpeg executable"
    )
    custom_ffprobe_path: str | None = Field(
        default=None,
        description="Custom path to FFprobe executable"
    )
    prefer_system: bool = Field(
        default=False,
        description="Prefer system FFmpeg over bundled version"
    )


def subprocess_flags() -> int:
    """Platform-specific subprocess creation flags."""
    if platform.system() == "Windows":
        return subprocess.CREATE_NO_WINDOW
    return 0


def _get_ffmpeg_from_imageio() -> str | None:
    try:
        import imageio_ffmpeg
        return imageio_ffmpeg.get_ffmpeg_exe()
    except (ImportError, RuntimeError):
        return None


def _get_ffprobe_from_imageio() -> str | None:
    ffmpeg_path = _get_ffmpeg_from_imageio()
    if ffmpeg_path is None:
        return None

    ffmpeg_dir = Path(ffmpeg_path).parent
    names = ["ffprobe.exe", "ffprobe"] if platform.system() == "Windows" else ["ffprobe"]
    for name in names:
        candidate = ffmpeg_dir / name
        if candidate.exists():
            return str(candidate)
    return None


def _locate(
    custom_path: str | None,
    prefer_system: bool,
    system_name: str,
    imageio_lookup,
) -> tuple[str | None, str]:
    """Resolve an executable, returning (path, source)."""
    if custom_path and Path(custom_path).exists():
        return custom_path, "custom"

    system_path = shutil.which(system_name)
    if prefer_system and system_path:
        return system_path, "system"

    imageio_path = imageio_lookup()
    if imageio_path:
        return imageio_path, "imageio"

    if system_path:
        return system_path, "system"
    return None, "not_found"


def get_ffmpeg_path(config: FFmpegConfig | None = None) -> str | None:
    """Get the path to FFmpeg executable.

    Searches in the following order (unless config prefers the system copy):
    1. Custom path from config
    2. imageio-ffmpeg bundled binary
    3. System PATH

    Args:
        config: Optional configuration for custom paths.

    Returns:
        Path to FFmpeg executable, or None if not found.
    """
    config = config or FFmpegConfig()
    path, _ = _locate(
        config.custom_ffmpeg_path, config.prefer_system, "ffmpeg", _get_ffmpeg_from_imageio
    )
    return path


def get_ffprobe_path(config: FFmpegConfig | None = None) -> str | None:
    """Get the path to FFprobe executable.

    Args:
        config: Optional configuration for custom paths.

    Returns:
        Path to FFprobe executable, or None if not found.
    """
    config = config or FFmpegConfig()
    path, _ = _locate(
        config.custom_ffprobe_path, config.prefer_system, "ffprobe", _get_ffprobe_from_imageio
    )
    return path


def _get_version(path: str) -> str | None:
    """Get the version string reported by ``<tool> -version``."""
    try:
        result = subprocess.run(
            [path, "-version"],
            capture_output=True,
            text=True,
            timeout=10,
            creationflags=subprocess_flags(),
        )
    except (subprocess.TimeoutExpired, OSError):
        return None

    if result.returncode != 0:
        return None
    # e.g. "ffmpeg version 6.0-full_build-www.gyan.dev Copyright ..."
    first_line = result.stdout.split("\n")[0]
    if "version" in first_line.lower():
        parts = first_line.split("version")
        if len(parts) > 1 and parts[1].strip():
            return parts[1].strip().split()[0]
    return first_line.strip() or None


def get_tool_info(name: str, config: FFmpegConfig | None = None) -> ToolInfo:
    """Describe where ``ffmpeg`` or ``ffprobe`` was found and its version."""
    config = config or FFmpegConfig()
    if name == "ffmpeg":
        path, source = _locate(
            config.custom_ffmpeg_path, config.prefer_system, "ffmpeg", _get_ffmpeg_from_imageio
        )
    elif name == "ffprobe":
        path, source = _locate(
            config.custom_ffprobe_path, config.prefer_system, "ffprobe", _get_ffprobe_from_imageio
        )
    else:
        raise ValueError(f"Unknown tool: {name}")

    if path is None:
        return ToolInfo(name=name, path="", version="", available=False, source="not_found")

    return ToolInfo(
        name=name,
        path=path,
        version=_get_version(path) or "unknown",
        available=True,
        source=source,
    )


def get_dependency_report(config: FFmpegConfig | None = None) -> dict[str, dict[str, str | bool]]:
    """Generate a dependency report for the ``doctor`` command."""
    report: dict[str, dict[str, str | bool]] = {}
    for name in ("ffmpeg", "ffprobe"):
        info = get_tool_info(name, config)
        report[name] = {
            "available": info.available,
            "path": info.path,
            "version": info.version,
            "source": info.source,
        }

    report["platform"] = {
        "system": platform.system(),
        "machine": platform.machine(),
        "python": sys.version.split()[0],
    }
    return report
