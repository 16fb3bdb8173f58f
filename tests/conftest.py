"""Shared fixtures for subtitle-index tests."""

from unittest.mock import Mock

import pytest

from subtitle_index.config import IndexerConfig
from subtitle_index.ffmpeg import FFmpegWrapper
from subtitle_index.models import SubtitleStream
from subtitle_index.store import SubtitleStore

SAMPLE_ASS = r"""[Script Info]
ScriptType: v4.00+
PlayResX: 384
PlayResY: 288

[V4+ Styles]
Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, BackColour, Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, BorderStyle, Outline, Shadow, Alignment, MarginL, MarginR, MarginV, Encoding
Style: Default,Arial,16,&H00FFFFFF,&H00FFFFFF,&H00000000,&H00000000,0,0,0,0,100,100,0,0,1,1,0,2,10,10,10,1

[Events]
Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text
Dialogue: 0,0:00:04.00,0:00:05.00,Default,,0,0,0,,Much later
Dialogue: 0,0:00:00.00,0:00:01.00,Default,,0,0,0,,{\i1}Hello{\i0} there\Nfriend
Comment: 0,0:00:01.00,0:00:02.00,Default,,0,0,0,,Not spoken
Dialogue: 0,0:00:01.20,0:00:02.00,Default,,0,0,0,,How are you?
"""


@pytest.fixture
def store():
    """An initialized in-memory store."""
    s = SubtitleStore(":memory:")
    s.initialize()
    yield s
    s.close()


@pytest.fixture
def media_root(tmp_path):
    """A library root with one library holding two files."""
    root = tmp_path / "media"
    movies = root / "Movies"
    (movies / "Extras").mkdir(parents=True)
    (movies / "film.mkv").write_bytes(b"film")
    (movies / "Extras" / "bonus.mkv").write_bytes(b"bonus-feature")
    return root


@pytest.fixture
def config(media_root):
    return IndexerConfig(root_directory=media_root, default_libraries=("Movies",))


@pytest.fixture
def fake_ffmpeg():
    """An FFmpeg wrapper reporting one video and one subtitle stream per file."""
    ffmpeg = Mock(spec=FFmpegWrapper)
    ffmpeg.probe_streams.return_value = [
        SubtitleStream(index=0, codec_type="video", codec_name="h264"),
        SubtitleStream(index=2, codec_type="subtitle", codec_name="ass", language="eng", title="Full"),
    ]
    ffmpeg.extract_subtitle_ass.return_value = SAMPLE_ASS
    return ffmpeg
