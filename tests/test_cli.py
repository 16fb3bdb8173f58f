"""Tests for the command-line interface."""

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from subtitle_index import __version__
from subtitle_index.cli import app
from subtitle_index.errors import FFmpegNotFoundError
from subtitle_index.extraction import IndexSummary
from subtitle_index.inventory import ScanSummary
from subtitle_index.pipeline import PipelineResult
from subtitle_index.store import SubtitleStore

from test_store import make_track

runner = CliRunner()


@pytest.fixture
def env(tmp_path, media_root):
    return {
        "ROOT_DIRECTORY": str(media_root),
        "DEFAULT_LIBRARIES": "Movies",
        "DATABASE_PATH": str(tmp_path / "db" / "subtitles.db"),
    }


@pytest.fixture
def seeded(env):
    """A database holding one indexed file."""
    with SubtitleStore(env["DATABASE_PATH"]) as store:
        store.initialize()
        library = store.ensure_library("Movies")
        film = store.insert_file(library.id, "film.mkv", 1.0, 4)
        store.replace_file_index(film.id, [make_track(2, ["Hello there friend", "Goodbye"], start=3661)])
    return env


class TestVersion:
    """Tests for --version."""

    def test_version(self):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output


class TestScanCommand:
    """Tests for 'subtitle-index scan'."""

    def test_prints_summary(self, env):
        outcome = PipelineResult(
            libraries={"Movies": True},
            scan=ScanSummary(added=2),
            index=IndexSummary(files=2, tracks=2, conversations=4, lines=6),
            duration=0.5,
        )

        with patch("subtitle_index.cli.perform_scans", return_value=outcome) as perform:
            result = runner.invoke(app, ["scan"], env=env)

        assert result.exit_code == 0
        assert "Scan Summary" in result.output
        assert "2 new" in result.output
        config = perform.call_args[0][0]
        assert config.default_libraries == ("Movies",)

    def test_reports_problems(self, env):
        outcome = PipelineResult(
            scan=ScanSummary(errors=["Movies"]),
            index=IndexSummary(failed_tracks=1),
        )

        with patch("subtitle_index.cli.perform_scans", return_value=outcome):
            result = runner.invoke(app, ["scan"], env=env)

        assert result.exit_code == 0
        assert "failed tracks" in result.output

    def test_fatal_error_exits_nonzero(self, env):
        with patch(
            "subtitle_index.cli.perform_scans",
            side_effect=FFmpegNotFoundError("FFprobe not found"),
        ):
            result = runner.invoke(app, ["scan"], env=env)

        assert result.exit_code == 1
        assert "FFprobe not found" in result.output

    def test_invalid_configuration(self, env):
        env["EXISTENCE_CHECK_WORKERS"] = "0"

        result = runner.invoke(app, ["scan"], env=env)

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output


class TestLibrariesCommand:
    """Tests for 'subtitle-index libraries'."""

    def test_corrupt_database(self, env, tmp_path):
        db = tmp_path / "db" / "subtitles.db"
        db.parent.mkdir()
        db.write_bytes(b"this is not an sqlite database, just some text " * 4)

        result = runner.invoke(app, ["libraries"], env=env)

        assert result.exit_code == 1
        assert "index database" in result.output

    def test_no_libraries(self, env):
        result = runner.invoke(app, ["libraries"], env=env)

        assert result.exit_code == 0
        assert "No libraries registered" in result.output

    def test_lists_libraries(self, seeded):
        result = runner.invoke(app, ["libraries"], env=seeded)

        assert result.exit_code == 0
        assert "Movies" in result.output


class TestSearchCommand:
    """Tests for 'subtitle-index search'."""

    def test_finds_conversation(self, seeded):
        result = runner.invoke(app, ["search", "friend"], env=seeded)

        assert result.exit_code == 0
        assert "1 matches" in result.output
        assert "1:01:01.000" in result.output

    def test_no_results(self, seeded):
        result = runner.invoke(app, ["search", "zebra"], env=seeded)

        assert result.exit_code == 0
        assert "No conversations found" in result.output


class TestDoctorCommand:
    """Tests for 'subtitle-index doctor'."""

    @staticmethod
    def report(ffprobe_available):
        return {
            "ffmpeg": {"available": True, "path": "/usr/bin/ffmpeg", "version": "6.1", "source": "system"},
            "ffprobe": {
                "available": ffprobe_available,
                "path": "/usr/bin/ffprobe" if ffprobe_available else "",
                "version": "6.1" if ffprobe_available else "",
                "source": "system" if ffprobe_available else "not_found",
            },
            "platform": {"system": "Linux", "machine": "x86_64", "python": "3.12.0"},
        }

    def test_all_available(self, env):
        with patch("subtitle_index.cli.get_dependency_report", return_value=self.report(True)):
            result = runner.invoke(app, ["doctor"], env=env)

        assert result.exit_code == 0
        assert "Available" in result.output

    def test_missing_tool(self, env):
        with patch("subtitle_index.cli.get_dependency_report", return_value=self.report(False)):
            result = runner.invoke(app, ["doctor"], env=env)

        assert result.exit_code == 1
        assert "Not Found" in result.output
