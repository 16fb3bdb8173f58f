"""SQLite persistence for the dialogue index.

The store holds libraries, files, subtitle tracks, conversations and lines.
Two rules keep repeated runs from drifting:

- a file's tracks, conversations and lines are only ever written by
  ``replace_file_index``, which deletes the previous set and inserts the
  new one inside a single transaction;
- libraries are registered with ``ensure_library``, an insert-if-absent
  keyed by the unique library path.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from subtitle_index.errors import StoreError
from subtitle_index.logging import get_logger
from subtitle_index.models import (
    Conversation,
    ConversationHit,
    Library,
    LibraryFile,
    Line,
    Track,
    TrackDraft,
)

logger = get_logger(__name__)

SETUP_COMPLETE = "setupComplete"

SCHEMA = """
CREATE TABLE IF NOT EXISTS settings (
    setting TEXT PRIMARY KEY,
    value TEXT
);

CREATE TABLE IF NOT EXISTS libraries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    path TEXT NOT NULL UNIQUE,
    search_by_default INTEGER NOT NULL DEFAULT 1,
    still_exists INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS files (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    library_id INTEGER NOT NULL REFERENCES libraries(id) ON DELETE CASCADE,
    path TEXT NOT NULL,
    last_modified REAL NOT NULL,
    size INTEGER NOT NULL,
    still_exists INTEGER NOT NULL DEFAULT 1,
    indexed INTEGER NOT NULL DEFAULT 0,
    UNIQUE (library_id, path)
);

CREATE TABLE IF NOT EXISTS tracks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    file_id INTEGER NOT NULL REFERENCES files(id) ON DELETE CASCADE,
    track_number INTEGER NOT NULL,
    language TEXT,
    title TEXT
);

CREATE TABLE IF NOT EXISTS conversations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    track_id INTEGER NOT NULL REFERENCES tracks(id) ON DELETE CASCADE,
    indexed_text TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS lines (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    conversation_id INTEGER NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
    raw_text TEXT NOT NULL,
    display_text TEXT NOT NULL,
    start_ms INTEGER NOT NULL,
    end_ms INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_tracks_file ON tracks(file_id);
CREATE INDEX IF NOT EXISTS idx_conversations_track ON conversations(track_id);
CREATE INDEX IF NOT EXISTS idx_lines_conversation ON lines(conversation_id);
"""

# Columns update_file may touch
_FILE_COLUMNS = {"last_modified", "size", "still_exists", "indexed"}


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SubtitleStore:
    """Persistent store for the dialogue index.

    Example:
        store = SubtitleStore(Path("data/subtitles.db"))
        store.initialize()
        library = store.ensure_library("Movies", search_by_default=True)
    """

    def __init__(self, database_path: str | Path = ":memory:"):
        """Open (creating if needed) the index database.

        Args:
            database_path: SQLite file path, or ":memory:"

        Raises:
            StoreError: If the database cannot be opened
        """
        self.database_path = database_path
        try:
            if database_path != ":memory:":
                Path(database_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(database_path))
            self._conn.execute("PRAGMA foreign_keys = ON")
        except (sqlite3.Error, OSError) as e:
            raise StoreError(
                f"Failed to open index database: {e}",
                context={"path": str(database_path)},
            ) from e
        self._conn.row_factory = sqlite3.Row

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def initialize(self) -> None:
        """Create tables and indexes if they do not exist.

        Raises:
            StoreError: If the file is not a usable SQLite database
        """
        try:
            self._conn.executescript(SCHEMA)
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreError(
                f"Failed to initialize index database: {e}",
                context={"path": str(self.database_path)},
            ) from e

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SubtitleStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_setting(self, setting: str) -> str | None:
        row = self._conn.execute(
            "SELECT value FROM settings WHERE setting = ?", (setting,)
        ).fetchone()
        return row["value"] if row else None

    def set_setting(self, setting: str, value: str) -> None:
        with self._conn:
            self._conn.execute(
                "INSERT INTO settings (setting, value) VALUES (?, ?) "
                "ON CONFLICT(setting) DO UPDATE SET value = excluded.value",
                (setting, value),
            )

    # ------------------------------------------------------------------
    # Libraries
    # ------------------------------------------------------------------

    def list_libraries(self, still_exists_only: bool = False) -> list[Library]:
        query = "SELECT * FROM libraries"
        if still_exists_only:
            query += " WHERE still_exists"
        query += " ORDER BY id"
        return [Library.from_row(row) for row in self._conn.execute(query)]

    def get_library(self, path: str) -> Library | None:
        row = self._conn.execute(
            "SELECT * FROM libraries WHERE path = ?", (path,)
        ).fetchone()
        return Library.from_row(row) if row else None

    def ensure_library(self, path: str, search_by_default: bool = True) -> Library:
        """Register a library unless one with this path already exists.

        An existing library is returned unchanged.

        Args:
            path: Library path relative to the root directory
            search_by_default: Flag for a newly created library

        Returns:
            The new or existing Library
        """
        with self._conn:
            cursor = self._conn.execute(
                "INSERT INTO libraries (path, search_by_default, still_exists) "
                "VALUES (?, ?, 1) ON CONFLICT(path) DO NOTHING",
                (path, int(search_by_default)),
            )
        if cursor.rowcount:
            logger.info("Registered library", extra={"library": path})
        return self.get_library(path)

    def set_library_search_by_default(self, library_id: int, search_by_default: bool) -> None:
        with self._conn:
            self._conn.execute(
                "UPDATE libraries SET search_by_default = ? WHERE id = ?",
                (int(search_by_default), library_id),
            )

    def set_library_exists(self, library_id: int, still_exists: bool) -> None:
        with self._conn:
            self._conn.execute(
                "UPDATE libraries SET still_exists = ? WHERE id = ?",
                (int(still_exists), library_id),
            )

    def delete_library(self, library_id: int) -> None:
        """Hard-delete a library and, by cascade, everything under it."""
        with self._conn:
            self._conn.execute("DELETE FROM libraries WHERE id = ?", (library_id,))

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def list_files(self, library_id: int) -> list[LibraryFile]:
        rows = self._conn.execute(
            "SELECT * FROM files WHERE library_id = ? ORDER BY path", (library_id,)
        )
        return [LibraryFile.from_row(row) for row in rows]

    def get_file(self, library_id: int, path: str) -> LibraryFile | None:
        row = self._conn.execute(
            "SELECT * FROM files WHERE library_id = ? AND path = ?", (library_id, path)
        ).fetchone()
        return LibraryFile.from_row(row) if row else None

    def list_unindexed_files(self, library_id: int) -> list[LibraryFile]:
        rows = self._conn.execute(
            "SELECT * FROM files WHERE library_id = ? AND still_exists AND NOT indexed "
            "ORDER BY path",
            (library_id,),
        )
        return [LibraryFile.from_row(row) for row in rows]

    def insert_file(
        self,
        library_id: int,
        path: str,
        last_modified: float,
        size: int,
    ) -> LibraryFile:
        """Record a newly discovered file as present and not yet indexed."""
        with self._conn:
            cursor = self._conn.execute(
                "INSERT INTO files (library_id, path, last_modified, size, still_exists, indexed) "
                "VALUES (?, ?, ?, ?, 1, 0)",
                (library_id, path, last_modified, size),
            )
        return LibraryFile(
            id=cursor.lastrowid,
            library_id=library_id,
            path=path,
            last_modified=last_modified,
            size=size,
        )

    def update_file(self, file_id: int, **fields) -> None:
        """Update selected columns of a file row.

        Raises:
            ValueError: If an unknown column is given
        """
        unknown = set(fields) - _FILE_COLUMNS
        if unknown:
            raise ValueError(f"Unknown file columns: {sorted(unknown)}")
        if not fields:
            return

        assignments = ", ".join(f"{name} = ?" for name in fields)
        values = [int(v) if isinstance(v, bool) else v for v in fields.values()]
        with self._conn:
            self._conn.execute(
                f"UPDATE files SET {assignments} WHERE id = ?", (*values, file_id)
            )

    # ------------------------------------------------------------------
    # Derived dialogue data
    # ------------------------------------------------------------------

    def replace_file_index(self, file_id: int, tracks: list[TrackDraft]) -> dict[str, int]:
        """Replace a file's tracks, conversations and lines, and mark it indexed.

        Everything happens in one transaction: readers see either the old
        set or the new one, and a failure leaves the old set in place with
        the file still unindexed.

        Args:
            file_id: File whose derived data is replaced
            tracks: New tracks with their conversations

        Returns:
            Counts of inserted tracks, conversations and lines
        """
        counts = {"tracks": 0, "conversations": 0, "lines": 0}
        with self._conn:
            self._conn.execute("DELETE FROM tracks WHERE file_id = ?", (file_id,))

            for track in tracks:
                track_id = self._conn.execute(
                    "INSERT INTO tracks (file_id, track_number, language, title) "
                    "VALUES (?, ?, ?, ?)",
                    (file_id, track.track_number, track.language, track.title),
                ).lastrowid
                counts["tracks"] += 1

                for conversation in track.conversations:
                    conversation_id = self._conn.execute(
                        "INSERT INTO conversations (track_id, indexed_text) VALUES (?, ?)",
                        (track_id, conversation.indexed_text),
                    ).lastrowid
                    counts["conversations"] += 1

                    self._conn.executemany(
                        "INSERT INTO lines (conversation_id, raw_text, display_text, start_ms, end_ms) "
                        "VALUES (?, ?, ?, ?, ?)",
                        [
                            (conversation_id, line.raw_text, line.display_text, line.start_ms, line.end_ms)
                            for line in conversation.lines
                        ],
                    )
                    counts["lines"] += len(conversation.lines)

            self._conn.execute("UPDATE files SET indexed = 1 WHERE id = ?", (file_id,))

        return counts

    def list_tracks(self, file_id: int) -> list[Track]:
        rows = self._conn.execute(
            "SELECT * FROM tracks WHERE file_id = ? ORDER BY track_number, id", (file_id,)
        )
        return [Track(**dict(row)) for row in rows]

    def list_conversations(self, track_id: int) -> list[Conversation]:
        rows = self._conn.execute(
            "SELECT * FROM conversations WHERE track_id = ? ORDER BY id", (track_id,)
        )
        return [Conversation(**dict(row)) for row in rows]

    def list_lines(self, conversation_id: int) -> list[Line]:
        rows = self._conn.execute(
            "SELECT * FROM lines WHERE conversation_id = ? ORDER BY start_ms, id",
            (conversation_id,),
        )
        return [Line(**dict(row)) for row in rows]

    def count_rows(self) -> dict[str, int]:
        """Row counts per table."""
        return {
            table: self._conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
            for table in ("libraries", "files", "tracks", "conversations", "lines")
        }

    def search_conversations(
        self,
        query: str,
        include_all: bool = False,
        limit: int = 20,
    ) -> list[ConversationHit]:
        """Find conversations whose text contains every word of ``query``.

        Args:
            query: Words to look for (case-insensitive)
            include_all: Also search libraries not searched by default
            limit: Maximum number of hits

        Returns:
            Matching conversations with their location and time span
        """
        terms = query.split()
        if not terms:
            return []

        conditions = ["l.still_exists", "f.still_exists"]
        params: list = []
        if not include_all:
            conditions.append("l.search_by_default")
        for term in terms:
            conditions.append("c.indexed_text LIKE ? ESCAPE '\\'")
            params.append(f"%{_escape_like(term)}%")

        sql = f"""
            SELECT c.id AS conversation_id, l.path AS library_path, f.path AS file_path,
                   t.track_number, t.language, c.indexed_text,
                   MIN(ln.start_ms) AS start_ms, MAX(ln.end_ms) AS end_ms
            FROM conversations c
            JOIN tracks t ON t.id = c.track_id
            JOIN files f ON f.id = t.file_id
            JOIN libraries l ON l.id = f.library_id
            JOIN lines ln ON ln.conversation_id = c.id
            WHERE {" AND ".join(conditions)}
            GROUP BY c.id
            ORDER BY l.path, f.path, t.track_number, start_ms
            LIMIT ?
        """
        params.append(limit)
        return [ConversationHit(**dict(row)) for row in self._conn.execute(sql, params)]
