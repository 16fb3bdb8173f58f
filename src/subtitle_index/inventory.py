"""Library and file inventory.

Keeps the ``libraries`` and ``files`` tables in step with the configuration
and the filesystem. Nothing here deletes a file row: files that disappear
are tombstoned (``still_exists = 0``) so their indexed dialogue survives
until the owning library is removed from the configuration.
"""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from subtitle_index.config import IndexerConfig
from subtitle_index.errors import ConfigurationError
from subtitle_index.logging import LogContext, get_logger, log_operation_failed
from subtitle_index.models import Library
from subtitle_index.store import SETUP_COMPLETE, SubtitleStore

logger = get_logger(__name__)


@dataclass
class ScanSummary:
    """Changes made by a file scan."""

    added: int = 0
    removed: int = 0
    revived: int = 0
    changed: int = 0
    errors: list[str] = field(default_factory=list)

    def merge(self, other: "ScanSummary") -> None:
        self.added += other.added
        self.removed += other.removed
        self.revived += other.revived
        self.changed += other.changed
        self.errors.extend(other.errors)

    def to_dict(self) -> dict:
        return {
            "added": self.added,
            "removed": self.removed,
            "revived": self.revived,
            "changed": self.changed,
            "errors": len(self.errors),
        }


# ----------------------------------------------------------------------
# Libraries
# ----------------------------------------------------------------------


def sync_libraries(store: SubtitleStore, config: IndexerConfig) -> None:
    """Bring the library table in line with the configuration.

    With explicit library lists, libraries missing from both lists are
    deleted (along with everything indexed under them) and listed ones are
    registered. Without lists, first-time discovery runs once unless
    ``skip_setup`` is set.

    Raises:
        ConfigurationError: If discovery cannot read the root directory
    """
    if config.has_explicit_libraries:
        configured = set(config.configured_libraries)
        for library in store.list_libraries():
            if library.path not in configured:
                logger.info("Removing unconfigured library", extra={"library": library.path})
                store.delete_library(library.id)

        # A library in both lists is a default one.
        wanted = dict.fromkeys(config.nondefault_libraries, False)
        wanted.update(dict.fromkeys(config.default_libraries, True))
        for path, search_by_default in wanted.items():
            library = store.ensure_library(path, search_by_default=search_by_default)
            if library.search_by_default != search_by_default:
                store.set_library_search_by_default(library.id, search_by_default)
        return

    if config.skip_setup or store.get_setting(SETUP_COMPLETE):
        return

    logger.warning(
        "Performing first-time setup. Set SKIP_SETUP to disable this, or use "
        "DEFAULT_LIBRARIES and NONDEFAULT_LIBRARIES to list library locations."
    )
    discover_default_libraries(store, config)


def discover_default_libraries(store: SubtitleStore, config: IndexerConfig) -> list[Library]:
    """Register every directory directly under the root as a default library.

    Returns:
        The discovered libraries

    Raises:
        ConfigurationError: If the root directory cannot be read
    """
    root = config.root_directory
    try:
        with os.scandir(root) as entries:
            folders = sorted(entry.name for entry in entries if entry.is_dir())
    except OSError as e:
        raise ConfigurationError(
            f"Failed to scan for libraries: {e.strerror or e}",
            context={"root": str(root), "errno": e.errno},
        ) from e

    libraries = [store.ensure_library(name, search_by_default=True) for name in folders]
    store.set_setting(SETUP_COMPLETE, "1")
    return libraries


def _path_exists(path: Path) -> bool:
    try:
        os.stat(path)
    except (OSError, ValueError):
        return False
    return True


def check_library_existence(store: SubtitleStore, config: IndexerConfig) -> dict[str, bool]:
    """Refresh every library's ``still_exists`` flag.

    Roots are checked concurrently on a pool of
    ``config.existence_check_workers`` threads; the store is only written
    from the calling thread, and only for flags that changed.

    Returns:
        Mapping of library path to existence
    """
    libraries = store.list_libraries()
    if not libraries:
        return {}

    with ThreadPoolExecutor(max_workers=config.existence_check_workers) as pool:
        results = list(
            pool.map(lambda lib: _path_exists(config.library_root(lib.path)), libraries)
        )

    for library, exists in zip(libraries, results):
        if exists != library.still_exists:
            logger.info(
                "Library %s", "reappeared" if exists else "is missing",
                extra={"library": library.path},
            )
            store.set_library_exists(library.id, exists)

    return {library.path: exists for library, exists in zip(libraries, results)}


# ----------------------------------------------------------------------
# Files
# ----------------------------------------------------------------------


def list_files_recursive(directory: Path, relative_to: Path | None = None) -> list[str]:
    """List regular files under a directory as sorted POSIX relative paths.

    Symbolic links are neither followed nor listed. Any unreadable
    directory fails the whole listing, so a partial view of the library is
    never mistaken for files having been removed.

    Raises:
        OSError: If ``directory`` or any directory below it cannot be read
    """
    relative_to = relative_to or directory
    files = []
    subdirs = []

    with os.scandir(directory) as entries:
        for entry in entries:
            if entry.is_file(follow_symlinks=False):
                files.append(Path(entry.path).relative_to(relative_to).as_posix())
            elif entry.is_dir(follow_symlinks=False):
                subdirs.append(Path(entry.path))

    for subdir in subdirs:
        files.extend(list_files_recursive(subdir, relative_to))

    return sorted(files)


def _stat_file(path: Path) -> tuple[int, float]:
    """Return (size, mtime in milliseconds)."""
    stat = os.stat(path)
    return stat.st_size, stat.st_mtime_ns / 1_000_000


def scan_library_files(
    store: SubtitleStore,
    library: Library,
    config: IndexerConfig,
) -> ScanSummary:
    """Diff one library's files on disk against the store.

    Args:
        store: Index store
        library: Library to scan (its root must exist)
        config: Indexer configuration

    Returns:
        ScanSummary of what changed

    Raises:
        OSError: If any directory of the library cannot be listed; nothing
            is written in that case
    """
    summary = ScanSummary()
    library_root = config.library_root(library.path)
    on_disk = list_files_recursive(library_root)
    on_disk_set = set(on_disk)

    known = {f.path: f for f in store.list_files(library.id)}

    for existing in known.values():
        if existing.path not in on_disk_set and existing.still_exists:
            store.update_file(existing.id, still_exists=False)
            summary.removed += 1

    for relative_path in on_disk:
        full_path = library_root / relative_path
        try:
            size, last_modified = _stat_file(full_path)
        except OSError as e:
            logger.warning(
                f"Error while scanning file: {e}", extra={"path": str(full_path)}
            )
            summary.errors.append(str(full_path))
            continue

        existing = known.get(relative_path)
        if existing is None:
            store.insert_file(library.id, relative_path, last_modified, size)
            summary.added += 1
            continue

        if not existing.still_exists:
            store.update_file(existing.id, still_exists=True)
            summary.revived += 1

        if not existing.matches_stat(size, last_modified):
            store.update_file(
                existing.id, last_modified=last_modified, size=size, indexed=False
            )
            summary.changed += 1

    return summary


def scan_files(store: SubtitleStore, config: IndexerConfig) -> ScanSummary:
    """Scan every library whose root still exists."""
    summary = ScanSummary()
    for library in store.list_libraries(still_exists_only=True):
        with LogContext(library=library.path):
            try:
                library_summary = scan_library_files(store, library, config)
            except OSError as e:
                log_operation_failed(logger, "scan library", e)
                summary.errors.append(library.path)
                continue
            logger.info("Scanned library", extra=library_summary.to_dict())
        summary.merge(library_summary)
    return summary
