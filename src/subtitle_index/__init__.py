"""Subtitle Index - searchable dialogue for a media library.

Discovers video files under configured library roots, extracts their
subtitle tracks with FFmpeg, and groups the timed dialogue into
conversations stored in SQLite for full-text search.
"""

__version__ = "0.1.0"
