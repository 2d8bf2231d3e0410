"""
Utilities for building export filenames and handling directories.
"""

import re
from pathlib import Path

from music_exporter.models.config import get_extension

MAX_NAME_LENGTH = 200

_UNSAFE_CHARS = re.compile(r'[\\/:*?"<>|]')


def sanitize_display_name(name: str) -> str:
    """
    Replaces characters that are unsafe in filenames with '_', strips
    surrounding whitespace and caps the result at 200 characters.
    """
    return _UNSAFE_CHARS.sub("_", name).strip()[:MAX_NAME_LENGTH]


def build_filename(artist: str, title: str, mime_type: str) -> str:
    """Builds the '<artist> - <title>.<ext>' filename for an export."""
    return sanitize_display_name(f"{artist} - {title}") + get_extension(mime_type)


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)
