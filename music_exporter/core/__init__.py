"""
Core export engine.

The `MusicFileExporter` resolves the output name, checks the media cache and
streams the cached bytes into whichever `WriteTarget` the caller selected.
"""

from .exporter import MusicFileExporter
from .write_target import (
    ContentIndexTarget,
    DirectFileTarget,
    WriteTarget,
    detect_content_index,
    select_write_target,
)

__all__ = [
    "ContentIndexTarget",
    "DirectFileTarget",
    "MusicFileExporter",
    "WriteTarget",
    "detect_content_index",
    "select_write_target",
]
