"""
Data structures describing a single export request and its outcome.
"""

from dataclasses import dataclass
from enum import Enum


class ExportStatus(str, Enum):
    """Terminal states of an export call."""

    SUCCESS = "success"
    NO_DATA = "no_data"
    FAILED = "failed"


@dataclass(frozen=True)
class ExportRequest:
    """An immutable request to export one cached track."""

    identifier: str
    title: str
    artist: str
    mime_type: str = "audio/mp4"


@dataclass
class ExportResult:
    """The reported outcome of an export."""

    status: ExportStatus
    identifier: str
    filename: str = ""
    location: str = ""
    bytes_written: int = 0
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status is ExportStatus.SUCCESS
