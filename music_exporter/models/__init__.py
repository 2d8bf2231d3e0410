"""
Data Models Layer.

This package contains the models that define the core data structures
used throughout the application, such as configuration and export requests.
"""

from .config import ExportConfig
from .export import ExportRequest, ExportResult, ExportStatus

__all__ = ["ExportConfig", "ExportRequest", "ExportResult", "ExportStatus"]
