"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class MusicExporterError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(MusicExporterError):
    """Raised for issues related to configuration loading or validation."""


class ContentIndexError(MusicExporterError):
    """
    Raised when the content index cannot create a record or open a stream for it.
    """


class ExportWriteError(MusicExporterError):
    """Raised when copying cached bytes into the destination fails."""


class FileIntegrityError(MusicExporterError):
    """Raised when an exported file fails a post-write integrity check."""
