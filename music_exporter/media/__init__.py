"""
Media Processing Layer.

This package is responsible for validating exported media files.
"""

from .integrity import FileIntegrityChecker

__all__ = ["FileIntegrityChecker"]
