"""
Provides methods for checking the integrity of exported media files.
"""

import logging

import mutagen
from mutagen import MutagenError

log = logging.getLogger(__name__)


class FileIntegrityChecker:
    """A collection of static methods for validating media file integrity."""

    @staticmethod
    def check_audio(filepath: str) -> bool:
        """
        Performs a basic integrity check on an exported audio file.

        Checks that mutagen recognises the container and reports stream info.

        Args:
            filepath: Path to the audio file.

        Returns:
            True if the file appears to be a valid audio file, False otherwise.
        """
        try:
            audio = mutagen.File(filepath)
        except MutagenError as e:
            log.warning(f"Integrity check failed for '{filepath}': {e}")
            return False

        if audio is None:
            log.warning(
                f"Integrity check failed for '{filepath}': Unrecognised audio format."
            )
            return False
        if audio.info is None or getattr(audio.info, "length", 0) <= 0:
            log.warning(
                f"Integrity check failed for '{filepath}': No valid stream info."
            )
            return False
        return True
