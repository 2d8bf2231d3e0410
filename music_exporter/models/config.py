"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pathlib import Path

from pathvalidate import sanitize_filename
from pydantic import BaseModel, Field, field_validator, model_validator

# Maps cache MIME types to the file extension and the MIME type recorded
# in the content index.
MIME_TYPE_MAP = {
    "audio/mp4": {"ext": ".m4a", "index_mime": "audio/mp4"},
    "audio/webm": {"ext": ".webm", "index_mime": "audio/ogg"},
    "audio/ogg": {"ext": ".ogg", "index_mime": "audio/ogg"},
    "audio/mpeg": {"ext": ".mp3", "index_mime": "audio/mpeg"},
    "audio/opus": {"ext": ".opus", "index_mime": "audio/opus"},
    "audio/flac": {"ext": ".flac", "index_mime": "audio/flac"},
}

DEFAULT_EXTENSION = ".m4a"

STORAGE_MODES = ("auto", "scoped", "direct")


def get_extension(mime_type: str) -> str:
    """Returns the file extension (with leading dot) for a cache MIME type."""
    return MIME_TYPE_MAP.get(mime_type, {}).get("ext", DEFAULT_EXTENSION)


def to_index_mime_type(mime_type: str) -> str:
    """Returns the MIME type to record in the content index."""
    return MIME_TYPE_MAP.get(mime_type, {}).get("index_mime", mime_type)


class ExportConfig(BaseModel):
    """A validated configuration model for the application."""

    # Destination
    app_name: str = "MusicExporter"
    music_dir: str = str(Path.home() / "Music")

    # Storage backends
    cache_dir: str = ""
    storage_mode: str = "auto"
    content_index_path: str = ""
    media_root: str = ""

    # Copy behaviour
    chunk_size: int = 8192
    verify_output: bool = False

    # Internal fields not loaded from INI file
    config_path: str = Field(..., repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("app_name")
    @classmethod
    def validate_app_name(cls, v: str) -> str:
        """Ensures the subfolder name is a single, safe path component."""
        cleaned = sanitize_filename(v, platform="universal")
        if not cleaned:
            raise ValueError("App name cannot be empty.")
        return cleaned

    @field_validator("storage_mode")
    @classmethod
    def validate_storage_mode(cls, v: str) -> str:
        """Ensures the storage mode is one of the supported values."""
        v = v.lower()
        if v not in STORAGE_MODES:
            raise ValueError(
                f"Storage mode must be one of {', '.join(STORAGE_MODES)}, got '{v}'."
            )
        return v

    @field_validator("chunk_size")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        """Ensures a reasonable copy buffer size."""
        if v < 1024 or v > 16 * 1024 * 1024:
            raise ValueError("Chunk size must be between 1 KB and 16 MB.")
        return v

    @model_validator(mode="after")
    def validate_scoped_storage(self) -> "ExportConfig":
        """Checks that scoped storage has an index to write through."""
        if self.storage_mode == "scoped" and not self.content_index_path:
            raise ValueError(
                "Storage mode 'scoped' requires 'content_index_path' to be set."
            )
        return self

    @property
    def relative_path(self) -> str:
        """The public location shown to users, e.g. 'Music/MyApp/'."""
        return f"Music/{self.app_name}/"

    def resolved_cache_dir(self) -> Path:
        """Returns the media cache directory, defaulting under the config dir."""
        if self.cache_dir:
            return Path(self.cache_dir).expanduser()
        return Path(self.config_path) / "media_cache"

    def resolved_media_root(self) -> Path:
        """Returns the root directory the content index stores files under."""
        if self.media_root:
            return Path(self.media_root).expanduser()
        return Path(self.music_dir).expanduser().parent

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
