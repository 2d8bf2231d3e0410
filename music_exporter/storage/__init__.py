"""
Storage Layer.

This package handles all data persistence: the configuration file, the media
cache that holds downloaded bytes, and the content index of exported files.
"""

from .cache import CacheSpan, MediaCache
from .config_manager import ConfigManager
from .content_index import ContentIndex, ContentRecord

__all__ = ["CacheSpan", "ConfigManager", "ContentIndex", "ContentRecord", "MediaCache"]
