"""
music-exporter: copies cached audio tracks into the public Music folder.
"""

__version__ = "0.1.0"
