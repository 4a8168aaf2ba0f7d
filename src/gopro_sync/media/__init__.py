"""
Media discovery and metadata extraction.
"""

from gopro_sync.media.models import MediaFile
from gopro_sync.media.probe import MetadataExtractor
from gopro_sync.media.scanner import find_folder, scan, resolve_inputs

__all__ = ["MediaFile", "MetadataExtractor", "find_folder", "scan", "resolve_inputs"]
