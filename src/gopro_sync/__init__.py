"""
GoPro Sync - move, join and convert camera videos

Moves clips off a GoPro, joins each operational day's clips into a
single file and transcodes the daily files to a smaller codec.
"""

__version__ = "1.0.0"
__author__ = "GoPro Sync Team"

from gopro_sync.config import Config
from gopro_sync.app import GoProSyncApp

__all__ = ["Config", "GoProSyncApp", "__version__"]
