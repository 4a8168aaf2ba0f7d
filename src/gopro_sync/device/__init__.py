"""
Camera filesystem mounting through gphotofs.
"""

import logging
import subprocess
from pathlib import Path
from typing import Callable

logger = logging.getLogger(__name__)


class DeviceMount:
    """Mounts the camera with gphotofs and releases it with fusermount."""

    def __init__(self, config, run: Callable = subprocess.run):
        self.mount_point = Path(config.paths.device_mount)
        self.gphotofs = config.tools.gphotofs
        self.fusermount = config.tools.fusermount
        self.enabled = config.device.mount_enabled
        self.run = run

    def mount(self) -> bool:
        """
        Mount the camera.

        A failure is not fatal: the device is often mounted already.

        Returns:
            True if the mount command succeeded
        """
        if not self.enabled:
            logger.info(f"Mounting disabled, using {self.mount_point} as is")
            return False

        logger.info(f"Mounting GoPro disk on: {self.mount_point}")
        self.mount_point.mkdir(parents=True, exist_ok=True)
        try:
            self.run([self.gphotofs, str(self.mount_point)], capture_output=True, text=True, check=True)
        except (subprocess.CalledProcessError, OSError) as e:
            logger.warning(f"Problem mounting GoPro disk or it is mounted already: {e}")
            return False

        logger.info("Successfully mounted")
        return True

    def unmount(self) -> bool:
        """Unmount the camera; logs the manual command on failure."""
        if not self.enabled:
            return False

        cmd = [self.fusermount, "-u", str(self.mount_point)]
        logger.info(f"Unmounting GoPro disk: {self.mount_point}")
        try:
            self.run(cmd, capture_output=True, text=True, check=True)
        except (subprocess.CalledProcessError, OSError) as e:
            logger.warning(f"Disk must be unmounted manually with command: {' '.join(cmd)} ({e})")
            return False

        logger.info("Disk successfully unmounted")
        return True
