"""
Configuration management for GoPro Sync.
"""

import os
import yaml
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "/etc/gopro-sync/config.yaml"
USER_CONFIG_PATH = Path.home() / ".config" / "gopro-sync" / "config.yaml"


@dataclass
class PathsConfig:
    """Storage locations. Relative directories resolve against ``home``."""
    device_mount: str = "/mnt/gopro"
    home: str = str(Path.home() / "gopro")
    unprocessed: str = "videos/unprocessed"
    joined: str = "videos/joined"
    converted: str = "videos/converted"
    images: str = "images"

    def resolve(self, name: str) -> Path:
        """Return the absolute directory for one of the storage locations."""
        path = Path(os.path.expanduser(getattr(self, name)))
        if path.is_absolute():
            return path
        return Path(os.path.expanduser(self.home)) / path

    @property
    def home_dir(self) -> Path:
        return Path(os.path.expanduser(self.home))

    @property
    def unprocessed_dir(self) -> Path:
        return self.resolve("unprocessed")

    @property
    def joined_dir(self) -> Path:
        return self.resolve("joined")

    @property
    def converted_dir(self) -> Path:
        return self.resolve("converted")

    @property
    def images_dir(self) -> Path:
        return self.resolve("images")


@dataclass
class DeviceConfig:
    """Camera filesystem layout."""
    mount_enabled: bool = True
    dcim_folder: str = "DCIM"
    folder_pattern: str = "*GOPRO"
    video_pattern: str = "*.MP4"
    image_pattern: str = "*.JPG"
    thumbnail_pattern: str = "*.THM"


@dataclass
class ToolsConfig:
    """External executables."""
    ffmpeg: str = "ffmpeg"
    ffprobe: str = "ffprobe"
    rsync: str = "rsync"
    gphotofs: str = "gphotofs"
    fusermount: str = "fusermount"


@dataclass
class ControlConfig:
    """Pipeline control settings."""
    day_reset_hour: int = 6  # 6AM
    poll_interval_sec: float = 60.0
    min_free_space_gb: float = 32.0
    niceness: int = 10
    idle_io: bool = True
    join_pattern: str = "*.MP4"
    convert_pattern: str = "*.mp4"


@dataclass
class TransferConfig:
    """Retry policy for device transfers."""
    max_attempts: int = 0  # 0 = retry until success
    retry_delay_sec: float = 5.0
    max_retry_delay_sec: float = 300.0


@dataclass
class JobsConfig:
    """Background job supervision settings."""
    verify_output: bool = True
    max_attempts: int = 0  # 0 = relaunch failed transfer jobs until success


@dataclass
class TranscodeConfig:
    """Transcoding settings."""
    video_codec: str = "libx264"
    preset: str = "veryfast"
    crf: int = 26
    audio_codec: str = "copy"
    output_extension: str = ".mp4"


@dataclass
class NotifyConfig:
    """Push notification settings (https://llamalab.com/automate/cloud/)."""
    enabled: bool = True
    address: str = "https://llamalab.com/automate/cloud/message"
    secret: str = ""
    account: str = ""
    device: str = ""
    timeout_sec: float = 30.0


@dataclass
class Config:
    """Main configuration class."""
    paths: PathsConfig = field(default_factory=PathsConfig)
    device: DeviceConfig = field(default_factory=DeviceConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    control: ControlConfig = field(default_factory=ControlConfig)
    transfer: TransferConfig = field(default_factory=TransferConfig)
    jobs: JobsConfig = field(default_factory=JobsConfig)
    transcode: TranscodeConfig = field(default_factory=TranscodeConfig)
    notify: NotifyConfig = field(default_factory=NotifyConfig)
    production_mode: bool = True

    SECTIONS = (
        ("paths", PathsConfig),
        ("device", DeviceConfig),
        ("tools", ToolsConfig),
        ("control", ControlConfig),
        ("transfer", TransferConfig),
        ("jobs", JobsConfig),
        ("transcode", TranscodeConfig),
        ("notify", NotifyConfig),
    )

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "Config":
        """Load configuration from file."""
        paths_to_try = []

        if config_path:
            paths_to_try.append(Path(config_path))

        paths_to_try.extend([
            Path(DEFAULT_CONFIG_PATH),
            USER_CONFIG_PATH,
            Path("config/config.yaml"),
        ])

        for path in paths_to_try:
            if path.exists():
                logger.info(f"Loading config from {path}")
                config = cls._load_from_file(path)
                break
        else:
            logger.warning("No config file found, using defaults")
            config = cls()

        config._apply_env_overrides()
        return config

    @classmethod
    def _load_from_file(cls, path: Path) -> "Config":
        """Load configuration from a YAML file."""
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        config = cls()
        config.update_from_dict(data)
        return config

    @staticmethod
    def _load_dataclass(cls, data: Dict[str, Any]):
        """Load a dataclass from a dictionary."""
        valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered_data = {k: v for k, v in data.items() if k in valid_fields}
        return cls(**filtered_data)

    def _apply_env_overrides(self) -> None:
        if os.getenv("GOPRO_SYNC_HOME"):
            self.paths.home = os.getenv("GOPRO_SYNC_HOME")
        if os.getenv("GOPRO_SYNC_PUSH_SECRET"):
            self.notify.secret = os.getenv("GOPRO_SYNC_PUSH_SECRET")
        if os.getenv("GOPRO_SYNC_PUSH_ACCOUNT"):
            self.notify.account = os.getenv("GOPRO_SYNC_PUSH_ACCOUNT")
        if os.getenv("GOPRO_SYNC_PUSH_DEVICE"):
            self.notify.device = os.getenv("GOPRO_SYNC_PUSH_DEVICE")

    def validate(self) -> None:
        """Reject settings the pipeline cannot work with."""
        if not 0 <= self.control.day_reset_hour <= 23:
            raise ValueError(
                f"day_reset_hour must be between 0 and 23, got {self.control.day_reset_hour}"
            )
        if self.control.poll_interval_sec <= 0:
            raise ValueError("poll_interval_sec must be positive")
        if self.transfer.max_attempts < 0 or self.jobs.max_attempts < 0:
            raise ValueError("max_attempts must be >= 0 (0 = unlimited)")

    def save(self, path: Optional[str] = None) -> None:
        """Save configuration to file."""
        save_path = Path(path) if path else USER_CONFIG_PATH
        save_path.parent.mkdir(parents=True, exist_ok=True)

        with open(save_path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False)

        logger.info(f"Configuration saved to {save_path}")

    @staticmethod
    def _dataclass_to_dict(obj) -> Dict[str, Any]:
        """Convert a dataclass to a dictionary."""
        return {k: v for k, v in obj.__dict__.items()}

    def to_dict(self) -> Dict[str, Any]:
        """Convert entire config to dictionary."""
        data = {
            name: self._dataclass_to_dict(getattr(self, name))
            for name, _ in self.SECTIONS
        }
        data["production_mode"] = self.production_mode
        return data

    def update_from_dict(self, data: Dict[str, Any]) -> None:
        """Update configuration from a dictionary."""
        for name, section_cls in self.SECTIONS:
            if name in data and isinstance(data[name], dict):
                merged = self._dataclass_to_dict(getattr(self, name))
                merged.update(data[name])
                setattr(self, name, self._load_dataclass(section_cls, merged))
        if "production_mode" in data:
            self.production_mode = bool(data["production_mode"])
