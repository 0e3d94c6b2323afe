from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"
MIN_JPEG_QUALITY = 10
MAX_JPEG_QUALITY = 100

@dataclass
class ImageConfig:
    backend: str = "pil"
    jpeg_quality: int | None = 90
    bmp_bit_depth: int = 24
    bmp_compression: int = 0

    def get_jpeg_quality(self) -> int | None:
        if self.jpeg_quality is None:
            return None
        return min(MAX_JPEG_QUALITY, max(MIN_JPEG_QUALITY, int(self.jpeg_quality)))

@dataclass
class LoggingConfig:
    verbose: bool = True
    show_logs: bool = False

@dataclass
class ArchiveConfig:
    chunk_size: int = 64 * 1024

def _section(cls: type, values: dict[str, Any] | None) -> Any:
    known = {f.name for f in fields(cls)}
    values = values or {}
    unknown = set(values) - known
    if unknown:
        raise ValueError(f"Unknown {cls.__name__} keys: {', '.join(sorted(unknown))}")
    return cls(**values)

class Config:
    def __init__(self, config_path: Path | None = None):
        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH

        try:
            with open(config_path) as f:
                config: dict[str, Any] = yaml.safe_load(f) or {}
        except OSError as e:
            raise ValueError(f"Cannot read config file {config_path}: {e}") from e
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid config file {config_path}: {e}") from e

        if not isinstance(config, dict):
            raise ValueError(f"Invalid config file {config_path}: expected a mapping")

        self.image: ImageConfig = _section(ImageConfig, config.get("image"))
        self.logging: LoggingConfig = _section(LoggingConfig, config.get("logging"))
        self.archive: ArchiveConfig = _section(ArchiveConfig, config.get("archive"))

    @classmethod
    def defaults(cls) -> "Config":
        config = cls.__new__(cls)
        config.image = ImageConfig()
        config.logging = LoggingConfig()
        config.archive = ArchiveConfig()
        return config
