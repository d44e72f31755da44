"""Configuration loading and management."""

from dataclasses import dataclass
from pathlib import Path

try:
    import tomli
except ImportError:  # pragma: no cover
    import tomllib as tomli  # Python 3.11+


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Config:
    """Server configuration."""

    # Codec settings
    max_script_size: int = 10485760  # 10MB
    default_content_type: str = "text/plain;charset=utf-8"

    # bsocial settings
    app_name: str = "bsocial"

    log_level: str = "WARNING"

    def __post_init__(self):
        self.log_level = self.log_level.upper()
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.log_level}")


DEFAULT_CONFIG = Config()


def load_config(path: Path) -> Config:
    """Load configuration from TOML file.

    Args:
        path: Path to config file

    Returns:
        Loaded configuration, merged with defaults
    """
    if not path.exists():
        return Config()

    with open(path, "rb") as f:
        data = tomli.load(f)

    codec = data.get("codec", {})
    bsocial = data.get("bsocial", {})
    logging_section = data.get("logging", {})

    return Config(
        max_script_size=codec.get("max_script_size", 10485760),
        default_content_type=codec.get("default_content_type", "text/plain;charset=utf-8"),
        app_name=bsocial.get("app_name", "bsocial"),
        log_level=logging_section.get("level", "WARNING"),
    )
