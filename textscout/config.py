"""
Configuration loading.

Settings live in a YAML file, either flat or under a top-level
``textscout:`` section:

    textscout:
      rom_path: roms/game.nes
      table_path: tables/game.tbl
      max_results: 50
      end_marker: FF
"""

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .memory import parse_byte_value

logger = logging.getLogger(__name__)


@dataclass
class TextScoutConfig:
    """Defaults used by the CLI, the web API and the session."""

    rom_path: Optional[str] = None
    table_path: Optional[str] = None
    max_results: int = 50
    max_decode_length: int = 4096
    max_fragment_length: int = 10
    end_marker: Optional[int] = None
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TextScoutConfig":
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in data.items():
            if key not in known:
                logger.warning(f"Ignoring unknown config key: {key}")
                continue
            values[key] = value

        if values.get("end_marker") is not None:
            values["end_marker"] = parse_byte_value(values["end_marker"])
        for key in ("max_results", "max_decode_length", "max_fragment_length"):
            if key in values:
                values[key] = int(values[key])
                if values[key] < 1:
                    raise ValueError(f"{key} must be at least 1")
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def load_config(config_path: Optional[str] = None) -> TextScoutConfig:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to configuration file; None gives the defaults

    Returns:
        TextScoutConfig

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is not a YAML mapping
        yaml.YAMLError: If the file is not valid YAML
    """
    if config_path is None:
        return TextScoutConfig()

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_file, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Configuration must be a mapping: {config_path}")
    if isinstance(data.get("textscout"), dict):
        data = data["textscout"]

    config = TextScoutConfig.from_dict(data)
    logger.debug(f"Loaded config from {config_file}")
    return config


def setup_logging(level: str = "INFO", debug: bool = False) -> None:
    """Configure logging for TextScout.

    Args:
        level: Log level name used when not debugging
        debug: Whether to enable debug logging
    """
    log_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    logging.getLogger('textscout').setLevel(log_level)

    # Reduce noise from werkzeug in production
    if not debug:
        logging.getLogger('werkzeug').setLevel(logging.WARNING)
