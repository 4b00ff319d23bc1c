"""
Configuration

Finds, parses and validates the JSON configuration file.

File format:
    {
        "bind": "0.0.0.0",
        "port": 9000,
        "commands": {
            "/play": "mpc play",
            "/volume": "amixer set Master $0%"
        }
    }

Search order when no path is given (first readable file wins):
    ./config.json
    ~/.osc-commands.config.json
    /etc/ents/osc-commands.json
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError

from .errors import ConfigError

logger = logging.getLogger(__name__)

LOCAL_CONFIG_NAME = "config.json"
USER_CONFIG_NAME = ".osc-commands.config.json"
SYSTEM_CONFIG_PATH = Path("/etc/ents/osc-commands.json")


class Configuration(BaseModel):
    """
    Validated configuration, frozen after load.

    Attributes:
        bind: Host/interface to listen on
        port: UDP port to listen on (0 picks an ephemeral port)
        commands: OSC address -> command template with `$i` placeholders
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    bind: StrictStr
    port: StrictInt = Field(ge=0, le=65535)
    commands: Dict[StrictStr, StrictStr]


def default_config_locations() -> List[Path]:
    """Candidate configuration files, most specific first."""
    return [
        Path.cwd() / LOCAL_CONFIG_NAME,
        Path.home() / USER_CONFIG_NAME,
        SYSTEM_CONFIG_PATH,
    ]


def find_config(locations: Optional[Sequence[Path]] = None) -> Optional[Path]:
    """Return the first existing file among `locations`, or None."""
    for candidate in locations if locations is not None else default_config_locations():
        if candidate.is_file():
            return candidate
    return None


def parse_config(text: str, source: str = "<string>") -> Configuration:
    """
    Parse and validate configuration JSON.

    Raises:
        ConfigError: If the text is not JSON or does not match the schema
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Config file {source} could not be loaded due to an error parsing the JSON: {exc}") from exc

    try:
        return Configuration.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration file {source}: {exc}") from exc


def load_config(path: Optional[Path] = None) -> Configuration:
    """
    Load the configuration from `path`, or from the first default location.

    Raises:
        ConfigError: If no file is found, or it cannot be read or validated
    """
    if path is None:
        path = find_config()
        if path is None:
            searched = ", ".join(str(p) for p in default_config_locations())
            raise ConfigError(f"No valid config file found (searched {searched})")

    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Config file {path} could not be read: {exc}") from exc

    config = parse_config(text, source=str(path))
    logger.info(f"Loaded {len(config.commands)} commands from {path}")
    return config
