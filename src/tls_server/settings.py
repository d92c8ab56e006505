"""Harness settings.

Settings are loaded from an optional YAML file and the environment:
- TLS_SERVER_CONFIG: path to a YAML settings file
- TLS_SERVER_OPENSSL: openssl binary (overrides the file)
- TLS_SERVER_FIXTURES: certificate fixture root (overrides the file)

Example file::

    openssl_binary: /usr/local/opt/openssl@3/bin/openssl
    fixtures_dir: tests/fixtures
    start_delay: 0.01
    poll_interval: 0.0001
    max_poll_attempts: 200
    port_range: [61001, 65535]
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml

from tls_server.errors import InvalidConfiguration

logger = logging.getLogger(__name__)

CONFIG_ENV = "TLS_SERVER_CONFIG"
OPENSSL_ENV = "TLS_SERVER_OPENSSL"
FIXTURES_ENV = "TLS_SERVER_FIXTURES"

DEFAULT_PORT_RANGE = (61001, 65535)


def get_base_dir() -> Path:
    """Get the project directory."""
    return Path(__file__).resolve().parent.parent.parent  # src/tls_server/ -> project/


@dataclass
class HarnessSettings:
    """Process and fixture settings shared by all supervisors."""

    openssl_binary: str = "openssl"
    fixtures_dir: Path = field(default_factory=lambda: get_base_dir() / "tests" / "fixtures")
    # Give the process a chance to start before polling
    start_delay: float = 0.01
    poll_interval: float = 0.0001
    max_poll_attempts: int = 200
    port_range: tuple[int, int] = DEFAULT_PORT_RANGE

    def __post_init__(self):
        if isinstance(self.fixtures_dir, str):
            self.fixtures_dir = Path(self.fixtures_dir)
        if isinstance(self.port_range, list):
            self.port_range = tuple(self.port_range)

        low, high = self.port_range
        if not 1 <= low <= high <= 65535:
            raise InvalidConfiguration(f"Invalid port range: {low}-{high}")
        if self.max_poll_attempts < 1:
            raise InvalidConfiguration(
                f"max_poll_attempts must be positive, got {self.max_poll_attempts}"
            )
        if self.start_delay < 0 or self.poll_interval < 0:
            raise InvalidConfiguration("start_delay and poll_interval must not be negative")


def _parse_yaml(path: Path) -> dict:
    """Parse a YAML settings file and return its mapping."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise InvalidConfiguration(f"Cannot read settings file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise InvalidConfiguration(f"Malformed settings file {path}: {e}") from e

    if not isinstance(data, dict):
        raise InvalidConfiguration(f"Settings file {path} must contain a mapping")
    return data


def load_settings(path: Optional[Path] = None) -> HarnessSettings:
    """Load harness settings.

    Resolution order (later wins):
    1. Built-in defaults
    2. YAML file from ``path`` or $TLS_SERVER_CONFIG
    3. $TLS_SERVER_OPENSSL and $TLS_SERVER_FIXTURES

    Args:
        path: Settings file (default: $TLS_SERVER_CONFIG, if set)

    Returns:
        HarnessSettings

    Raises:
        InvalidConfiguration: If the file is unreadable or values are invalid
    """
    values: dict = {}

    if path is None and (env_path := os.environ.get(CONFIG_ENV)):
        path = Path(env_path)

    if path is not None:
        known = {f.name for f in fields(HarnessSettings)}
        for key, value in _parse_yaml(Path(path)).items():
            if key not in known:
                logger.warning("Ignoring unknown setting '%s' in %s", key, path)
                continue
            values[key] = value
        logger.debug("Loaded settings from %s", path)

    if openssl := os.environ.get(OPENSSL_ENV):
        values["openssl_binary"] = openssl
    if fixtures := os.environ.get(FIXTURES_ENV):
        values["fixtures_dir"] = Path(fixtures)

    try:
        return HarnessSettings(**values)
    except (TypeError, ValueError) as e:
        raise InvalidConfiguration(f"Invalid settings: {e}") from e
