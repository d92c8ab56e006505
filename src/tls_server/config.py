"""Server configuration.

A ServerConfigBuilder collects options through fluent setters and produces
an immutable ServerConfig that a supervisor consumes. Once built, a config
cannot change underneath a running server.

Example::

    config = (
        ServerConfigBuilder(cert, key)
        .host("localhost")
        .ca(ca_dir / "intermediate.cert.pem")
        .build()
    )
"""

import logging
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

from tls_server.errors import InvalidConfiguration
from tls_server.settings import DEFAULT_PORT_RANGE

logger = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"

# Cipher order, Mozilla intermediate
DEFAULT_CIPHERS = ":".join([
    "ECDHE-RSA-AES128-GCM-SHA256",
    "ECDHE-ECDSA-AES128-GCM-SHA256",
    "ECDHE-RSA-AES256-GCM-SHA384",
    "ECDHE-ECDSA-AES256-GCM-SHA384",
    "DHE-RSA-AES128-GCM-SHA256",
    "DHE-DSS-AES128-GCM-SHA256",
    "kEDH+AESGCM",
    "ECDHE-RSA-AES128-SHA256",
    "ECDHE-ECDSA-AES128-SHA256",
    "ECDHE-RSA-AES128-SHA",
    "ECDHE-ECDSA-AES128-SHA",
    "ECDHE-RSA-AES256-SHA384",
    "ECDHE-ECDSA-AES256-SHA384",
    "ECDHE-RSA-AES256-SHA",
    "ECDHE-ECDSA-AES256-SHA",
    "DHE-RSA-AES128-SHA256",
    "DHE-RSA-AES128-SHA",
    "DHE-DSS-AES128-SHA256",
    "DHE-RSA-AES256-SHA256",
    "DHE-DSS-AES256-SHA",
    "DHE-RSA-AES256-SHA",
    "ECDHE-RSA-DES-CBC3-SHA",
    "ECDHE-ECDSA-DES-CBC3-SHA",
    "AES128-GCM-SHA256",
    "AES256-GCM-SHA384",
    "AES128-SHA256",
    "AES256-SHA256",
    "AES128-SHA",
    "AES256-SHA",
    "AES",
    "CAMELLIA",
    "DES-CBC3-SHA",
    "!aNULL",
    "!eNULL",
    "!EXPORT",
    "!DES",
    "!RC4",
    "!MD5",
    "!PSK",
    "!aECDH",
    "!EDH-DSS-DES-CBC3-SHA",
    "!EDH-RSA-DES-CBC3-SHA",
    "!KRB5-DES-CBC3-SHA",
])


def random_port(port_range: tuple[int, int] = DEFAULT_PORT_RANGE) -> int:
    """Pick a random port from the given inclusive range."""
    return random.randint(*port_range)


def _validate_port(port: int) -> int:
    if isinstance(port, bool) or not isinstance(port, int):
        raise InvalidConfiguration(f"Port must be an integer, got {port!r}")
    if not 1 <= port <= 65535:
        raise InvalidConfiguration(f"Port out of range: {port}")
    return port


def join_ciphers(ciphers: Union[str, Sequence[str]]) -> str:
    """Normalize a cipher list to OpenSSL's colon-joined form."""
    if not isinstance(ciphers, str):
        ciphers = ":".join(ciphers)
    if not ciphers:
        raise InvalidConfiguration("Cipher list must not be empty")
    return ciphers


@dataclass(frozen=True)
class ServerConfig:
    """Immutable configuration of one TLS test endpoint."""

    certificate_path: Path
    key_path: Path
    port: int
    host: str = DEFAULT_HOST
    ca_path: Optional[Path] = None
    responses_dir: Optional[Path] = None
    ciphers: str = DEFAULT_CIPHERS

    @property
    def url(self) -> str:
        """Base URL clients should connect to."""
        return f"https://{self.host}:{self.port}"


class ServerConfigBuilder:
    """Fluent builder for ServerConfig.

    Setters return the builder so calls can be chained. The port is drawn
    at random from the configured range when not given.
    """

    def __init__(
        self,
        certificate: Union[str, Path],
        key: Union[str, Path],
        port: Optional[int] = None,
        port_range: tuple[int, int] = DEFAULT_PORT_RANGE,
    ) -> None:
        self._certificate = Path(certificate)
        self._key = Path(key)
        self._port = _validate_port(port) if port else random_port(port_range)
        self._host = DEFAULT_HOST
        self._ca: Optional[Path] = None
        self._responses: Optional[Path] = None
        self._ciphers = DEFAULT_CIPHERS

    def host(self, host: str) -> "ServerConfigBuilder":
        """Set hostname used in URLs."""
        if not host:
            raise InvalidConfiguration("Host must not be empty")
        self._host = host
        return self

    def port(self, port: int) -> "ServerConfigBuilder":
        """Port number to be used by the server."""
        self._port = _validate_port(port)
        return self

    def ca(self, path: Union[str, Path]) -> "ServerConfigBuilder":
        """Set path to certificate(s) used for validating clients and building the chain."""
        self._ca = Path(path)
        return self

    def responses(self, directory: Union[str, Path]) -> "ServerConfigBuilder":
        """Set directory that contains HTTP responses.

        Raises:
            InvalidConfiguration: If directory does not exist
        """
        directory = Path(directory)
        if not directory.is_dir():
            raise InvalidConfiguration(f"Responses directory not found: {directory}")
        self._responses = directory
        return self

    def ciphers(self, ciphers: Union[str, Sequence[str]]) -> "ServerConfigBuilder":
        """Set ciphers to be used by server."""
        self._ciphers = join_ciphers(ciphers)
        return self

    def build(self) -> ServerConfig:
        """Freeze the collected options into a ServerConfig."""
        config = ServerConfig(
            certificate_path=self._certificate,
            key_path=self._key,
            port=self._port,
            host=self._host,
            ca_path=self._ca,
            responses_dir=self._responses,
            ciphers=self._ciphers,
        )
        logger.debug("Built server config for %s", config.url)
        return config
