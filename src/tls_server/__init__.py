"""TLS test server package.

Spawns ``openssl s_server`` endpoints with chosen certificate material so
HTTPS clients can be tested against real trust scenarios.
"""

from tls_server.config import (
    DEFAULT_CIPHERS,
    DEFAULT_HOST,
    ServerConfig,
    ServerConfigBuilder,
)
from tls_server.errors import (
    InvalidConfiguration,
    ServerStartupFailed,
    ServerStartupTimeout,
    SupervisorStateError,
    TlsServerError,
)
from tls_server.settings import HarnessSettings, load_settings
from tls_server.supervisor import (
    ServerState,
    TlsServerSupervisor,
    serving,
)

__version__ = "0.1.0"

__all__ = [
    # Config
    "DEFAULT_CIPHERS",
    "DEFAULT_HOST",
    "ServerConfig",
    "ServerConfigBuilder",
    # Errors
    "TlsServerError",
    "InvalidConfiguration",
    "ServerStartupFailed",
    "ServerStartupTimeout",
    "SupervisorStateError",
    # Settings
    "HarnessSettings",
    "load_settings",
    # Supervisor
    "ServerState",
    "TlsServerSupervisor",
    "serving",
]
