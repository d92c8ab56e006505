"""Certificate scenario presets.

Each preset points a ServerConfigBuilder at fixture files under a fixture
root. Layout::

    self-signed-localhost-{cert,key}.pem
    self-signed-garbage-{cert,key}.pem       CN=garbage
    ca/cafile.pem                            root + trusted intermediate
    ca/cadir/                                same, hashed for -CApath use
    ca/<intermediate>/certs/intermediate.cert.pem
    ca/<intermediate>/certs/localhost.cert.pem
    ca/<intermediate>/certs/127.0.0.1.nip.io.cert.pem
    ca/<intermediate>/private/localhost.key.pem
    ca/<intermediate>/private/127.0.0.1.nip.io.key.pem

The trusted intermediate is part of the client trust material; the
untrusted one is only reachable when the server presents it in its chain.
Random ports are drawn from the settings' port_range.
"""

from pathlib import Path
from typing import Callable, Optional

from tls_server.config import ServerConfigBuilder
from tls_server.settings import HarnessSettings, load_settings

TRUSTED_INTERMEDIATE = "i1-trusted"
UNTRUSTED_INTERMEDIATE = "i2-untrusted"

NIP_IO_CN = "127.0.0.1.nip.io"


def _resolve(
    fixtures_dir: Optional[Path],
    settings: Optional[HarnessSettings],
) -> tuple[Path, HarnessSettings]:
    settings = settings or load_settings()
    root = Path(fixtures_dir) if fixtures_dir is not None else settings.fixtures_dir
    return root, settings


def _builder(cert: Path, key: Path, settings: HarnessSettings) -> ServerConfigBuilder:
    return ServerConfigBuilder(cert, key, port_range=settings.port_range)


def ca_file(fixtures_dir: Optional[Path] = None) -> Path:
    """CA bundle clients use to trust the signed presets."""
    root, _ = _resolve(fixtures_dir, None)
    return root / "ca" / "cafile.pem"


def ca_dir(fixtures_dir: Optional[Path] = None) -> Path:
    """Hashed CA directory equivalent to ca_file()."""
    root, _ = _resolve(fixtures_dir, None)
    return root / "ca" / "cadir"


def self_signed_localhost(
    fixtures_dir: Optional[Path] = None,
    settings: Optional[HarnessSettings] = None,
) -> ServerConfigBuilder:
    """Self-signed certificate matching localhost."""
    root, settings = _resolve(fixtures_dir, settings)
    return _builder(
        root / "self-signed-localhost-cert.pem",
        root / "self-signed-localhost-key.pem",
        settings,
    )


def self_signed_garbage(
    fixtures_dir: Optional[Path] = None,
    settings: Optional[HarnessSettings] = None,
) -> ServerConfigBuilder:
    """Self-signed certificate whose name does not match localhost."""
    root, settings = _resolve(fixtures_dir, settings)
    return _builder(
        root / "self-signed-garbage-cert.pem",
        root / "self-signed-garbage-key.pem",
        settings,
    )


def signed_localhost(
    intermediate: str,
    chain: bool,
    fixtures_dir: Optional[Path] = None,
    settings: Optional[HarnessSettings] = None,
) -> ServerConfigBuilder:
    """Localhost certificate signed by an intermediate CA.

    Args:
        intermediate: TRUSTED_INTERMEDIATE or UNTRUSTED_INTERMEDIATE
        chain: Serve the intermediate certificate along with the leaf
        fixtures_dir: Fixture root (default: settings.fixtures_dir)
        settings: Harness settings (default: load_settings())
    """
    root, settings = _resolve(fixtures_dir, settings)
    ca_root = root / "ca" / intermediate
    builder = _builder(
        ca_root / "certs" / "localhost.cert.pem",
        ca_root / "private" / "localhost.key.pem",
        settings,
    )
    if chain:
        builder.ca(ca_root / "certs" / "intermediate.cert.pem")
    return builder


def signed_nip_io(
    host: str,
    intermediate: str,
    chain: bool,
    fixtures_dir: Optional[Path] = None,
    settings: Optional[HarnessSettings] = None,
) -> ServerConfigBuilder:
    """SAN certificate for 127.0.0.1.nip.io and its subdomains.

    Args:
        host: Subdomain label to connect with ('' for the bare CN)
        intermediate: TRUSTED_INTERMEDIATE or UNTRUSTED_INTERMEDIATE
        chain: Serve the intermediate certificate along with the leaf
        fixtures_dir: Fixture root (default: settings.fixtures_dir)
        settings: Harness settings (default: load_settings())
    """
    root, settings = _resolve(fixtures_dir, settings)
    ca_root = root / "ca" / intermediate
    builder = _builder(
        ca_root / "certs" / f"{NIP_IO_CN}.cert.pem",
        ca_root / "private" / f"{NIP_IO_CN}.key.pem",
        settings,
    )
    if chain:
        builder.ca(ca_root / "certs" / "intermediate.cert.pem")
    return builder.host(f"{host}.{NIP_IO_CN}" if host else NIP_IO_CN)


PresetFactory = Callable[[Optional[Path], Optional[HarnessSettings]], ServerConfigBuilder]

# Named presets for the CLI
PRESETS: dict[str, PresetFactory] = {
    "self-signed-localhost": self_signed_localhost,
    "self-signed-garbage": self_signed_garbage,
    "signed-trusted": lambda d=None, s=None: signed_localhost(TRUSTED_INTERMEDIATE, False, d, s),
    "signed-trusted-chain": lambda d=None, s=None: signed_localhost(TRUSTED_INTERMEDIATE, True, d, s),
    "signed-untrusted": lambda d=None, s=None: signed_localhost(UNTRUSTED_INTERMEDIATE, False, d, s),
    "signed-untrusted-chain": lambda d=None, s=None: signed_localhost(UNTRUSTED_INTERMEDIATE, True, d, s),
    "nip-io": lambda d=None, s=None: signed_nip_io("", TRUSTED_INTERMEDIATE, False, d, s),
    "nip-io-www": lambda d=None, s=None: signed_nip_io("www", TRUSTED_INTERMEDIATE, False, d, s),
}
