"""Certificate inspection via the openssl CLI.

Used to describe the certificate a test server presents, and to catch a
certificate/key mix-up before s_server fails on it.
"""

import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


def _x509(cert_path: Path, *options: str, openssl: str = "openssl") -> str:
    result = subprocess.run(
        [openssl, "x509", "-in", str(cert_path), "-noout", *options],
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def get_cert_fingerprint(cert_path: Path, openssl: str = "openssl") -> str:
    """Get SHA256 fingerprint of a certificate.

    Args:
        cert_path: Path to PEM certificate file
        openssl: openssl binary

    Returns:
        SHA256 fingerprint as hex string with colons (e.g., "AB:CD:EF:...")

    Raises:
        subprocess.CalledProcessError: If openssl command fails
    """
    # Output format: "sha256 Fingerprint=AB:CD:EF:..."
    output = _x509(cert_path, "-fingerprint", "-sha256", openssl=openssl)
    if "=" in output:
        return output.split("=", 1)[1]
    return output


def get_cert_subject(cert_path: Path, openssl: str = "openssl") -> str:
    """Get the subject line of a certificate (e.g., "CN = localhost").

    Raises:
        subprocess.CalledProcessError: If openssl command fails
    """
    output = _x509(cert_path, "-subject", openssl=openssl)
    return output.split("=", 1)[1].strip() if output.startswith("subject") else output


def verify_cert_key_match(cert_path: Path, key_path: Path, openssl: str = "openssl") -> bool:
    """Verify that a certificate and private key belong together.

    Compares public keys, so RSA and EC keys both work.

    Returns:
        True if certificate and key match
    """
    try:
        cert_pubkey = _x509(cert_path, "-pubkey", openssl=openssl)

        key_result = subprocess.run(
            [openssl, "pkey", "-in", str(key_path), "-pubout"],
            capture_output=True,
            text=True,
            check=True,
        )
        key_pubkey = key_result.stdout.strip()
    except subprocess.CalledProcessError as e:
        logger.debug("Key match check failed: %s", e.stderr)
        return False

    return cert_pubkey == key_pubkey
