"""HTTPS probe for test servers.

Performs a single GET against a supervised server and reports whether the
TLS handshake and request succeeded under the given trust settings.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import requests
import urllib3
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0
DEFAULT_CONNECT_RETRIES = 8


@dataclass
class FetchResult:
    """Outcome of a probe request."""

    ok: bool
    status: int = 0
    body: str = ""
    error: str = ""
    tls_error: bool = False


def _session(connect_retries: int) -> requests.Session:
    # s_server may still be binding its socket right after start() returns
    retry = Retry(
        total=connect_retries,
        connect=connect_retries,
        read=0,
        status=0,
        other=0,
        backoff_factor=0.05,
    )
    session = requests.Session()
    session.mount("https://", HTTPAdapter(max_retries=retry))
    return session


def fetch(
    url: str,
    verify: Union[bool, str, Path] = True,
    timeout: float = DEFAULT_TIMEOUT,
    connect_retries: int = DEFAULT_CONNECT_RETRIES,
) -> FetchResult:
    """GET a URL and report the outcome.

    Args:
        url: URL returned by TlsServerSupervisor.start()
        verify: True for the default trust store, False to skip
            verification, or a CA bundle file / hashed CA directory
        timeout: Connect and read timeout in seconds
        connect_retries: Retries for refused connections

    Returns:
        FetchResult; TLS and connection failures are reported, not raised
    """
    if verify is False:
        # Test endpoints are usually self-signed
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
    elif not isinstance(verify, bool):
        verify = str(verify)

    try:
        with _session(connect_retries) as session:
            resp = session.get(url, verify=verify, timeout=timeout)
    except requests.exceptions.SSLError as e:
        logger.debug("TLS failure for %s: %s", url, e)
        return FetchResult(ok=False, error=str(e), tls_error=True)
    except requests.exceptions.ConnectionError as e:
        return FetchResult(ok=False, error=f"Cannot connect to {url}: {e}")
    except requests.exceptions.Timeout:
        return FetchResult(ok=False, error=f"Timeout connecting to {url}")

    return FetchResult(ok=resp.ok, status=resp.status_code, body=resp.text)
