"""Common process utilities."""

import logging
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Optional

from tls_server.errors import InvalidConfiguration

logger = logging.getLogger(__name__)


def run_command(
    cmd: list[str],
    cwd: Optional[Path] = None,
    timeout: int = 30,
    input_text: Optional[str] = None,
) -> tuple[int, str, str]:
    """Run a command and return (returncode, stdout, stderr)."""
    logger.debug(f"Running: {shlex.join(cmd)}")
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            input=input_text,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False  # We handle return codes explicitly
        )
        return result.returncode, result.stdout, result.stderr
    except subprocess.TimeoutExpired:
        return -1, '', f'Command timed out after {timeout}s'
    except OSError as e:
        return -1, '', str(e)


def resolve_binary(name: str) -> str:
    """Resolve an executable name or path to an absolute path.

    Raises:
        InvalidConfiguration: If the executable cannot be found
    """
    path = shutil.which(name)
    if path is None:
        raise InvalidConfiguration(f"Executable not found: {name}")
    return path


def openssl_version(openssl: str = "openssl") -> Optional[str]:
    """Return the openssl version banner, or None if it cannot be run."""
    rc, out, _ = run_command([openssl, "version"], timeout=10)
    if rc != 0:
        return None
    return out.strip()
