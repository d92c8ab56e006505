"""Tests for tls_server/common.py - process utilities."""

import subprocess
from unittest.mock import patch, MagicMock

import pytest

from tls_server.common import openssl_version, resolve_binary, run_command
from tls_server.errors import InvalidConfiguration


class TestRunCommand:
    """Tests for run_command."""

    def test_success(self):
        """Returns exit code and both streams."""
        with patch("tls_server.common.subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="out", stderr="err")
            assert run_command(["openssl", "version"]) == (0, "out", "err")

        assert mock_run.call_args.kwargs["check"] is False
        assert mock_run.call_args.kwargs["capture_output"] is True

    def test_timeout(self):
        """Timeouts are reported as rc -1."""
        with patch("tls_server.common.subprocess.run",
                   side_effect=subprocess.TimeoutExpired("openssl", 5)):
            rc, out, err = run_command(["openssl"], timeout=5)

        assert rc == -1
        assert out == ""
        assert "timed out after 5s" in err

    def test_missing_executable(self):
        """OS errors are reported as rc -1."""
        with patch("tls_server.common.subprocess.run",
                   side_effect=FileNotFoundError("no such file")):
            rc, _, err = run_command(["no-such-binary"])

        assert rc == -1
        assert "no such file" in err


class TestResolveBinary:
    """Tests for resolve_binary."""

    def test_found(self):
        with patch("tls_server.common.shutil.which", return_value="/usr/bin/openssl"):
            assert resolve_binary("openssl") == "/usr/bin/openssl"

    def test_not_found(self):
        """Missing executables are configuration errors."""
        with patch("tls_server.common.shutil.which", return_value=None):
            with pytest.raises(InvalidConfiguration) as exc_info:
                resolve_binary("openssl")
        assert "Executable not found: openssl" in str(exc_info.value)


class TestOpensslVersion:
    """Tests for openssl_version."""

    def test_version(self):
        with patch("tls_server.common.run_command", return_value=(0, "OpenSSL 3.0.13\n", "")):
            assert openssl_version() == "OpenSSL 3.0.13"

    def test_failure(self):
        with patch("tls_server.common.run_command", return_value=(-1, "", "not found")):
            assert openssl_version("/nope/openssl") is None
