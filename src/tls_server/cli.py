"""CLI for the TLS test server.

Commands:
- run: start a server in the foreground until interrupted
- command: print the s_server command line a server would run
- probe: GET a URL and report whether TLS verification accepted it
- presets: list named certificate presets
"""

import argparse
import json
import logging
import shlex
import subprocess
import sys
import time
from pathlib import Path

from tls_server.certs import get_cert_fingerprint, get_cert_subject, verify_cert_key_match
from tls_server.common import openssl_version, resolve_binary
from tls_server.config import ServerConfig, ServerConfigBuilder
from tls_server.errors import InvalidConfiguration, TlsServerError
from tls_server.presets import PRESETS
from tls_server.probe import fetch
from tls_server.settings import HarnessSettings, load_settings
from tls_server.supervisor import TlsServerSupervisor

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _add_server_args(parser: argparse.ArgumentParser):
    """Add arguments shared between run and command."""
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--preset",
        choices=sorted(PRESETS),
        help="Named certificate preset",
    )
    source.add_argument(
        "--cert",
        type=Path,
        help="Path to PEM certificate (requires --key)",
    )
    parser.add_argument(
        "--key",
        type=Path,
        help="Path to PEM private key",
    )
    parser.add_argument(
        "--fixtures",
        type=Path,
        help="Fixture root for presets (default: from settings)",
    )
    parser.add_argument(
        "--host",
        help="Hostname used in the URL",
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        help="Port to listen on (default: random)",
    )
    parser.add_argument(
        "--ca",
        type=Path,
        help="CA file or directory presented in the chain",
    )
    parser.add_argument(
        "--responses",
        type=Path,
        help="Directory of raw HTTP responses (enables -HTTP mode)",
    )
    parser.add_argument(
        "--ciphers",
        help="Colon-separated OpenSSL cipher list",
    )
    parser.add_argument(
        "--settings",
        type=Path,
        help="YAML settings file",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )


def _build_config(args, settings: HarnessSettings) -> ServerConfig:
    """Create a ServerConfig from parsed arguments.

    Raises:
        InvalidConfiguration: On inconsistent arguments
    """
    if args.preset:
        builder = PRESETS[args.preset](args.fixtures or settings.fixtures_dir, settings)
    else:
        if not args.key:
            raise InvalidConfiguration("--key is required when --cert is provided")
        builder = ServerConfigBuilder(args.cert, args.key, port_range=settings.port_range)

    if args.host:
        builder.host(args.host)
    if args.port:
        builder.port(args.port)
    if args.ca:
        builder.ca(args.ca)
    if args.responses:
        builder.responses(args.responses)
    if args.ciphers:
        builder.ciphers(args.ciphers)
    return builder.build()


def _handle_run(argv):
    """Handle 'run' - supervise a server until Ctrl+C."""
    parser = argparse.ArgumentParser(
        prog="tls-server run",
        description="Run a TLS test server in the foreground",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    _add_server_args(parser)
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output startup info as JSON",
    )
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    try:
        settings = load_settings(args.settings)
        settings.openssl_binary = resolve_binary(settings.openssl_binary)
        config = _build_config(args, settings)
    except TlsServerError as e:
        logger.error("%s", e.message)
        return 1

    logger.debug("Using %s", openssl_version(settings.openssl_binary))
    if not verify_cert_key_match(config.certificate_path, config.key_path, settings.openssl_binary):
        logger.warning("Certificate %s does not match key %s", config.certificate_path, config.key_path)

    supervisor = TlsServerSupervisor(config, settings)
    try:
        url = supervisor.start()
    except TlsServerError as e:
        logger.error("Failed to start server: %s", e)
        return 1

    try:
        try:
            fingerprint = get_cert_fingerprint(config.certificate_path, settings.openssl_binary)
            subject = get_cert_subject(config.certificate_path, settings.openssl_binary)
        except subprocess.CalledProcessError:
            fingerprint = subject = "unknown"

        if args.json:
            info = {
                "url": url,
                "pid": supervisor.pid,
                "subject": subject,
                "fingerprint": fingerprint,
                "command": shlex.join(supervisor.build_command()),
            }
            print(json.dumps(info, indent=2), flush=True)
        else:
            print(f"\nServer running at {url} (PID {supervisor.pid})")
            print(f"Certificate subject: {subject}")
            print(f"Certificate fingerprint: {fingerprint}")
            print("\nPress Ctrl+C to stop...", flush=True)

        while supervisor.is_running():
            time.sleep(0.5)
        logger.error("Server exited unexpectedly")
        return 1
    except KeyboardInterrupt:
        return 0
    finally:
        supervisor.stop()


def _handle_command(argv):
    """Handle 'command' - print the s_server invocation."""
    parser = argparse.ArgumentParser(
        prog="tls-server command",
        description="Print the s_server command line for a configuration",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    _add_server_args(parser)
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    try:
        settings = load_settings(args.settings)
        config = _build_config(args, settings)
    except TlsServerError as e:
        logger.error("%s", e.message)
        return 1

    supervisor = TlsServerSupervisor(config, settings)
    cwd = supervisor.working_directory()
    if cwd is not None:
        print(f"cd {shlex.quote(str(cwd))} && exec {shlex.join(supervisor.build_command())}")
    else:
        print(f"exec {shlex.join(supervisor.build_command())}")
    return 0


def _handle_probe(argv):
    """Handle 'probe' - fetch a URL once."""
    parser = argparse.ArgumentParser(
        prog="tls-server probe",
        description="GET a URL and report whether TLS verification accepted it",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("url", help="URL to fetch")
    trust = parser.add_mutually_exclusive_group()
    trust.add_argument("--cafile", type=Path, help="CA bundle to trust")
    trust.add_argument("--capath", type=Path, help="Hashed CA directory to trust")
    trust.add_argument("--insecure", "-k", action="store_true", help="Skip verification")
    parser.add_argument("--timeout", type=float, default=5.0, help="Timeout in seconds")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    verify = True
    if args.insecure:
        verify = False
    elif args.cafile or args.capath:
        verify = args.cafile or args.capath

    result = fetch(args.url, verify=verify, timeout=args.timeout)
    if result.ok:
        print(f"Accepted: HTTP {result.status}, {len(result.body)} bytes")
        return 0

    kind = "TLS rejected" if result.tls_error else "Failed"
    print(f"{kind}: {result.error or f'HTTP {result.status}'}")
    return 1


def _handle_presets(argv):
    """Handle 'presets' - list preset names."""
    for name in sorted(PRESETS):
        print(name)
    return 0


def main(argv=None):
    """CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    if argv is None:
        argv = sys.argv[1:]

    subcommands = {
        "run": _handle_run,
        "command": _handle_command,
        "probe": _handle_probe,
        "presets": _handle_presets,
    }

    if not argv or argv[0] in ("-h", "--help"):
        print("Usage: tls-server <command> [options]")
        print()
        print("Commands:")
        print("  run       Run a TLS test server in the foreground")
        print("  command   Print the s_server command line")
        print("  probe     GET a URL and report TLS acceptance")
        print("  presets   List certificate presets")
        print()
        print("Run 'tls-server <command> --help' for command-specific options.")
        return 0

    subcmd = argv[0]
    if subcmd not in subcommands:
        print(f"Error: Unknown command '{subcmd}'")
        print(f"Available commands: {', '.join(subcommands)}")
        return 1

    return subcommands[subcmd](argv[1:])


if __name__ == "__main__":
    sys.exit(main())
