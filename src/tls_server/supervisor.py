"""TLS test server supervisor.

Owns the lifecycle of one ``openssl s_server`` process: builds its command
line from a ServerConfig, spawns it, polls until the process is up, and
kills it again. Intended for ephemeral test endpoints, so stopping never
waits for a graceful shutdown.

Example::

    with TlsServerSupervisor(presets.self_signed_localhost().build()) as server:
        requests.get(server.url, verify=False)
"""

import copy
import logging
import shlex
import signal
import subprocess
import tempfile
import time
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import IO, Iterator, Optional

from tls_server.config import ServerConfig
from tls_server.errors import (
    ServerStartupFailed,
    ServerStartupTimeout,
    SupervisorStateError,
)
from tls_server.settings import HarnessSettings, load_settings

logger = logging.getLogger(__name__)

# Shell-style descriptions of common exit statuses
EXIT_CODE_TEXTS = {
    0: "OK",
    1: "General error",
    2: "Misuse of shell builtins",
    126: "Invoked command cannot execute",
    127: "Command not found",
    128: "Invalid exit argument",
}


class ServerState(Enum):
    """Lifecycle of a supervised server. STOPPED and FAILED are terminal."""

    NOT_STARTED = "not-started"
    STARTING = "starting"
    RUNNING = "running"
    STOPPED = "stopped"
    FAILED = "failed"


class ProcessStatus(Enum):
    """Observed status of the spawned process during readiness polling.

    The base supervisor only tells RUNNING from TERMINATED. STARTING is for
    subclasses whose _process_status() can see that a live process is not
    serving yet; polling continues while it is reported and the server is
    killed with ServerStartupTimeout once the budget runs out.
    """

    STARTING = "starting"
    RUNNING = "running"
    TERMINATED = "terminated"


def describe_exit_code(code: int) -> str:
    """Describe a process exit status.

    Negative values are signals, as reported by subprocess.
    """
    if code < 0:
        try:
            return f"Killed by {signal.Signals(-code).name}"
        except ValueError:
            return f"Killed by signal {-code}"
    return EXIT_CODE_TEXTS.get(code, "Unknown error")


def _terminate(process: subprocess.Popen, grace: float = 0.0) -> None:
    """Send SIGTERM, then SIGKILL once the grace period runs out."""
    try:
        process.terminate()
    except ProcessLookupError:
        return

    try:
        process.wait(timeout=grace)
        return
    except subprocess.TimeoutExpired:
        pass

    logger.debug("Process %d still running, sending SIGKILL", process.pid)
    process.kill()
    process.wait()


class TlsServerSupervisor:
    """Supervises a single TLS test server process.

    A supervisor starts at most once. Copies share the configuration but
    never the process, so a copy of a running supervisor starts out
    NOT_STARTED.

    Attributes:
        config: Immutable server configuration
        settings: Binary location and readiness polling budget
    """

    def __init__(self, config: ServerConfig, settings: Optional[HarnessSettings] = None) -> None:
        self.config = config
        self.settings = settings or load_settings()
        self._state = ServerState.NOT_STARTED
        self._process: Optional[subprocess.Popen] = None
        self._stderr: Optional[IO[bytes]] = None

    def __copy__(self) -> "TlsServerSupervisor":
        return type(self)(self.config, self.settings)

    def __deepcopy__(self, memo: dict) -> "TlsServerSupervisor":
        return type(self)(self.config, copy.deepcopy(self.settings, memo))

    def __enter__(self) -> "TlsServerSupervisor":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def __del__(self):
        if getattr(self, "_process", None) is not None:
            self.stop()

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def url(self) -> str:
        return self.config.url

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process is not None else None

    def is_running(self) -> bool:
        """Check whether the server process is alive."""
        return self._process is not None and self._process.poll() is None

    def readiness_budget(self) -> float:
        """Upper bound in seconds spent waiting for the process to come up."""
        return self.settings.start_delay + self.settings.poll_interval * self.settings.max_poll_attempts

    def build_command(self) -> list[str]:
        """Build the s_server argv for this configuration."""
        config = self.config
        cmd = [self.settings.openssl_binary, "s_server"]

        if config.responses_dir is not None:
            cmd.append("-HTTP")
        else:
            cmd.append("-www")

        if config.ca_path is not None:
            if config.ca_path.is_dir():
                cmd += ["-CAdir", str(config.ca_path)]
            elif config.ca_path.is_file():
                cmd += ["-CAfile", str(config.ca_path)]
            else:
                logger.warning("CA path is neither file nor directory, ignoring: %s", config.ca_path)

        cmd.append("-serverpref")
        cmd += ["-accept", str(int(config.port))]
        cmd += ["-cert", str(config.certificate_path)]
        cmd += ["-key", str(config.key_path)]
        cmd += ["-cipher", config.ciphers]
        return cmd

    def working_directory(self) -> Optional[Path]:
        """Directory the server runs in; HTTP mode serves files from it."""
        return self.config.responses_dir

    def start(self) -> str:
        """Start the server and wait for the process to come up.

        Returns:
            Base URL of the server (https://host:port)

        Raises:
            SupervisorStateError: If this supervisor was already started
            ServerStartupFailed: If the process exited before becoming ready
            ServerStartupTimeout: If the process neither ran nor exited in time
        """
        if self._state is not ServerState.NOT_STARTED:
            raise SupervisorStateError(
                f"Server for {self.url} cannot be started from state '{self._state.value}'"
            )

        cmd = self.build_command()
        command_line = shlex.join(cmd)
        self._state = ServerState.STARTING
        logger.info("Starting TLS server for %s", self.url)
        logger.debug("Command: %s", command_line)

        # stderr goes to a spool file so a chatty server never blocks on a full pipe
        self._stderr = tempfile.TemporaryFile()
        try:
            # No intermediate shell: signals must reach s_server itself
            self._process = subprocess.Popen(
                cmd,
                cwd=self.working_directory(),
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
                stderr=self._stderr,
            )
        except OSError as e:
            self._close_stderr()
            self._state = ServerState.FAILED
            exit_code = 127 if isinstance(e, FileNotFoundError) else 126
            raise ServerStartupFailed(
                exit_code, describe_exit_code(exit_code), command_line, str(e)
            ) from e

        status = self._wait_until_started()

        if status is ProcessStatus.TERMINATED:
            exit_code = self._process.poll()
            stderr = self._read_stderr()
            self._release()
            self._state = ServerState.FAILED
            logger.error("TLS server exited during startup with %s", exit_code)
            raise ServerStartupFailed(exit_code, describe_exit_code(exit_code), command_line, stderr)

        if status is ProcessStatus.STARTING:
            logger.warning("TLS server not ready after %.4fs, killing it", self.readiness_budget())
            self._kill()
            self._state = ServerState.FAILED
            raise ServerStartupTimeout(command_line, self.readiness_budget())

        self._state = ServerState.RUNNING
        logger.info("TLS server running at %s (PID %d)", self.url, self.pid)
        return self.url

    def stop(self) -> None:
        """Kill the server process if it is running.

        Safe to call any number of times, before or after start().
        """
        if self._process is None:
            return

        logger.info("Stopping TLS server at %s (PID %d)", self.url, self._process.pid)
        self._kill()
        if self._state is ServerState.RUNNING:
            self._state = ServerState.STOPPED

    def _process_status(self) -> ProcessStatus:
        """Report the process status for the readiness poll.

        A live process counts as RUNNING. Override to return STARTING until
        a stronger readiness signal is seen.
        """
        if self._process is None or self._process.poll() is not None:
            return ProcessStatus.TERMINATED
        return ProcessStatus.RUNNING

    def _wait_until_started(self) -> ProcessStatus:
        """Poll the process until it runs or exits, within the settings budget."""
        time.sleep(self.settings.start_delay)

        status = self._process_status()
        for _ in range(self.settings.max_poll_attempts):
            if status is not ProcessStatus.STARTING:
                break
            time.sleep(self.settings.poll_interval)
            status = self._process_status()

        logger.debug("Process status after polling: %s", status.value)
        return status

    def _kill(self) -> None:
        if self._process is not None and self._process.poll() is None:
            _terminate(self._process, grace=0.0)
        self._release()

    def _release(self) -> None:
        if self._process is not None and self._process.stdin is not None:
            self._process.stdin.close()
        self._process = None
        self._close_stderr()

    def _read_stderr(self) -> str:
        if self._stderr is None:
            return ""
        self._stderr.seek(0)
        return self._stderr.read().decode("utf-8", errors="replace")

    def _close_stderr(self) -> None:
        if self._stderr is not None:
            self._stderr.close()
            self._stderr = None


@contextmanager
def serving(config: ServerConfig, settings: Optional[HarnessSettings] = None) -> Iterator[str]:
    """Run a TLS server for the duration of a with-block.

    Yields:
        Base URL of the running server
    """
    supervisor = TlsServerSupervisor(config, settings)
    try:
        yield supervisor.start()
    finally:
        supervisor.stop()
