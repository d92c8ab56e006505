"""Error taxonomy for the TLS test server.

Every error carries a short code and a human readable message so test
output and CLI logs can be grepped for the failure class.
"""


class TlsServerError(Exception):
    """Base exception for TLS test server errors."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


class InvalidConfiguration(TlsServerError):
    """Caller supplied configuration that can never work."""

    def __init__(self, message: str):
        super().__init__("E100", message)


class ServerStartupFailed(TlsServerError):
    """Server process exited before it became ready.

    Attributes:
        exit_code: Process exit status (negative for a signal)
        exit_text: Description of the exit status
        command_line: Shell-quoted command that was executed
        stderr: Captured standard error of the process
    """

    def __init__(self, exit_code: int, exit_text: str, command_line: str, stderr: str):
        self.exit_code = exit_code
        self.exit_text = exit_text
        self.command_line = command_line
        self.stderr = stderr
        super().__init__(
            "E200",
            f"Process exited unexpectedly with {exit_code}[{exit_text}]\n\n"
            f"{command_line}\n\n{stderr}",
        )


class ServerStartupTimeout(TlsServerError):
    """Server process neither ran nor exited within the polling budget."""

    def __init__(self, command_line: str, budget: float):
        self.command_line = command_line
        self.budget = budget
        super().__init__(
            "E201",
            f"Server not ready after {budget:.4f}s: {command_line}",
        )


class SupervisorStateError(TlsServerError):
    """Operation not allowed in the supervisor's current lifecycle state."""

    def __init__(self, message: str):
        super().__init__("E300", message)
