"""Domain errors for remoteops."""

from typing import Optional


class RemoteOpsError(RuntimeError):
    """Raised when a remote operation cannot continue safely."""


class ConfigError(RemoteOpsError):
    """Raised for invalid configuration, plan files or missing credentials."""


class SessionConnectionError(RemoteOpsError):
    """Authentication or network failure while opening the session."""

    def __init__(self, message: str, host: str, port: int):
        super().__init__(message)
        self.host = host
        self.port = port
        self.partial_result = None


class CommandError(RemoteOpsError):
    """A remote command exited with a non-zero status."""

    def __init__(
        self,
        message: str,
        command: str,
        exit_status: Optional[int],
        stderr: str = "",
        host: Optional[str] = None,
    ):
        super().__init__(message)
        self.command = command
        self.exit_status = exit_status
        self.stderr = stderr
        self.host = host


class CommandTimeoutError(RemoteOpsError):
    """A remote command did not signal completion within its time bound."""

    def __init__(self, message: str, command: str, timeout: float, host: Optional[str] = None):
        super().__init__(message)
        self.command = command
        self.timeout = timeout
        self.host = host


class SessionClosedError(RemoteOpsError):
    """Raised when a closed session is reused."""


class SessionBusyError(RemoteOpsError):
    """Raised when a second sequence is started on a session already in use."""
