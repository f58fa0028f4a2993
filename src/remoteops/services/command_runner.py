"""Remote command execution service for remoteops."""

import time
from typing import Callable, Optional

from remoteops.errors import (
    CommandTimeoutError,
    RemoteOpsError,
    SessionClosedError,
    SessionConnectionError,
)
from remoteops.models import (
    STATUS_FAILED,
    STATUS_SUCCESS,
    STATUS_TIMEOUT,
    Step,
    StepResult,
)


class CommandRunner:
    """Runs single steps over a transport with consistent error handling.

    Commands are never retried: a remote command may be destructive and its
    first attempt may already have had an effect.
    """

    def __init__(self, transport, logger, default_timeout: Optional[float] = None, time_module=time):
        self.transport = transport
        self.logger = logger
        self.default_timeout = default_timeout
        self.time = time_module

    def run(
        self,
        index: int,
        step: Step,
        command: Optional[str] = None,
        on_output: Optional[Callable[[str, str], None]] = None,
    ) -> StepResult:
        if step.upload is not None:
            return self._upload(index, step)

        cmd_str = command if command is not None else step.command or ""
        effective_timeout = step.timeout if step.timeout is not None else self.default_timeout
        host = self.transport.params.host
        self.logger.debug("Executing: %s", cmd_str)

        started = self.time.monotonic()
        try:
            result = self.transport.exec_command(cmd_str, timeout=effective_timeout, on_output=on_output)
        except CommandTimeoutError as exc:
            self.logger.warning(str(exc))
            return StepResult(
                index=index,
                name=step.label,
                command=cmd_str,
                status=STATUS_TIMEOUT,
                duration_seconds=self.time.monotonic() - started,
                error=str(exc),
                host=host,
                timeout=effective_timeout,
            )
        duration = self.time.monotonic() - started

        if result.stdout:
            self.logger.debug("Command output: %s", result.stdout.strip())

        if result.exit_status == 0:
            return StepResult(
                index=index,
                name=step.label,
                command=cmd_str,
                status=STATUS_SUCCESS,
                stdout=result.stdout,
                stderr=result.stderr,
                exit_status=0,
                duration_seconds=duration,
                host=host,
            )

        message = f"Command failed ({result.exit_status}): {cmd_str}"
        stderr = result.stderr.strip()
        if stderr:
            message = f"{message}\n{stderr}"
        self.logger.warning(message)
        return StepResult(
            index=index,
            name=step.label,
            command=cmd_str,
            status=STATUS_FAILED,
            stdout=result.stdout,
            stderr=result.stderr,
            exit_status=result.exit_status,
            duration_seconds=duration,
            error=message,
            host=host,
        )

    def failed(self, index: int, step: Step, message: str, command: Optional[str] = None) -> StepResult:
        """Builds a failed result for a step that could not be started."""
        self.logger.warning(message)
        return StepResult(
            index=index,
            name=step.label,
            command=command if command is not None else step.command or "",
            status=STATUS_FAILED,
            error=message,
            host=self.transport.params.host,
        )

    def _upload(self, index: int, step: Step) -> StepResult:
        upload = step.upload
        started = self.time.monotonic()
        try:
            self.transport.put_file(upload.source, upload.destination)
        except (SessionConnectionError, SessionClosedError):
            raise
        except RemoteOpsError as exc:
            return self.failed(index, step, str(exc), command=step.label)

        return StepResult(
            index=index,
            name=step.label,
            command=step.label,
            status=STATUS_SUCCESS,
            exit_status=0,
            duration_seconds=self.time.monotonic() - started,
            host=self.transport.params.host,
        )
