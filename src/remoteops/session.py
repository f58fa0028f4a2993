"""Remote session: one authenticated SSH connection running an ordered step list."""

import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Union

from .constants import DEFAULT_COMMAND_TIMEOUT
from .errors import (
    CommandError,
    CommandTimeoutError,
    SessionBusyError,
    SessionClosedError,
    SessionConnectionError,
)
from .errors_catalog import actionable_error
from .models import (
    STATUS_FAILED,
    STATUS_SKIPPED,
    STATUS_TIMEOUT,
    ConnectionParams,
    ContainerInfo,
    ContainerQuery,
    SequenceResult,
    Step,
    StepResult,
)
from .services.command_runner import CommandRunner
from .services.docker_runtime import ContainerLookupError, DockerRuntimeService
from .services.ssh_transport import SSHTransport

logger = logging.getLogger("remoteops")

OutputHandler = Callable[[int, str, str], None]

_NEW = "new"
_OPEN = "open"
_CLOSED = "closed"


class RemoteSession:
    """Runs commands on one host, strictly one at a time.

    A step marked ``depends_on_previous`` never starts unless the step right
    before it succeeded. A non-zero exit is a per-step result, while a
    connection failure aborts the whole sequence. After a timeout the
    connection is closed and the session object cannot be reused.
    """

    def __init__(
        self,
        params: ConnectionParams,
        default_timeout: Optional[float] = DEFAULT_COMMAND_TIMEOUT,
        containers: Optional[Dict[str, ContainerQuery]] = None,
        transport=None,
        session_logger: Optional[logging.Logger] = None,
    ):
        self.params = params
        self.default_timeout = default_timeout
        self.containers = dict(containers or {})
        self.logger = session_logger or logger
        self.transport = transport or SSHTransport(params, logger=self.logger)
        self.command_runner = CommandRunner(
            self.transport,
            logger=self.logger,
            default_timeout=default_timeout,
        )
        self.docker_runtime_service = DockerRuntimeService(logger=self.logger)
        self._state = _NEW
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._state == _CLOSED

    def __enter__(self) -> "RemoteSession":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def connect(self):
        if self._state == _CLOSED:
            raise self._closed_error()
        if self._state == _OPEN:
            return

        try:
            self.transport.connect()
        except SessionConnectionError:
            self._state = _CLOSED
            raise
        self._state = _OPEN
        self.logger.info("Connected to %s", self.params.address)

    def close(self):
        if self._state == _CLOSED:
            return
        self._state = _CLOSED
        self.transport.close()

    def run(self, command: Union[str, Step], on_output: Optional[OutputHandler] = None) -> StepResult:
        step = command if isinstance(command, Step) else Step(command=command)
        return self.run_sequence([step], on_output=on_output).steps[0]

    def run_sequence(
        self,
        steps: Iterable[Union[str, Step]],
        on_output: Optional[OutputHandler] = None,
    ) -> SequenceResult:
        self._acquire()
        try:
            step_list = [item if isinstance(item, Step) else Step(command=item) for item in steps]
            self.connect()

            result = SequenceResult(host=self.params.host, port=self.params.port)
            previous: Optional[StepResult] = None

            for index, step in enumerate(step_list, start=1):
                if self.closed:
                    result.steps.append(
                        self._skipped(index, step, "Not run: the session was closed after a timeout.")
                    )
                    continue

                if step.depends_on_previous and previous is not None and not previous.ok:
                    skipped = self._skipped(
                        index,
                        step,
                        f"Not run: step {previous.index} ended with status {previous.status}.",
                    )
                    result.steps.append(skipped)
                    previous = skipped
                    continue

                try:
                    step_result = self._execute(index, step, on_output)
                except SessionConnectionError as exc:
                    self.close()
                    exc.partial_result = result
                    raise

                result.steps.append(step_result)
                previous = step_result

                if step_result.status == STATUS_TIMEOUT:
                    self.logger.error(
                        "Closing connection to %s after timeout in step %s.",
                        self.params.address,
                        index,
                    )
                    self.close()

            return result
        finally:
            self._lock.release()

    def find_containers(self, query: ContainerQuery) -> List[ContainerInfo]:
        self._acquire()
        try:
            self.connect()
            return self.docker_runtime_service.find_containers(query, self._capture)
        finally:
            self._lock.release()

    def _acquire(self):
        if not self._lock.acquire(blocking=False):
            raise SessionBusyError(f"Session to {self.params.address} is already in use by another operation.")

    def _execute(self, index: int, step: Step, on_output: Optional[OutputHandler]) -> StepResult:
        command = step.command
        if command is not None and self.docker_runtime_service.referenced_aliases(command):
            try:
                command = self.docker_runtime_service.resolve_placeholders(
                    command,
                    self.containers,
                    lambda lookup: self._capture(lookup, timeout=step.timeout),
                )
            except (ContainerLookupError, CommandError) as exc:
                return self.command_runner.failed(index, step, str(exc))
            except CommandTimeoutError as exc:
                return StepResult(
                    index=index,
                    name=step.label,
                    command=step.command,
                    status=STATUS_TIMEOUT,
                    error=str(exc),
                    host=self.params.host,
                    timeout=exc.timeout,
                )

        stream_handler = None
        if on_output is not None:

            def stream_handler(stream_name, text):
                on_output(index, stream_name, text)

        step_result = self.command_runner.run(index, step, command=command, on_output=stream_handler)

        if step.save_output and step_result.status != STATUS_TIMEOUT:
            self._save_output(step, step_result)
        return step_result

    def _capture(self, command: str, timeout: Optional[float] = None) -> str:
        effective_timeout = timeout if timeout is not None else self.default_timeout
        self.logger.debug("Executing: %s", command)
        result = self.transport.exec_command(command, timeout=effective_timeout)
        if result.exit_status != 0:
            raise CommandError(
                f"Command failed ({result.exit_status}): {command}\n{result.stderr.strip()}".strip(),
                command=command,
                exit_status=result.exit_status,
                stderr=result.stderr,
                host=self.params.host,
            )
        return result.stdout

    def _save_output(self, step: Step, step_result: StepResult):
        path = Path(step.save_output)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(step_result.stdout + step_result.stderr, encoding="utf-8")
        except OSError as exc:
            step_result.status = STATUS_FAILED
            step_result.error = f"Could not save output of step {step_result.index} to {path}: {exc}"
            self.logger.error(step_result.error)
            return
        self.logger.info("Saved output of step %s to %s", step_result.index, path)

    def _skipped(self, index: int, step: Step, reason: str) -> StepResult:
        self.logger.info("Skipping step %s: %s", index, reason)
        return StepResult(
            index=index,
            name=step.label,
            command=step.command if step.command is not None else step.label,
            status=STATUS_SKIPPED,
            error=reason,
            host=self.params.host,
        )

    def _closed_error(self) -> SessionClosedError:
        return SessionClosedError(
            actionable_error("session_closed", host=self.params.host, port=str(self.params.port))
        )
