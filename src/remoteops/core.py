import dataclasses
import logging
import os
import uuid
from typing import Mapping, Optional, Sequence

from rich.console import Console

from .constants import (
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_PASSWORD_ENV,
    DEFAULT_PORT,
    EXIT_COMMAND_FAILED,
    EXIT_CONNECTION_FAILED,
    EXIT_OK,
    EXIT_TIMEOUT,
    EXIT_USAGE,
    KEY_PASSPHRASE_ENV,
)
from .errors import ConfigError, RemoteOpsError, SessionConnectionError
from .errors_catalog import actionable_error
from .models import (
    STATUS_FAILED,
    STATUS_SKIPPED,
    STATUS_SUCCESS,
    STATUS_TIMEOUT,
    ConnectionParams,
    Plan,
    SequenceResult,
    StepResult,
)
from .services.manifest import ManifestService
from .services.plan_loader import PlanLoader
from .session import RemoteSession

console = Console()
logger = logging.getLogger("remoteops")

STATUS_MARKERS = {
    STATUS_SUCCESS: "[green]✓[/green]",
    STATUS_FAILED: "[red]✗[/red]",
    STATUS_SKIPPED: "[dim]-[/dim]",
    STATUS_TIMEOUT: "[yellow]⏱[/yellow]",
}


class RemoteOps:
    """Runs one command plan against one host and maps the outcome to an exit code."""

    def __init__(
        self,
        host: str,
        username: str,
        port: int = DEFAULT_PORT,
        password_env: str = DEFAULT_PASSWORD_ENV,
        key_file: Optional[str] = None,
        commands: Optional[Sequence[str]] = None,
        plan_file: Optional[str] = None,
        chain: bool = False,
        timeout: Optional[float] = DEFAULT_COMMAND_TIMEOUT,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        stream: bool = False,
        strict_host_keys: bool = False,
        report_file: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
        session_factory=RemoteSession,
    ):
        self.host = host
        self.username = username
        self.port = port
        self.password_env = password_env
        self.key_file = key_file
        self.commands = list(commands or [])
        self.plan_file = plan_file
        self.chain = chain
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.stream = stream
        self.strict_host_keys = strict_host_keys
        self.environ = os.environ if environ is None else environ
        self.session_factory = session_factory

        self.run_id = uuid.uuid4().hex[:10]
        self.plan_loader = PlanLoader()
        self.manifest_service = (
            ManifestService(manifest_file=report_file, logger=logger) if report_file else None
        )

    def build_plan(self) -> Plan:
        plan = self.plan_loader.load(self.plan_file) if self.plan_file else Plan()
        plan.steps.extend(self.plan_loader.from_commands(self.commands))

        if not plan.steps:
            raise ConfigError("Nothing to run. Pass `--command` or `--file` with at least one command.")

        if self.chain:
            plan.steps = [
                dataclasses.replace(step, depends_on_previous=True) if position else step
                for position, step in enumerate(plan.steps)
            ]
        return plan

    def resolve_connection_params(self) -> ConnectionParams:
        password = self.environ.get(self.password_env) or None
        if password is None and not self.key_file:
            raise ConfigError(actionable_error("missing_credential", env_var=self.password_env))

        if self.key_file and not os.path.isfile(self.key_file):
            raise ConfigError(f"Key file not found: {self.key_file}")

        return ConnectionParams(
            host=self.host,
            port=self.port,
            username=self.username,
            password=password,
            key_filename=self.key_file,
            key_passphrase=self.environ.get(KEY_PASSPHRASE_ENV) or None,
            connect_timeout=self.connect_timeout,
            strict_host_keys=self.strict_host_keys,
        )

    def run(self) -> int:
        exit_code = EXIT_COMMAND_FAILED
        status = "failed"
        error: Optional[str] = None
        result: Optional[SequenceResult] = None

        try:
            plan = self.build_plan()
            params = self.resolve_connection_params()
            if self.manifest_service:
                self.manifest_service.start_run(run_id=self.run_id, target=self._target_metadata())

            session = self.session_factory(
                params,
                default_timeout=self.timeout,
                containers=plan.containers,
            )
            console.print(f"[blue]Connecting to {params.address} as {params.username}...[/blue]")
            try:
                session.connect()
                self._record_connection("connected")
                console.print("[green]Connected.[/green]")
                result = session.run_sequence(
                    plan.steps,
                    on_output=self._print_stream if self.stream else None,
                )
            finally:
                session.close()

            self.print_summary(result)
            exit_code = self.exit_code_for(result)
            status = "success" if exit_code == EXIT_OK else "failed"
            if result.timed_out:
                error = next(step.error for step in result.steps if step.status == STATUS_TIMEOUT)
            return exit_code

        except ConfigError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            error = str(exc)
            exit_code = EXIT_USAGE
            return exit_code
        except SessionConnectionError as exc:
            console.print(f"[bold red]Connection failed:[/bold red] {exc}")
            logger.error("Connection to %s:%s failed: %s", exc.host, exc.port, exc)
            self._record_connection("failed", str(exc))
            if exc.partial_result is not None:
                result = exc.partial_result
                self.print_summary(result)
            error = str(exc)
            exit_code = EXIT_CONNECTION_FAILED
            return exit_code
        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            status = "aborted"
            error = "Operation cancelled by user."
            exit_code = EXIT_COMMAND_FAILED
            return exit_code
        except RemoteOpsError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
            error = str(exc)
            exit_code = EXIT_COMMAND_FAILED
            return exit_code
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            error = str(exc)
            exit_code = EXIT_COMMAND_FAILED
            return exit_code
        finally:
            if self.manifest_service and self.manifest_service.manifest["run_id"]:
                if result is not None:
                    for step in result.steps:
                        self.manifest_service.record_step(step)
                self.manifest_service.finalize(status, exit_code=exit_code, error=error)

    @staticmethod
    def exit_code_for(result: SequenceResult) -> int:
        if result.timed_out:
            return EXIT_TIMEOUT
        if not result.ok:
            return EXIT_COMMAND_FAILED
        return EXIT_OK

    def print_summary(self, result: SequenceResult):
        total = len(result.steps)
        for step in result.steps:
            console.print(self.summary_line(step, total))
            if step.status in (STATUS_FAILED, STATUS_TIMEOUT):
                self._print_failure_details(step)

        executed = result.executed_count
        if result.ok:
            console.print(f"[bold green]All {total} step(s) succeeded on {result.host}.[/bold green]")
        else:
            console.print(
                f"[bold red]{len(result.failed_steps)} failed, "
                f"{total - executed} skipped of {total} step(s) on {result.host}.[/bold red]"
            )

    @staticmethod
    def summary_line(step: StepResult, total: int) -> str:
        marker = STATUS_MARKERS.get(step.status, "?")
        label = step.name.replace("[", "\\[")
        if step.status == STATUS_SKIPPED:
            detail = "skipped"
        elif step.status == STATUS_TIMEOUT:
            detail = f"timed out after {step.duration_seconds:.1f}s"
        elif step.exit_status is None:
            detail = f"error, {step.duration_seconds:.1f}s"
        else:
            detail = f"exit {step.exit_status}, {step.duration_seconds:.1f}s"
        return f"{marker} [{step.index}/{total}] {label} ({detail})"

    def _print_failure_details(self, step: StepResult):
        if not self.stream:
            if step.stdout:
                console.print("[dim]--- stdout ---[/dim]")
                console.print(step.stdout.rstrip("\n"), markup=False, highlight=False)
            if step.stderr:
                console.print("[dim]--- stderr ---[/dim]")
                console.print(step.stderr.rstrip("\n"), markup=False, highlight=False, style="red")
        if step.error and not step.stderr:
            console.print(step.error, markup=False, highlight=False, style="red")

    def _print_stream(self, index: int, stream_name: str, text: str):
        style = "red" if stream_name == "stderr" else None
        console.print(text, end="", markup=False, highlight=False, style=style)

    def _record_connection(self, status: str, error: Optional[str] = None):
        if self.manifest_service and self.manifest_service.manifest["run_id"]:
            self.manifest_service.set_connection(status, error)

    def _target_metadata(self):
        return {
            "host": self.host,
            "port": self.port,
            "user": self.username,
            "plan_file": self.plan_file,
            "chain": self.chain,
            "timeout": self.timeout,
        }
