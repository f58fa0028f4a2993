"""Shared domain models for remoteops."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from remoteops.constants import DEFAULT_CONNECT_TIMEOUT, DEFAULT_PORT
from remoteops.errors import CommandError, CommandTimeoutError

STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"
STATUS_TIMEOUT = "timeout"


@dataclass(frozen=True)
class ConnectionParams:
    """Address and credential for one remote host, built once per invocation."""

    host: str
    username: str
    port: int = DEFAULT_PORT
    password: Optional[str] = field(default=None, repr=False)
    key_filename: Optional[str] = None
    key_passphrase: Optional[str] = field(default=None, repr=False)
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    strict_host_keys: bool = False

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class ContainerQuery:
    """Typed `docker ps` filter."""

    name: Optional[str] = None
    ancestor: Optional[str] = None
    status: Optional[str] = None
    label: Optional[str] = None
    include_stopped: bool = False

    def describe(self) -> str:
        parts = [
            f"{key}={value}"
            for key, value in (
                ("name", self.name),
                ("ancestor", self.ancestor),
                ("status", self.status),
                ("label", self.label),
            )
            if value
        ]
        return ", ".join(parts) or "any container"


@dataclass(frozen=True)
class ContainerInfo:
    id: str
    name: str
    image: str
    status: str


@dataclass(frozen=True)
class Upload:
    source: str
    destination: str


@dataclass(frozen=True)
class Step:
    """One entry of an ordered command sequence."""

    command: Optional[str] = None
    depends_on_previous: bool = False
    timeout: Optional[float] = None
    name: Optional[str] = None
    upload: Optional[Upload] = None
    save_output: Optional[str] = None

    def __post_init__(self):
        if (self.command is None) == (self.upload is None):
            raise ValueError("A step needs exactly one of `command` or `upload`.")

    @property
    def label(self) -> str:
        if self.name:
            return self.name
        if self.upload:
            return f"upload {self.upload.source} -> {self.upload.destination}"
        return self.command or ""


@dataclass
class StepResult:
    index: int
    name: str
    command: str
    status: str
    stdout: str = ""
    stderr: str = ""
    exit_status: Optional[int] = None
    duration_seconds: float = 0.0
    error: Optional[str] = None
    host: Optional[str] = None
    timeout: Optional[float] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS

    def raise_for_status(self):
        """Raise the matching domain error when the step did not succeed."""
        if self.status == STATUS_FAILED:
            message = self.error or f"Command failed ({self.exit_status}): {self.command}"
            raise CommandError(
                message,
                command=self.command,
                exit_status=self.exit_status,
                stderr=self.stderr,
                host=self.host,
            )
        if self.status == STATUS_TIMEOUT:
            raise CommandTimeoutError(
                self.error or f"Command timed out: {self.command}",
                command=self.command,
                timeout=self.timeout or 0.0,
                host=self.host,
            )


@dataclass
class SequenceResult:
    host: str
    port: int
    steps: List[StepResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(step.ok for step in self.steps)

    @property
    def failed_steps(self) -> List[StepResult]:
        return [step for step in self.steps if step.status == STATUS_FAILED]

    @property
    def timed_out(self) -> bool:
        return any(step.status == STATUS_TIMEOUT for step in self.steps)

    @property
    def executed_count(self) -> int:
        return sum(1 for step in self.steps if step.status != STATUS_SKIPPED)


@dataclass
class Plan:
    """Ordered steps plus the named container queries their commands may reference."""

    steps: List[Step] = field(default_factory=list)
    containers: Dict[str, ContainerQuery] = field(default_factory=dict)
