"""SSH transport for remoteops, backed by paramiko."""

import codecs
import time
from dataclasses import dataclass
from typing import Callable, Optional

import paramiko

from remoteops.constants import POLL_INTERVAL_SECONDS, RECV_BUFFER_SIZE
from remoteops.errors import (
    CommandTimeoutError,
    RemoteOpsError,
    SessionClosedError,
    SessionConnectionError,
)
from remoteops.errors_catalog import actionable_error
from remoteops.models import ConnectionParams

OutputCallback = Callable[[str, str], None]


@dataclass
class ExecResult:
    exit_status: int
    stdout: str
    stderr: str


class SSHTransport:
    """Owns one paramiko client; runs one command at a time on it."""

    def __init__(self, params: ConnectionParams, logger, paramiko_module=paramiko, time_module=time):
        self.params = params
        self.logger = logger
        self.paramiko = paramiko_module
        self.time = time_module
        self.client = None

    def connect(self):
        params = self.params
        client = self.paramiko.SSHClient()
        client.load_system_host_keys()
        if params.strict_host_keys:
            client.set_missing_host_key_policy(self.paramiko.RejectPolicy())
        else:
            client.set_missing_host_key_policy(self.paramiko.AutoAddPolicy())

        self.logger.debug("Connecting to %s as %s", params.address, params.username)
        try:
            client.connect(
                hostname=params.host,
                port=params.port,
                username=params.username,
                password=params.password,
                key_filename=params.key_filename,
                passphrase=params.key_passphrase,
                timeout=params.connect_timeout,
                banner_timeout=params.connect_timeout,
                auth_timeout=params.connect_timeout,
                look_for_keys=params.password is None and params.key_filename is None,
                allow_agent=params.password is None,
            )
        except self.paramiko.AuthenticationException as exc:
            client.close()
            raise self._connection_error(
                actionable_error(
                    "authentication_failed",
                    username=params.username,
                    host=params.host,
                    port=str(params.port),
                )
            ) from exc
        except self.paramiko.SSHException as exc:
            client.close()
            raise self._connection_error(
                actionable_error(
                    "ssh_negotiation_failed",
                    host=params.host,
                    port=str(params.port),
                    reason=str(exc),
                )
            ) from exc
        except OSError as exc:
            client.close()
            raise self._connection_error(
                actionable_error(
                    "host_unreachable",
                    host=params.host,
                    port=str(params.port),
                    reason=str(exc) or type(exc).__name__,
                )
            ) from exc

        self.client = client
        self.logger.debug("Connected to %s", params.address)

    def exec_command(
        self,
        command: str,
        timeout: Optional[float] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> ExecResult:
        """Runs one command and blocks until its channel reports end-of-stream."""
        channel = self._open_channel()
        try:
            channel.exec_command(command)
        except self.paramiko.SSHException as exc:
            channel.close()
            raise self._connection_error(
                f"Could not start command on {self.params.address}: {exc}"
            ) from exc

        stdout_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        stderr_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        stdout_parts = []
        stderr_parts = []
        deadline = self.time.monotonic() + timeout if timeout else None

        def collect(stream_name, decoder, parts, data, final=False):
            text = decoder.decode(data, final=final)
            if text:
                parts.append(text)
                if on_output is not None:
                    on_output(stream_name, text)

        try:
            while True:
                received = False
                if channel.recv_ready():
                    collect("stdout", stdout_decoder, stdout_parts, channel.recv(RECV_BUFFER_SIZE))
                    received = True
                if channel.recv_stderr_ready():
                    collect(
                        "stderr", stderr_decoder, stderr_parts, channel.recv_stderr(RECV_BUFFER_SIZE)
                    )
                    received = True

                if (
                    channel.exit_status_ready()
                    and not channel.recv_ready()
                    and not channel.recv_stderr_ready()
                ):
                    break

                if deadline is not None and self.time.monotonic() >= deadline:
                    raise CommandTimeoutError(
                        actionable_error(
                            "command_timeout",
                            timeout=str(timeout),
                            host=self.params.host,
                            command=command,
                        ),
                        command=command,
                        timeout=timeout,
                        host=self.params.host,
                    )

                if not received:
                    self.time.sleep(POLL_INTERVAL_SECONDS)

            exit_status = channel.recv_exit_status()
        finally:
            channel.close()

        if exit_status == -1 and not self._transport_active():
            raise self._connection_error(
                f"Connection to {self.params.address} was lost while running: {command}"
            )

        collect("stdout", stdout_decoder, stdout_parts, b"", final=True)
        collect("stderr", stderr_decoder, stderr_parts, b"", final=True)
        return ExecResult(
            exit_status=exit_status,
            stdout="".join(stdout_parts),
            stderr="".join(stderr_parts),
        )

    def put_file(self, local_path: str, remote_path: str):
        if self.client is None:
            raise self._closed_error()

        self.logger.debug("Uploading %s to %s:%s", local_path, self.params.host, remote_path)
        try:
            sftp = self.client.open_sftp()
        except self.paramiko.SSHException as exc:
            raise RemoteOpsError(f"Could not open SFTP channel on {self.params.address}: {exc}") from exc

        try:
            sftp.put(local_path, remote_path)
        except (OSError, self.paramiko.SSHException) as exc:
            raise RemoteOpsError(f"Upload of {local_path} to {remote_path} failed: {exc}") from exc
        finally:
            sftp.close()

    def close(self):
        if self.client is None:
            return
        self.logger.debug("Closing connection to %s", self.params.address)
        try:
            self.client.close()
        finally:
            self.client = None

    def _open_channel(self):
        if self.client is None:
            raise self._closed_error()

        transport = self.client.get_transport()
        if transport is None or not transport.is_active():
            raise self._connection_error(f"Connection to {self.params.address} was lost.")

        try:
            return transport.open_session(timeout=self.params.connect_timeout)
        except self.paramiko.SSHException as exc:
            raise self._connection_error(
                f"Could not open a channel on {self.params.address}: {exc}"
            ) from exc

    def _transport_active(self) -> bool:
        # paramiko reports -1 both for a dropped connection and for a signal kill
        transport = self.client.get_transport() if self.client is not None else None
        return transport is not None and transport.is_active()

    def _connection_error(self, message: str) -> SessionConnectionError:
        return SessionConnectionError(message, host=self.params.host, port=self.params.port)

    def _closed_error(self) -> SessionClosedError:
        return SessionClosedError(
            actionable_error("session_closed", host=self.params.host, port=str(self.params.port))
        )
