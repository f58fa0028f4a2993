import logging
import os

import click
from rich.logging import RichHandler

from .constants import (
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_CONFIG_FILENAME,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_PASSWORD_ENV,
    DEFAULT_PORT,
)
from .core import RemoteOps
from .errors import ConfigError
from .services.config_loader import ConfigLoader


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.command()
@click.option("--host", required=False, help="Remote host name or address.")
@click.option("--port", required=False, type=int, default=None, help=f"SSH port (default: {DEFAULT_PORT}).")
@click.option("--user", required=False, help="Remote user name.")
@click.option(
    "--password-env",
    required=False,
    help=f"Environment variable holding the password (default: {DEFAULT_PASSWORD_ENV}).",
)
@click.option(
    "--key-file",
    required=False,
    type=click.Path(),
    help="Private key file. Its passphrase, if any, is read from REMOTEOPS_KEY_PASSPHRASE.",
)
@click.option(
    "--command",
    "-c",
    "commands",
    multiple=True,
    help="Command to run. Repeat to run several commands in order.",
)
@click.option(
    "--file",
    "-f",
    "plan_file",
    required=False,
    type=click.Path(),
    help="Plan file: one command per line (`&&` prefix = depends on previous) or a YAML plan.",
)
@click.option(
    "--chain",
    is_flag=True,
    default=None,
    help="Make every command depend on the success of the one before it.",
)
@click.option(
    "--timeout",
    required=False,
    type=float,
    default=None,
    help=f"Per-command timeout in seconds (default: {DEFAULT_COMMAND_TIMEOUT:g}).",
)
@click.option(
    "--connect-timeout",
    required=False,
    type=float,
    default=None,
    help=f"Connection timeout in seconds (default: {DEFAULT_CONNECT_TIMEOUT:g}).",
)
@click.option("--stream", is_flag=True, default=None, help="Print remote output as it arrives.")
@click.option(
    "--strict-host-keys",
    is_flag=True,
    default=None,
    help="Reject hosts missing from known_hosts instead of accepting them.",
)
@click.option("--report-file", type=click.Path(), help="Write a JSON run report to this path.")
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILENAME} if present.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
def main(
    host,
    port,
    user,
    password_env,
    key_file,
    commands,
    plan_file,
    chain,
    timeout,
    connect_timeout,
    stream,
    strict_host_keys,
    report_file,
    config,
    verbose,
    log_file,
):
    """Run an ordered list of shell commands on a remote host over SSH.

    Exit codes: 0 all commands succeeded, 1 a command failed, 2 usage error,
    3 connection failed, 4 a command timed out.
    """
    logger = logging.getLogger("remoteops")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILENAME)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    host = _resolve_option(host, config_values, "host")
    port = int(_resolve_option(port, config_values, "port", default=DEFAULT_PORT))
    user = _resolve_option(user, config_values, "user")
    password_env = _resolve_option(
        password_env, config_values, "password_env", default=DEFAULT_PASSWORD_ENV
    )
    key_file = _resolve_option(key_file, config_values, "key_file")
    plan_file = _resolve_option(plan_file, config_values, "file")
    chain = bool(_resolve_option(chain, config_values, "chain", default=False))
    timeout = float(_resolve_option(timeout, config_values, "timeout", default=DEFAULT_COMMAND_TIMEOUT))
    connect_timeout = float(
        _resolve_option(
            connect_timeout,
            config_values,
            "connect_timeout",
            default=DEFAULT_CONNECT_TIMEOUT,
        )
    )
    stream = bool(_resolve_option(stream, config_values, "stream", default=False))
    strict_host_keys = bool(
        _resolve_option(strict_host_keys, config_values, "strict_host_keys", default=False)
    )
    report_file = _resolve_option(report_file, config_values, "report_file")
    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")

    if not host:
        raise click.UsageError("Missing option '--host' (or provide it in config).")
    if not user:
        raise click.UsageError("Missing option '--user' (or provide it in config).")
    if timeout <= 0 or connect_timeout <= 0:
        raise click.UsageError("Timeouts must be positive numbers of seconds.")

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    remote_ops = RemoteOps(
        host=host,
        port=port,
        username=user,
        password_env=password_env,
        key_file=key_file,
        commands=list(commands),
        plan_file=plan_file,
        chain=chain,
        timeout=timeout,
        connect_timeout=connect_timeout,
        stream=stream,
        strict_host_keys=strict_host_keys,
        report_file=report_file,
    )

    raise SystemExit(remote_ops.run())


if __name__ == "__main__":
    main()
