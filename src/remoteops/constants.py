"""Shared constants for remoteops."""

DEFAULT_PORT = 22
DEFAULT_PASSWORD_ENV = "REMOTEOPS_PASSWORD"
KEY_PASSPHRASE_ENV = "REMOTEOPS_KEY_PASSPHRASE"
DEFAULT_CONFIG_FILENAME = ".remoteops.yml"

DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_COMMAND_TIMEOUT = 300.0

RECV_BUFFER_SIZE = 32768
POLL_INTERVAL_SECONDS = 0.05

EXIT_OK = 0
EXIT_COMMAND_FAILED = 1
EXIT_USAGE = 2
EXIT_CONNECTION_FAILED = 3
EXIT_TIMEOUT = 4

PLAN_YAML_EXTENSIONS = (".yml", ".yaml")
