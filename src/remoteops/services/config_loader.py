"""Configuration loader for remoteops."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from remoteops.errors import ConfigError


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults.

    Secrets never live in the file: only the name of the environment
    variable holding the password is configurable.
    """

    SUPPORTED_KEYS = {
        "host",
        "port",
        "user",
        "password_env",
        "key_file",
        "timeout",
        "connect_timeout",
        "strict_host_keys",
        "chain",
        "stream",
        "file",
        "report_file",
        "verbose",
        "log_file",
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ConfigError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ConfigError("Config file must contain a YAML mapping at the root.")

        if "password" in parsed:
            raise ConfigError(
                "Passwords are not accepted in config files. "
                "Set `password_env` to the name of an environment variable instead."
            )

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise ConfigError(f"Unknown configuration keys: {unknown_list}")

        return parsed
