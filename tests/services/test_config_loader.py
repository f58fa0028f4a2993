import pytest

from remoteops.errors import ConfigError
from remoteops.services.config_loader import ConfigLoader


def test_config_loader_loads_yaml_mapping(tmp_path):
    config_file = tmp_path / ".remoteops.yml"
    config_file.write_text(
        "host: vps.example.test\nport: 2222\nuser: deploy\ntimeout: 90\n",
        encoding="utf-8",
    )

    loader = ConfigLoader()
    loaded = loader.load(str(config_file))

    assert loaded["host"] == "vps.example.test"
    assert loaded["port"] == 2222
    assert loaded["timeout"] == 90


def test_config_loader_rejects_unknown_keys(tmp_path):
    config_file = tmp_path / ".remoteops.yml"
    config_file.write_text("unknown_key: true\n", encoding="utf-8")

    loader = ConfigLoader()

    with pytest.raises(ConfigError, match="Unknown configuration keys"):
        loader.load(str(config_file))


def test_config_loader_refuses_passwords(tmp_path):
    config_file = tmp_path / ".remoteops.yml"
    config_file.write_text("host: vps.example.test\npassword: hunter2\n", encoding="utf-8")

    with pytest.raises(ConfigError, match="Passwords are not accepted"):
        ConfigLoader().load(str(config_file))
