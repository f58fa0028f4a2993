from click.testing import CliRunner

import remoteops.cli as cli_module


def _fake_remote_ops(captured, exit_code=0):
    class FakeRemoteOps:
        def __init__(self, **kwargs):
            captured.update(kwargs)

        def run(self):
            return exit_code

    return FakeRemoteOps


def test_cli_uses_config_and_allows_cli_override(tmp_path, monkeypatch):
    config_file = tmp_path / ".remoteops.yml"
    config_file.write_text(
        "host: config.example.test\n" "user: deploy\n" "port: 2222\n" "timeout: 45\n",
        encoding="utf-8",
    )

    captured = {}
    monkeypatch.setattr(cli_module, "RemoteOps", _fake_remote_ops(captured))

    runner = CliRunner()
    result = runner.invoke(
        cli_module.main,
        [
            "--config",
            str(config_file),
            "--host",
            "cli.example.test",
            "-c",
            "docker ps",
            "-c",
            "docker restart api",
            "--chain",
        ],
    )

    assert result.exit_code == 0
    assert captured["host"] == "cli.example.test"
    assert captured["username"] == "deploy"
    assert captured["port"] == 2222
    assert captured["timeout"] == 45.0
    assert captured["commands"] == ["docker ps", "docker restart api"]
    assert captured["chain"] is True
    assert captured["password_env"] == "REMOTEOPS_PASSWORD"


def test_cli_uses_default_config_file_when_present(tmp_path, monkeypatch):
    default_config = tmp_path / ".remoteops.yml"
    default_config.write_text(
        "host: default.example.test\n" "user: root\n" "password_env: SHOP_VPS_PASSWORD\n",
        encoding="utf-8",
    )

    captured = {}
    monkeypatch.setattr(cli_module, "RemoteOps", _fake_remote_ops(captured))
    monkeypatch.chdir(tmp_path)

    runner = CliRunner()
    result = runner.invoke(cli_module.main, ["-c", "uptime"])

    assert result.exit_code == 0
    assert captured["host"] == "default.example.test"
    assert captured["password_env"] == "SHOP_VPS_PASSWORD"


def test_cli_propagates_run_exit_code(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli_module, "RemoteOps", _fake_remote_ops({}, exit_code=3))

    runner = CliRunner()
    result = runner.invoke(cli_module.main, ["--host", "h", "--user", "u", "-c", "uptime"])

    assert result.exit_code == 3


def test_cli_requires_host(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    runner = CliRunner()
    result = runner.invoke(cli_module.main, ["--user", "root", "-c", "uptime"])

    assert result.exit_code == 2
    assert "--host" in result.output


def test_cli_rejects_password_in_config(tmp_path):
    config_file = tmp_path / "ops.yml"
    config_file.write_text("host: h\nuser: u\npassword: hunter2\n", encoding="utf-8")

    runner = CliRunner()
    result = runner.invoke(cli_module.main, ["--config", str(config_file), "-c", "uptime"])

    assert result.exit_code == 1
    assert "Passwords are not accepted" in result.output
