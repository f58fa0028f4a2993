import json

from remoteops.models import StepResult
from remoteops.services.manifest import ManifestService


class DummyLogger:
    def warning(self, *_args, **_kwargs):
        return None


def test_manifest_service_writes_run_report(tmp_path):
    manifest_file = tmp_path / "reports" / "run-report.json"
    service = ManifestService(str(manifest_file), logger=DummyLogger())

    service.start_run("run-123", {"host": "vps.example.test", "port": 22})
    service.set_connection("connected")
    service.record_step(
        StepResult(
            index=1,
            name="docker ps",
            command="docker ps",
            status="success",
            stdout="CONTAINER ID\n",
            exit_status=0,
            host="vps.example.test",
        )
    )
    service.finalize("success", exit_code=0)

    data = json.loads(manifest_file.read_text(encoding="utf-8"))

    assert data["run_id"] == "run-123"
    assert data["status"] == "success"
    assert data["exit_code"] == 0
    assert data["target"]["host"] == "vps.example.test"
    assert data["connection"]["status"] == "connected"
    assert data["steps"][0]["command"] == "docker ps"
    assert data["steps"][0]["stdout"] == "CONTAINER ID\n"
    assert "host" not in data["steps"][0]


def test_manifest_service_warns_when_report_directory_is_a_file(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory\n", encoding="utf-8")
    warnings = []

    class RecordingLogger:
        def warning(self, message, *args):
            warnings.append(message % args)

    service = ManifestService(str(blocker / "run-report.json"), logger=RecordingLogger())

    service.start_run("run-123", {"host": "vps.example.test"})
    service.finalize("success", exit_code=0)

    assert len(warnings) == 2
    assert "Could not write report file" in warnings[0]
    assert list(tmp_path.iterdir()) == [blocker]
