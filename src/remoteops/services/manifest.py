"""Run report generation service."""

import json
import os
import tempfile
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from remoteops.models import StepResult


class ManifestService:
    """Collects execution metadata and writes the run report JSON."""

    def __init__(self, manifest_file: str, logger):
        self.manifest_file = manifest_file
        self.logger = logger
        self.manifest: Dict[str, Any] = {
            "run_id": None,
            "status": "running",
            "exit_code": None,
            "started_at": None,
            "finished_at": None,
            "duration_seconds": None,
            "target": {},
            "connection": None,
            "steps": [],
            "error": None,
        }

    def start_run(self, run_id: str, target: Dict[str, Any]):
        self.manifest["run_id"] = run_id
        self.manifest["status"] = "running"
        self.manifest["started_at"] = self._now()
        self.manifest["target"] = target
        self.write()

    def set_connection(self, status: str, error: Optional[str] = None):
        self.manifest["connection"] = {"status": status, "error": error, "at": self._now()}
        self.write()

    def record_step(self, step: StepResult):
        entry = asdict(step)
        entry.pop("host", None)
        self.manifest["steps"].append(entry)
        self.write()

    def finalize(self, status: str, exit_code: int, error: Optional[str] = None):
        self.manifest["status"] = status
        self.manifest["exit_code"] = exit_code
        self.manifest["finished_at"] = self._now()
        if self.manifest.get("started_at"):
            started_at = datetime.fromisoformat(self.manifest["started_at"])
            finished_at = datetime.fromisoformat(self.manifest["finished_at"])
            self.manifest["duration_seconds"] = (finished_at - started_at).total_seconds()
        self.manifest["error"] = error
        self.write()

    def write(self):
        directory = os.path.dirname(self.manifest_file) or "."
        temp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(prefix="run-report-", suffix=".json", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
                json.dump(self.manifest, file_obj, indent=2, sort_keys=True)
                file_obj.write("\n")
            os.replace(temp_path, self.manifest_file)
        except OSError as exc:
            self.logger.warning("Could not write report file '%s': %s", self.manifest_file, exc)
            if temp_path is not None and os.path.exists(temp_path):
                os.remove(temp_path)

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()
