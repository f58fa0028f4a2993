"""Command plan loader for remoteops."""

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from remoteops.constants import PLAN_YAML_EXTENSIONS
from remoteops.errors import ConfigError
from remoteops.models import ContainerQuery, Plan, Step, Upload

DEPENDENT_PREFIX = "&&"


class PlanLoader:
    """Loads ordered steps from text or YAML plan files and CLI arguments.

    Text plans hold one command per line. Blank lines and lines starting with
    ``#`` are ignored; a line starting with ``&&`` only runs when the command
    before it succeeded.

    YAML plans look like::

        containers:
          api:
            name: shop-api
            status: running
        steps:
          - docker ps
          - run: docker restart ${container:api}
            after_previous: true
            timeout: 60
          - upload: {source: ./migrate.js, destination: /tmp/migrate.js}
    """

    STEP_KEYS = {"run", "upload", "after_previous", "timeout", "name", "save_output"}
    UPLOAD_KEYS = {"source", "destination"}
    QUERY_KEYS = {"name", "ancestor", "status", "label", "include_stopped"}
    ROOT_KEYS = {"containers", "steps"}

    def load(self, plan_path: str) -> Plan:
        path = Path(plan_path)
        if not path.is_file():
            raise ConfigError(f"Plan file not found: {plan_path}")

        try:
            content = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Could not read plan file '{plan_path}': {exc}") from exc

        if path.suffix.lower() in PLAN_YAML_EXTENSIONS:
            try:
                parsed = yaml.safe_load(content)
            except yaml.YAMLError as exc:
                raise ConfigError(f"Invalid plan file '{plan_path}': {exc}") from exc
            return self.parse_yaml(parsed)

        return Plan(steps=self.parse_text(content))

    def parse_text(self, content: str) -> List[Step]:
        steps: List[Step] = []
        for line_number, raw_line in enumerate(content.splitlines(), start=1):
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue

            depends = line.startswith(DEPENDENT_PREFIX)
            if depends:
                line = line[len(DEPENDENT_PREFIX):].strip()
                if not steps:
                    raise ConfigError(
                        f"Line {line_number}: `&&` needs a previous command to depend on."
                    )
                if not line:
                    raise ConfigError(f"Line {line_number}: `&&` must be followed by a command.")

            steps.append(Step(command=line, depends_on_previous=depends))
        return steps

    def parse_yaml(self, parsed: Any) -> Plan:
        if parsed is None:
            return Plan()
        if isinstance(parsed, list):
            parsed = {"steps": parsed}
        if not isinstance(parsed, dict):
            raise ConfigError("Plan file must contain a YAML mapping or list at the root.")

        self._reject_unknown(parsed, self.ROOT_KEYS, "plan")

        containers_data = parsed.get("containers") or {}
        if not isinstance(containers_data, dict):
            raise ConfigError("`containers` must be a mapping of alias to query.")
        containers = {
            str(alias): self._parse_query(str(alias), query)
            for alias, query in containers_data.items()
        }

        steps_data = parsed.get("steps") or []
        if not isinstance(steps_data, list):
            raise ConfigError("`steps` must be a list.")
        steps = [self._parse_step(position, item) for position, item in enumerate(steps_data, start=1)]

        return Plan(steps=steps, containers=containers)

    def from_commands(self, commands: Sequence[str]) -> List[Step]:
        return [Step(command=command) for command in commands if command.strip()]

    def _parse_step(self, position: int, item: Any) -> Step:
        if isinstance(item, str):
            return Step(command=item)
        if not isinstance(item, dict):
            raise ConfigError(f"Step {position} must be a string or a mapping.")

        self._reject_unknown(item, self.STEP_KEYS, f"step {position}")

        command: Optional[str] = item.get("run")
        upload = self._parse_upload(position, item.get("upload"))
        if (command is None) == (upload is None):
            raise ConfigError(f"Step {position} needs exactly one of `run` or `upload`.")

        timeout = item.get("timeout")
        if timeout is not None:
            try:
                timeout = float(timeout)
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"Step {position}: `timeout` must be a number.") from exc
            if timeout <= 0:
                raise ConfigError(f"Step {position}: `timeout` must be positive.")

        depends = bool(item.get("after_previous", False))
        if depends and position == 1:
            raise ConfigError(f"Step {position}: `after_previous` needs a previous step to depend on.")

        return Step(
            command=str(command) if command is not None else None,
            depends_on_previous=depends,
            timeout=timeout,
            name=self._optional_str(item.get("name")),
            upload=upload,
            save_output=self._optional_str(item.get("save_output")),
        )

    def _parse_upload(self, position: int, data: Any) -> Optional[Upload]:
        if data is None:
            return None
        if not isinstance(data, dict):
            raise ConfigError(f"Step {position}: `upload` must be a mapping.")
        self._reject_unknown(data, self.UPLOAD_KEYS, f"step {position} upload")
        if not data.get("source") or not data.get("destination"):
            raise ConfigError(f"Step {position}: `upload` needs `source` and `destination`.")
        return Upload(source=str(data["source"]), destination=str(data["destination"]))

    def _parse_query(self, alias: str, data: Any) -> ContainerQuery:
        if not isinstance(data, dict):
            raise ConfigError(f"Container `{alias}` must be a mapping of filters.")
        self._reject_unknown(data, self.QUERY_KEYS, f"container `{alias}`")
        query = ContainerQuery(
            name=self._optional_str(data.get("name")),
            ancestor=self._optional_str(data.get("ancestor")),
            status=self._optional_str(data.get("status")),
            label=self._optional_str(data.get("label")),
            include_stopped=bool(data.get("include_stopped", False)),
        )
        if not any((query.name, query.ancestor, query.status, query.label)):
            raise ConfigError(f"Container `{alias}` needs at least one filter.")
        return query

    @staticmethod
    def _optional_str(value: Any) -> Optional[str]:
        return str(value) if value is not None else None

    @staticmethod
    def _reject_unknown(data: Dict[str, Any], allowed, where: str):
        unknown = sorted(set(data.keys()) - allowed)
        if unknown:
            raise ConfigError(f"Unknown keys in {where}: {', '.join(unknown)}")
