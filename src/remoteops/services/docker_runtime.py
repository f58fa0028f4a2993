"""Docker container lookup services for remoteops."""

import re
import shlex
from typing import Callable, Dict, List

from remoteops.errors import RemoteOpsError
from remoteops.errors_catalog import actionable_error
from remoteops.models import ContainerInfo, ContainerQuery

PS_FORMAT = "{{.ID}}\t{{.Names}}\t{{.Image}}\t{{.Status}}"
PLACEHOLDER_PATTERN = re.compile(r"\$\{container:([A-Za-z0-9_.-]+)\}")


class ContainerLookupError(RemoteOpsError):
    """Raised when a container query does not resolve to exactly one container."""


class DockerRuntimeService:
    """Builds `docker ps` queries and parses their output into structured records."""

    def __init__(self, logger):
        self.logger = logger

    def build_ps_command(self, query: ContainerQuery) -> str:
        cmd = ["docker", "ps", "--no-trunc"]
        if query.include_stopped or (query.status and query.status != "running"):
            cmd.append("--all")

        for key, value in (
            ("name", query.name),
            ("ancestor", query.ancestor),
            ("status", query.status),
            ("label", query.label),
        ):
            if value:
                cmd.extend(["--filter", shlex.quote(f"{key}={value}")])

        cmd.extend(["--format", shlex.quote(PS_FORMAT)])
        return " ".join(cmd)

    def parse_ps_output(self, output: str) -> List[ContainerInfo]:
        containers: List[ContainerInfo] = []
        for line in output.splitlines():
            if not line.strip():
                continue
            fields = line.split("\t")
            if len(fields) != 4:
                self.logger.debug("Ignoring unexpected docker ps line: %s", line)
                continue
            container_id, name, image, status = (field.strip() for field in fields)
            containers.append(ContainerInfo(id=container_id, name=name, image=image, status=status))
        return containers

    def find_containers(
        self,
        query: ContainerQuery,
        run_command: Callable[[str], str],
    ) -> List[ContainerInfo]:
        """Runs the query through `run_command`, which returns the remote stdout."""
        command = self.build_ps_command(query)
        self.logger.debug("Looking up containers: %s", query.describe())
        return self.parse_ps_output(run_command(command))

    def resolve_one(
        self,
        alias: str,
        query: ContainerQuery,
        run_command: Callable[[str], str],
    ) -> ContainerInfo:
        matches = self.find_containers(query, run_command)
        if not matches:
            raise ContainerLookupError(
                actionable_error("container_not_found", alias=alias, query=query.describe())
            )
        if len(matches) > 1:
            raise ContainerLookupError(
                actionable_error(
                    "container_ambiguous",
                    alias=alias,
                    count=str(len(matches)),
                    names=", ".join(container.name for container in matches),
                )
            )
        return matches[0]

    @staticmethod
    def referenced_aliases(command: str) -> List[str]:
        aliases: List[str] = []
        for alias in PLACEHOLDER_PATTERN.findall(command):
            if alias not in aliases:
                aliases.append(alias)
        return aliases

    def resolve_placeholders(
        self,
        command: str,
        queries: Dict[str, ContainerQuery],
        run_command: Callable[[str], str],
    ) -> str:
        """Replaces `${container:alias}` with the id of the single matching container.

        Lookups run fresh for every command: container ids change whenever a
        container is recreated.
        """
        resolved: Dict[str, str] = {}
        for alias in self.referenced_aliases(command):
            if alias not in queries:
                raise ContainerLookupError(actionable_error("unknown_container_alias", alias=alias))
            container = self.resolve_one(alias, queries[alias], run_command)
            self.logger.info("Resolved container %s -> %s (%s)", alias, container.name, container.id[:12])
            resolved[alias] = container.id

        return PLACEHOLDER_PATTERN.sub(lambda match: resolved[match.group(1)], command)
