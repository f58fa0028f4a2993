import pytest

from remoteops.models import ContainerQuery
from remoteops.services.docker_runtime import ContainerLookupError, DockerRuntimeService


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def info(self, *_args, **_kwargs):
        return None


PS_OUTPUT = (
    "23157b9e7ffd\tshop-api-1\tshop/api:latest\tUp 3 hours\n"
    "9f1c2d3e4a5b\tshop-db-1\tpostgres:15\tUp 3 hours\n"
)


def test_build_ps_command_quotes_filters():
    service = DockerRuntimeService(logger=DummyLogger())

    command = service.build_ps_command(ContainerQuery(name="shop api", ancestor="postgres:15"))

    assert command.startswith("docker ps --no-trunc ")
    assert "--filter 'name=shop api'" in command
    assert "--filter ancestor=postgres:15" in command
    assert "--all" not in command
    assert "--format '{{.ID}}\t{{.Names}}\t{{.Image}}\t{{.Status}}'" in command


def test_build_ps_command_includes_stopped_containers_for_non_running_status():
    service = DockerRuntimeService(logger=DummyLogger())

    command = service.build_ps_command(ContainerQuery(name="shop-api", status="exited"))

    assert "--all" in command
    assert "--filter status=exited" in command


def test_find_containers_parses_structured_records():
    service = DockerRuntimeService(logger=DummyLogger())
    seen = []

    def run_command(command):
        seen.append(command)
        return PS_OUTPUT + "\nnot a docker line\n"

    containers = service.find_containers(ContainerQuery(name="shop"), run_command)

    assert [container.name for container in containers] == ["shop-api-1", "shop-db-1"]
    assert containers[1].image == "postgres:15"
    assert containers[0].status == "Up 3 hours"
    assert len(seen) == 1


def test_resolve_one_rejects_ambiguous_matches():
    service = DockerRuntimeService(logger=DummyLogger())

    with pytest.raises(ContainerLookupError, match="matched 2 containers: shop-api-1, shop-db-1"):
        service.resolve_one("shop", ContainerQuery(name="shop"), lambda _command: PS_OUTPUT)


def test_resolve_placeholders_replaces_every_reference():
    service = DockerRuntimeService(logger=DummyLogger())
    queries = {"db": ContainerQuery(ancestor="postgres:15")}
    single = "9f1c2d3e4a5b\tshop-db-1\tpostgres:15\tUp 3 hours\n"

    command = service.resolve_placeholders(
        "docker exec ${container:db} pg_isready && docker logs ${container:db} --tail 20",
        queries,
        lambda _command: single,
    )

    assert command == "docker exec 9f1c2d3e4a5b pg_isready && docker logs 9f1c2d3e4a5b --tail 20"


def test_resolve_placeholders_rejects_unknown_alias():
    service = DockerRuntimeService(logger=DummyLogger())

    with pytest.raises(ContainerLookupError, match="unknown container alias `api`"):
        service.resolve_placeholders("docker restart ${container:api}", {}, lambda _command: "")
