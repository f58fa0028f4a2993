import pytest

from remoteops.errors import ConfigError
from remoteops.services.plan_loader import PlanLoader


def test_text_plan_marks_dependent_lines(tmp_path):
    plan_file = tmp_path / "restart.txt"
    plan_file.write_text(
        "# restart the api\n"
        "docker ps\n"
        "\n"
        "&& docker restart api\n"
        "docker logs api --tail 50\n",
        encoding="utf-8",
    )

    plan = PlanLoader().load(str(plan_file))

    assert [step.command for step in plan.steps] == [
        "docker ps",
        "docker restart api",
        "docker logs api --tail 50",
    ]
    assert [step.depends_on_previous for step in plan.steps] == [False, True, False]
    assert plan.containers == {}


def test_text_plan_rejects_dependency_on_first_line():
    with pytest.raises(ConfigError, match="Line 1"):
        PlanLoader().parse_text("&& docker ps\n")


def test_yaml_plan_loads_containers_and_steps(tmp_path):
    plan_file = tmp_path / "plan.yml"
    plan_file.write_text(
        "containers:\n"
        "  api:\n"
        "    name: shop-api\n"
        "    status: running\n"
        "steps:\n"
        "  - docker ps\n"
        "  - upload: {source: ./migrate.js, destination: /tmp/migrate.js}\n"
        "  - run: docker cp /tmp/migrate.js ${container:api}:/app/migrate.js\n"
        "    after_previous: true\n"
        "    timeout: 60\n"
        "    name: copy migration\n"
        "  - run: docker logs ${container:api}\n"
        "    save_output: remote_api.log\n",
        encoding="utf-8",
    )

    plan = PlanLoader().load(str(plan_file))

    assert plan.containers["api"].name == "shop-api"
    assert plan.containers["api"].status == "running"
    assert len(plan.steps) == 4
    assert plan.steps[1].upload.destination == "/tmp/migrate.js"
    assert plan.steps[2].depends_on_previous is True
    assert plan.steps[2].timeout == 60.0
    assert plan.steps[2].label == "copy migration"
    assert plan.steps[3].save_output == "remote_api.log"


def test_yaml_plan_rejects_unknown_step_keys():
    with pytest.raises(ConfigError, match="Unknown keys in step 1: retries"):
        PlanLoader().parse_yaml({"steps": [{"run": "docker ps", "retries": 3}]})


def test_yaml_plan_rejects_step_with_run_and_upload():
    with pytest.raises(ConfigError, match="exactly one of `run` or `upload`"):
        PlanLoader().parse_yaml(
            {"steps": [{"run": "ls", "upload": {"source": "a", "destination": "/tmp/a"}}]}
        )


def test_yaml_plan_rejects_container_without_filters():
    with pytest.raises(ConfigError, match="needs at least one filter"):
        PlanLoader().parse_yaml({"containers": {"api": {}}, "steps": ["docker ps"]})


def test_missing_plan_file_is_reported(tmp_path):
    with pytest.raises(ConfigError, match="Plan file not found"):
        PlanLoader().load(str(tmp_path / "missing.txt"))


def test_yaml_plan_coerces_scalar_step_fields_to_strings():
    plan = PlanLoader().parse_yaml(
        {"steps": [{"run": "uptime", "name": 42, "save_output": 5}, {"run": 7}]}
    )

    assert plan.steps[0].name == "42"
    assert plan.steps[0].save_output == "5"
    assert plan.steps[1].command == "7"


def test_yaml_plan_rejects_dependency_on_first_step():
    with pytest.raises(ConfigError, match="Step 1: `after_previous`"):
        PlanLoader().parse_yaml({"steps": [{"run": "docker ps", "after_previous": True}]})
