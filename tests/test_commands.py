import sys

import pytest
from typer.testing import CliRunner

from ddc_src import commands
from ddc_src.commands import app
from ddc_src.deploy import DeployResult, DeployStage
from ddc_src.executor import PlanResult, WorkflowExecutor
from ddc_src.manager import ProjectManager

runner = CliRunner()


@pytest.fixture
def executed(monkeypatch):
    """Record plans instead of running them; set ``exit_code`` to fake a failure"""

    class Recorder:
        def __init__(self):
            self.exit_code = 0
            self.plans = []

    recorder = Recorder()

    def fake_execute(self, plan):
        recorder.plans.append(plan)
        return PlanResult(exit_code=recorder.exit_code)

    monkeypatch.setattr(WorkflowExecutor, "execute", fake_execute)
    return recorder


def invoke(tmp_path, *args):
    return runner.invoke(app, ["-C", str(tmp_path), *args])


def test_service_option(tmp_path, executed):
    result = invoke(tmp_path, "--service", "web", "restart")

    assert result.exit_code == 0
    (plan,) = executed.plans
    assert plan.service == "web"
    assert plan.steps[0].argv == ["docker", "compose", "restart", "web"]


def test_default_service(tmp_path, executed):
    result = invoke(tmp_path, "py-test", "-x")

    assert result.exit_code == 0
    (plan,) = executed.plans
    assert plan.steps[0].argv == ["docker", "compose", "exec", "-T", "api", "pytest", "-x"]


def test_default_service_from_config(tmp_path, executed):
    (tmp_path / "ddc.yaml").write_text("default_service: backend\n")

    result = invoke(tmp_path, "status")

    assert result.exit_code == 0
    assert executed.plans[0].service == "backend"


def test_exit_code_is_propagated(tmp_path, executed):
    executed.exit_code = 3
    result = invoke(tmp_path, "build")
    assert result.exit_code == 3


def test_exec_passes_tail_through(tmp_path, executed):
    result = invoke(tmp_path, "exec", "--", "ls", "-la", "/app")

    assert result.exit_code == 0
    step = executed.plans[0].steps[0]
    assert step.argv == ["docker", "compose", "exec", "api", "ls", "-la", "/app"]
    assert step.interactive


def test_build_error_exits_before_running(tmp_path, executed):
    result = invoke(tmp_path, "purge-db", "../../etc")

    assert result.exit_code == 1
    assert "Refusing to use path" in result.output
    assert executed.plans == []


def test_missing_compose_file_warns(tmp_path, executed):
    result = invoke(tmp_path, "status")
    assert "No docker compose file found" in result.output

    (tmp_path / "docker-compose.yml").write_text("services: {}\n")
    result = invoke(tmp_path, "status")
    assert "No docker compose file found" not in result.output


def test_invalid_config_exits(tmp_path, executed):
    (tmp_path / "ddc.yaml").write_text("lint_jobs: [pylint]\n")

    result = invoke(tmp_path, "lint")

    assert result.exit_code == 1
    assert "invalid configuration" in result.output
    assert executed.plans == []


def test_dry_run_prints_commands(tmp_path):
    result = invoke(tmp_path, "--dry-run", "-s", "web", "rebuild")

    assert result.exit_code == 0
    assert result.output.count("Running:") == 3
    assert "docker compose build --force-rm web" in result.output


def test_main_rewrites_leading_service(tmp_path, monkeypatch, executed):
    monkeypatch.setattr(
        sys, "argv", ["ddc-shob", "-C", str(tmp_path), "web", "restart"]
    )

    with pytest.raises(SystemExit) as excinfo:
        commands.main()

    assert excinfo.value.code == 0
    assert executed.plans[0].steps[0].argv == ["docker", "compose", "restart", "web"]


def test_deploy_overrides(tmp_path, monkeypatch):
    received = {}

    def fake_deploy(self, deploy_dir=None, **overrides):
        received.update(overrides, deploy_dir=deploy_dir)
        return DeployResult(stage=DeployStage.DONE)

    monkeypatch.setattr(ProjectManager, "deploy", fake_deploy)

    result = invoke(
        tmp_path, "deploy", "example.com", "-u", "deploy", "-p", "2222", "-e", "media"
    )

    assert result.exit_code == 0
    assert received["host"] == "example.com"
    assert received["user"] == "deploy"
    assert received["port"] == 2222
    assert received["remote_dir"] is None
    assert received["deploy_dir"] is None
    assert received["excludes"][-1] == "media"
    assert "pg" in received["excludes"]


def test_deploy_failure_exit_code(tmp_path, monkeypatch):
    def fake_deploy(self, deploy_dir=None, **overrides):
        return DeployResult(
            stage=DeployStage.UPLOADING,
            failed_stage=DeployStage.UPLOADING,
            exit_code=255,
        )

    monkeypatch.setattr(ProjectManager, "deploy", fake_deploy)

    result = invoke(tmp_path, "deploy", "example.com")
    assert result.exit_code == 255


def test_deploy_without_host(tmp_path):
    result = invoke(tmp_path, "deploy")

    assert result.exit_code == 1
    assert "Deploy host is not configured" in result.output


def test_init_creates_config_and_schema(tmp_path):
    result = invoke(tmp_path, "init")

    assert result.exit_code == 0
    config = (tmp_path / "ddc.yaml").read_text()
    assert "default_service: api" in config
    assert (tmp_path / ".vscode" / "ddc.schema.json").exists()

    (tmp_path / "ddc.yaml").write_text("default_service: web\n")
    result = invoke(tmp_path, "init")
    assert "already exists" in result.output
    assert (tmp_path / "ddc.yaml").read_text() == "default_service: web\n"


def test_project_dotenv_applies_with_project_dir(tmp_path, executed):
    project = tmp_path / "project"
    project.mkdir()
    (project / ".env").write_text("DDC_DEFAULT_SERVICE=web\n")

    result = invoke(project, "restart")

    assert result.exit_code == 0
    assert executed.plans[0].steps[0].argv == ["docker", "compose", "restart", "web"]


@pytest.mark.parametrize(
    ("args", "expected"),
    [
        (
            ["manage-py", "migrate", "--help"],
            ["exec", "api", "python", "manage.py", "migrate", "--help"],
        ),
        (["exec", "ls", "--help"], ["exec", "api", "ls", "--help"]),
        (["py-test", "--help"], ["exec", "-T", "api", "pytest", "--help"]),
    ],
)
def test_help_is_forwarded_to_the_container(tmp_path, executed, args, expected):
    result = invoke(tmp_path, *args)

    assert result.exit_code == 0
    (plan,) = executed.plans
    assert plan.steps[0].argv == ["docker", "compose", *expected]
