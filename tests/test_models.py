import pytest
import typer
import yaml
from pydantic import ValidationError

from ddc_src.manager import ProjectManager
from ddc_src.models import DEFAULT_LINT_JOBS, Config, DeployConfig
from ddc_src.schema_utils import default_config_yaml, generate_config_schema


def test_defaults():
    config = Config()
    assert config.default_service == "api"
    assert config.compose_argv == ["docker", "compose"]
    assert config.db_folder == "pg"
    assert config.lint_path == "/app"
    assert config.lint_jobs == list(DEFAULT_LINT_JOBS)
    assert config.log_lines == 10
    assert config.deploy.host is None


def test_compose_file_is_passed_with_f():
    config = Config(compose_command="docker-compose", compose_file="compose.dev.yml")
    assert config.compose_argv == ["docker-compose", "-f", "compose.dev.yml"]


def test_environment_overrides_init(monkeypatch):
    monkeypatch.setenv("DDC_DEFAULT_SERVICE", "worker")
    monkeypatch.setenv("DDC_DEPLOY__HOST", "10.0.0.5")

    config = Config(default_service="web")

    assert config.default_service == "worker"
    assert config.deploy.host == "10.0.0.5"


def test_dotenv_file(tmp_path):
    (tmp_path / ".env").write_text("DDC_LOG_LINES=50\nUNRELATED=1\n")
    assert Config().log_lines == 50


@pytest.mark.parametrize(
    "data",
    [
        {"default_service": "  "},
        {"compose_command": ""},
        {"lint_jobs": ["pylint"]},
        {"lint_jobs": []},
        {"log_lines": -1},
        {"deploy": {"port": 70000}},
        {"deploy": {"archive_name": "../evil.tar.gz"}},
    ],
)
def test_invalid_values(data):
    with pytest.raises(ValidationError):
        Config(**data)


def test_deploy_config():
    deploy = DeployConfig(host="example.com")
    assert deploy.target == "ubuntu@example.com"
    assert deploy.effective_remote_dir == "/home/ubuntu/web"

    deploy = DeployConfig(host="  ", user="root", remote_dir="/srv/app")
    assert deploy.host is None
    assert deploy.effective_remote_dir == "/srv/app"


def test_manager_loads_yaml(tmp_path):
    (tmp_path / "ddc.yaml").write_text(
        yaml.safe_dump(
            {
                "default_service": "web",
                "lint_jobs": ["black", "mypy"],
                "deploy": {"host": "example.com", "user": "deploy"},
            }
        )
    )

    config = ProjectManager(tmp_path).config

    assert config.default_service == "web"
    assert config.lint_jobs == ["black", "mypy"]
    assert config.deploy.target == "deploy@example.com"


def test_manager_without_yaml(tmp_path):
    assert ProjectManager(tmp_path).config.default_service == "api"


@pytest.mark.parametrize(
    "content",
    ["lint_jobs: [pylint]\n", "- just\n- a list\n", "default_service: [unclosed\n"],
)
def test_manager_rejects_bad_yaml(tmp_path, content):
    (tmp_path / "ddc.yaml").write_text(content)

    with pytest.raises(typer.Exit) as excinfo:
        ProjectManager(tmp_path).load_config()

    assert excinfo.value.exit_code == 1


def test_default_config_yaml_round_trips():
    data = yaml.safe_load(default_config_yaml())
    assert data["default_service"] == "api"
    assert data["deploy"]["user"] == "ubuntu"
    assert Config(**data) == Config()


def test_generate_config_schema(tmp_path):
    path = generate_config_schema(tmp_path)
    assert path == tmp_path / ".vscode" / "ddc.schema.json"
    assert '"default_service"' in path.read_text()


def test_manager_reads_dotenv_from_project(tmp_path):
    project = tmp_path / "project"
    project.mkdir()
    (project / ".env").write_text("DDC_DEFAULT_SERVICE=web\n")
    (tmp_path / ".env").write_text("DDC_DEFAULT_SERVICE=elsewhere\n")

    assert ProjectManager(project).config.default_service == "web"
