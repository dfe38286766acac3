"""
Tests for configuration loading.
"""
import pytest

from taskboard.config import Config
from taskboard.errors import ConfigError


def write(tmp_path, text):
    path = tmp_path / "taskboard.yaml"
    path.write_text(text)
    return str(path)


def test_defaults_without_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    cfg = Config.load(environ={})
    assert cfg.api_url is None
    assert cfg.workspace_id == "default"
    assert cfg.db_path.endswith("tasks.db")
    assert "~" not in cfg.db_path


def test_yaml_values(tmp_path):
    path = write(tmp_path, """
api_url: https://tasks.example.com/api
workspace_id: ws-42
retry_max_attempts: 6
retry_base_delay: 0.1
unknown_key: ignored
""")
    cfg = Config.load(path, environ={})
    assert cfg.api_url == "https://tasks.example.com/api"
    assert cfg.workspace_id == "ws-42"
    policy = cfg.retry_policy()
    assert policy.max_attempts == 6
    assert policy.base_delay == 0.1


def test_env_overrides_yaml(tmp_path):
    path = write(tmp_path, "workspace_id: from-file\n")
    cfg = Config.load(path, environ={
        "TASKBOARD_WORKSPACE": "from-env",
        "TASKBOARD_API_TOKEN": "secret",
        "TASKBOARD_API_URL": "",
    })
    assert cfg.workspace_id == "from-env"
    assert cfg.api_token == "secret"
    assert cfg.api_url is None


def test_empty_file_gives_defaults(tmp_path):
    cfg = Config.load(write(tmp_path, ""), environ={})
    assert cfg.retry_max_attempts == 4


def test_missing_explicit_file(tmp_path):
    with pytest.raises(ConfigError):
        Config.load(str(tmp_path / "nope.yaml"), environ={})


def test_invalid_yaml(tmp_path):
    with pytest.raises(ConfigError):
        Config.load(write(tmp_path, "api_url: [unclosed\n"), environ={})


def test_non_mapping(tmp_path):
    with pytest.raises(ConfigError):
        Config.load(write(tmp_path, "- a\n- b\n"), environ={})


@pytest.mark.parametrize("text", [
    "retry_max_attempts: 0\n",
    "retry_base_delay: -1\n",
    "retry_factor: 0.5\n",
    "request_timeout: 0\n",
    "workspace_id: ''\n",
])
def test_validation(tmp_path, text):
    with pytest.raises(ConfigError):
        Config.load(write(tmp_path, text), environ={})
