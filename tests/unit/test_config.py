"""Tests for configuration loading and the backend factories."""

import pytest

import stepchain.persistence as persistence
from stepchain.config import load_config
from stepchain.contracts import SamplingMode
from stepchain.notifications import InMemoryNotifier, NullNotifier, get_notifier
from stepchain.notifications.console import ConsoleNotifier
from stepchain.persistence import (
    InMemoryWorkflowRepository,
    SQLiteWorkflowRepository,
    get_repositories,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in (
        "STEPCHAIN_CONFIG",
        "STEPCHAIN_DATABASE_URL",
        "DATABASE_URL",
        "STEPCHAIN_NOTIFICATIONS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(persistence, "_repositories_instance", None)


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "stepchain.yaml"
    config_path.write_text(
        """
model:
  name: openai:gpt-4o-mini
  instructions: Be brief.
engine:
  temperature: 0.3
  max_tokens: 256
  sampling_mode: greedy
  step_timeout: 12.5
notifications:
  backend: console
"""
    )
    monkeypatch.setenv("STEPCHAIN_CONFIG", str(config_path))

    config = load_config()
    assert config.model.name == "openai:gpt-4o-mini"
    assert config.model.instructions == "Be brief."
    assert config.engine.temperature == 0.3
    assert config.engine.max_tokens == 256
    assert config.engine.sampling_mode is SamplingMode.GREEDY
    assert config.engine.step_timeout == 12.5
    assert config.notifications.backend == "console"


def test_load_config_defaults_without_file():
    config = load_config()

    assert config.model.name == "test"
    assert config.engine.temperature == 0.7
    assert config.engine.max_tokens == 500
    assert config.engine.step_timeout is None
    assert config.notifications.backend == "none"
    assert config.database_url is None


def test_database_url_env_overrides_file(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("database_url: sqlite://from-file.db\n")
    monkeypatch.setenv("DATABASE_URL", "sqlite://from-env.db")

    assert load_config(str(config_path)).database_url == "sqlite://from-env.db"

    monkeypatch.setenv("STEPCHAIN_DATABASE_URL", "sqlite://preferred.db")
    assert load_config(str(config_path)).database_url == "sqlite://preferred.db"


def test_get_notifier_uses_config(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("notifications:\n  backend: inmemory\n")
    monkeypatch.setenv("STEPCHAIN_CONFIG", str(config_path))

    assert isinstance(get_notifier(), InMemoryNotifier)
    assert isinstance(get_notifier("console"), ConsoleNotifier)

    monkeypatch.setenv("STEPCHAIN_NOTIFICATIONS", "none")
    assert isinstance(get_notifier(), NullNotifier)


def test_get_notifier_rejects_unknown_backend():
    with pytest.raises(ValueError, match="Unsupported notification backend"):
        get_notifier("carrier-pigeon")


def test_get_repositories_defaults_to_memory():
    repos = get_repositories()

    assert isinstance(repos.workflows, InMemoryWorkflowRepository)
    assert get_repositories() is repos


def test_get_repositories_uses_sqlite_url(tmp_path, monkeypatch):
    monkeypatch.setenv("STEPCHAIN_DATABASE_URL", f"sqlite://{tmp_path / 'stepchain.db'}")

    repos = get_repositories()

    assert isinstance(repos.workflows, SQLiteWorkflowRepository)
    assert (tmp_path / "stepchain.db").exists()


def test_get_repositories_rejects_unknown_backend():
    with pytest.raises(ValueError, match="Unsupported database backend"):
        get_repositories("postgresql://localhost/stepchain")
