"""Pytest configuration and fixtures for all tests."""

from pathlib import Path

import pytest

from cmdguard.core.config import CONFIG_ENV, GuardConfig, config_manager
from cmdguard.core.guard import Guard
from cmdguard.packs import PackRegistry, build_default_registry


@pytest.fixture(scope="session")
def registry() -> PackRegistry:
    """The shipped pack registry, built once per session."""
    return build_default_registry()


@pytest.fixture
def user_config_file(tmp_path: Path) -> Path:
    """Path the user config is read from; the file does not exist until a test writes it."""
    return tmp_path / "user" / "config.json"


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, user_config_file: Path, monkeypatch):
    """Keep tests away from the real user and project configuration.

    Points CMDGUARD_CONFIG at a per-test path, runs from an empty project
    directory and clears the global config cache around each test.
    """
    project_dir = tmp_path / "project"
    project_dir.mkdir()
    monkeypatch.setenv(CONFIG_ENV, str(user_config_file))
    monkeypatch.chdir(project_dir)
    config_manager.clear_cache()
    yield
    config_manager.clear_cache()


@pytest.fixture
def make_guard(registry):
    """Build a guard from configuration sections, sharing the session registry."""

    def _make(**sections) -> Guard:
        return Guard(config=GuardConfig(**sections), registry=registry)

    return _make
