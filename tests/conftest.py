"""Shared fixtures: a throwaway AgileFlow project tree."""

import json

import pytest

from agileflow.lib.paths import get_metadata_path, get_status_path


def write_status(root, data):
    path = get_status_path(root)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2))
    return path


def write_metadata(root, data):
    path = get_metadata_path(root)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2))
    return path


def read_status(root):
    return json.loads(get_status_path(root).read_text())


@pytest.fixture
def project_root(tmp_path):
    """Empty project with the docs/ directories AgileFlow expects."""
    (tmp_path / "docs" / "00-meta").mkdir(parents=True)
    (tmp_path / "docs" / "09-agents" / "bus").mkdir(parents=True)
    return tmp_path


@pytest.fixture(autouse=True)
def no_agent_teams_env(monkeypatch):
    monkeypatch.delenv("CLAUDE_CODE_EXPERIMENTAL_AGENT_TEAMS", raising=False)
