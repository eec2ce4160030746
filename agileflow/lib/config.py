"""
Configuration loaders for AgileFlow.

Two sources feed the engines:
- docs/00-meta/agileflow-metadata.json: project metadata (validation pairs,
  quality gate settings, feature flags). A missing or corrupt file degrades
  to an empty dict so gate evaluation is never blocked by it.
- Team templates: YAML (or JSON) files describing the teammates of an agent
  team and their paired validators. Parsed with yaml.safe_load and checked
  with the TeamTemplate model.
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

from agileflow.lib.jsonstore import read_json
from agileflow.lib.paths import get_metadata_path, get_teams_dir

logger = logging.getLogger(__name__)

AGENT_TEAMS_ENV = "CLAUDE_CODE_EXPERIMENTAL_AGENT_TEAMS"


class Teammate(BaseModel):
    """One agent slot in a team template."""
    agent: str
    role: Optional[str] = None
    paired_validator: Optional[str] = None


class TeamTemplate(BaseModel):
    """Agent team template (read-only input, never persisted here)."""
    name: Optional[str] = None
    description: Optional[str] = None
    teammates: list[Teammate] = Field(default_factory=list)
    quality_gates: dict[str, Any] = Field(default_factory=dict)

    def teammate_for(self, agent: str) -> Optional[Teammate]:
        for teammate in self.teammates:
            if teammate.agent == agent:
                return teammate
        return None

    def requires_validator_approval(self) -> bool:
        task_completed = self.quality_gates.get("task_completed") or {}
        if not isinstance(task_completed, dict):
            return False
        return bool(task_completed.get("require_validator_approval"))


TeamTemplateLike = Union[TeamTemplate, dict, None]


def load_metadata(root: Path) -> dict:
    """Load agileflow-metadata.json. Missing or malformed -> {}."""
    result = read_json(get_metadata_path(root))
    if not result.ok:
        if not result.missing:
            logger.warning(f"Ignoring project metadata: {result.error}")
        return {}
    if not isinstance(result.data, dict):
        logger.warning("Ignoring project metadata: top level is not an object")
        return {}
    return result.data


def get_validation_pairs(metadata: dict) -> dict[str, str]:
    """Builder -> validator overrides from metadata."""
    pairs = metadata.get("validation_pairs")
    if not isinstance(pairs, dict):
        return {}
    return {k: v for k, v in pairs.items() if isinstance(v, str) and v}


def get_quality_gates(metadata: dict, hook_name: str) -> Optional[dict]:
    """Return quality_gates[hook_name] from metadata, or None if absent."""
    gates = metadata.get("quality_gates")
    if not isinstance(gates, dict):
        return None
    hook_config = gates.get(hook_name)
    if not isinstance(hook_config, dict) or not hook_config:
        return None
    return hook_config


def requires_validator_approval(metadata: dict) -> Optional[bool]:
    """Metadata's task_completed.require_validator_approval, or None if unset."""
    hook_config = get_quality_gates(metadata, "task_completed")
    if hook_config is None or "require_validator_approval" not in hook_config:
        return None
    return bool(hook_config["require_validator_approval"])


def _env_flag_enabled() -> bool:
    return os.environ.get(AGENT_TEAMS_ENV, "").strip().lower() in ("1", "true", "yes")


def is_agent_teams_enabled(root: Optional[Path] = None) -> bool:
    """Agent Teams needs the environment flag; metadata may switch it off."""
    if not _env_flag_enabled():
        return False
    if root is None:
        return True
    features = load_metadata(root).get("features") or {}
    agent_teams = features.get("agentTeams") if isinstance(features, dict) else None
    if isinstance(agent_teams, dict) and "enabled" in agent_teams:
        return bool(agent_teams["enabled"])
    return True


def coerce_team_template(template: TeamTemplateLike) -> Optional[TeamTemplate]:
    """Accept a TeamTemplate or a raw dict. Invalid dicts are ignored."""
    if template is None or isinstance(template, TeamTemplate):
        return template
    try:
        return TeamTemplate.model_validate(template)
    except ValidationError as e:
        logger.warning(f"Ignoring invalid team template: {e.error_count()} error(s)")
        return None


def load_team_template(path: Path) -> Optional[TeamTemplate]:
    """Load a team template file (YAML or JSON).

    Returns None if the file is missing or invalid.
    """
    path = Path(path)
    if not path.exists():
        return None

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (yaml.YAMLError, OSError, UnicodeDecodeError) as e:
        logger.warning(f"Failed to parse {path}: {e}")
        return None

    if not isinstance(data, dict):
        logger.warning(f"Team template {path} is not a mapping")
        return None
    data.setdefault("name", path.stem)
    return coerce_team_template(data)


def find_team_template(root: Path, name: str) -> Optional[TeamTemplate]:
    """Look up docs/00-meta/teams/<name>.yaml (or .yml/.json)."""
    teams_dir = get_teams_dir(root)
    for suffix in (".yaml", ".yml", ".json"):
        template = load_team_template(teams_dir / f"{name}{suffix}")
        if template is not None:
            return template
    return None


def list_team_templates(root: Path) -> list[str]:
    """Names of the team templates available in the project."""
    teams_dir = get_teams_dir(root)
    if not teams_dir.exists():
        return []
    return sorted({
        f.stem for f in teams_dir.iterdir()
        if f.is_file() and f.suffix in (".yaml", ".yml", ".json")
    })
