"""Project-relative locations of AgileFlow's persisted documents."""

from pathlib import Path

STATUS_PATH = Path("docs") / "09-agents" / "status.json"
METADATA_PATH = Path("docs") / "00-meta" / "agileflow-metadata.json"
IDEATION_INDEX_PATH = Path("docs") / "00-meta" / "ideation-index.json"
BUS_LOG_PATH = Path("docs") / "09-agents" / "bus" / "log.jsonl"
TEAMS_DIR = Path("docs") / "00-meta" / "teams"


def get_status_path(root: Path) -> Path:
    return Path(root) / STATUS_PATH


def get_metadata_path(root: Path) -> Path:
    return Path(root) / METADATA_PATH


def get_index_path(root: Path) -> Path:
    return Path(root) / IDEATION_INDEX_PATH


def get_bus_log_path(root: Path) -> Path:
    return Path(root) / BUS_LOG_PATH


def get_teams_dir(root: Path) -> Path:
    return Path(root) / TEAMS_DIR
