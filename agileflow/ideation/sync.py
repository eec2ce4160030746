"""
Promote ideas to ``implemented`` from completed work in status.json.

Two signals are consumed:
- a completed epic whose ``research`` field names the ideation report it came
  from: every open idea first raised in that report is implemented
- an idea whose ``linked_story`` is completed
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Optional

from agileflow.ideation.index import get_index_store, id_sort_key, load_index, save_index, update_idea_status
from agileflow.ideation.models import IDEA_STATUSES, TERMINAL_STATUSES, IdeaStatus, IdeationIndex
from agileflow.lib.jsonstore import DocumentStore
from agileflow.teams.task_sync import get_status_store

logger = logging.getLogger(__name__)

EPIC_COMPLETE = "complete"
STORY_COMPLETED = "completed"


@dataclass
class IdeaSyncResult:
    """Result of syncing implemented ideas."""
    ok: bool = True
    updated: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    details: dict[str, list[str]] = field(default_factory=dict)  # epic/story id -> idea ids


def _report_key(name: Optional[str]) -> str:
    if not name or not isinstance(name, str):
        return ""
    return PurePosixPath(name.strip()).name.lower()


def find_ideas_by_report(index: IdeationIndex, report: str) -> list[str]:
    """Ids of ideas first raised in ``report`` (matched by file name, any case)."""
    key = _report_key(report)
    if not key:
        return []
    return sorted(
        (idea_id for idea_id, idea in index.ideas.items() if _report_key(idea.source_report) == key),
        key=id_sort_key,
    )


def get_completed_epics_with_research(status_data: dict) -> list[tuple[str, dict]]:
    epics = status_data.get("epics")
    if not isinstance(epics, dict):
        return []
    return [
        (epic_id, epic) for epic_id, epic in epics.items()
        if isinstance(epic, dict) and epic.get("status") == EPIC_COMPLETE and epic.get("research")
    ]


def _implement(index: IdeationIndex, idea_id: str, **links) -> bool:
    idea = index.ideas[idea_id]
    if idea.status in TERMINAL_STATUSES:
        return False
    return update_idea_status(index, idea_id, IdeaStatus.IMPLEMENTED.value, **links)


def sync_epic_ideas(index: IdeationIndex, epic_id: str, epic: dict) -> list[str]:
    """Mark the open ideas of an epic's research report implemented."""
    updated = []
    for idea_id in find_ideas_by_report(index, epic.get("research")):
        if _implement(index, idea_id, linked_epic=epic_id):
            if epic.get("completed"):
                index.ideas[idea_id].implemented_date = str(epic["completed"])[:10]
            updated.append(idea_id)
    return updated


def sync_story_ideas(index: IdeationIndex, stories: dict) -> dict[str, list[str]]:
    """Mark ideas implemented when their linked story is completed."""
    updated: dict[str, list[str]] = {}
    for idea_id in sorted(index.ideas, key=id_sort_key):
        story_id = index.ideas[idea_id].linked_story
        story = stories.get(story_id) if story_id else None
        if not isinstance(story, dict) or story.get("status") != STORY_COMPLETED:
            continue
        if _implement(index, idea_id):
            updated.setdefault(story_id, []).append(idea_id)
    return updated


def sync_implemented_ideas(
    root: Path,
    dry_run: bool = False,
    status_store: Optional[DocumentStore] = None,
    index_store: Optional[DocumentStore] = None,
) -> IdeaSyncResult:
    """Apply completed epics and stories to the ideation index.

    Args:
        root: Project root
        dry_run: Compute the changes without saving the index
        status_store: Override for docs/09-agents/status.json
        index_store: Override for docs/00-meta/ideation-index.json
    """
    status_store = status_store or get_status_store(root)
    index_store = index_store or get_index_store(root)
    result = IdeaSyncResult()

    status_data = status_store.load()
    if status_data is None:
        result.ok = False
        result.errors.append("status.json not found")
        return result

    if index_store.load() is None:
        logger.info("No ideation index found, nothing to sync")
        return result
    index = load_index(index_store)

    for epic_id, epic in get_completed_epics_with_research(status_data):
        ideas = sync_epic_ideas(index, epic_id, epic)
        if ideas:
            result.updated += len(ideas)
            result.details[epic_id] = ideas
            logger.info(f"{epic_id}: {len(ideas)} idea(s) marked implemented ({epic['research']})")
        else:
            result.skipped += 1

    for story_id, ideas in sync_story_ideas(index, status_data.get("stories") or {}).items():
        result.updated += len(ideas)
        result.details[story_id] = ideas
        logger.info(f"{story_id}: {len(ideas)} idea(s) marked implemented")

    if result.updated and not dry_run:
        write = save_index(index_store, index)
        if not write.ok:
            result.ok = False
            result.errors.append(write.error)

    return result


def get_sync_status(root: Path, index_store: Optional[DocumentStore] = None) -> dict:
    """Idea counts per status, plus the number of distinct linked epics."""
    index = load_index(index_store or get_index_store(root))
    counts = {status: 0 for status in IDEA_STATUSES}
    for idea in index.ideas.values():
        counts[idea.status] = counts.get(idea.status, 0) + 1

    return {
        "total_ideas": len(index.ideas),
        **counts,
        "linked_epics": len({i.linked_epic for i in index.ideas.values() if i.linked_epic}),
    }
