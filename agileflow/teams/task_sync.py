"""
Bidirectional sync between the story ledger and native task lists.

Stories live in docs/09-agents/status.json under ``stories``. Native tasks are
supplied by the caller (they are never persisted here); they carry the story
id in ``metadata.story_id``.

The two status vocabularies are NOT inverses of each other:

    story        -> task            task         -> story
    ready        -> pending         pending      -> ready
    in_progress  -> in_progress     in_progress  -> in_progress
    in_review    -> in_progress     completed    -> completed
    blocked      -> pending         (unknown)    -> ready
    completed    -> completed
    (unknown)    -> pending

so in_review and blocked do not survive a round trip.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from agileflow.lib.jsonstore import DocumentStore, JsonDocumentStore, WriteResult
from agileflow.lib.paths import get_status_path

logger = logging.getLogger(__name__)

STATUS_SCHEMA = "status"


class StoryStatus(str, Enum):
    READY = "ready"
    IN_PROGRESS = "in_progress"
    IN_REVIEW = "in_review"
    BLOCKED = "blocked"
    COMPLETED = "completed"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


STORY_TO_TASK: dict[StoryStatus, TaskStatus] = {
    StoryStatus.READY: TaskStatus.PENDING,
    StoryStatus.IN_PROGRESS: TaskStatus.IN_PROGRESS,
    StoryStatus.IN_REVIEW: TaskStatus.IN_PROGRESS,
    StoryStatus.BLOCKED: TaskStatus.PENDING,
    StoryStatus.COMPLETED: TaskStatus.COMPLETED,
}

TASK_TO_STORY: dict[TaskStatus, StoryStatus] = {
    TaskStatus.PENDING: StoryStatus.READY,
    TaskStatus.IN_PROGRESS: StoryStatus.IN_PROGRESS,
    TaskStatus.COMPLETED: StoryStatus.COMPLETED,
}


def story_status_to_task_status(story_status: Optional[str]) -> str:
    """Map a story status onto the task vocabulary (unknown -> pending)."""
    try:
        return STORY_TO_TASK[StoryStatus(story_status)].value
    except ValueError:
        return TaskStatus.PENDING.value


def task_status_to_story_status(task_status: Optional[str]) -> str:
    """Map a task status onto the story vocabulary (unknown -> ready)."""
    try:
        return TASK_TO_STORY[TaskStatus(task_status)].value
    except ValueError:
        return StoryStatus.READY.value


@dataclass
class Task:
    """A native task projected from a story."""
    id: str
    subject: str
    status: str
    description: str = ""
    owner: str = ""
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "subject": self.subject,
            "description": self.description,
            "status": self.status,
            "owner": self.owner,
            "metadata": dict(self.metadata),
        }


@dataclass
class SyncResult:
    ok: bool
    error: Optional[str] = None


@dataclass
class TaskListResult:
    ok: bool
    tasks: list[Task] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class ReconcileResult:
    ok: bool
    updated: int = 0
    error: Optional[str] = None
    story_ids: list[str] = field(default_factory=list)  # Stories whose status changed


TaskLike = Union[Task, dict]


def get_status_store(root: Path) -> JsonDocumentStore:
    return JsonDocumentStore(get_status_path(root), schema_name=STATUS_SCHEMA)


def _store(root: Path, store: Optional[DocumentStore]) -> DocumentStore:
    return store if store is not None else get_status_store(root)


def _stories_of(data: dict) -> dict:
    stories = data.get("stories")
    if not isinstance(stories, dict):
        stories = {}
        data["stories"] = stories
    return stories


def _now() -> str:
    return datetime.now().isoformat()


def read_status_stories(root: Path, store: Optional[DocumentStore] = None) -> dict:
    """Return the ``stories`` map, or {} if the ledger is absent or unreadable."""
    data = _store(root, store).load()
    if data is None:
        return {}
    stories = data.get("stories")
    return stories if isinstance(stories, dict) else {}


def write_status_stories(root: Path, stories: dict, store: Optional[DocumentStore] = None) -> WriteResult:
    """Replace the ``stories`` map, keeping every other top-level key."""
    store = _store(root, store)
    data = store.load() or {}
    data["stories"] = stories
    return store.save(data)


def sync_to_status(
    root: Path,
    story_id: str,
    fields: dict,
    store: Optional[DocumentStore] = None,
) -> SyncResult:
    """Merge ``fields`` onto one story and stamp ``updated_at``."""
    store = _store(root, store)
    data = store.load()
    if data is None:
        return SyncResult(ok=False, error="story file not found (status.json)")

    stories = _stories_of(data)
    story = stories.get(story_id)
    if not isinstance(story, dict):
        return SyncResult(ok=False, error=f"story not found: {story_id}")

    story.update(fields)
    story["updated_at"] = _now()

    result = store.save(data)
    if not result.ok:
        return SyncResult(ok=False, error=result.error)
    logger.info(f"Updated {story_id}: {', '.join(sorted(fields)) or 'touch'}")
    return SyncResult(ok=True)


def sync_from_status(
    root: Path,
    epic: Optional[str] = None,
    status: Optional[str] = None,
    owner: Optional[str] = None,
    store: Optional[DocumentStore] = None,
) -> TaskListResult:
    """Project stories into native tasks.

    Filters match the story's own fields; ``status`` matches the story
    status string verbatim (e.g. "in_review"), not the projected task status.
    An absent ledger yields an empty task list.
    """
    tasks = []
    for story_id, story in read_status_stories(root, store).items():
        if not isinstance(story, dict):
            continue
        if epic and story.get("epic") != epic:
            continue
        if status and story.get("status") != status:
            continue
        if owner and story.get("owner") != owner:
            continue

        tasks.append(Task(
            id=story_id,
            subject=f"{story_id}: {story.get('title', '')}",
            description=story.get("acceptance_criteria") or story.get("description") or "",
            status=story_status_to_task_status(story.get("status")),
            owner=story.get("owner") or "",
            metadata={
                "story_id": story_id,
                "epic": story.get("epic"),
                "original_status": story.get("status"),
            },
        ))
    return TaskListResult(ok=True, tasks=tasks)


def _task_fields(task: TaskLike) -> tuple[Optional[str], Optional[str]]:
    """(story_id, status) of a native task."""
    if isinstance(task, Task):
        return task.metadata.get("story_id") or task.id, task.status
    metadata = task.get("metadata") or {}
    return metadata.get("story_id") or task.get("id"), task.get("status")


def reconcile(
    root: Path,
    native_tasks: list[TaskLike],
    store: Optional[DocumentStore] = None,
) -> ReconcileResult:
    """Apply native task statuses back onto their stories.

    Tasks without a matching story are skipped. Stories whose mapped status
    is unchanged are left untouched, and the ledger is only written when at
    least one story changed.
    """
    store = _store(root, store)
    data = store.load()
    if data is None:
        return ReconcileResult(ok=False, error="story file not found (status.json)")

    stories = _stories_of(data)
    changed = []
    for task in native_tasks:
        story_id, task_status = _task_fields(task)
        story = stories.get(story_id) if story_id else None
        if not isinstance(story, dict):
            logger.debug(f"Skipping task {story_id}: no matching story")
            continue

        new_status = task_status_to_story_status(task_status)
        if story.get("status") == new_status:
            continue

        now = _now()
        logger.info(f"{story_id}: {story.get('status')} -> {new_status}")
        story["status"] = new_status
        story["updated_at"] = now
        if new_status == StoryStatus.COMPLETED.value:
            story["completed_at"] = now
        changed.append(story_id)

    if changed:
        result = store.save(data)
        if not result.ok:
            return ReconcileResult(ok=False, error=result.error)

    return ReconcileResult(ok=True, updated=len(changed), story_ids=changed)
