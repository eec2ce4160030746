"""
Ideation history index: persistent idea tracking and deduplication.

Every idea produced by an ideation report is matched against the ledger in
docs/00-meta/ideation-index.json. A match records a new occurrence on the
existing idea; anything else becomes a new idea with the next IDEA-NNNN id.

Usage:
    store = get_index_store(root)
    index = load_index(store)
    result = record_idea(index, {"title": "Add rate limiting", "files": ["api/auth.ts"]},
                         "ideation-20260114.md")
    save_index(store, index)
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from agileflow.ideation.fsm import IdeaFSM
from agileflow.ideation.models import (
    DEFAULT_CATEGORY,
    IDEA_STATUSES,
    AmbiguousIdeaError,
    Idea,
    IdeaCandidate,
    IdeaNotFoundError,
    IdeaStatus,
    IdeationIndex,
    Occurrence,
    ReportEntry,
    format_idea_id,
    now_iso,
    today,
)
from agileflow.ideation.similarity import (
    DEFAULT_CONFIG,
    Similarity,
    SimilarityConfig,
    fingerprint,
    is_candidate,
    normalize_files,
    normalize_title,
    score_similarity,
)
from agileflow.lib.jsonstore import DocumentStore, JsonDocumentStore, WriteResult
from agileflow.lib.paths import get_index_path
from agileflow.lib.suggest import suggest_idea

logger = logging.getLogger(__name__)

INDEX_SCHEMA = "ideation-index"

_IDEA_ID = re.compile(r"^IDEA-(\d+)$")
_REPORT_DATE = re.compile(r"^\d{8}$")

IdeaLike = Union[IdeaCandidate, dict]


class MatchStatus(str, Enum):
    """How an incoming idea relates to the ledger."""
    NEW = "NEW"
    RECURRING = "RECURRING"
    IMPLEMENTED = "IMPLEMENTED"


@dataclass
class DuplicateMatch:
    """An existing idea that matches an incoming one."""
    id: str
    idea: Idea
    similarity: Similarity
    exact: bool = False


@dataclass
class Classification:
    """Result of classifying an idea against the ledger (no mutation)."""
    status: MatchStatus
    id: Optional[str] = None
    prior_existing: Optional[Idea] = None
    score: float = 0.0
    candidate: bool = False  # Matched below the strong threshold


@dataclass
class RecordResult:
    """Result of recording an idea from a report."""
    ok: bool
    status: Optional[MatchStatus] = None
    id: Optional[str] = None
    occurrences: int = 0
    score: float = 0.0
    candidate: bool = False
    title: str = ""
    error: Optional[str] = None


@dataclass
class FocusContext:
    """Everything known about one idea, for focused re-ideation."""
    idea: Idea
    occurrences: list[Occurrence] = field(default_factory=list)
    all_experts: list[str] = field(default_factory=list)
    source_report: Optional[str] = None

    @property
    def occurrence_count(self) -> int:
        return len(self.occurrences)

    @property
    def first_seen(self) -> str:
        return self.idea.first_seen

    @property
    def last_seen(self) -> str:
        return self.idea.last_seen


# ----------------------------------------------------------------------------
# Load / save
# ----------------------------------------------------------------------------

def get_index_store(root: Path) -> JsonDocumentStore:
    return JsonDocumentStore(get_index_path(root), schema_name=INDEX_SCHEMA)


def create_empty_index() -> IdeationIndex:
    return IdeationIndex()


def idea_number(idea_id: str) -> Optional[int]:
    match = _IDEA_ID.match(idea_id or "")
    return int(match.group(1)) if match else None


def id_sort_key(idea_id: str) -> tuple:
    number = idea_number(idea_id)
    return (number if number is not None else float("inf"), idea_id)


def load_index(store: DocumentStore) -> IdeationIndex:
    """Load the index from a store.

    A missing, empty or malformed document yields a fresh empty index.
    """
    data = store.load()
    if data is None:
        return create_empty_index()

    index = IdeationIndex.from_dict(data)

    highest = max((idea_number(i) or 0 for i in index.ideas), default=0)
    if index.next_id <= highest:
        logger.warning(f"Ideation index next_id {index.next_id} is behind {format_idea_id(highest)}; advancing")
        index.next_id = highest + 1
    return index


def save_index(store: DocumentStore, index: IdeationIndex) -> WriteResult:
    """Stamp ``updated`` and write the whole index."""
    index.updated = now_iso()
    result = store.save(index.to_dict())
    if not result.ok:
        logger.warning(f"Failed to save ideation index: {result.error}")
    return result


def load_ideation_index(root: Path) -> IdeationIndex:
    return load_index(get_index_store(root))


def save_ideation_index(root: Path, index: IdeationIndex) -> WriteResult:
    return save_index(get_index_store(root), index)


# ----------------------------------------------------------------------------
# Matching
# ----------------------------------------------------------------------------

def _as_candidate(idea: IdeaLike) -> IdeaCandidate:
    if isinstance(idea, IdeaCandidate):
        return idea
    return IdeaCandidate.from_dict(idea)


def find_duplicates(
    index: IdeationIndex,
    idea: IdeaLike,
    threshold: Optional[float] = None,
    config: SimilarityConfig = DEFAULT_CONFIG,
) -> list[DuplicateMatch]:
    """All indexed ideas matching ``idea``, best first.

    Fingerprint hits score 1.0. Ordering is by score descending, then by
    lowest id so ties resolve to the oldest idea.
    """
    candidate = _as_candidate(idea)
    if threshold is None:
        threshold = config.threshold
    key = fingerprint(candidate.title, candidate.files)

    matches = []
    for idea_id, existing in index.ideas.items():
        if existing.fingerprint and existing.fingerprint == key:
            matches.append(DuplicateMatch(
                id=idea_id,
                idea=existing,
                similarity=Similarity(score=1.0, title_similarity=1.0, file_overlap=1.0),
                exact=True,
            ))
            continue

        similarity = score_similarity(
            candidate.title, candidate.files, existing.title, existing.files, config
        )
        if similarity.score >= threshold:
            matches.append(DuplicateMatch(id=idea_id, idea=existing, similarity=similarity))

    matches.sort(key=lambda m: (-m.similarity.score, id_sort_key(m.id)))
    return matches


def is_idea_implemented(idea: Idea, stories: Optional[dict] = None) -> bool:
    """True if the idea is implemented, or its linked story is completed."""
    if idea.status == IdeaStatus.IMPLEMENTED.value:
        return True
    if stories and idea.linked_story:
        story = stories.get(idea.linked_story)
        return isinstance(story, dict) and story.get("status") == "completed"
    return False


def classify(
    idea: IdeaLike,
    index: IdeationIndex,
    stories: Optional[dict] = None,
    config: SimilarityConfig = DEFAULT_CONFIG,
) -> Classification:
    """Classify an incoming idea as NEW, RECURRING or IMPLEMENTED.

    Args:
        idea: Incoming idea (title, files, ...)
        index: Current ledger (not modified)
        stories: Optional status.json stories map, used to detect ideas whose
            linked story has been completed
        config: Similarity weights and thresholds
    """
    matches = find_duplicates(index, idea, config=config)
    if not matches:
        return Classification(status=MatchStatus.NEW)

    best = matches[0]
    score = best.similarity.score
    status = MatchStatus.IMPLEMENTED if is_idea_implemented(best.idea, stories) else MatchStatus.RECURRING
    return Classification(
        status=status,
        id=best.id,
        prior_existing=best.idea,
        score=score,
        candidate=is_candidate(score, config),
    )


# ----------------------------------------------------------------------------
# Mutation
# ----------------------------------------------------------------------------

def _ensure_report(index: IdeationIndex, report: str) -> ReportEntry:
    entry = index.reports.get(report)
    if entry is None:
        entry = ReportEntry(generated=today())
        index.reports[report] = entry
    return entry


def _link_report(index: IdeationIndex, report: str, idea_id: str) -> None:
    entry = _ensure_report(index, report)
    if idea_id not in entry.ideas:
        entry.ideas.append(idea_id)
    entry.idea_count = len(entry.ideas)


def add_idea(index: IdeationIndex, idea: IdeaLike, report: str) -> str:
    """Create a new pending idea and return its id.

    Raises:
        ValueError: If the idea has no title
    """
    candidate = _as_candidate(idea)
    if not normalize_title(candidate.title):
        raise ValueError("Idea title is required")

    idea_id = format_idea_id(index.next_id)
    index.next_id += 1

    date = today()
    index.ideas[idea_id] = Idea(
        id=idea_id,
        title=candidate.title,
        title_normalized=normalize_title(candidate.title),
        fingerprint=fingerprint(candidate.title, candidate.files),
        category=candidate.category or DEFAULT_CATEGORY,
        source_report=report,
        first_seen=date,
        last_seen=date,
        confidence=candidate.confidence,
        files=normalize_files(candidate.files),
        occurrences=[Occurrence(report=report, date=date, experts=list(candidate.experts))],
    )
    _link_report(index, report, idea_id)
    index.updated = now_iso()
    logger.debug(f"Added {idea_id}: {candidate.title}")
    return idea_id


def record_occurrence(
    index: IdeationIndex,
    idea_id: str,
    report: str,
    experts: Optional[list[str]] = None,
) -> Idea:
    """Append an occurrence of an existing idea in ``report``.

    Every sighting is appended, including repeats within one report.

    Raises:
        IdeaNotFoundError: If idea_id is not in the index
    """
    idea = index.ideas.get(idea_id)
    if idea is None:
        raise IdeaNotFoundError(idea_id, available=sorted(index.ideas))

    idea.occurrences.append(Occurrence(report=report, date=today(), experts=list(experts or [])))

    idea.last_seen = today()
    _link_report(index, report, idea_id)
    index.updated = now_iso()
    return idea


def record_idea(
    index: IdeationIndex,
    idea: IdeaLike,
    report: str,
    stories: Optional[dict] = None,
    config: SimilarityConfig = DEFAULT_CONFIG,
) -> RecordResult:
    """Classify an idea and record it: new id, or a new occurrence."""
    candidate = _as_candidate(idea)
    if not normalize_title(candidate.title):
        return RecordResult(ok=False, error="Idea title is required")

    classification = classify(candidate, index, stories=stories, config=config)
    if classification.status == MatchStatus.NEW:
        idea_id = add_idea(index, candidate, report)
        return RecordResult(
            ok=True, status=MatchStatus.NEW, id=idea_id, occurrences=1, title=candidate.title,
        )

    existing = record_occurrence(index, classification.id, report, candidate.experts)
    if existing.status == IdeaStatus.REJECTED.value:
        logger.info(f"{existing.id} was rejected but came up again in {report}")
    return RecordResult(
        ok=True,
        status=classification.status,
        id=existing.id,
        occurrences=existing.occurrence_count,
        score=classification.score,
        candidate=classification.candidate,
        title=candidate.title,
    )


def ingest_report(
    index: IdeationIndex,
    ideas: list[IdeaLike],
    report: str,
    stories: Optional[dict] = None,
    scope: Optional[str] = None,
    depth: Optional[str] = None,
    config: SimilarityConfig = DEFAULT_CONFIG,
) -> list[RecordResult]:
    """Record every idea of a report and return one result per idea."""
    entry = _ensure_report(index, report)
    if scope is not None:
        entry.scope = scope
    if depth is not None:
        entry.depth = depth

    results = [record_idea(index, idea, report, stories=stories, config=config) for idea in ideas]

    new = sum(1 for r in results if r.status == MatchStatus.NEW)
    logger.info(f"Ingested {len(results)} idea(s) from {report}: {new} new, {len(results) - new} seen before")
    return results


def update_idea_status(
    index: IdeationIndex,
    idea_id: str,
    status: str,
    linked_story: Optional[str] = None,
    linked_epic: Optional[str] = None,
) -> bool:
    """Change an idea's status through the state machine.

    Returns True if the status changed.

    Raises:
        IdeaNotFoundError: If idea_id is not in the index
        ValueError: If status is not a known idea status
        InvalidTransitionError: If the move is not allowed
    """
    idea = index.ideas.get(idea_id)
    if idea is None:
        raise IdeaNotFoundError(idea_id, available=sorted(index.ideas))

    changed = IdeaFSM(idea).transition_to(status)

    if linked_story:
        idea.linked_story = linked_story
    if linked_epic:
        idea.linked_epic = linked_epic
    if changed and status == IdeaStatus.IMPLEMENTED.value:
        idea.implemented_date = today()
    if changed or linked_story or linked_epic:
        index.updated = now_iso()
    return changed


def update_report_metadata(index: IdeationIndex, report: str, **metadata) -> ReportEntry:
    """Set scope/depth/generated on a report entry, creating it if needed."""
    entry = _ensure_report(index, report)
    for key in ("generated", "scope", "depth"):
        if key in metadata:
            setattr(entry, key, metadata[key])
    return entry


# ----------------------------------------------------------------------------
# Queries
# ----------------------------------------------------------------------------

def get_idea_by_id(index: IdeationIndex, idea_id: str) -> Optional[Idea]:
    return index.ideas.get(idea_id)


def get_ideas_by_status(index: IdeationIndex, status: str) -> list[Idea]:
    return [idea for idea in index.ideas.values() if idea.status == status]


def get_recurring_ideas(index: IdeationIndex, exclude_implemented: bool = True) -> list[Idea]:
    """Ideas seen in two or more reports, most frequent first."""
    recurring = [
        idea for idea in index.ideas.values()
        if idea.occurrence_count >= 2
        and not (exclude_implemented and idea.status == IdeaStatus.IMPLEMENTED.value)
    ]
    return sorted(recurring, key=lambda i: (-i.occurrence_count, id_sort_key(i.id)))


def get_index_summary(index: IdeationIndex) -> dict:
    by_status = {status: 0 for status in IDEA_STATUSES}
    by_category: dict[str, int] = {}
    recurring = 0

    for idea in index.ideas.values():
        by_status[idea.status] = by_status.get(idea.status, 0) + 1
        category = idea.category or DEFAULT_CATEGORY
        by_category[category] = by_category.get(category, 0) + 1
        if idea.occurrence_count >= 2:
            recurring += 1

    return {
        "total_ideas": len(index.ideas),
        "total_reports": len(index.reports),
        "by_status": by_status,
        "by_category": by_category,
        "recurring_count": recurring,
        "last_updated": index.updated,
    }


def search_ideas(index: IdeationIndex, query: str) -> list[Idea]:
    """Ideas whose normalized title contains the normalized query."""
    needle = normalize_title(query)
    if not needle:
        return []
    return [
        idea for idea in index.ideas.values()
        if needle in (idea.title_normalized or normalize_title(idea.title))
    ]


def get_ideas_by_category(index: IdeationIndex, category: str) -> list[Idea]:
    """Case-insensitive category match in either direction ("sec" finds "Security")."""
    needle = category.lower()
    results = []
    for idea in index.ideas.values():
        own = (idea.category or "").lower()
        if own and (needle in own or own in needle):
            results.append(idea)
    return results


def list_reports(index: IdeationIndex) -> list[dict]:
    """Reports ordered by generation date."""
    reports = [
        {
            "name": name,
            "date": entry.generated,
            "idea_count": entry.idea_count or len(entry.ideas),
            "scope": entry.scope,
            "depth": entry.depth,
        }
        for name, entry in index.reports.items()
    ]
    return sorted(reports, key=lambda r: (r["date"] or "", r["name"]))


def normalize_report_name(name: str) -> str:
    """Accept shorthand report names: '20260114' -> 'ideation-20260114.md'."""
    name = name.strip()
    if _REPORT_DATE.match(name):
        return f"ideation-{name}.md"
    return name if name.endswith(".md") else f"{name}.md"


def resolve_idea_id(index: IdeationIndex, query: str) -> str:
    """Resolve a user-supplied id: exact, case-insensitive, or numeric shorthand.

    Raises:
        IdeaNotFoundError: If nothing matches
        AmbiguousIdeaError: If a partial id matches several ideas
    """
    normalized = query.strip().upper()
    if normalized in index.ideas:
        return normalized

    digits = normalized[5:] if normalized.startswith("IDEA-") else normalized
    if digits.isdigit():
        padded = format_idea_id(int(digits))
        if padded in index.ideas:
            return padded

    matches = sorted((i for i in index.ideas if normalized and normalized in i), key=id_sort_key)
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        raise AmbiguousIdeaError(query, matches)

    available = sorted(index.ideas, key=id_sort_key)
    raise IdeaNotFoundError(query, available=available, suggestion=suggest_idea(normalized, index.ideas))


def focus(index: IdeationIndex, idea_id: str) -> FocusContext:
    """Full history of one idea.

    Raises:
        IdeaNotFoundError: If the id cannot be resolved
        AmbiguousIdeaError: If a partial id matches several ideas
    """
    idea = index.ideas[resolve_idea_id(index, idea_id)]
    return FocusContext(
        idea=idea,
        occurrences=list(idea.occurrences),
        all_experts=idea.experts,
        source_report=idea.source_report,
    )
