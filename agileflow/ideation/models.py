"""
Data model for the ideation index.

The index is stored as docs/00-meta/ideation-index.json:

    {
      "schema_version": "1.0.0",
      "updated": "<iso timestamp>",
      "ideas": {"IDEA-0001": {...}},
      "reports": {"ideation-20260114.md": {...}},
      "next_id": 2
    }
"""

import logging
from dataclasses import dataclass, field, fields, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Optional

SCHEMA_VERSION = "1.0.0"
DEFAULT_CATEGORY = "Uncategorized"
DEFAULT_CONFIDENCE = "MEDIUM"

logger = logging.getLogger(__name__)


class IdeaStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    IMPLEMENTED = "implemented"
    REJECTED = "rejected"


IDEA_STATUSES = [s.value for s in IdeaStatus]
TERMINAL_STATUSES = (IdeaStatus.IMPLEMENTED.value, IdeaStatus.REJECTED.value)


def today() -> str:
    return datetime.now().date().isoformat()


def now_iso() -> str:
    return datetime.now().isoformat()


def format_idea_id(number: int) -> str:
    return f"IDEA-{number:04d}"


class IdeationError(Exception):
    """Base class for ideation index errors."""


class IdeaNotFoundError(IdeationError):
    """Raised when an idea id cannot be resolved."""

    def __init__(self, idea_id: str, available: Optional[list[str]] = None, suggestion: Optional[str] = None):
        self.idea_id = idea_id
        self.available = available or []
        self.suggestion = suggestion
        message = f"Idea not found: {idea_id}"
        if suggestion:
            message += f" (did you mean {suggestion}?)"
        super().__init__(message)


class AmbiguousIdeaError(IdeationError):
    """Raised when a shorthand id matches more than one idea."""

    def __init__(self, idea_id: str, matches: list[str]):
        self.idea_id = idea_id
        self.matches = matches
        super().__init__(f"Ambiguous idea id '{idea_id}'. Matches: {', '.join(matches)}")


def _known_fields(cls, data: dict) -> dict:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


def _as_mapping(value, name: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        logger.warning(f"Ideation index '{name}' is a {type(value).__name__}, expected an object; ignoring it")
        return {}
    return value


def _as_list(value) -> list:
    return value if isinstance(value, list) else []


def _as_int(value, default: int, name: str) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"Ideation index '{name}' is not a number ({value!r}); using {default}")
        return default


@dataclass
class IdeaCandidate:
    """An idea as it appears in a freshly generated report (not yet indexed)."""
    title: str
    files: list[str] = field(default_factory=list)
    category: str = DEFAULT_CATEGORY
    confidence: str = DEFAULT_CONFIDENCE
    experts: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "IdeaCandidate":
        return cls(
            title=data.get("title") or "",
            files=list(data.get("files") or []),
            category=data.get("category") or DEFAULT_CATEGORY,
            confidence=data.get("confidence") or DEFAULT_CONFIDENCE,
            experts=_as_list(data.get("experts")),
        )


@dataclass
class Occurrence:
    """One appearance of an idea in a report."""
    report: str
    date: str
    experts: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "Occurrence":
        return cls(
            report=data.get("report") or "",
            date=data.get("date") or "",
            experts=list(data.get("experts") or []),
        )


@dataclass
class Idea:
    """An indexed idea."""
    id: str
    title: str
    title_normalized: str = ""
    fingerprint: str = ""
    category: str = DEFAULT_CATEGORY
    source_report: Optional[str] = None
    first_seen: str = ""
    last_seen: str = ""
    confidence: str = DEFAULT_CONFIDENCE
    files: list[str] = field(default_factory=list)
    status: str = IdeaStatus.PENDING.value
    linked_story: Optional[str] = None
    linked_epic: Optional[str] = None
    implemented_date: Optional[str] = None
    occurrences: list[Occurrence] = field(default_factory=list)

    @property
    def occurrence_count(self) -> int:
        return len(self.occurrences)

    @property
    def reports(self) -> list[str]:
        """Reports this idea appeared in, in order of first appearance."""
        seen = []
        for occ in self.occurrences:
            if occ.report not in seen:
                seen.append(occ.report)
        return seen

    @property
    def experts(self) -> list[str]:
        """All experts that raised this idea, in order of first mention."""
        seen = []
        for occ in self.occurrences:
            for expert in occ.experts:
                if expert not in seen:
                    seen.append(expert)
        return seen

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Idea":
        values = _known_fields(cls, data)
        values["occurrences"] = [
            Occurrence.from_dict(o) for o in _as_list(data.get("occurrences"))
            if isinstance(o, dict)
        ]
        values["files"] = [f for f in _as_list(data.get("files")) if isinstance(f, str)]
        values.setdefault("title", "")
        if not values.get("category"):
            values["category"] = DEFAULT_CATEGORY
        return cls(**values)


@dataclass
class ReportEntry:
    """Metadata for one ideation report."""
    generated: Optional[str] = None
    scope: Optional[str] = None
    depth: Optional[str] = None
    idea_count: int = 0
    ideas: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "ReportEntry":
        values = _known_fields(cls, data)
        ideas = data.get("ideas")
        values["ideas"] = list(ideas) if isinstance(ideas, list) else []
        values["idea_count"] = _as_int(data.get("idea_count"), 0, "idea_count")
        return cls(**values)


@dataclass
class IdeationIndex:
    """The full idea ledger."""
    schema_version: str = SCHEMA_VERSION
    updated: str = field(default_factory=now_iso)
    ideas: dict[str, Idea] = field(default_factory=dict)
    reports: dict[str, ReportEntry] = field(default_factory=dict)
    next_id: int = 1
    extra: dict[str, Any] = field(default_factory=dict)  # Unknown top-level keys, kept verbatim

    def to_dict(self) -> dict:
        data = dict(self.extra)
        data.update({
            "schema_version": self.schema_version,
            "updated": self.updated,
            "ideas": {idea_id: idea.to_dict() for idea_id, idea in self.ideas.items()},
            "reports": {name: asdict(entry) for name, entry in self.reports.items()},
            "next_id": self.next_id,
        })
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "IdeationIndex":
        ideas = {
            idea_id: Idea.from_dict({"id": idea_id, **raw})
            for idea_id, raw in _as_mapping(data.get("ideas"), "ideas").items()
            if isinstance(raw, dict)
        }
        reports = {
            name: ReportEntry.from_dict(raw)
            for name, raw in _as_mapping(data.get("reports"), "reports").items()
            if isinstance(raw, dict)
        }
        known = {f.name for f in fields(cls)}
        return cls(
            schema_version=data.get("schema_version") or SCHEMA_VERSION,
            updated=data.get("updated") or now_iso(),
            ideas=ideas,
            reports=reports,
            next_id=_as_int(data.get("next_id"), 1, "next_id"),
            extra={k: v for k, v in data.items() if k not in known},
        )
