"""
Trend analysis and report comparison over the ideation index.

All functions are read-only queries over an IdeationIndex.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from agileflow.ideation.index import id_sort_key, get_index_summary, normalize_report_name
from agileflow.ideation.models import DEFAULT_CATEGORY, Idea, IdeaStatus, IdeationIndex

STALE_MIN_OCCURRENCES = 4
MIN_AGREEMENTS = 2


@dataclass
class CategoryStats:
    category: str
    total: int = 0
    recurring: int = 0
    implemented: int = 0
    pending: int = 0

    @property
    def implementation_rate(self) -> float:
        return self.implemented / self.total if self.total else 0.0

    @property
    def recurring_percentage(self) -> int:
        return round(self.recurring * 100 / self.total) if self.total else 0

    @property
    def implemented_percentage(self) -> int:
        return round(self.implemented * 100 / self.total) if self.total else 0


@dataclass
class MonthVelocity:
    month: str  # YYYY-MM
    new: int = 0
    implemented: int = 0
    occurrences: int = 0


@dataclass
class Velocity:
    monthly: list[MonthVelocity] = field(default_factory=list)
    average_velocity: float = 0.0  # Implemented ideas per month


@dataclass
class StaleIdea:
    idea: Idea
    occurrence_count: int
    stale_days: int


@dataclass
class ExpertPair:
    pair: tuple[str, str]
    ideas: list[str] = field(default_factory=list)

    @property
    def agreements(self) -> int:
        return len(self.ideas)


@dataclass
class TrendReport:
    implementation_rate: float
    category_stats: list[CategoryStats]
    stale_ideas: list[StaleIdea]
    velocity: Velocity
    expert_agreement: list[ExpertPair]
    summary: dict


@dataclass
class CompareResult:
    """Classification of ideas between two reports."""
    ok: bool
    report_a: Optional[str] = None
    report_b: Optional[str] = None
    report_a_date: Optional[str] = None
    report_b_date: Optional[str] = None
    resolved: list[Idea] = field(default_factory=list)   # In A only, now implemented
    new: list[Idea] = field(default_factory=list)        # In B only
    persisted: list[Idea] = field(default_factory=list)  # In both
    dropped: list[Idea] = field(default_factory=list)    # In A only, not implemented
    error: Optional[str] = None

    @property
    def counts(self) -> dict[str, int]:
        return {
            "resolved": len(self.resolved),
            "new": len(self.new),
            "persisted": len(self.persisted),
            "dropped": len(self.dropped),
        }


def get_category_hotspots(index: IdeationIndex) -> list[CategoryStats]:
    """Per-category counts, categories with the most recurring ideas first."""
    stats: dict[str, CategoryStats] = {}
    for idea in index.ideas.values():
        category = idea.category or DEFAULT_CATEGORY
        entry = stats.setdefault(category, CategoryStats(category=category))
        entry.total += 1
        if idea.occurrence_count >= 2:
            entry.recurring += 1
        if idea.status == IdeaStatus.IMPLEMENTED.value:
            entry.implemented += 1
        elif idea.status == IdeaStatus.PENDING.value:
            entry.pending += 1

    return sorted(stats.values(), key=lambda s: (-s.recurring_percentage, s.category))


def _month(value: Optional[str]) -> Optional[str]:
    if not value or len(value) < 7:
        return None
    return value[:7]


def get_implementation_velocity(index: IdeationIndex) -> Velocity:
    """New, implemented and recurring ideas per calendar month."""
    months: dict[str, MonthVelocity] = {}

    def bucket(month: str) -> MonthVelocity:
        return months.setdefault(month, MonthVelocity(month=month))

    for idea in index.ideas.values():
        first = _month(idea.first_seen)
        if first:
            bucket(first).new += 1
        for occ in idea.occurrences:
            month = _month(occ.date)
            if month:
                bucket(month).occurrences += 1
        if idea.status == IdeaStatus.IMPLEMENTED.value:
            # Ideas implemented before implemented_date was tracked fall back to last_seen
            done = _month(idea.implemented_date or idea.last_seen)
            if done:
                bucket(done).implemented += 1

    monthly = [months[m] for m in sorted(months)]
    total_implemented = sum(m.implemented for m in monthly)
    average = round(total_implemented / (len(monthly) or 1), 1)
    return Velocity(monthly=monthly, average_velocity=average)


def _days_since(value: str, today: date) -> int:
    try:
        seen = datetime.fromisoformat(value).date()
    except (TypeError, ValueError):
        return 0
    return max((today - seen).days, 0)


def get_stale_ideas(
    index: IdeationIndex,
    min_occurrences: int = STALE_MIN_OCCURRENCES,
    today: Optional[date] = None,
) -> list[StaleIdea]:
    """Pending ideas that keep coming back without being picked up."""
    today = today or date.today()
    stale = [
        StaleIdea(
            idea=idea,
            occurrence_count=idea.occurrence_count,
            stale_days=_days_since(idea.first_seen, today),
        )
        for idea in index.ideas.values()
        if idea.status == IdeaStatus.PENDING.value and idea.occurrence_count >= min_occurrences
    ]
    return sorted(stale, key=lambda s: (-s.occurrence_count, -s.stale_days, id_sort_key(s.idea.id)))


def get_expert_agreement_patterns(index: IdeationIndex, min_agreements: int = MIN_AGREEMENTS) -> list[ExpertPair]:
    """Expert pairs that raised the same ideas at least ``min_agreements`` times."""
    pairs: dict[tuple[str, str], list[str]] = defaultdict(list)
    for idea_id in sorted(index.ideas, key=id_sort_key):
        experts = sorted(set(index.ideas[idea_id].experts))
        for i, first in enumerate(experts):
            for second in experts[i + 1:]:
                pairs[(first, second)].append(idea_id)

    patterns = [ExpertPair(pair=pair, ideas=ids) for pair, ids in pairs.items() if len(ids) >= min_agreements]
    return sorted(patterns, key=lambda p: (-p.agreements, p.pair))


def trends(index: IdeationIndex, today: Optional[date] = None) -> TrendReport:
    """Bundle every trend query into one report."""
    total = len(index.ideas)
    implemented = sum(1 for i in index.ideas.values() if i.status == IdeaStatus.IMPLEMENTED.value)
    return TrendReport(
        implementation_rate=implemented / total if total else 0.0,
        category_stats=get_category_hotspots(index),
        stale_ideas=get_stale_ideas(index, today=today),
        velocity=get_implementation_velocity(index),
        expert_agreement=get_expert_agreement_patterns(index),
        summary=get_index_summary(index),
    )


def report_members(index: IdeationIndex, report: str) -> set[str]:
    """Ids of every idea that occurred in ``report``."""
    members = {
        idea_id for idea_id, idea in index.ideas.items()
        if any(occ.report == report for occ in idea.occurrences)
    }
    entry = index.reports.get(report)
    if entry is not None:
        members.update(i for i in entry.ideas if i in index.ideas)
    return members


def _known_reports(index: IdeationIndex) -> list[str]:
    names = set(index.reports)
    for idea in index.ideas.values():
        names.update(occ.report for occ in idea.occurrences)
    return sorted(names)


def compare(index: IdeationIndex, report_a: str, report_b: str) -> CompareResult:
    """Compare an earlier report A with a later report B."""
    name_a = normalize_report_name(report_a)
    name_b = normalize_report_name(report_b)
    known = _known_reports(index)

    for name in (name_a, name_b):
        if name not in known:
            return CompareResult(
                ok=False,
                error=f"Report not found: {name}. Available: {', '.join(known) or '(none)'}",
            )

    in_a = report_members(index, name_a)
    in_b = report_members(index, name_b)

    def ideas(ids) -> list[Idea]:
        return [index.ideas[i] for i in sorted(ids, key=id_sort_key)]

    only_a = in_a - in_b
    resolved = {i for i in only_a if index.ideas[i].status == IdeaStatus.IMPLEMENTED.value}

    entry_a = index.reports.get(name_a)
    entry_b = index.reports.get(name_b)
    return CompareResult(
        ok=True,
        report_a=name_a,
        report_b=name_b,
        report_a_date=entry_a.generated if entry_a else None,
        report_b_date=entry_b.generated if entry_b else None,
        resolved=ideas(resolved),
        new=ideas(in_b - in_a),
        persisted=ideas(in_a & in_b),
        dropped=ideas(only_a - resolved),
    )
