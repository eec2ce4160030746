"""Tests for agileflow.ideation.trends module."""

from datetime import date

import pytest

from agileflow.ideation.index import add_idea, create_empty_index, ingest_report, update_idea_status
from agileflow.ideation.models import Idea, IdeationIndex, Occurrence, ReportEntry
from agileflow.ideation.trends import (
    compare,
    get_category_hotspots,
    get_expert_agreement_patterns,
    get_implementation_velocity,
    get_stale_ideas,
    report_members,
    trends,
)

R1 = "ideation-20260101.md"
R2 = "ideation-20260201.md"


def _idea(idea_id, status="pending", category="Security", occurrences=(), **kwargs):
    occs = [Occurrence(report=r, date=d, experts=list(e)) for r, d, e in occurrences]
    first = occs[0].date if occs else ""
    return Idea(
        id=idea_id,
        title=f"Title {idea_id}",
        category=category,
        status=status,
        first_seen=first,
        last_seen=occs[-1].date if occs else "",
        occurrences=occs,
        **kwargs,
    )


def _index(*ideas):
    return IdeationIndex(ideas={i.id: i for i in ideas})


class TestCategoryHotspots:
    def test_counts_and_order(self):
        index = _index(
            _idea("IDEA-0001", category="UI", occurrences=[(R1, "2026-01-01", [])]),
            _idea("IDEA-0002", category="Security", status="implemented",
                  occurrences=[(R1, "2026-01-01", []), (R2, "2026-02-01", [])]),
            _idea("IDEA-0003", category="Security", occurrences=[(R1, "2026-01-01", [])]),
        )
        stats = get_category_hotspots(index)
        assert [s.category for s in stats] == ["Security", "UI"]
        security = stats[0]
        assert (security.total, security.recurring, security.implemented, security.pending) == (2, 1, 1, 1)
        assert security.implementation_rate == 0.5
        assert security.recurring_percentage == 50


class TestVelocity:
    def test_monthly_buckets(self):
        index = _index(
            _idea("IDEA-0001", occurrences=[(R1, "2026-01-05", []), (R2, "2026-02-03", [])],
                  status="implemented", implemented_date="2026-02-10"),
            _idea("IDEA-0002", occurrences=[(R2, "2026-02-03", [])]),
        )
        velocity = get_implementation_velocity(index)
        months = {m.month: m for m in velocity.monthly}
        assert list(months) == ["2026-01", "2026-02"]
        assert months["2026-01"].new == 1
        assert months["2026-02"].new == 1
        assert months["2026-02"].occurrences == 2
        assert months["2026-02"].implemented == 1
        assert velocity.average_velocity == 0.5

    def test_implemented_falls_back_to_last_seen(self):
        index = _index(_idea("IDEA-0001", status="implemented", occurrences=[(R1, "2026-03-01", [])]))
        months = {m.month: m for m in get_implementation_velocity(index).monthly}
        assert months["2026-03"].implemented == 1

    def test_empty(self):
        velocity = get_implementation_velocity(IdeationIndex())
        assert velocity.monthly == []
        assert velocity.average_velocity == 0.0


class TestStaleIdeas:
    def test_pending_with_four_occurrences(self):
        occs = [(f"r{n}.md", f"2026-0{n}-01", []) for n in range(1, 5)]
        index = _index(
            _idea("IDEA-0001", occurrences=occs),
            _idea("IDEA-0002", occurrences=occs[:3]),
            _idea("IDEA-0003", status="rejected", occurrences=occs),
        )
        stale = get_stale_ideas(index, today=date(2026, 1, 31))
        assert [s.idea.id for s in stale] == ["IDEA-0001"]
        assert stale[0].occurrence_count == 4
        assert stale[0].stale_days == 30

    def test_bad_first_seen(self):
        idea = _idea("IDEA-0001", occurrences=[(f"r{n}.md", "", []) for n in range(4)])
        stale = get_stale_ideas(_index(idea), today=date(2026, 1, 1))
        assert stale[0].stale_days == 0


class TestExpertAgreement:
    def test_pairs_with_two_agreements(self):
        index = _index(
            _idea("IDEA-0001", occurrences=[(R1, "2026-01-01", ["api", "security"])]),
            _idea("IDEA-0002", occurrences=[(R1, "2026-01-01", ["security"]), (R2, "2026-02-01", ["api"])]),
            _idea("IDEA-0003", occurrences=[(R1, "2026-01-01", ["ui", "api"])]),
        )
        patterns = get_expert_agreement_patterns(index)
        assert len(patterns) == 1
        assert patterns[0].pair == ("api", "security")
        assert patterns[0].ideas == ["IDEA-0001", "IDEA-0002"]
        assert patterns[0].agreements == 2


class TestTrends:
    def test_bundle(self):
        index = create_empty_index()
        ingest_report(index, [{"title": "Add caching"}, {"title": "Dark mode"}], R1)
        update_idea_status(index, "IDEA-0001", "implemented")
        report = trends(index, today=date(2026, 6, 1))
        assert report.implementation_rate == 0.5
        assert report.summary["total_ideas"] == 2
        assert report.stale_ideas == []

    def test_empty_index(self):
        report = trends(IdeationIndex())
        assert report.implementation_rate == 0.0
        assert report.category_stats == []


class TestCompare:
    @pytest.fixture
    def index(self):
        index = create_empty_index()
        ingest_report(index, [
            {"title": "Add caching"},
            {"title": "Dark mode toggle"},
            {"title": "Offline sync queue"},
        ], R1)
        ingest_report(index, [{"title": "Add caching"}, {"title": "Keyboard shortcuts"}], R2)
        update_idea_status(index, "IDEA-0002", "implemented")
        return index

    def test_four_buckets(self, index):
        result = compare(index, "20260101", "20260201")
        assert result.ok
        assert [i.id for i in result.persisted] == ["IDEA-0001"]
        assert [i.id for i in result.resolved] == ["IDEA-0002"]
        assert [i.id for i in result.dropped] == ["IDEA-0003"]
        assert [i.id for i in result.new] == ["IDEA-0004"]
        assert result.counts == {"resolved": 1, "new": 1, "persisted": 1, "dropped": 1}
        assert result.report_a == R1

    def test_buckets_partition_both_reports(self, index):
        result = compare(index, R1, R2)
        in_a = {i.id for i in result.resolved + result.persisted + result.dropped}
        in_b = {i.id for i in result.new + result.persisted}
        assert in_a == report_members(index, R1)
        assert in_b == report_members(index, R2)

    def test_missing_report(self, index):
        result = compare(index, "20250101", R2)
        assert not result.ok
        assert result.error.startswith("Report not found: ideation-20250101.md")
        assert R1 in result.error

    def test_report_known_only_from_occurrences(self):
        index = _index(_idea("IDEA-0001", occurrences=[(R1, "2026-01-01", []), (R2, "2026-02-01", [])]))
        index.reports[R1] = ReportEntry(generated="2026-01-01")
        result = compare(index, R1, R2)
        assert result.ok
        assert [i.id for i in result.persisted] == ["IDEA-0001"]
        assert result.report_b_date is None

    def test_same_report(self):
        index = create_empty_index()
        add_idea(index, {"title": "Add caching"}, R1)
        result = compare(index, R1, R1)
        assert [i.id for i in result.persisted] == ["IDEA-0001"]
        assert result.new == [] and result.dropped == []
