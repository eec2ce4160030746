"""
Ideation history for AgileFlow.

Tracks every idea raised by ideation reports, deduplicates recurring ideas
across reports, and answers trend/comparison queries over the history.
"""

from agileflow.ideation.models import (
    AmbiguousIdeaError,
    Idea,
    IdeaCandidate,
    IdeaNotFoundError,
    IdeaStatus,
    IdeationError,
    IdeationIndex,
    Occurrence,
    ReportEntry,
)
from agileflow.ideation.similarity import SimilarityConfig, fingerprint, score_similarity
from agileflow.ideation.fsm import IdeaFSM, InvalidTransitionError
from agileflow.ideation.index import (
    MatchStatus,
    add_idea,
    classify,
    find_duplicates,
    focus,
    ingest_report,
    load_ideation_index,
    load_index,
    record_idea,
    record_occurrence,
    save_ideation_index,
    save_index,
    update_idea_status,
)
from agileflow.ideation.trends import compare, trends
from agileflow.ideation.sync import get_sync_status, sync_implemented_ideas

__all__ = [
    "AmbiguousIdeaError",
    "Idea",
    "IdeaCandidate",
    "IdeaNotFoundError",
    "IdeaStatus",
    "IdeationError",
    "IdeationIndex",
    "Occurrence",
    "ReportEntry",
    "SimilarityConfig",
    "fingerprint",
    "score_similarity",
    "IdeaFSM",
    "InvalidTransitionError",
    "MatchStatus",
    "add_idea",
    "classify",
    "find_duplicates",
    "focus",
    "ingest_report",
    "load_ideation_index",
    "load_index",
    "record_idea",
    "record_occurrence",
    "save_ideation_index",
    "save_index",
    "update_idea_status",
    "compare",
    "trends",
    "get_sync_status",
    "sync_implemented_ideas",
]
