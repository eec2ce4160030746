"""
Agent team coordination for AgileFlow.

Story/task status sync, builder/validator pairing, quality gates and the
message bus the agents talk through.
"""

from agileflow.teams.task_sync import (
    read_status_stories,
    reconcile,
    story_status_to_task_status,
    sync_from_status,
    sync_to_status,
    task_status_to_story_status,
    write_status_stories,
)
from agileflow.teams.validation_registry import (
    BUILT_IN_PAIRS,
    get_all_pairs,
    get_validator,
    is_validator_approved,
    requires_validation,
)
from agileflow.teams.gate_runner import (
    DEFAULT_GATE_CONFIG,
    evaluate_gate,
    evaluate_gates,
    load_gate_config,
)
from agileflow.teams.bus import (
    read_messages,
    rotate_log,
    send_message,
    send_task_assignment,
    send_validation_result,
)

__all__ = [
    "read_status_stories",
    "reconcile",
    "story_status_to_task_status",
    "sync_from_status",
    "sync_to_status",
    "task_status_to_story_status",
    "write_status_stories",
    "BUILT_IN_PAIRS",
    "get_all_pairs",
    "get_validator",
    "is_validator_approved",
    "requires_validation",
    "DEFAULT_GATE_CONFIG",
    "evaluate_gate",
    "evaluate_gates",
    "load_gate_config",
    "read_messages",
    "rotate_log",
    "send_message",
    "send_task_assignment",
    "send_validation_result",
]
