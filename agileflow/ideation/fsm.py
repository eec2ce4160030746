"""Idea status state machine using transitions library.

    pending -> in-progress -> implemented
    pending -> implemented          (linked story/epic completed directly)
    pending | in-progress -> rejected

implemented and rejected are terminal. A rejected idea that shows up again in
a report is still recorded as recurring, but it stays rejected.

Usage:
    from agileflow.ideation.fsm import IdeaFSM

    fsm = IdeaFSM(idea)
    fsm.start()       # pending -> in-progress
    fsm.implement()   # in-progress -> implemented
"""

import logging
from typing import Callable, Optional

from transitions import Machine

from agileflow.ideation.models import IDEA_STATUSES, Idea, IdeaStatus, IdeationError

logger = logging.getLogger(__name__)

STATES = list(IDEA_STATUSES)

TRANSITIONS = [
    {"trigger": "start", "source": IdeaStatus.PENDING.value, "dest": IdeaStatus.IN_PROGRESS.value},
    {"trigger": "implement", "source": IdeaStatus.IN_PROGRESS.value, "dest": IdeaStatus.IMPLEMENTED.value},
    {"trigger": "implement", "source": IdeaStatus.PENDING.value, "dest": IdeaStatus.IMPLEMENTED.value},
    {"trigger": "reject", "source": IdeaStatus.PENDING.value, "dest": IdeaStatus.REJECTED.value},
    {"trigger": "reject", "source": IdeaStatus.IN_PROGRESS.value, "dest": IdeaStatus.REJECTED.value},
]


def _build_trigger_lookup() -> dict[tuple[str, str], str]:
    """Build lookup from (source, dest) -> trigger name."""
    lookup: dict[tuple[str, str], str] = {}
    for t in TRANSITIONS:
        lookup.setdefault((t["source"], t["dest"]), t["trigger"])
    return lookup


TRIGGER_FOR = _build_trigger_lookup()


class InvalidTransitionError(IdeationError):
    """Raised when attempting a forbidden idea status change."""

    def __init__(self, idea_id: str, from_status: str, to_status: str):
        self.idea_id = idea_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Invalid transition for {idea_id}: {from_status} -> {to_status}")


class IdeaFSM:
    """State machine for a single idea's status.

    Transitions write the new status back onto the wrapped Idea; persisting
    the index is left to the caller.
    """

    def __init__(self, idea: Idea, on_transition: Optional[Callable[[str, str, str], None]] = None):
        self.idea = idea
        self.on_transition = on_transition

        initial = idea.status
        if initial not in STATES:
            logger.warning(f"[FSM] {idea.id}: Unknown status '{initial}', treating as 'pending'")
            initial = IdeaStatus.PENDING.value

        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=TRANSITIONS,
            initial=initial,
            auto_transitions=False,
            send_event=True,
            after_state_change="on_state_change",
        )

    def on_state_change(self, event) -> None:
        from_state = event.transition.source
        to_state = event.transition.dest
        trigger = event.event.name

        self.idea.status = to_state
        logger.info(f"[FSM] {self.idea.id}: {from_state} -> {to_state} ({trigger})")

        if self.on_transition:
            self.on_transition(from_state, to_state, trigger)

    def can(self, trigger: str) -> bool:
        return trigger in self.machine.get_triggers(self.state)

    def is_terminal(self) -> bool:
        return not self.machine.get_triggers(self.state)

    def transition_to(self, status: str) -> bool:
        """Move to ``status``.

        Returns False when already there, True after a transition.

        Raises:
            ValueError: If status is not a known idea status
            InvalidTransitionError: If the move is not allowed
        """
        if status not in STATES:
            raise ValueError(f"Invalid status: {status}. Must be one of: {', '.join(STATES)}")
        if status == self.state:
            return False

        trigger = TRIGGER_FOR.get((self.state, status))
        if trigger is None:
            raise InvalidTransitionError(self.idea.id, self.state, status)

        getattr(self, trigger)()
        return True


def can_transition(from_status: str, to_status: str) -> bool:
    return (from_status, to_status) in TRIGGER_FOR
