"""Tests for the idea status state machine."""

import pytest

from agileflow.ideation.fsm import IdeaFSM, InvalidTransitionError, can_transition
from agileflow.ideation.models import Idea


def _idea(status="pending"):
    return Idea(id="IDEA-0001", title="Add caching", status=status)


class TestIdeaFSM:
    def test_start_then_implement(self):
        idea = _idea()
        fsm = IdeaFSM(idea)
        fsm.start()
        assert idea.status == "in-progress"
        fsm.implement()
        assert idea.status == "implemented"
        assert fsm.is_terminal()

    def test_pending_can_be_implemented_directly(self):
        idea = _idea()
        assert IdeaFSM(idea).transition_to("implemented")
        assert idea.status == "implemented"

    def test_same_status_is_noop(self):
        assert IdeaFSM(_idea()).transition_to("pending") is False

    def test_terminal_states_are_final(self):
        for status in ("implemented", "rejected"):
            with pytest.raises(InvalidTransitionError):
                IdeaFSM(_idea(status)).transition_to("pending")

    def test_in_progress_cannot_go_back(self):
        with pytest.raises(InvalidTransitionError, match="in-progress -> pending"):
            IdeaFSM(_idea("in-progress")).transition_to("pending")

    def test_unknown_target_status(self):
        with pytest.raises(ValueError, match="Invalid status"):
            IdeaFSM(_idea()).transition_to("done")

    def test_unknown_current_status_treated_as_pending(self, caplog):
        idea = _idea("weird")
        fsm = IdeaFSM(idea)
        assert fsm.state == "pending"
        assert "Unknown status 'weird'" in caplog.text

    def test_callback(self):
        seen = []
        fsm = IdeaFSM(_idea(), on_transition=lambda src, dst, trigger: seen.append((src, dst, trigger)))
        fsm.reject()
        assert seen == [("pending", "rejected", "reject")]

    def test_can(self):
        fsm = IdeaFSM(_idea())
        assert fsm.can("start")
        assert fsm.can("reject")
        fsm.reject()
        assert not fsm.can("start")


class TestCanTransition:
    def test_table(self):
        assert can_transition("pending", "in-progress")
        assert can_transition("in-progress", "rejected")
        assert not can_transition("rejected", "pending")
        assert not can_transition("implemented", "in-progress")
