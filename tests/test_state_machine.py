import itertools

import pytest

# Add the project root to the Python path
import sys, os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from vista_actions.contracts.action_v1 import ActionDescriptor, ActionStatus, ActionType
from vista_actions.errors import IllegalTransitionError
from vista_actions.state.machine import TRANSITIONS, ActionStateMachine, EventRecorder, is_legal

LEGAL = {
    (ActionStatus.PENDING, ActionStatus.RUNNING),
    (ActionStatus.PENDING, ActionStatus.ABORTED),
    (ActionStatus.RUNNING, ActionStatus.COMPLETE),
    (ActionStatus.RUNNING, ActionStatus.FAILED),
    (ActionStatus.RUNNING, ActionStatus.ABORTED),
    (ActionStatus.COMPLETE, ActionStatus.PENDING),
    (ActionStatus.FAILED, ActionStatus.PENDING),
    (ActionStatus.ABORTED, ActionStatus.PENDING),
}


def _action(status=ActionStatus.PENDING):
    return ActionDescriptor(id="a", type=ActionType.SHELL, content="ls", status=status)


def test_table_matches_lifecycle():
    table = {(src, dst) for src, dsts in TRANSITIONS.items() for dst in dsts}
    assert table == LEGAL


@pytest.mark.parametrize("src,dst", list(itertools.product(ActionStatus, ActionStatus)))
def test_every_pair(src, dst):
    machine = ActionStateMachine()
    action = _action(src)
    if (src, dst) in LEGAL:
        assert is_legal(src, dst)
        event = machine.transition(action, dst, "art")
        assert action.status == dst
        assert (event.from_status, event.to_status) == (src, dst)
    else:
        assert not is_legal(src, dst)
        with pytest.raises(IllegalTransitionError):
            machine.transition(action, dst, "art")
        assert action.status == src
        assert machine.try_transition(action, dst) is None


def test_complete_to_running_is_illegal():
    action = _action(ActionStatus.COMPLETE)
    with pytest.raises(IllegalTransitionError, match="complete -> running"):
        ActionStateMachine().transition(action, ActionStatus.RUNNING)
    assert action.status == ActionStatus.COMPLETE


def test_events_emitted_for_committed_transitions_only():
    recorder = EventRecorder()
    machine = ActionStateMachine([recorder])
    action = _action()
    machine.transition(action, ActionStatus.RUNNING, "art")
    machine.try_transition(action, ActionStatus.PENDING, "art")
    machine.transition(action, ActionStatus.COMPLETE, "art")
    machine.transition(action, ActionStatus.PENDING, "art")

    assert recorder.path("a") == [
        ActionStatus.PENDING, ActionStatus.RUNNING, ActionStatus.COMPLETE, ActionStatus.PENDING,
    ]
    assert all(e.artifact_id == "art" for e in recorder.events)
    assert recorder.events[0].timestamp <= recorder.events[-1].timestamp


def test_replay_keeps_payload():
    action = ActionDescriptor(id="f", type=ActionType.FILE, file_path="a.txt", content="body")
    machine = ActionStateMachine()
    for status in (ActionStatus.RUNNING, ActionStatus.FAILED, ActionStatus.PENDING):
        machine.transition(action, status)
    assert (action.file_path, action.content) == ("a.txt", "body")


def test_listener_failure_does_not_undo_transition():
    def broken(event):
        raise RuntimeError("sink down")

    recorder = EventRecorder()
    machine = ActionStateMachine([broken, recorder])
    action = _action()
    machine.transition(action, ActionStatus.ABORTED)
    assert action.status == ActionStatus.ABORTED
    assert len(recorder.events) == 1


def test_unsubscribe():
    recorder = EventRecorder()
    machine = ActionStateMachine()
    machine.subscribe(recorder)
    machine.unsubscribe(recorder)
    machine.transition(_action(), ActionStatus.RUNNING)
    assert recorder.events == []
