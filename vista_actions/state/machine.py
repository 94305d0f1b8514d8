"""
Lifecycle of an action.

    pending  -> running | aborted
    running  -> complete | failed | aborted
    complete -> pending
    failed   -> pending
    aborted  -> pending

Terminal states are re-enterable: replay moves an action back to ``pending``
under the same id. Every committed change is published as a TransitionEvent.
"""
import logging
import threading
from typing import Callable, Dict, FrozenSet, List, Optional

from ..contracts.action_v1 import ActionDescriptor, ActionStatus
from ..contracts.events import TransitionEvent
from ..errors import IllegalTransitionError

logger = logging.getLogger(__name__)

TransitionListener = Callable[[TransitionEvent], None]

TRANSITIONS: Dict[ActionStatus, FrozenSet[ActionStatus]] = {
    ActionStatus.PENDING: frozenset({ActionStatus.RUNNING, ActionStatus.ABORTED}),
    ActionStatus.RUNNING: frozenset({ActionStatus.COMPLETE, ActionStatus.FAILED, ActionStatus.ABORTED}),
    ActionStatus.COMPLETE: frozenset({ActionStatus.PENDING}),
    ActionStatus.FAILED: frozenset({ActionStatus.PENDING}),
    ActionStatus.ABORTED: frozenset({ActionStatus.PENDING}),
}


def is_legal(from_status: ActionStatus, to_status: ActionStatus) -> bool:
    return to_status in TRANSITIONS[ActionStatus(from_status)]


class ActionStateMachine:
    """Guards status changes and fans events out to listeners.

    Listener exceptions are logged and do not undo the transition.
    """

    def __init__(self, listeners: Optional[List[TransitionListener]] = None):
        self._lock = threading.RLock()
        self._listeners: List[TransitionListener] = list(listeners or [])

    def subscribe(self, listener: TransitionListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: TransitionListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def transition(
        self, action: ActionDescriptor, to_status: ActionStatus, artifact_id: Optional[str] = None
    ) -> TransitionEvent:
        to_status = ActionStatus(to_status)
        with self._lock:
            from_status = action.status
            if not is_legal(from_status, to_status):
                raise IllegalTransitionError(action.id, from_status, to_status)
            action.status = to_status
            event = TransitionEvent(
                action_id=action.id,
                artifact_id=artifact_id,
                from_status=from_status,
                to_status=to_status,
            )
            listeners = list(self._listeners)
        logger.debug("action %s: %s -> %s", action.id, from_status.value, to_status.value)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("transition listener %r failed for action %s", listener, action.id)
        return event

    def try_transition(
        self, action: ActionDescriptor, to_status: ActionStatus, artifact_id: Optional[str] = None
    ) -> Optional[TransitionEvent]:
        """Like ``transition`` but returns None instead of raising on an illegal move."""
        try:
            return self.transition(action, to_status, artifact_id)
        except IllegalTransitionError:
            return None


class EventRecorder:
    """Listener that keeps events in memory, mostly for inspection and tests."""

    def __init__(self):
        self._lock = threading.Lock()
        self.events: List[TransitionEvent] = []

    def __call__(self, event: TransitionEvent) -> None:
        with self._lock:
            self.events.append(event)

    def for_action(self, action_id: str) -> List[TransitionEvent]:
        with self._lock:
            return [e for e in self.events if e.action_id == action_id]

    def path(self, action_id: str) -> List[ActionStatus]:
        events = self.for_action(action_id)
        if not events:
            return []
        return [events[0].from_status] + [e.to_status for e in events]
