from .machine import TRANSITIONS, ActionStateMachine, EventRecorder, TransitionListener, is_legal

__all__ = ["TRANSITIONS", "ActionStateMachine", "EventRecorder", "TransitionListener", "is_legal"]
