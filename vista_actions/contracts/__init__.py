from .action_v1 import ActionDescriptor, ActionStatus, ActionType, Representation, TERMINAL_STATUSES
from .artifact_v1 import Artifact
from .events import ActionResult, RunReport, TransitionEvent

__all__ = [
    "ActionDescriptor",
    "ActionResult",
    "ActionStatus",
    "ActionType",
    "Artifact",
    "Representation",
    "RunReport",
    "TERMINAL_STATUSES",
    "TransitionEvent",
]
