"""
VISTA Actions - action orchestration and reconciliation engine.
"""

from __future__ import annotations

__all__ = [
    "ActionDescriptor",
    "ActionOrchestrator",
    "ActionStatus",
    "Artifact",
    "ArtifactRegistry",
    "ActionStateMachine",
    "DependencyResolver",
    "ExecutionEngine",
    "RunReport",
    "decode",
    "resolve",
]

__author__ = "VISTA AI Systems"
__email__ = "vista@example.com"
__version__ = "1.0.0"

from .contracts import ActionDescriptor, ActionStatus, Artifact, RunReport
from .decode import decode
from .engine import ExecutionEngine
from .memory import ArtifactRegistry
from .orchestrator import ActionOrchestrator
from .plan import DependencyResolver, resolve
from .state import ActionStateMachine
