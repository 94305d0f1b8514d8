"""
Error taxonomy for the action pipeline.

Decode and cycle errors are fatal to a whole artifact before anything runs.
Reconcile and exec errors are contained to the owning action, which ends in
``failed``. Illegal transitions are protocol errors surfaced to the caller.
"""
from typing import List, Optional


class ActionEngineError(Exception):
    """Base class for every error raised by vista_actions."""


class DecodeError(ActionEngineError):
    def __init__(self, message: str, index: Optional[int] = None, action_id: Optional[str] = None):
        self.index = index
        self.action_id = action_id
        where = []
        if index is not None:
            where.append(f"record {index}")
        if action_id is not None:
            where.append(f"action {action_id!r}")
        prefix = f"{', '.join(where)}: " if where else ""
        super().__init__(prefix + message)


class CycleError(ActionEngineError):
    def __init__(self, chain: List[str]):
        self.chain = list(chain)
        super().__init__("dependency cycle: " + " -> ".join(self.chain))


class ReconcileError(ActionEngineError):
    pass


class MalformedDiffError(ReconcileError):
    pass


class ContextMismatchError(ReconcileError):
    def __init__(self, hunk_header: str, line_no: int, expected: str, actual: Optional[str]):
        self.hunk_header = hunk_header
        self.line_no = line_no
        self.expected = expected
        self.actual = actual
        found = "end of file" if actual is None else repr(actual)
        super().__init__(
            f"context mismatch in hunk {hunk_header} at baseline line {line_no}: "
            f"expected {expected!r}, found {found}"
        )


class ExecError(ActionEngineError):
    def __init__(self, message: str, command: str = "", exit_code: Optional[int] = None):
        self.command = command
        self.exit_code = exit_code
        super().__init__(message)


class ShellPolicyError(ExecError):
    pass


class IllegalTransitionError(ActionEngineError):
    def __init__(self, action_id: str, from_status, to_status):
        self.action_id = action_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"illegal transition for action {action_id!r}: "
            f"{getattr(from_status, 'value', from_status)} -> {getattr(to_status, 'value', to_status)}"
        )


class WorkspaceError(ActionEngineError):
    def __init__(self, message: str, path: str = ""):
        self.path = path
        super().__init__(message)


class ArtifactNotFoundError(ActionEngineError, KeyError):
    def __init__(self, message_id: Optional[str], artifact_id: str):
        self.message_id = message_id
        self.artifact_id = artifact_id
        super().__init__(f"artifact {artifact_id!r} not found for message {message_id!r}")

    def __str__(self) -> str:
        return self.args[0]
