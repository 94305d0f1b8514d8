from .context import ExecutionContext
from .policy import DENY_PATTERNS, check_policy_violation
from .shell import ShellResult, ShellRunner, SubprocessShell
from .workspace import LocalWorkspace, MemoryWorkspace, Workspace

__all__ = [
    "DENY_PATTERNS",
    "ExecutionContext",
    "LocalWorkspace",
    "MemoryWorkspace",
    "ShellResult",
    "ShellRunner",
    "SubprocessShell",
    "Workspace",
    "check_policy_violation",
]
