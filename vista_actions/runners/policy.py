"""
Safety policy for shell actions.
"""
import re
from typing import List

from ..errors import ShellPolicyError

# Patterns that will cause immediate rejection
DENY_PATTERNS = [
    "sudo ", "mkfs", ":(){ :|:& };:", "> /dev/sd", "of=/dev/sd", "chmod -r 777 /",
]

# recursive removal of / or ~, whatever the flag spelling
_RM_ROOT_RE = re.compile(r"\brm\s+(?:-{1,2}[\w-]+\s+)*(?:/|~/?)\*?(?:\s|;|&|$)")
_RM_RECURSIVE_RE = re.compile(r"\brm\s+(?:-{1,2}[\w-]+\s+)*-(?:[a-z]*r[a-z]*|-recursive)\b")


def check_policy_violation(command: str) -> List[str]:
    """
    Check a shell command against the deny-list.

    Returns:
        List of violation messages, empty if safe
    """
    violations = []
    command_lower = command.lower()

    for pattern in DENY_PATTERNS:
        if pattern in command_lower:
            violations.append(f"Denied pattern: {pattern}")

    for m in _RM_ROOT_RE.finditer(command_lower):
        if _RM_RECURSIVE_RE.match(m.group(0)):
            violations.append("Denied pattern: recursive removal of / or ~")
            break

    return violations


def enforce(command: str) -> None:
    violations = check_policy_violation(command)
    if violations:
        raise ShellPolicyError("; ".join(violations), command=command)
