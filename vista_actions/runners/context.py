from dataclasses import dataclass
from typing import Dict, Optional


@dataclass
class ExecutionContext:
    """Where and how collaborators run: the declared working directory and extra env."""
    work_dir: str = "."
    env: Dict[str, str] = None
    timeout: Optional[float] = None

    def __post_init__(self):
        if self.env is None:
            self.env = {}
