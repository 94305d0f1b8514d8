"""
Optional bounded retry with exponential backoff.

Not core behaviour: the default policy makes a single attempt. Callers that want
retries layer a policy onto the engine.
"""
import random
from dataclasses import dataclass, field
from typing import Tuple, Type

from ..errors import ExecError, ShellPolicyError


@dataclass
class RetryPolicy:
    max_attempts: int = 1
    base_delay: float = 0.5
    factor: float = 2.0
    max_delay: float = 30.0
    jitter: bool = True
    retry_on: Tuple[Type[BaseException], ...] = field(default=(ExecError,))
    # policy rejections are final
    never_retry: Tuple[Type[BaseException], ...] = field(default=(ShellPolicyError,))

    def should_retry(self, attempt: int, error: BaseException) -> bool:
        """``attempt`` is the 1-based number of the attempt that just failed."""
        if isinstance(error, self.never_retry):
            return False
        return attempt < self.max_attempts and isinstance(error, self.retry_on)

    def delay(self, attempt: int) -> float:
        base = min(self.max_delay, self.base_delay * (self.factor ** (attempt - 1)))
        if self.jitter:
            # exponential backoff with jitter, 0.5x..1.5x
            return base * (0.5 + random.random())
        return base


NO_RETRY = RetryPolicy()
