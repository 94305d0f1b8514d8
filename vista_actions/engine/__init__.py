from .cancel import CancellationToken
from .executor import ExecutionEngine, WriteRecord
from .locks import PathLockTable
from .retry import NO_RETRY, RetryPolicy

__all__ = ["CancellationToken", "ExecutionEngine", "NO_RETRY", "PathLockTable", "RetryPolicy", "WriteRecord"]
