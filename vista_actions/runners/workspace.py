"""
File-system collaborators.

Paths handed to a workspace are relative to its root. The workspace re-checks
that they stay inside the root before touching disk.
"""
import logging
import os
import threading
from pathlib import Path
from typing import Dict, Optional, Protocol

from ..errors import WorkspaceError

logger = logging.getLogger(__name__)


class Workspace(Protocol):
    def read(self, path: str) -> Optional[str]: ...

    def write(self, path: str, text: str) -> None: ...

    def remove(self, path: str) -> None: ...


class LocalWorkspace:
    """Workspace rooted at a directory on the local disk."""

    def __init__(self, root: str = "."):
        self.root = Path(root).resolve()

    def _resolve(self, path: str) -> Path:
        if not path or os.path.isabs(path):
            raise WorkspaceError(f"path {path!r} must be relative to the workspace", path=path)
        target = (self.root / path).resolve()
        if target != self.root and self.root not in target.parents:
            raise WorkspaceError(f"path {path!r} escapes the workspace {self.root}", path=path)
        if target == self.root:
            raise WorkspaceError(f"path {path!r} names the workspace root", path=path)
        return target

    def read(self, path: str) -> Optional[str]:
        target = self._resolve(path)
        if not target.exists():
            return None
        if target.is_dir():
            raise WorkspaceError(f"path {path!r} is a directory", path=path)
        try:
            with open(target, "r", encoding="utf-8", newline="") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as exc:
            raise WorkspaceError(f"cannot read {path!r}: {exc}", path=path) from exc

    def write(self, path: str, text: str) -> None:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "w", encoding="utf-8", newline="") as f:
                f.write(text)
        except OSError as exc:
            raise WorkspaceError(f"cannot write {path!r}: {exc}", path=path) from exc
        logger.debug("wrote %s (%d chars)", path, len(text))

    def remove(self, path: str) -> None:
        target = self._resolve(path)
        try:
            target.unlink(missing_ok=True)
        except OSError as exc:
            raise WorkspaceError(f"cannot remove {path!r}: {exc}", path=path) from exc


class MemoryWorkspace:
    """Dict-backed workspace; ``fail_writes`` maps paths to the error their write raises."""

    def __init__(self, files: Optional[Dict[str, str]] = None):
        self._lock = threading.Lock()
        self.files: Dict[str, str] = dict(files or {})
        self.fail_writes: Dict[str, str] = {}
        self.writes = 0

    def read(self, path: str) -> Optional[str]:
        with self._lock:
            return self.files.get(path)

    def write(self, path: str, text: str) -> None:
        with self._lock:
            if path in self.fail_writes:
                raise WorkspaceError(self.fail_writes[path], path=path)
            self.files[path] = text
            self.writes += 1

    def remove(self, path: str) -> None:
        with self._lock:
            self.files.pop(path, None)
