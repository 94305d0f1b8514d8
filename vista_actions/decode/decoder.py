"""
Action decoder: raw action records -> validated ``ActionDescriptor`` values.

Records look like ``{id, type, filePath?, content, representation?,
dependencies?}``. Decoding is lazy; forward references in ``dependencies`` are
allowed and checked once the input is exhausted.
"""
import logging
import posixpath
from collections.abc import Mapping
from typing import Any, Dict, Iterable, Iterator, List, Optional

from pydantic import ValidationError

from ..contracts.action_v1 import ActionDescriptor, ActionType, Representation
from ..contracts.artifact_v1 import Artifact
from ..errors import DecodeError, MalformedDiffError
from ..reconcile.diff import parse_diff

logger = logging.getLogger(__name__)

DEFAULT_WORK_DIR = "/home/project"


def normalize_file_path(path: Any, work_dir: Optional[str] = DEFAULT_WORK_DIR) -> str:
    """Return ``path`` relative to the working directory or raise ValueError.

    Purely lexical: nothing is resolved against the real file system.
    Absolute paths are accepted only when they lie under ``work_dir``.
    """
    if not isinstance(path, str) or not path.strip():
        raise ValueError("filePath must be a non-empty string")
    path = path.strip()
    if "\x00" in path:
        raise ValueError("filePath contains a NUL byte")
    if path.startswith("/"):
        root = posixpath.normpath(work_dir) if work_dir else None
        if not root or root == "/" or not (path == root or path.startswith(root + "/")):
            raise ValueError(f"absolute filePath {path!r} is outside the working directory")
        path = path[len(root):].lstrip("/")
    norm = posixpath.normpath(path)
    if norm in (".", "") or norm == ".." or norm.startswith("../"):
        raise ValueError(f"filePath {path!r} escapes the working directory")
    return norm


def _dependencies(value: Any) -> Optional[List[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        value = [v for v in (part.strip() for part in value.split(",")) if v]
    if not isinstance(value, (list, tuple)):
        raise ValueError("dependencies must be a list of action ids")
    deps: List[str] = []
    for dep in value:
        if not isinstance(dep, (str, int)) or isinstance(dep, bool) or str(dep) == "":
            raise ValueError(f"invalid dependency id {dep!r}")
        if str(dep) not in deps:
            deps.append(str(dep))
    return deps


class ActionDecoder:
    """Validates records one at a time; ``warnings`` collects non-fatal findings."""

    def __init__(self, work_dir: Optional[str] = DEFAULT_WORK_DIR):
        self.work_dir = work_dir
        self.warnings: List[str] = []

    def decode(self, records: Iterable[Mapping]) -> Iterator[ActionDescriptor]:
        """Yield descriptors as records arrive.

        Raises DecodeError at the first invalid record, or after the last one if
        a dependency names an id that never appeared.
        """
        self.warnings = []
        seen: Dict[str, ActionDescriptor] = {}
        paths: Dict[str, str] = {}
        for index, record in enumerate(records):
            action = self._decode_one(index, record, seen)
            if action.is_file:
                previous = paths.get(action.file_path)
                if previous is not None:
                    msg = (
                        f"filePath {action.file_path!r} declared by {previous!r} and {action.id!r}; "
                        "the later write wins"
                    )
                    logger.warning("decode: %s", msg)
                    self.warnings.append(msg)
                paths[action.file_path] = action.id
            seen[action.id] = action
            yield action

        for action in seen.values():
            for dep in action.dependencies or []:
                if dep not in seen:
                    raise DecodeError(f"dependency {dep!r} does not exist in this artifact", action_id=action.id)

    def _decode_one(self, index: int, record: Any, seen: Dict[str, ActionDescriptor]) -> ActionDescriptor:
        if not isinstance(record, Mapping):
            raise DecodeError(f"expected an object, got {type(record).__name__}", index=index)

        raw_id = record.get("id")
        action_id = str(index) if raw_id is None or raw_id == "" else str(raw_id)
        if action_id in seen:
            raise DecodeError("duplicate action id", index=index, action_id=action_id)

        try:
            action_type = ActionType(record.get("type"))
        except ValueError:
            raise DecodeError(f"unknown action type {record.get('type')!r}", index=index, action_id=action_id)

        content = record.get("content", "")
        if content is None:
            content = ""
        if not isinstance(content, str):
            raise DecodeError("content must be a string", index=index, action_id=action_id)

        try:
            dependencies = _dependencies(record.get("dependencies"))
        except ValueError as exc:
            raise DecodeError(str(exc), index=index, action_id=action_id) from exc

        fields: Dict[str, Any] = {
            "id": action_id,
            "type": action_type,
            "content": content,
            "dependencies": dependencies,
        }

        if action_type == ActionType.SHELL:
            if not content.strip():
                raise DecodeError("shell action has an empty command", index=index, action_id=action_id)
        else:
            try:
                fields["file_path"] = normalize_file_path(record.get("filePath"), self.work_dir)
            except ValueError as exc:
                raise DecodeError(str(exc), index=index, action_id=action_id) from exc
            try:
                representation = Representation(record.get("representation") or Representation.FILE.value)
            except ValueError:
                raise DecodeError(
                    f"unknown representation {record.get('representation')!r}", index=index, action_id=action_id
                )
            if representation == Representation.DIFF:
                try:
                    parse_diff(content)
                except MalformedDiffError as exc:
                    raise DecodeError(f"invalid diff payload: {exc}", index=index, action_id=action_id) from exc
            fields["representation"] = representation

        try:
            return ActionDescriptor(**fields)
        except ValidationError as exc:
            raise DecodeError(str(exc), index=index, action_id=action_id) from exc


def decode(records: Iterable[Mapping], work_dir: Optional[str] = DEFAULT_WORK_DIR) -> Iterator[ActionDescriptor]:
    return ActionDecoder(work_dir).decode(records)


def decode_artifact(
    message_id: str,
    artifact_id: str,
    records: Iterable[Mapping],
    title: str = "",
    work_dir: Optional[str] = DEFAULT_WORK_DIR,
) -> Artifact:
    """Decode every record up front; nothing is returned unless all are valid."""
    actions = list(decode(records, work_dir))
    return Artifact(
        id=artifact_id,
        message_id=message_id,
        title=title,
        actions={a.id: a for a in actions},
    )
