"""
Artifact registry: the single owner of Artifacts and their action sets.

Upserts for one artifact id are serialised; re-sending an id merges actions by
id and keeps actions the new payload leaves out. Nothing is ever evicted here.
"""
import logging
import threading
from typing import Dict, List, Optional

from ..contracts.action_v1 import ActionDescriptor
from ..contracts.artifact_v1 import Artifact
from ..errors import ArtifactNotFoundError

logger = logging.getLogger(__name__)

# producer-owned fields; status belongs to the state machine
_REPLACED_FIELDS = ("type", "content", "file_path", "representation", "dependencies")


class ArtifactRegistry:
    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}
        self._artifacts: Dict[str, Artifact] = {}
        self._messages: Dict[str, List[str]] = {}
        self._seen_by: Dict[str, List[str]] = {}

    def lock_for(self, artifact_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(artifact_id)
            if lock is None:
                lock = self._locks[artifact_id] = threading.RLock()
            return lock

    def upsert(self, artifact: Artifact) -> Artifact:
        """Create or merge ``artifact``; returns the registry-owned instance."""
        with self.lock_for(artifact.id):
            existing = self._artifacts.get(artifact.id)
            if existing is None:
                stored = artifact.model_copy(deep=True)
                self._artifacts[artifact.id] = stored
                logger.info("registry: created artifact %s (%d actions)", artifact.id, len(stored.actions))
            else:
                stored = existing
                self._merge(stored, artifact)
            self._index(artifact.message_id, artifact.id)
            return stored

    def _merge(self, stored: Artifact, incoming: Artifact) -> None:
        replaced = added = 0
        if incoming.title:
            stored.title = incoming.title
        stored.message_id = incoming.message_id
        for action_id, action in incoming.actions.items():
            current = stored.actions.get(action_id)
            if current is None:
                stored.actions[action_id] = action.model_copy(deep=True)
                added += 1
            else:
                self._replace_fields(current, action)
                replaced += 1
        stored.revision += 1
        logger.info(
            "registry: merged artifact %s rev %d (%d replaced, %d added, %d kept)",
            stored.id, stored.revision, replaced, added, len(stored.actions) - replaced - added,
        )

    @staticmethod
    def _replace_fields(current: ActionDescriptor, incoming: ActionDescriptor) -> None:
        # in place, so engines holding the descriptor see the new payload
        for name in _REPLACED_FIELDS:
            value = getattr(incoming, name)
            if isinstance(value, list):
                value = list(value)
            setattr(current, name, value)

    def _index(self, message_id: str, artifact_id: str) -> None:
        with self._guard:
            ids = self._messages.setdefault(message_id, [])
            if artifact_id not in ids:
                ids.append(artifact_id)
            seen = self._seen_by.setdefault(artifact_id, [])
            if message_id not in seen:
                seen.append(message_id)

    def get(self, message_id: Optional[str], artifact_id: str) -> Artifact:
        """Look up by message and artifact id; ``message_id=None`` matches any message."""
        with self._guard:
            artifact = self._artifacts.get(artifact_id)
            seen = self._seen_by.get(artifact_id, [])
        if artifact is None or (message_id is not None and message_id not in seen):
            raise ArtifactNotFoundError(message_id, artifact_id)
        return artifact

    def find(self, message_id: Optional[str], artifact_id: str) -> Optional[Artifact]:
        try:
            return self.get(message_id, artifact_id)
        except ArtifactNotFoundError:
            return None

    def list_actions(self, artifact_id: str) -> List[ActionDescriptor]:
        artifact = self.get(None, artifact_id)
        with self.lock_for(artifact_id):
            return artifact.ordered_actions()

    def artifacts_for_message(self, message_id: str) -> List[Artifact]:
        with self._guard:
            ids = list(self._messages.get(message_id, []))
            return [self._artifacts[i] for i in ids if i in self._artifacts]

    def message_ids(self) -> List[str]:
        with self._guard:
            return list(self._messages)

    def __contains__(self, artifact_id: str) -> bool:
        with self._guard:
            return artifact_id in self._artifacts

    def __len__(self) -> int:
        with self._guard:
            return len(self._artifacts)
