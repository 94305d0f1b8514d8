import json
import sqlite3
import time
from typing import Any, Dict, List, Optional

from ..contracts.action_v1 import ActionDescriptor, ActionStatus
from ..contracts.artifact_v1 import Artifact
from ..contracts.events import RunReport, TransitionEvent
from ..utils.timeutil import to_iso_format


class ArtifactStore:
    """sqlite persistence of artifacts, action states and transition history."""

    def __init__(self, db_path: str = "vista_actions.db"):
        self.db_path = db_path
        self._init_db()

    def _init_db(self):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS artifacts (
                    artifact_id TEXT PRIMARY KEY,
                    message_id TEXT,
                    title TEXT,
                    revision INTEGER,
                    updated_at REAL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS actions (
                    artifact_id TEXT,
                    action_id TEXT,
                    position INTEGER,
                    type TEXT,
                    file_path TEXT,
                    representation TEXT,
                    content TEXT,
                    dependencies_json TEXT,
                    status TEXT,
                    error TEXT,
                    PRIMARY KEY (artifact_id, action_id)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS transitions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    artifact_id TEXT,
                    action_id TEXT,
                    from_status TEXT,
                    to_status TEXT,
                    ts TEXT
                )
            """)
            conn.execute("CREATE TABLE IF NOT EXISTS artifact_messages (artifact_id TEXT, message_id TEXT, PRIMARY KEY (artifact_id, message_id))")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_transitions_artifact ON transitions(artifact_id)")

    def save_artifact(self, artifact: Artifact, report: Optional[RunReport] = None):
        errors = report.errors if report is not None else {}
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                "INSERT OR REPLACE INTO artifacts VALUES (?, ?, ?, ?, ?)",
                (artifact.id, artifact.message_id, artifact.title, artifact.revision, time.time()),
            )
            conn.execute(
                "INSERT OR IGNORE INTO artifact_messages VALUES (?, ?)",
                (artifact.id, artifact.message_id),
            )
            conn.execute("DELETE FROM actions WHERE artifact_id = ?", (artifact.id,))
            conn.executemany(
                "INSERT INTO actions VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    (
                        artifact.id,
                        a.id,
                        position,
                        a.type.value,
                        a.file_path,
                        a.representation.value,
                        a.content,
                        json.dumps(a.dependencies),
                        a.status.value,
                        errors.get(a.id),
                    )
                    for position, a in enumerate(artifact.ordered_actions())
                ],
            )

    def load_artifact(self, message_id: Optional[str], artifact_id: str) -> Optional[Artifact]:
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT artifact_id, message_id, title, revision FROM artifacts WHERE artifact_id = ?",
                (artifact_id,),
            ).fetchone()
            if not row:
                return None
            if message_id is not None:
                seen = conn.execute(
                    "SELECT 1 FROM artifact_messages WHERE artifact_id = ? AND message_id = ?",
                    (artifact_id, message_id),
                ).fetchone()
                if not seen:
                    return None
            rows = conn.execute(
                "SELECT action_id, type, file_path, representation, content, dependencies_json, status "
                "FROM actions WHERE artifact_id = ? ORDER BY position",
                (artifact_id,),
            ).fetchall()

        actions = {}
        for action_id, type_, file_path, representation, content, deps_json, status in rows:
            actions[action_id] = ActionDescriptor(
                id=action_id,
                type=type_,
                file_path=file_path,
                representation=representation,
                content=content,
                dependencies=json.loads(deps_json),
                status=ActionStatus(status),
            )
        return Artifact(id=row[0], message_id=row[1], title=row[2] or "", revision=row[3] or 0, actions=actions)

    def list_artifacts(self, message_id: Optional[str] = None) -> List[Dict[str, Any]]:
        with sqlite3.connect(self.db_path) as conn:
            if message_id is None:
                rows = conn.execute(
                    "SELECT artifact_id, message_id, title, revision, updated_at FROM artifacts ORDER BY updated_at"
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT a.artifact_id, a.message_id, a.title, a.revision, a.updated_at FROM artifacts a "
                    "JOIN artifact_messages m ON m.artifact_id = a.artifact_id "
                    "WHERE m.message_id = ? ORDER BY a.updated_at",
                    (message_id,),
                ).fetchall()
        return [{
            "artifact_id": row[0],
            "message_id": row[1],
            "title": row[2],
            "revision": row[3],
            "updated_at": row[4],
        } for row in rows]

    def action_errors(self, artifact_id: str) -> Dict[str, str]:
        with sqlite3.connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT action_id, error FROM actions WHERE artifact_id = ? AND error IS NOT NULL",
                (artifact_id,),
            ).fetchall()
        return {r[0]: r[1] for r in rows}

    def put_transition(self, event: TransitionEvent):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                "INSERT INTO transitions (artifact_id, action_id, from_status, to_status, ts) VALUES (?, ?, ?, ?, ?)",
                (
                    event.artifact_id,
                    event.action_id,
                    event.from_status.value,
                    event.to_status.value,
                    to_iso_format(event.timestamp),
                ),
            )

    # usable directly as a state machine listener
    __call__ = put_transition

    def list_transitions(self, artifact_id: str) -> List[Dict[str, Any]]:
        with sqlite3.connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT action_id, from_status, to_status, ts FROM transitions WHERE artifact_id = ? ORDER BY id",
                (artifact_id,),
            ).fetchall()
        return [{"action_id": r[0], "from": r[1], "to": r[2], "ts": r[3]} for r in rows]
