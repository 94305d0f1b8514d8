from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime

from .action_v1 import ActionStatus
from ..utils.timeutil import utc_now


class TransitionEvent(BaseModel):
    """Emitted for every committed status change."""

    action_id: str
    artifact_id: Optional[str] = None
    from_status: ActionStatus
    to_status: ActionStatus
    timestamp: datetime = Field(default_factory=utc_now)


class ActionResult(BaseModel):
    action_id: str
    status: ActionStatus
    attempts: int = 0
    error: Optional[str] = None      # first error encountered
    exit_code: Optional[int] = None
    stdout: str = ""
    stderr: str = ""
    written_path: Optional[str] = None


class RunReport(BaseModel):
    artifact_id: str
    message_id: str
    results: Dict[str, ActionResult] = Field(default_factory=dict)
    cancelled: bool = False
    started_at: datetime = Field(default_factory=utc_now)
    finished_at: Optional[datetime] = None

    @property
    def statuses(self) -> Dict[str, ActionStatus]:
        return {aid: r.status for aid, r in self.results.items()}

    @property
    def errors(self) -> Dict[str, str]:
        return {aid: r.error for aid, r in self.results.items() if r.error}

    @property
    def succeeded(self) -> bool:
        return bool(self.results) and all(r.status == ActionStatus.COMPLETE for r in self.results.values())

    def failed_ids(self) -> List[str]:
        return [aid for aid, r in self.results.items() if r.status == ActionStatus.FAILED]
