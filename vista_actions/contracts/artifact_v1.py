from pydantic import BaseModel, Field
from typing import Dict, List
from .action_v1 import ActionDescriptor, ActionStatus


class Artifact(BaseModel):
    """A named bundle of actions produced for one upstream message."""

    id: str = Field(..., min_length=1, description="Reused across revisions of the same artifact")
    message_id: str = Field(..., description="Lookup key of the originating message")
    title: str = ""
    # insertion order is significant for implicit dependencies
    actions: Dict[str, ActionDescriptor] = Field(default_factory=dict)
    revision: int = 0

    def ordered_actions(self) -> List[ActionDescriptor]:
        return list(self.actions.values())

    def statuses(self) -> Dict[str, ActionStatus]:
        return {aid: a.status for aid, a in self.actions.items()}

    def file_actions(self) -> List[ActionDescriptor]:
        return [a for a in self.actions.values() if a.is_file]
