from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from enum import Enum


class ActionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"
    ABORTED = "aborted"


TERMINAL_STATUSES = frozenset({ActionStatus.COMPLETE, ActionStatus.FAILED, ActionStatus.ABORTED})


class ActionType(str, Enum):
    FILE = "file"
    SHELL = "shell"


class Representation(str, Enum):
    FILE = "file"   # full replacement body
    DIFF = "diff"   # unified-diff payload, file headers omitted


class ActionDescriptor(BaseModel):
    """One unit of work inside an artifact."""

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True, extra="ignore")

    id: str = Field(..., min_length=1, description="Unique within the artifact, stable across re-runs")
    type: ActionType
    content: str = Field(default="", description="Shell command text or file body / diff payload")
    file_path: Optional[str] = Field(default=None, alias="filePath")
    representation: Representation = Field(default=Representation.FILE)
    # None => implicit dependency on the preceding action in stream order
    dependencies: Optional[List[str]] = Field(default=None)
    status: ActionStatus = Field(default=ActionStatus.PENDING)

    @property
    def is_file(self) -> bool:
        return self.type == ActionType.FILE

    @property
    def is_shell(self) -> bool:
        return self.type == ActionType.SHELL

    @property
    def declares_dependencies(self) -> bool:
        return self.dependencies is not None

    def to_record(self) -> dict:
        """Wire form, as accepted back by the decoder."""
        record = {"id": self.id, "type": self.type.value, "content": self.content}
        if self.file_path is not None:
            record["filePath"] = self.file_path
            record["representation"] = self.representation.value
        if self.dependencies is not None:
            record["dependencies"] = list(self.dependencies)
        return record
