from .decoder import DEFAULT_WORK_DIR, ActionDecoder, decode, decode_artifact, normalize_file_path
from .stream import (
    ACTION_TAG,
    ARTIFACT_TAG,
    ActionRecord,
    ArtifactClosed,
    ArtifactOpened,
    StreamParser,
    parse_stream,
)

__all__ = [
    "ACTION_TAG",
    "ARTIFACT_TAG",
    "ActionDecoder",
    "ActionRecord",
    "ArtifactClosed",
    "ArtifactOpened",
    "DEFAULT_WORK_DIR",
    "StreamParser",
    "decode",
    "decode_artifact",
    "normalize_file_path",
    "parse_stream",
]
