"""
Incremental parser for the generator's tag stream.

    <boltArtifact id="todo-app" title="Todo app">
      <boltAction type="file" filePath="package.json">{ ... }</boltAction>
      <boltAction type="shell">npm install</boltAction>
    </boltArtifact>

Chunks may split tags anywhere. Each ``feed`` returns the events completed by
that chunk so actions can be decoded while the generator is still emitting.
"""
import html
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from ..errors import DecodeError

logger = logging.getLogger(__name__)

ARTIFACT_TAG = "boltArtifact"
ACTION_TAG = "boltAction"

_ATTR_RE = re.compile(r'([A-Za-z_][\w-]*)\s*=\s*"([^"]*)"')


@dataclass
class ArtifactOpened:
    message_id: str
    artifact_id: str
    title: str = ""


@dataclass
class ActionRecord:
    artifact_id: str
    record: Dict[str, object] = field(default_factory=dict)


@dataclass
class ArtifactClosed:
    artifact_id: str


StreamEvent = Union[ArtifactOpened, ActionRecord, ArtifactClosed]


def parse_attributes(tag_text: str) -> Dict[str, str]:
    return {k: html.unescape(v) for k, v in _ATTR_RE.findall(tag_text)}


class StreamParser:
    def __init__(self, message_id: str, artifact_tag: str = ARTIFACT_TAG, action_tag: str = ACTION_TAG):
        self.message_id = message_id
        self._artifact_open = f"<{artifact_tag}"
        self._artifact_close = f"</{artifact_tag}>"
        self._action_open = f"<{action_tag}"
        self._action_close = f"</{action_tag}>"
        self._buffer = ""
        self._artifact_id: Optional[str] = None
        self._action_attrs: Optional[Dict[str, str]] = None
        self._action_index = 0
        self._artifact_count = 0

    @property
    def in_artifact(self) -> bool:
        return self._artifact_id is not None

    def feed(self, chunk: str) -> List[StreamEvent]:
        self._buffer += chunk
        events: List[StreamEvent] = []
        while self._step(events):
            pass
        return events

    def close(self) -> List[StreamEvent]:
        events = self.feed("")
        if self._artifact_id is not None:
            raise DecodeError(f"stream ended inside artifact {self._artifact_id!r}")
        self._buffer = ""
        return events

    def _keep_tail(self, *tokens: str) -> None:
        # keep just enough to recognise a tag split across chunks
        keep = max(len(t) for t in tokens) - 1
        self._buffer = self._buffer[-keep:] if keep else ""

    def _open_tag(self, start: int) -> Optional[Dict[str, str]]:
        end = self._buffer.find(">", start)
        if end == -1:
            self._buffer = self._buffer[start:]
            return None
        attrs = parse_attributes(self._buffer[start:end])
        self._buffer = self._buffer[end + 1:]
        return attrs

    def _step(self, events: List[StreamEvent]) -> bool:
        buf = self._buffer

        if self._artifact_id is None:
            start = buf.find(self._artifact_open)
            if start == -1:
                self._keep_tail(self._artifact_open)
                return False
            attrs = self._open_tag(start)
            if attrs is None:
                return False
            self._artifact_count += 1
            self._artifact_id = attrs.get("id") or f"artifact-{self._artifact_count}"
            self._action_index = 0
            logger.debug("stream: artifact %s opened", self._artifact_id)
            events.append(ArtifactOpened(self.message_id, self._artifact_id, attrs.get("title", "")))
            return True

        if self._action_attrs is None:
            action_at = buf.find(self._action_open)
            close_at = buf.find(self._artifact_close)
            if close_at != -1 and (action_at == -1 or close_at < action_at):
                events.append(ArtifactClosed(self._artifact_id))
                logger.debug("stream: artifact %s closed", self._artifact_id)
                self._artifact_id = None
                self._buffer = buf[close_at + len(self._artifact_close):]
                return True
            if action_at == -1:
                self._keep_tail(self._action_open, self._artifact_close)
                return False
            attrs = self._open_tag(action_at)
            if attrs is None:
                return False
            self._action_attrs = attrs
            return True

        close_at = buf.find(self._action_close)
        if close_at == -1:
            return False
        content = buf[:close_at]
        self._buffer = buf[close_at + len(self._action_close):]
        events.append(ActionRecord(self._artifact_id, self._record(self._action_attrs, content)))
        self._action_attrs = None
        self._action_index += 1
        return True

    def _record(self, attrs: Dict[str, str], content: str) -> Dict[str, object]:
        record: Dict[str, object] = {"id": attrs.get("id") or str(self._action_index)}
        record["type"] = attrs.get("type")
        if attrs.get("type") == "file":
            # the body starts on the line after the opening tag and keeps its
            # final newline; only the closing tag's indentation is dropped
            if content.startswith("\n"):
                content = content[1:]
            tail = content.rstrip(" \t")
            if tail.endswith("\n"):
                content = tail
            record["filePath"] = attrs.get("filePath")
            record["representation"] = attrs.get("representation", "file")
        else:
            content = content.strip()
        record["content"] = content
        if "dependencies" in attrs:
            record["dependencies"] = attrs["dependencies"]
        return record


def parse_stream(message_id: str, text: str) -> List[StreamEvent]:
    """Parse a complete stream in one go."""
    parser = StreamParser(message_id)
    return parser.feed(text) + parser.close()
