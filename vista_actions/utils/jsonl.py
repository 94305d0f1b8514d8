import json, os, time
from typing import Dict, Any

from .timeutil import utc_now, to_iso_format


def append_jsonl(filepath: str, data: Dict[str, Any]):
    """
    Append JSON object to JSONL file with timestamp.

    Args:
        filepath: Path to JSONL file
        data: Dictionary to log
    """
    directory = os.path.dirname(filepath)
    if directory:
        os.makedirs(directory, exist_ok=True)

    log_entry = {
        **data,
        "_timestamp": time.time(),
        "_iso_time": to_iso_format(utc_now()),
    }

    with open(filepath, "a", encoding="utf-8") as f:
        f.write(json.dumps(log_entry, separators=(",", ":"), default=str) + "\n")


def read_jsonl(filepath: str) -> list[Dict[str, Any]]:
    """
    Read JSONL file and return list of objects.

    Blank and undecodable lines are skipped.
    """
    if not os.path.exists(filepath):
        return []

    entries = []
    with open(filepath, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line:
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError:
                    continue
    return entries


class JsonlEventSink:
    """Transition listener that appends each event to a JSONL file."""

    def __init__(self, filepath: str):
        self.filepath = filepath

    def __call__(self, event) -> None:
        append_jsonl(self.filepath, event.model_dump(mode="json"))
