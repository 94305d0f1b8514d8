from .jsonl import JsonlEventSink, append_jsonl, read_jsonl
from .timeutil import from_iso_format, to_iso_format, utc_now

__all__ = ["JsonlEventSink", "append_jsonl", "read_jsonl", "from_iso_format", "to_iso_format", "utc_now"]
