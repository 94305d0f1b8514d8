"""Unified-diff reconciliation for file actions.

Payloads follow GNU unified diff with the ``---``/``+++`` file headers
omitted: a sequence of ``@@ -origStart,origLen +newStart,newLen @@`` hunks,
each followed by context (`` ``), removed (``-``) and added (``+``) lines.
``\\ No newline at end of file`` marks the preceding line as unterminated.

Lines are compared with their line terminator, so CRLF files and files without
a trailing newline reconcile exactly.
"""
import difflib
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..contracts.action_v1 import Representation
from ..errors import ContextMismatchError, MalformedDiffError

logger = logging.getLogger(__name__)

HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
NO_NEWLINE_MARKER = "\\ No newline at end of file"
CONTEXT_LINES = 3


@dataclass
class DiffHunk:
    """A single hunk; each line is ``(prefix, text)`` with its terminator kept in text."""

    orig_start: int
    orig_len: int
    new_start: int
    new_len: int
    lines: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def header(self) -> str:
        return f"@@ -{self.orig_start},{self.orig_len} +{self.new_start},{self.new_len} @@"

    @property
    def orig_index(self) -> int:
        # zero-length ranges name the line *before* the insertion point
        return self.orig_start - 1 if self.orig_len else self.orig_start

    @property
    def orig_end(self) -> int:
        return self.orig_index + self.orig_len

    @property
    def is_noop(self) -> bool:
        return all(prefix == " " for prefix, _ in self.lines)


def split_lines(text: str) -> List[str]:
    """Split on ``\\n`` only, keeping terminators; ``join`` restores the input."""
    parts = text.split("\n")
    lines = [p + "\n" for p in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def parse_diff(payload: str) -> List[DiffHunk]:
    """Parse a header-less unified diff payload into hunks sorted by ``orig_start``.

    Raises MalformedDiffError for garbage outside hunks, bad headers, line counts
    that disagree with the header, and overlapping hunks.
    """
    rows = payload.split("\n")
    if rows and rows[-1] == "":
        rows.pop()
    hunks: List[DiffHunk] = []
    i = 0
    n = len(rows)

    while i < n:
        row = rows[i]
        if not row.strip():
            i += 1
            continue
        m = HUNK_HEADER_RE.match(row)
        if not m:
            raise MalformedDiffError(f"unexpected line outside hunk at payload line {i + 1}: {row[:60]!r}")
        hunk = DiffHunk(
            orig_start=int(m.group(1)),
            orig_len=int(m.group(2)) if m.group(2) is not None else 1,
            new_start=int(m.group(3)),
            new_len=int(m.group(4)) if m.group(4) is not None else 1,
        )
        i += 1
        old_left, new_left = hunk.orig_len, hunk.new_len
        while old_left > 0 or new_left > 0:
            if i >= n:
                raise MalformedDiffError(f"hunk {hunk.header} is truncated")
            row = rows[i]
            if row.startswith("@@"):
                raise MalformedDiffError(f"hunk {hunk.header} is shorter than its header declares")
            if row == "":
                # editors strip the lone space of an empty context line
                prefix, text = " ", ""
            else:
                prefix, text = row[0], row[1:]
            if prefix == " ":
                old_left -= 1
                new_left -= 1
            elif prefix == "-":
                old_left -= 1
            elif prefix == "+":
                new_left -= 1
            elif prefix == "\\":
                raise MalformedDiffError(f"misplaced no-newline marker in hunk {hunk.header}")
            else:
                raise MalformedDiffError(f"invalid line prefix {prefix!r} in hunk {hunk.header}")
            if old_left < 0 or new_left < 0:
                raise MalformedDiffError(f"hunk {hunk.header} is longer than its header declares")
            i += 1
            if i < n and rows[i].startswith("\\"):
                i += 1
            else:
                text += "\n"
            hunk.lines.append((prefix, text))
        hunks.append(hunk)

    hunks.sort(key=lambda h: h.orig_start)
    for prev, cur in zip(hunks, hunks[1:]):
        if cur.orig_index < prev.orig_end:
            raise MalformedDiffError(f"overlapping hunks {prev.header} and {cur.header}")
    return hunks


def apply_hunks(baseline: str, hunks: List[DiffHunk]) -> str:
    base = split_lines(baseline)
    out: List[str] = []
    cursor = 0
    for hunk in sorted(hunks, key=lambda h: h.orig_start):
        start = hunk.orig_index
        if start < cursor:
            raise MalformedDiffError(f"overlapping hunk {hunk.header}")
        if start > len(base):
            raise ContextMismatchError(hunk.header, start + 1, "", None)
        out.extend(base[cursor:start])
        pos = start
        for prefix, text in hunk.lines:
            if prefix in " -":
                actual = base[pos] if pos < len(base) else None
                if actual != text:
                    raise ContextMismatchError(hunk.header, pos + 1, text, actual)
                if prefix == " ":
                    out.append(text)
                pos += 1
            else:
                out.append(text)
        cursor = pos
    out.extend(base[cursor:])
    return "".join(out)


def apply(baseline: str, payload: str) -> str:
    """Apply a unified-diff payload to ``baseline`` and return the new content."""
    return apply_hunks(baseline, parse_diff(payload))


def _format_range(start: int, stop: int) -> str:
    beginning = start + 1
    length = stop - start
    if not length:
        beginning -= 1
    return f"{beginning},{length}"


def _emit(prefix: str, text: str) -> List[str]:
    if text.endswith("\n"):
        return [prefix + text[:-1]]
    return [prefix + text, NO_NEWLINE_MARKER]


def diff_between(baseline: str, target: str, context: int = CONTEXT_LINES) -> str:
    """Header-less unified diff turning ``baseline`` into ``target``; empty when equal."""
    a = split_lines(baseline)
    b = split_lines(target)
    rows: List[str] = []
    matcher = difflib.SequenceMatcher(None, a, b, autojunk=False)
    for group in matcher.get_grouped_opcodes(context):
        i1, i2, j1, j2 = group[0][1], group[-1][2], group[0][3], group[-1][4]
        rows.append(f"@@ -{_format_range(i1, i2)} +{_format_range(j1, j2)} @@")
        for tag, a1, a2, b1, b2 in group:
            if tag == "equal":
                for line in a[a1:a2]:
                    rows.extend(_emit(" ", line))
                continue
            for line in a[a1:a2]:
                rows.extend(_emit("-", line))
            for line in b[b1:b2]:
                rows.extend(_emit("+", line))
    if not rows:
        return ""
    return "\n".join(rows) + "\n"


@dataclass
class Modification:
    """A file change in one of the two representations."""

    representation: Representation
    payload: str
    path: Optional[str] = None

    def apply(self, baseline: str) -> str:
        if self.representation == Representation.DIFF:
            return apply(baseline, self.payload)
        return self.payload


def choose_representation(baseline: str, new_content: str) -> Modification:
    """Pick the smaller encoding by UTF-8 size; a tie goes to the diff.

    Advisory only: the consuming side applies either representation.
    """
    payload = diff_between(baseline, new_content)
    diff_size = len(payload.encode("utf-8"))
    file_size = len(new_content.encode("utf-8"))
    logger.debug("choose_representation: diff=%d bytes, file=%d bytes", diff_size, file_size)
    if diff_size <= file_size:
        return Modification(Representation.DIFF, payload)
    return Modification(Representation.FILE, new_content)


def reconcile(baseline: Optional[str], content: str, representation: Representation) -> str:
    """Produce the content a file action should write over ``baseline``."""
    if representation == Representation.DIFF:
        return apply(baseline or "", content)
    return content
