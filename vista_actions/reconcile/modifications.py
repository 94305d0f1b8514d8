"""
The ``<modifications>`` block that tells the generator about user edits.

Each modified file becomes a ``<diff path="...">`` element (unified-diff
payload, headers omitted) or a ``<file path="...">`` element (full content),
whichever ``choose_representation`` finds smaller.
"""
import html
import re
from typing import Dict, List, Tuple

from ..contracts.action_v1 import Representation
from ..errors import MalformedDiffError
from .diff import Modification, choose_representation

MODIFICATIONS_TAG_NAME = "modifications"

_BLOCK_RE = re.compile(
    rf"<{MODIFICATIONS_TAG_NAME}>(.*?)</{MODIFICATIONS_TAG_NAME}>", re.DOTALL
)
_ELEMENT_RE = re.compile(r'<(diff|file) path="([^"]*)">\n?(.*?)\n?</\1>', re.DOTALL)


def render_modifications(changes: Dict[str, Tuple[str, str]]) -> str:
    """Render ``{path: (baseline, new_content)}``; unchanged files are skipped."""
    parts: List[str] = []
    for path, (baseline, new_content) in changes.items():
        if baseline == new_content:
            continue
        mod = choose_representation(baseline, new_content)
        tag = mod.representation.value
        parts.append(f'<{tag} path="{html.escape(path, quote=True)}">\n{mod.payload}\n</{tag}>')
    if not parts:
        return ""
    return f"<{MODIFICATIONS_TAG_NAME}>\n" + "\n".join(parts) + f"\n</{MODIFICATIONS_TAG_NAME}>"


def parse_modifications(text: str) -> List[Modification]:
    block = _BLOCK_RE.search(text)
    if block is None:
        return []
    mods = []
    for kind, path, body in _ELEMENT_RE.findall(block.group(1)):
        if not path:
            raise MalformedDiffError(f"<{kind}> element without a path")
        mods.append(Modification(Representation(kind), body, path=html.unescape(path)))
    return mods
