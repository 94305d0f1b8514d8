from .diff import (
    DiffHunk,
    Modification,
    apply,
    apply_hunks,
    choose_representation,
    diff_between,
    parse_diff,
    reconcile,
    split_lines,
)
from .modifications import MODIFICATIONS_TAG_NAME, parse_modifications, render_modifications

__all__ = [
    "DiffHunk",
    "MODIFICATIONS_TAG_NAME",
    "Modification",
    "apply",
    "apply_hunks",
    "choose_representation",
    "diff_between",
    "parse_diff",
    "parse_modifications",
    "reconcile",
    "render_modifications",
    "split_lines",
]
