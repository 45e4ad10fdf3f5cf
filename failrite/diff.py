from __future__ import annotations

import difflib
import itertools
import pprint
from typing import Any

# Lines of context around each change, and lines of header before the hunks
DIFF_CONTEXT = 4
PATCH_HEADER = 2

DIFF_KINDS = {"+": "added", "-": "removed", " ": "context"}


def same_type(a: Any, b: Any) -> bool:
    """Check whether two values share the same structural shape (exact type)."""
    return type(a) is type(b)


def stringify(value: Any) -> str:
    """Canonical text of a value for diffing (sorted dict keys, wrapped)."""
    return pprint.pformat(value, width=60, sort_dicts=True)


def escape_invisibles(line: str) -> str:
    return (
        line.replace("\t", "<TAB>").replace("\r", "<CR>").replace("\n", "<LF>\n")
    )


def prepare_diff(actual: Any, expected: Any) -> tuple[str, str, bool] | None:
    """Reduce actual/expected to comparable text.

    Returns (actual, expected, escape) or None when there is nothing to diff.
    Values of the same shape that are not strings are converted to their
    canonical text; strings are diffed as they are, with invisible characters
    escaped.
    """
    escape = True
    if same_type(actual, expected) and not isinstance(actual, str):
        escape = False
        actual = stringify(actual)
        expected = stringify(expected)
    if isinstance(actual, str) and isinstance(expected, str) and actual != expected:
        return actual, expected, escape
    return None


def diff_lines(actual: str, expected: str, escape: bool) -> list[tuple[str, str]]:
    """Unified diff of actual -> expected as (kind, line) pairs.

    Kind is ``added``, ``removed`` or ``context`` and each line keeps its
    leading ``+``, ``-`` or space. File markers, hunk headers and any other
    marker lines are left out.
    """
    patch = difflib.unified_diff(
        actual.split("\n"), expected.split("\n"), lineterm="", n=DIFF_CONTEXT
    )
    result = []
    for line in itertools.islice(patch, PATCH_HEADER, None):
        kind = DIFF_KINDS.get(line[:1])
        if kind is None:
            continue
        if escape:
            line = escape_invisibles(line)
        result.append((kind, line))
    return result


def value_diff(actual: Any, expected: Any) -> list[tuple[str, str]]:
    prepared = prepare_diff(actual, expected)
    if prepared is None:
        return []
    return diff_lines(*prepared)
