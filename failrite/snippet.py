from __future__ import annotations


def snippet_window(lines: list[str], lineno: int) -> list[tuple[int, str]]:
    """Return (lineno, text) for the target line and one line around it.

    Line numbers are 1-based. Lines outside the file are left out of the
    window rather than shown blank, so the window is shorter at file
    boundaries.
    """
    return [
        (n, lines[n - 1].rstrip("\r\n"))
        for n in range(lineno - 1, lineno + 2)
        if 1 <= n <= len(lines)
    ]


def split_at_column(text: str, colno: int | None) -> tuple[str, str, str] | None:
    """Split a line around the character at a 1-based column, if it exists."""
    if colno is None or not 1 <= colno <= len(text):
        return None
    return text[: colno - 1], text[colno - 1], text[colno:]
