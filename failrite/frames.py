from __future__ import annotations

import re
import traceback
from collections import namedtuple
from collections.abc import Mapping
from typing import Any

# Line and column are 1-based; any field may be None for native or unknown frames
StackFrame = namedtuple("StackFrame", ["filename", "lineno", "colno", "function"])

UNKNOWN_FRAME = StackFrame(None, None, None, None)

# V8: "at fn (file:line:col)", "at file:line:col", "at fn (native)"
v8_frame = re.compile(r"at (?:(.+?)\s+\()?(?:(.+?):(\d+)(?::(\d+))?|([^)]+))\)?")
# Python: 'File "path", line N, in fn'
py_frame = re.compile(r'File "(.+)", line (\d+)(?:, in (.+))?')

# Locations of dependency code (never part of the project under test)
libdir = re.compile(
    r"(?:.*[/\\])?node_modules[/\\](.+)"
    r"|node:(.+)"
    r"|internal[/\\](.+)"
    r"|(?:.*[/\\])?(?:site-packages|dist-packages)[/\\](.+)"
    r"|.*[/\\]lib[/\\]python\d+\.\d+[/\\](.+)"
)


def error_attr(error: Any, name: str) -> Any:
    """Read a field from an error object or an error mapping (e.g. parsed JSON)."""
    if isinstance(error, Mapping):
        return error.get(name)
    return getattr(error, name, None)


def error_message(error: Any) -> str:
    message = error_attr(error, "message")
    if message is None and isinstance(error, BaseException):
        message = str(error)
    return "" if message is None else str(message)


def is_native_error(error: Any) -> bool:
    """Python exceptions without stack text are resolved from their traceback."""
    return isinstance(error, BaseException) and error_attr(error, "stack") is None


def _traceback_frames(exc: BaseException) -> list[StackFrame]:
    """Structural frames of a Python traceback, innermost call first."""
    frames = []
    for summary in reversed(traceback.extract_tb(exc.__traceback__)):
        colno = getattr(summary, "colno", None)
        frames.append(
            StackFrame(
                summary.filename,
                summary.lineno,
                None if colno is None else colno + 1,
                summary.name,
            )
        )
    return frames


def _traceback_lines(exc: BaseException) -> list[str]:
    return [
        f'File "{frame.filename}", line {frame.lineno}, in {frame.function}'
        for frame in _traceback_frames(exc)
    ]


def format_stack(exc: BaseException) -> str:
    """Stack text for a Python exception, one line per frame, innermost first.

    The header is ``Type: message``. Each frame line has the same shape as in
    Python's own tracebacks, so that the text parses back to the same frames.
    """
    header = type(exc).__name__
    message = str(exc)
    if message:
        header = f"{header}: {message}"
    return "\n".join([header, *(f"    {line}" for line in _traceback_lines(exc))])


def stack_text(error: Any) -> str:
    if is_native_error(error):
        return format_stack(error)
    stack = error_attr(error, "stack")
    return "" if stack is None else str(stack)


def split_stack(stack: str, message: str) -> list[str]:
    """Remove the leading message from stack text and return trimmed frame lines.

    Everything up to and including the first occurrence of the message is
    dropped. If the message is empty or not found in the stack, the first
    line (the header) is dropped instead.
    """
    index = stack.find(message) if message else -1
    if index >= 0:
        rest = stack[index + len(message) :]
    else:
        rest = stack.partition("\n")[2]
    return [line for line in (ln.strip() for ln in rest.split("\n")) if line]


def parse_frame_line(line: str) -> StackFrame:
    """Parse one trimmed stack line. Unrecognized lines become unknown frames."""
    m = py_frame.fullmatch(line)
    if m:
        return StackFrame(m[1], int(m[2]), None, m[3])
    if not line.startswith("at "):
        return UNKNOWN_FRAME
    m = v8_frame.match(line)
    if not m:  # pragma: no cover
        return UNKNOWN_FRAME
    function, filename, lineno, colno, native = m.groups()
    if filename is None:
        # "at fn (native)" or "at new Promise (<anonymous>)"
        return StackFrame(None, None, None, function or native)
    if filename.startswith("file://"):
        filename = filename[len("file://") :]
    return StackFrame(
        filename,
        int(lineno),
        int(colno) if colno else None,
        function,
    )


def resolve_frames(error: Any) -> list[StackFrame]:
    """Resolve an error into stack frames, innermost call first.

    Python exceptions are resolved from their traceback objects; any other
    error-like object (or mapping) has its ``stack`` text parsed. No file is
    read. Every stack line yields exactly one frame, so the result stays
    index-aligned with :func:`raw_stack_lines`.
    """
    if is_native_error(error):
        return _traceback_frames(error)
    lines = split_stack(stack_text(error), error_message(error))
    return [parse_frame_line(line) for line in lines]


def raw_stack_lines(error: Any) -> list[str]:
    # The header of a Python exception may contain its message more than once
    if is_native_error(error):
        return _traceback_lines(error)
    return split_stack(stack_text(error), error_message(error))


def parse_stack(stack: str, message: str) -> list[tuple[str, StackFrame]]:
    """Pair each line of captured stack text with the frame parsed from it."""
    return [(line, parse_frame_line(line)) for line in split_stack(stack, message)]


def stack_entries(error: Any) -> list[tuple[str, StackFrame]]:
    """Pair each raw stack line with its resolved frame."""
    lines = raw_stack_lines(error)
    frames = resolve_frames(error)
    assert len(lines) == len(frames), (
        f"Stack lines and frames disagree: {len(lines)} lines, {len(frames)} frames"
    )
    return list(zip(lines, frames))


def is_dependency(filename: str | None) -> bool:
    """Check if the file belongs to node_modules, node internals or Python libraries."""
    if not filename:
        return False
    return libdir.fullmatch(filename) is not None
