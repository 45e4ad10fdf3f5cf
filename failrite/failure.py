from __future__ import annotations

import os
from collections import namedtuple
from collections.abc import Iterable
from fnmatch import fnmatch
from typing import Any

from .config import ReporterOptions
from .diff import value_diff
from .frames import (
    StackFrame,
    error_attr,
    error_message,
    is_dependency,
    is_native_error,
    parse_stack,
    stack_entries,
    stack_text,
)
from .logging import logger
from .snippet import snippet_window
from .sourcemaps import SourceMapCache

FailureRecord = namedtuple(
    "FailureRecord",
    ["title_path", "message", "stack", "actual", "expected", "timed_out", "error"],
)

# Messages from DOM queries that print the whole document after the first line
ELEMENT_NOT_FOUND = "Unable to find an element"


def failure_record(
    title_path: Iterable[str], error: Any, *, timed_out: bool = False
) -> FailureRecord:
    """Capture a failing test and its error as the failure event fires."""
    return FailureRecord(
        title_path=tuple(title_path),
        message=error_message(error),
        stack=stack_text(error),
        actual=error_attr(error, "actual"),
        expected=error_attr(error, "expected"),
        timed_out=timed_out,
        error=error,
    )


def _normpath(path: str) -> str:
    return os.path.normpath(os.path.abspath(path))


def project_files(files: Iterable[str]) -> set[str]:
    """Normalized set of the files belonging to the test run."""
    return {_normpath(f) for f in files if f}


def extract_failure(
    record: FailureRecord,
    files: Iterable[str] = (),
    options: ReporterOptions | None = None,
    maps: SourceMapCache | None = None,
) -> dict[str, Any]:
    """Extract everything needed to report one failure.

    Returns a dict with the title, message lines, diff lines and the stack
    frames to show, each with its raw stack line and optional source
    snippets. Reading files and source maps goes through ``maps`` so that
    consecutive failures share the caches.
    """
    options = options or ReporterOptions()
    maps = maps or SourceMapCache()
    files = files if isinstance(files, set) else project_files(files)

    message = record.message or ""
    if options.hide_testing_library_dom and ELEMENT_NOT_FOUND in message:
        message_lines = message.split("\n")[:1]
    else:
        message_lines = message.split("\n")

    info: dict[str, Any] = {
        "title": " > ".join(record.title_path),
        "message": message_lines,
        "timed_out": record.timed_out,
        "diff": [],
        "frames": [],
    }
    if record.timed_out:
        return info

    info["diff"] = value_diff(record.actual, record.expected)
    if is_native_error(record.error):
        entries = stack_entries(record.error)
    else:
        entries = parse_stack(record.stack or "", record.message or "")
    info["frames"] = [
        _extract_frame(line, frame, options, maps)
        for line, frame in _visible_frames(entries, files, options)
    ]
    return info


def report_failure(
    record: FailureRecord,
    files: Iterable[str] = (),
    options: ReporterOptions | None = None,
    maps: SourceMapCache | None = None,
) -> dict[str, Any]:
    """Like extract_failure, but never raises.

    If extraction fails, the failure is still reported with its title and
    message only, so that one bad record cannot hide the others.
    """
    try:
        return extract_failure(record, files, options, maps)
    except Exception:
        logger.exception(
            f"Extracting failure {record.title_path!r} failed (please report a bug)"
        )
    return {
        "title": " > ".join(record.title_path),
        "message": (record.message or "").split("\n"),
        "timed_out": record.timed_out,
        "diff": [],
        "frames": [],
    }


def _visible_frames(
    entries: list[tuple[str, StackFrame]],
    files: set[str],
    options: ReporterOptions,
) -> list[tuple[str, StackFrame]]:
    """Bound the stack to the frames around the project's own files.

    Frames are shown until the first project file, then only while inside
    project files. Dependency frames are skipped without affecting this.
    """
    result = []
    before_project = True
    in_project = True
    for line, frame in entries:
        filename = frame.filename
        if options.hide_node_modules_stack and is_dependency(filename):
            continue
        if filename and _normpath(filename) in files:
            in_project = True
            before_project = False
        else:
            in_project = False
        if not (in_project or before_project):
            continue
        pattern = options.stack_exclude
        if pattern and filename and fnmatch(filename, pattern):
            continue
        result.append((line, frame))
    return result


def _extract_frame(
    line: str, frame: StackFrame, options: ReporterOptions, maps: SourceMapCache
) -> dict[str, Any]:
    info: dict[str, Any] = {
        "line": line,
        "filename": frame.filename,
        "lineno": frame.lineno,
        "colno": frame.colno,
        "snippet": None,
        "original": None,
    }
    if frame.lineno is None or not frame.filename:
        return info
    try:
        lines = maps.files.lines(frame.filename)
        if lines is None:
            return info
        has_map = maps.marker(frame.filename) is not None
        if options.show_javascript_files or not has_map:
            info["snippet"] = snippet_window(lines, frame.lineno)
        if has_map and options.show_source_map_files:
            pos = maps.original_position(frame.filename, frame.lineno, frame.colno)
            if pos:
                info["original"] = {
                    "location": f"{pos.source}:{pos.line}:{pos.column}",
                    "source": pos.source,
                    "lineno": pos.line,
                    "colno": pos.column,
                    "snippet": snippet_window(pos.lines, pos.line),
                }
    except Exception:
        logger.exception(f"Reading source for {line!r} failed (please report a bug)")
    return info
