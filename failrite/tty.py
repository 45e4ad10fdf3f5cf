from __future__ import annotations

import re
import sys
import time
from collections.abc import Iterable
from typing import Any, TextIO

from .config import ReporterOptions, load_options
from .console import ConsoleInterceptor, RunContext
from .failure import (
    FailureRecord,
    failure_record,
    project_files,
    report_failure,
)
from .snippet import snippet_window, split_at_column
from .sourcemaps import SourceMapCache

# ANSI escape codes for terminal colors (can be monkeypatched for styling)
ESC = "\x1b["
RESET = f"{ESC}0m"
DIM = f"{ESC}2m"
BOLD = f"{ESC}1m"
MARK_BG = f"{ESC}103m"  # Bright yellow background
MARK_TEXT = f"{ESC}30m"
SUITE = BOLD
PASS = f"{ESC}32m"
FAIL = f"{ESC}31m"
PENDING = f"{ESC}36m"
STAT = f"{ESC}90m"  # Dark grey for statistics
MESSAGE = f"{ESC}31m"
STACK = f"{ESC}90m"
STACK_SOURCE_MAP = f"{ESC}35m"
LINE_POS = f"{ESC}1;31m"  # Line number of the target line
DIFF_ADDED = f"{ESC}32m"
DIFF_REMOVED = f"{ESC}31m"

CLEAR_SCREEN = f"{ESC}2J{ESC}1;3H"

# Regex pattern to strip ANSI escape sequences
ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")

INDENT_WIDTH = 2
RULE_LINE = "-" * 54

symbols = {"passed": "✓", "pending": "-", "failed": "✖"}
state_colors = {"passed": PASS, "pending": PENDING, "failed": FAIL}
severity_colors = {"INFO": STAT, "WARN": PENDING, "ERROR": FAIL}


def format_time(seconds: float) -> str:
    """Format a duration as 12ms, 3.4s or 2m 5s."""
    if seconds < 1:
        return f"{round(seconds * 1000)}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, seconds = divmod(round(seconds), 60)
    return f"{minutes}m {seconds}s"


def render_window(
    window: list[tuple[int, str]], lineno: int, colno: int | None = None
) -> list[str]:
    """Render a snippet window with right-aligned line numbers.

    The target line number is highlighted, and so is the character at the
    1-based column if one is given. Blank lines separate the window from the
    surrounding output.
    """
    if not window:
        return []
    width = max(len(str(n)) for n, _ in window)
    output = [""]
    for n, text in window:
        number = str(n).rjust(width)
        if n == lineno:
            parts = split_at_column(text, colno)
            if parts:
                before, char, after = parts
                text = f"{before}{MARK_BG}{MARK_TEXT}{char}{RESET}{after}"
            output.append(f"{LINE_POS}{number}{RESET} | {text}")
        else:
            output.append(f"{number} | {text}")
    output.append("")
    return output


def render_snippet(
    lines: list[str], lineno: int, colno: int | None = None
) -> list[str]:
    return render_window(snippet_window(lines, lineno), lineno, colno)


def render_diff(diff: list[tuple[str, str]]) -> list[str]:
    """Render (kind, line) diff pairs: insertions green, deletions red."""
    output = ["", f"{DIFF_ADDED}+ expected{RESET} {DIFF_REMOVED}- actual{RESET}", ""]
    for kind, line in diff:
        if kind == "added":
            line = f"{DIFF_ADDED}{line}{RESET}"
        elif kind == "removed":
            line = f"{DIFF_REMOVED}{line}{RESET}"
        output.append(line)
    return output


def failure_lines(info: dict[str, Any], number: int) -> list[tuple[int, str]]:
    """Display lines for an extracted failure as (indent level, text) pairs."""
    lines = [(0, ""), (0, f"{FAIL}{number}) {info['title']}{RESET}"), (0, "")]
    lines += [(1, f"{MESSAGE}{text}{RESET}") for text in info["message"]]
    if info["timed_out"]:
        return lines
    if info["diff"]:
        lines += [(1, text) for text in render_diff(info["diff"])]
    lines.append((1, ""))
    for frame in info["frames"]:
        lines.append((1, f"{STACK}{frame['line']}{RESET}"))
        if frame["snippet"]:
            rendered = render_window(frame["snippet"], frame["lineno"], frame["colno"])
            lines += [(1, text) for text in rendered]
        original = frame["original"]
        if original:
            lines.append((2, f"{STACK_SOURCE_MAP}at {original['location']}{RESET}"))
            rendered = render_window(
                original["snippet"], original["lineno"], original["colno"]
            )
            lines += [(2, text) for text in rendered]
    return lines


class TtyReporter:
    """Terminal reporter driven by test run lifecycle events.

    Call the event methods in the order the runner emits them: start(), then
    suite()/suite_end() around passed(), failed() or pending() followed by
    test_end() for each test, and finally end() for the summaries.

    Args:
        files: The files belonging to the test run, bounding stack traces.
        options: Reporter options. Defaults to load_options().
        file: Output stream. Defaults to sys.stdout.
        color: Force ANSI colors on or off. Auto-detected from the stream.
        context: Run context for console message counting.
    """

    def __init__(
        self,
        files: Iterable[str] = (),
        options: ReporterOptions | None = None,
        *,
        file: TextIO | None = None,
        color: bool | None = None,
        context: RunContext | None = None,
    ) -> None:
        self.options = options or load_options()
        self.files = project_files(files)
        self.file = file or sys.stdout
        if color is None:
            color = self.file.isatty() if hasattr(self.file, "isatty") else False
        self.color = color
        self.context = context or RunContext(mock_console=self.options.mock_console)
        self.console = ConsoleInterceptor(self.context, stream=self.file)
        self.maps = SourceMapCache()
        self.stats = {
            "suites": 0,
            "tests": 0,
            "passes": 0,
            "pending": 0,
            "failures": 0,
            "timeouts": 0,
        }
        self.failures: list[FailureRecord] = []
        self.indentation = 0.0
        self.started: float | None = None
        self.duration = 0.0

    def add_files(self, *files: str) -> None:
        self.files |= project_files(files)

    def write_line(self, text: str = "", level: float = 0) -> None:
        if not self.color:
            text = ANSI_ESCAPE_RE.sub("", text)
        indent = " " * round((self.indentation + level) * INDENT_WIDTH)
        self.file.write(f"{indent}{text}\n" if text else "\n")

    # Lifecycle events

    def start(self) -> None:
        self.started = time.monotonic()
        self.console.install()
        if self.options.clear_screen:
            self.file.write(CLEAR_SCREEN)

    def suite(self, title: str, root: bool = False) -> None:
        if root:
            return
        self.stats["suites"] += 1
        self.indentation += 1
        if not self.options.hide_titles:
            self.write_line()
            self.write_line(f"{SUITE}{title}{RESET}")

    def suite_end(self, root: bool = False) -> None:
        if not root:
            self.indentation -= 1

    def test_end(self) -> None:
        self.stats["tests"] += 1

    def passed(self, title: str) -> None:
        self.stats["passes"] += 1
        self._write_test("passed", title)

    def pending(self, title: str) -> None:
        self.stats["pending"] += 1
        self._write_test("pending", title)

    def failed(
        self, title_path: Iterable[str], error: Any, *, timed_out: bool = False
    ) -> None:
        record = failure_record(title_path, error, timed_out=timed_out)
        if timed_out:
            self.stats["timeouts"] += 1
        self.failures.append(record)
        title = record.title_path[-1] if record.title_path else ""
        self._write_test("failed", title, timed_out)

    def end(self) -> None:
        self.console.restore()
        if self.started is not None:
            self.duration = time.monotonic() - self.started
        self.indentation = 0
        if not self.options.hide_titles:
            self.write_line()
        if self.failures:
            self.write_failures()
        if not self.options.hide_stats:
            self.write_stats()
            self.write_suppressed()

    # Output

    def _write_test(self, state: str, title: str, timed_out: bool = False) -> None:
        prefix = symbols[state]
        if state == "failed":
            self.stats["failures"] += 1
            prefix = f"{self.stats['failures']})"
        if self.options.hide_titles:
            return
        color = state_colors[state]
        suffix = " (timeout)" if timed_out else ""
        self.write_line(f"{color}{prefix}{RESET} {color}{title}{suffix}{RESET}", 0.5)

    def write_failures(self) -> None:
        self.write_line(RULE_LINE)
        self.write_line(f"{STAT}Failed tests{RESET}")
        self.indentation += 1
        numbered = list(enumerate(self.failures, 1))
        if self.options.show_fails_in_back_order:
            numbered.reverse()
        for number, record in numbered:
            info = report_failure(record, self.files, self.options, self.maps)
            for level, text in failure_lines(info, number):
                self.write_line(text, level)
        self.indentation -= 1

    def write_stats(self) -> None:
        stats = self.stats
        duration = format_time(self.duration)
        self.write_line()
        self.write_line(RULE_LINE)
        if stats["suites"]:
            self.write_line(
                f"{STAT}Executed {stats['tests']} tests in {stats['suites']} suites"
                f" in {duration}{RESET}"
            )
        else:
            self.write_line(
                f"{STAT}Executed {stats['tests']} tests in {duration}{RESET}"
            )
        self.indentation += 1
        if stats["tests"] == stats["passes"]:
            self.write_line(f"{PASS}All passes{RESET}")
        else:
            self.write_line(f"{PASS}{stats['passes']} passes{RESET}")
            if stats["pending"]:
                self.write_line(f"{PENDING}{stats['pending']} pending{RESET}")
            if stats["failures"]:
                timeouts = stats["timeouts"]
                suffix = f" ({timeouts} timed out)" if timeouts else ""
                self.write_line(f"{FAIL}{stats['failures']} failed{suffix}{RESET}")
        self.indentation -= 1

    def write_suppressed(self) -> None:
        self.write_line(RULE_LINE)
        self.write_line(f"{STAT}Suppressed console messages{RESET}")
        self.indentation += 1
        for severity, group, count in self.context.summary():
            color = severity_colors.get(severity, STAT)
            self.write_line(f"{color}{severity}{RESET} {group} ({count})")
        self.write_line(f"TOTAL Messages Suppressed ({self.context.suppressed})")
        self.indentation -= 1
