"""Classify, count and optionally suppress diagnostic output during a test run.

Messages go through a :class:`ConsoleInterceptor` port: call its ``info``,
``warn`` and ``error`` methods directly, or ``install()`` it to route the
standard ``logging`` tree (and captured ``warnings``) through it until
``restore()``. Each message is matched against an ordered rule list, first
match wins, and counted in the run's :class:`RunContext`.
"""

from __future__ import annotations

import logging
import re
import sys
import warnings
from collections import namedtuple
from dataclasses import dataclass
from typing import Any, TextIO

# group=None ignores a message outright (counted, never listed)
Rule = namedtuple("Rule", ["pattern", "group", "keep"], defaults=(False,))

DEFAULT_RULES = [
    Rule(
        re.compile(r"^You are using the simple \(heuristic\) fragment matcher"),
        "Apollo: You are using the simple (heuristic) fragment matcher.",
    ),
    Rule(re.compile(r"^Heuristic fragment matching going on"), None),
    Rule(
        re.compile(r"^Warning: An update to (\w*) inside a test was not wrapped in act"),
        "React: Act warnings",
        keep=True,
    ),
    Rule(
        re.compile(r"^Warning: componentWillReceiveProps has been renamed"),
        "React deprecation warning: componentWillReceiveProps",
    ),
    Rule(
        re.compile(r"^Warning: componentWillMount has been renamed"),
        "React deprecation warning: componentWillMount",
    ),
    Rule(re.compile(r"react-beautiful-dnd"), "React draggable component"),
    Rule(
        re.compile(r"^Warning: unmountComponentAtNode"),
        "React unmounted component at node warning",
    ),
    Rule(
        re.compile(
            r"^Warning: Can't perform a React state update on an unmounted component"
        ),
        "React unmounted component: cannot perform a React state update",
    ),
    Rule(
        re.compile(r"^Warning: Encountered two children with the same key"),
        "React children: two children with the same key",
    ),
    Rule(
        re.compile(r'^Warning: Each child in a list should have a unique "key" prop'),
        "React children: each child must have a unique key",
    ),
    Rule(
        re.compile(r"^The width\(0\) and height\(0\)"),
        "Recharts: React component with no width and height",
    ),
    Rule(re.compile(r"\bPendingDeprecationWarning\b"), "Python: pending deprecations"),
    Rule(re.compile(r"\bDeprecationWarning\b"), "Python: deprecations"),
    Rule(re.compile(r"\bResourceWarning\b"), "Python: unclosed resources"),
]

SEVERITIES = ("INFO", "WARN", "ERROR")


def severity_for(levelno: int) -> str:
    if levelno >= logging.ERROR:
        return "ERROR"
    if levelno >= logging.WARNING:
        return "WARN"
    return "INFO"


@dataclass
class RuleCount:
    count: int = 0
    # Set by the first message that matched the rule
    severity: str = "INFO"


class RunContext:
    """Run-scoped rule table with one counter per matched rule."""

    def __init__(
        self, rules: list[Rule] | None = None, *, mock_console: bool = True
    ) -> None:
        self.rules = list(DEFAULT_RULES if rules is None else rules)
        self.mock_console = mock_console
        self.counts: dict[int, RuleCount] = {}
        self.total = 0
        self.suppressed = 0

    def match(self, message: str) -> int | None:
        for i, rule in enumerate(self.rules):
            if rule.pattern.search(message):
                return i
        return None

    def record(self, severity: str, message: object) -> bool:
        """Count a message and return whether it should still be printed."""
        self.total += 1
        index = self.match(str(message))
        keep = False
        if index is not None:
            counter = self.counts.setdefault(index, RuleCount(severity=severity))
            counter.count += 1
            keep = self.rules[index].keep
        if self.mock_console and not keep:
            self.suppressed += 1
            return False
        return True

    def summary(self) -> list[tuple[str, str, int]]:
        """(severity, group, count) of each listed rule that matched, in rule order."""
        return [
            (self.counts[i].severity, rule.group, self.counts[i].count)
            for i, rule in enumerate(self.rules)
            if i in self.counts and rule.group is not None
        ]


class InterceptHandler(logging.Handler):
    """Root logger handler that passes records through the interceptor."""

    def __init__(
        self, interceptor: ConsoleInterceptor, passthrough: list[logging.Handler]
    ) -> None:
        super().__init__()
        self.interceptor = interceptor
        self.passthrough = passthrough

    def emit(self, record: logging.LogRecord) -> None:
        try:
            show = self.interceptor.context.record(
                severity_for(record.levelno), record.getMessage()
            )
            if not show:
                return
            if not self.passthrough:
                self.interceptor.write(self.format(record))
            for handler in self.passthrough:
                if record.levelno >= handler.level:
                    handler.handle(record)
        except RecursionError:
            raise
        except Exception:
            self.handleError(record)


class ConsoleInterceptor:
    """Diagnostic output port shared by everything running during the test run."""

    def __init__(self, context: RunContext, *, stream: TextIO | None = None) -> None:
        self.context = context
        self.stream = stream
        self._handler: InterceptHandler | None = None
        self._saved: list[logging.Handler] = []
        self._showwarning: Any = None

    def write(self, message: str) -> None:
        stream = self.stream or sys.stderr
        stream.write(f"{message}\n")

    def _emit(self, severity: str, message: object) -> None:
        if self.context.record(severity, message):
            self.write(str(message))

    def info(self, message: object) -> None:
        self._emit("INFO", message)

    def warn(self, message: object) -> None:
        self._emit("WARN", message)

    def error(self, message: object) -> None:
        self._emit("ERROR", message)

    @property
    def installed(self) -> bool:
        return self._handler is not None

    def install(self) -> None:
        """Route the root logger and Python warnings through this port.

        The root logger's handlers are replaced by a single intercepting
        handler that forwards printable records to the original handlers.
        Call restore() to put them back.
        """
        if self._handler is not None:
            return
        root = logging.getLogger()
        self._saved = root.handlers[:]
        self._handler = InterceptHandler(self, self._saved)
        root.handlers = [self._handler]
        self._showwarning = warnings.showwarning
        logging.captureWarnings(True)

    def restore(self) -> None:
        if self._handler is None:
            return
        # Unchanged if the host had already been capturing warnings
        if warnings.showwarning is not self._showwarning:
            logging.captureWarnings(False)
        self._showwarning = None
        logging.getLogger().handlers = self._saved
        self._handler = None
        self._saved = []

    def __enter__(self) -> ConsoleInterceptor:
        self.install()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.restore()
