"""Failrite reporting for the standard library's unittest runner.

Usage:
    import unittest
    from failrite.testresult import FailriteTestRunner
    unittest.main(testRunner=FailriteTestRunner)
"""

from __future__ import annotations

import sys
import unittest
from typing import Any, TextIO

from .config import ReporterOptions
from .tty import TtyReporter


def _title(test: unittest.TestCase) -> str:
    return getattr(test, "_testMethodName", None) or str(test)


class FailriteTestResult(unittest.TestResult):
    """Translate unittest callbacks into reporter lifecycle events.

    Each TestCase class is reported as a suite and the module file of every
    test that runs is added to the reporter's project files.
    """

    def __init__(
        self,
        stream: TextIO | None = None,
        descriptions: Any = None,
        verbosity: Any = None,
        *,
        reporter: TtyReporter | None = None,
    ) -> None:
        super().__init__(stream, descriptions, verbosity)
        self.reporter = reporter or TtyReporter(file=stream)
        self._suite: type | None = None

    def _enter_suite(self, test: unittest.TestCase) -> None:
        cls = type(test)
        if cls is self._suite:
            return
        self._leave_suite()
        self._suite = cls
        module = sys.modules.get(cls.__module__)
        filename = getattr(module, "__file__", None)
        if filename:
            self.reporter.add_files(filename)
        self.reporter.suite(cls.__name__)

    def _leave_suite(self) -> None:
        if self._suite is not None:
            self.reporter.suite_end()
            self._suite = None

    def _title_path(self, test: unittest.TestCase) -> tuple[str, ...]:
        return (type(test).__name__, _title(test))

    def startTestRun(self) -> None:
        super().startTestRun()
        self.reporter.start()

    def stopTestRun(self) -> None:
        self._leave_suite()
        self.reporter.end()
        super().stopTestRun()

    def startTest(self, test: unittest.TestCase) -> None:
        super().startTest(test)
        self._enter_suite(test)

    def stopTest(self, test: unittest.TestCase) -> None:
        super().stopTest(test)
        self.reporter.test_end()

    def addSuccess(self, test: unittest.TestCase) -> None:
        super().addSuccess(test)
        self.reporter.passed(_title(test))

    def addFailure(self, test: unittest.TestCase, err: Any) -> None:
        super().addFailure(test, err)
        self.reporter.failed(self._title_path(test), err[1])

    def addError(self, test: unittest.TestCase, err: Any) -> None:
        super().addError(test, err)
        self.reporter.failed(self._title_path(test), err[1])

    def addSubTest(
        self, test: unittest.TestCase, subtest: unittest.TestCase, err: Any
    ) -> None:
        super().addSubTest(test, subtest, err)
        if err is not None:
            self.reporter.failed((type(test).__name__, str(subtest)), err[1])

    def addSkip(self, test: unittest.TestCase, reason: str) -> None:
        super().addSkip(test, reason)
        self.reporter.pending(_title(test))

    def addExpectedFailure(self, test: unittest.TestCase, err: Any) -> None:
        super().addExpectedFailure(test, err)
        self.reporter.passed(_title(test))

    def addUnexpectedSuccess(self, test: unittest.TestCase) -> None:
        super().addUnexpectedSuccess(test)
        self.reporter.failed(
            self._title_path(test), AssertionError("Unexpected success")
        )


class FailriteTestRunner:
    """A unittest runner that reports through a TtyReporter."""

    def __init__(
        self,
        stream: TextIO | None = None,
        *,
        options: ReporterOptions | None = None,
        color: bool | None = None,
    ) -> None:
        self.stream = stream or sys.stdout
        self.options = options
        self.color = color

    def run(self, test: Any) -> FailriteTestResult:
        reporter = TtyReporter(options=self.options, file=self.stream, color=self.color)
        result = FailriteTestResult(self.stream, reporter=reporter)
        result.startTestRun()
        try:
            test(result)
        finally:
            result.stopTestRun()
        return result
