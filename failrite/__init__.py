from .config import ReporterOptions, load_options
from .console import ConsoleInterceptor, RunContext
from .failure import extract_failure, failure_record, report_failure
from .frames import resolve_frames, stack_entries
from .html import html_failures
from .sourcemaps import FileCache, SourceMapCache
from .testresult import FailriteTestRunner
from .tty import TtyReporter, render_snippet

__all__ = [
    "TtyReporter",
    "ReporterOptions",
    "load_options",
    "RunContext",
    "ConsoleInterceptor",
    "failure_record",
    "extract_failure",
    "report_failure",
    "resolve_frames",
    "stack_entries",
    "FileCache",
    "SourceMapCache",
    "render_snippet",
    "html_failures",
    "FailriteTestRunner",
]
