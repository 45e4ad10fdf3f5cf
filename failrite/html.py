from __future__ import annotations

from collections.abc import Iterable
from importlib.resources import files
from typing import Any, cast

from html5tagger import E  # type: ignore[import]

from .config import ReporterOptions
from .failure import FailureRecord, project_files, report_failure
from .snippet import split_at_column
from .sourcemaps import SourceMapCache

style = files(cast(str, __package__)).joinpath("style.css").read_text(encoding="UTF-8")


def html_failures(
    failures: list[FailureRecord],
    project: Iterable[str] = (),
    options: ReporterOptions | None = None,
    *,
    maps: SourceMapCache | None = None,
    include_css: bool = True,
) -> Any:
    """Render failure reports as an HTML fragment.

    Uses the same extraction as the terminal reporter, so stack bounding,
    diffs and source map resolution behave identically.
    """
    options = options or ReporterOptions()
    maps = maps or SourceMapCache()
    project_set = project_files(project)
    numbered = list(enumerate(failures, 1))
    if options.show_fails_in_back_order:
        numbered.reverse()
    with E.div(class_="failrite") as doc:
        if include_css:
            doc._style(style)
        for number, record in numbered:
            info = report_failure(record, project_set, options, maps)
            _failure(doc, info, number)
    return doc


def _failure(doc: Any, info: dict[str, Any], number: int) -> None:
    with doc.section(class_="failure"):
        doc.h3(f"{number}) {info['title']}")
        doc.pre("\n".join(info["message"]), class_="message")
        if info["timed_out"]:
            doc.p("(timeout)", class_="timeout")
            return
        if info["diff"]:
            _diff(doc, info["diff"])
        for frame in info["frames"]:
            doc.p(frame["line"], class_="stack-line")
            if frame["snippet"]:
                _snippet(doc, frame["snippet"], frame["lineno"], frame["colno"])
            original = frame["original"]
            if original:
                with doc.div(class_="original"):
                    doc.p(f"at {original['location']}", class_="stack-line source-map")
                    _snippet(
                        doc, original["snippet"], original["lineno"], original["colno"]
                    )


def _diff(doc: Any, diff: list[tuple[str, str]]) -> None:
    with doc.pre(class_="diff"):
        with doc.span(class_="legend"):
            doc.span("+ expected", class_="added")
            doc(" ")
            doc.span("- actual", class_="removed")
        for kind, line in diff:
            doc.span(line, class_=f"diffline {kind}")


def _snippet(
    doc: Any, window: list[tuple[int, str]], lineno: int, colno: int | None
) -> None:
    """Render a snippet window, the target line and column marked."""
    with doc.pre, doc.code:
        for n, text in window:
            if n != lineno:
                doc.span(text, class_="codeline", data_lineno=n)
                continue
            with doc.span(class_="codeline target", data_lineno=n):
                parts = split_at_column(text, colno)
                if parts:
                    before, char, after = parts
                    doc(before)
                    doc.mark(char)
                    doc(after)
                else:
                    doc(text)
