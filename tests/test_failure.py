"""Tests for failure.py - extracting what to report about a failing test."""

import logging

import pytest

from failrite import failure
from failrite.config import ReporterOptions
from failrite.failure import (
    FailureRecord,
    extract_failure,
    failure_record,
    project_files,
    report_failure,
)
from failrite.sourcemaps import FileCache, SourceMapCache

from . import errorcases
from .errorcases import (
    AssertionLikeError,
    catch,
    error_named_in_header,
    failing_assertion,
    message_attribute_error,
)
from .test_sourcemaps import GENERATED, inline_marker


def write_lines(path, count=12):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("".join(f"line {n}\n" for n in range(1, count + 1)))
    return str(path)


@pytest.fixture
def project(tmp_path):
    """A project with two files of its own and one dependency file."""
    return {
        "a": write_lines(tmp_path / "project" / "a.js"),
        "b": write_lines(tmp_path / "project" / "node_modules" / "x" / "b.js"),
        "c": write_lines(tmp_path / "project" / "c.js"),
        "helper": write_lines(tmp_path / "lib" / "helper.js"),
    }


def js_error(message, *locations, **fields):
    stack = "\n".join(
        [f"Error: {message}"] + [f"    at fn ({loc})" for loc in locations]
    )
    return {"message": message, "stack": stack, **fields}


def extract(error, files=(), options=None, **kwargs):
    record = failure_record(["suite", "test"], error, **kwargs)
    return extract_failure(record, files, options)


class TestFailureRecord:
    """Tests for capturing a failure event."""

    def test_fields_from_mapping(self):
        record = failure_record(
            ["outer", "inner"], js_error("boom", "/a.js:1:1", actual=1, expected=2)
        )
        assert record.title_path == ("outer", "inner")
        assert record.message == "boom"
        assert record.stack.startswith("Error: boom")
        assert (record.actual, record.expected) == (1, 2)
        assert record.timed_out is False

    def test_fields_from_exception(self):
        exc = catch(failing_assertion)
        record = failure_record(["t"], exc, timed_out=True)
        assert record.message == "value should be two"
        assert record.stack.startswith("AssertionError: value should be two")
        assert record.actual is None
        assert record.timed_out is True

    def test_project_files_normalized(self, tmp_path):
        files = project_files([f"{tmp_path}/x/../a.js", "", None])
        assert files == {str(tmp_path / "a.js")}


class TestStackBounds:
    """Tests for which stack frames are shown."""

    def test_dependency_between_project_files(self, project):
        error = js_error(
            "boom", f"{project['a']}:10:1", f"{project['b']}:5:1", f"{project['c']}:3:1"
        )
        info = extract(error, [project["a"], project["c"]])
        assert [f["filename"] for f in info["frames"]] == [project["a"], project["c"]]

    def test_frames_before_project_shown(self, project):
        error = js_error("boom", f"{project['helper']}:2:1", f"{project['a']}:10:1")
        info = extract(error, [project["a"]])
        assert [f["filename"] for f in info["frames"]] == [
            project["helper"],
            project["a"],
        ]

    def test_frames_after_leaving_project_hidden(self, project):
        error = js_error(
            "boom",
            f"{project['a']}:10:1",
            f"{project['helper']}:2:1",
            f"{project['c']}:3:1",
        )
        info = extract(error, [project["a"], project["c"]])
        assert [f["filename"] for f in info["frames"]] == [project["a"], project["c"]]

    def test_dependencies_shown_before_project_when_not_hidden(self, project):
        error = js_error("boom", f"{project['b']}:5:1", f"{project['a']}:10:1")
        options = ReporterOptions(hide_node_modules_stack=False)
        info = extract(error, [project["a"]], options)
        assert [f["filename"] for f in info["frames"]] == [project["b"], project["a"]]

    def test_stack_exclude(self, project):
        error = js_error("boom", f"{project['a']}:10:1", f"{project['c']}:3:1")
        options = ReporterOptions(stack_exclude="*/c.js")
        info = extract(error, [project["a"], project["c"]], options)
        assert [f["filename"] for f in info["frames"]] == [project["a"]]

    def test_no_project_files_shows_everything_but_dependencies(self, project):
        error = js_error(
            "boom", f"{project['a']}:10:1", f"{project['b']}:5:1", f"{project['c']}:3:1"
        )
        info = extract(error)
        assert [f["filename"] for f in info["frames"]] == [project["a"], project["c"]]

    def test_python_exception(self):
        exc = catch(failing_assertion)
        info = extract(exc, [errorcases.__file__])
        functions = [f["line"].rsplit(" ", 1)[-1] for f in info["frames"]]
        assert functions == ["failing_assertion", "catch"]


class TestFrames:
    """Tests for per-frame snippets."""

    def test_snippet(self, project):
        info = extract(js_error("boom", f"{project['a']}:10:4"), [project["a"]])
        frame = info["frames"][0]
        assert frame["line"] == f"at fn ({project['a']}:10:4)"
        assert frame["snippet"] == [(9, "line 9"), (10, "line 10"), (11, "line 11")]
        assert (frame["lineno"], frame["colno"]) == (10, 4)
        assert frame["original"] is None

    def test_native_frame_without_location(self, project):
        error = {
            "message": "boom",
            "stack": f"Error: boom\n    at new Promise (<anonymous>)\n"
            f"    at fn ({project['a']}:1:1)",
        }
        info = extract(error, [project["a"]])
        native = info["frames"][0]
        assert native["line"] == "at new Promise (<anonymous>)"
        assert native["snippet"] is None
        assert info["frames"][1]["snippet"] == [(1, "line 1"), (2, "line 2")]

    def test_unreadable_file(self, tmp_path):
        missing = str(tmp_path / "gone.js")
        info = extract(js_error("boom", f"{missing}:3:1"), [missing])
        assert len(info["frames"]) == 1
        assert info["frames"][0]["snippet"] is None

    def test_unexpected_reader_error_is_logged(self, project, caplog):
        def reader(path):
            raise RuntimeError("reader broke")

        record = failure_record(["t"], js_error("boom", f"{project['a']}:1:1"))
        maps = SourceMapCache(FileCache(reader))
        with caplog.at_level(logging.ERROR, logger="failrite"):
            info = extract_failure(record, [project["a"]], maps=maps)
        assert info["frames"][0]["snippet"] is None
        assert "please report a bug" in caplog.text


class TestSourceMaps:
    """Tests for original source resolution."""

    @pytest.fixture
    def generated(self, tmp_path):
        path = tmp_path / "dist" / "gen.js"
        path.parent.mkdir()
        path.write_text(GENERATED + inline_marker() + "\n")
        return str(path)

    def test_original_position(self, generated):
        options = ReporterOptions(show_source_map_files=True)
        info = extract(js_error("x", f"{generated}:2:5"), [generated], options)
        frame = info["frames"][0]
        assert frame["snippet"][1] == (2, "    throw new Error('x');")
        original = frame["original"]
        assert original["location"] == "src/app.ts:3:3"
        assert (original["lineno"], original["colno"]) == (3, 3)
        assert original["snippet"] == [
            (2, "function f() {"),
            (3, "  throw new Error('x');"),
            (4, "}"),
        ]

    def test_original_only(self, generated):
        options = ReporterOptions(
            show_source_map_files=True, show_javascript_files=False
        )
        info = extract(js_error("x", f"{generated}:2:5"), [generated], options)
        frame = info["frames"][0]
        assert frame["snippet"] is None
        assert frame["original"]["location"] == "src/app.ts:3:3"

    def test_source_maps_off_by_default(self, generated):
        info = extract(js_error("x", f"{generated}:2:5"), [generated])
        assert info["frames"][0]["original"] is None

    def test_unmapped_position(self, generated):
        options = ReporterOptions(show_source_map_files=True)
        info = extract(js_error("x", f"{generated}:2:6"), [generated], options)
        frame = info["frames"][0]
        assert frame["original"] is None
        assert frame["snippet"]

    def test_file_without_map_always_has_snippet(self, project):
        options = ReporterOptions(
            show_source_map_files=True, show_javascript_files=False
        )
        info = extract(js_error("x", f"{project['a']}:5:1"), [project["a"]], options)
        assert info["frames"][0]["snippet"][1] == (5, "line 5")


class TestMessage:
    """Tests for messages, timeouts and diffs."""

    def test_title(self):
        info = extract({"message": "boom"})
        assert info["title"] == "suite > test"
        assert info["message"] == ["boom"]
        assert info["frames"] == []

    def test_element_not_found_is_terse(self):
        message = "Unable to find an element with the text: Save\n\n<body>\n  <div />"
        info = extract({"message": message})
        assert info["message"] == ["Unable to find an element with the text: Save"]

    def test_element_not_found_full_when_disabled(self):
        message = "Unable to find an element with the text: Save\n\n<body>"
        options = ReporterOptions(hide_testing_library_dom=False)
        info = extract({"message": message}, options=options)
        assert len(info["message"]) == 3

    def test_timeout_has_no_stack_or_diff(self, project):
        error = js_error(
            "Timeout of 2000ms exceeded", f"{project['a']}:1:1", actual=1, expected=2
        )
        info = extract(error, [project["a"]], timed_out=True)
        assert info["timed_out"] is True
        assert info["message"] == ["Timeout of 2000ms exceeded"]
        assert info["frames"] == []
        assert info["diff"] == []

    def test_diff(self):
        error = AssertionLikeError(
            "expected values to match", actual="foo\nbar", expected="foo\nbaz"
        )
        info = extract(error)
        assert info["diff"] == [
            ("context", " foo"),
            ("removed", "-bar"),
            ("added", "+baz"),
        ]

    def test_no_diff_for_different_shapes(self):
        error = AssertionLikeError("mismatch", actual=[1], expected={"a": 1})
        assert extract(error)["diff"] == []


class TestRecordStack:
    """Tests for stacks taken from the captured record."""

    def test_record_without_error_object(self, project):
        record = FailureRecord(
            title_path=("t",),
            message="boom",
            stack=f"Error: boom\n    at fn ({project['a']}:4:1)",
            actual=None,
            expected=None,
            timed_out=False,
            error=None,
        )
        info = extract_failure(record, [project["a"]])
        assert [f["lineno"] for f in info["frames"]] == [4]
        assert info["frames"][0]["snippet"][1] == (4, "line 4")

    @pytest.mark.parametrize("fn", [error_named_in_header, message_attribute_error])
    def test_python_exceptions_with_tricky_messages(self, fn):
        info = extract(catch(fn), [errorcases.__file__])
        assert info["frames"][0]["line"].endswith(f"in {fn.__name__}")
        assert info["frames"][0]["snippet"]


class TestReportFailure:
    """Tests for failures that cannot be extracted."""

    def test_falls_back_to_title_and_message(self, monkeypatch, caplog):
        def broken(error):
            raise AssertionError("frames disagree")

        monkeypatch.setattr(failure, "stack_entries", broken)
        record = failure_record(["suite", "t"], catch(failing_assertion))
        with caplog.at_level(logging.ERROR, logger="failrite"):
            info = report_failure(record)
        assert info["title"] == "suite > t"
        assert info["message"] == ["value should be two"]
        assert info["frames"] == []
        assert "please report a bug" in caplog.text

    def test_same_as_extract_when_it_works(self, project):
        record = failure_record(["t"], js_error("boom", f"{project['a']}:2:1"))
        assert report_failure(record, [project["a"]]) == extract_failure(
            record, [project["a"]]
        )
