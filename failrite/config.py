from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from dataclasses import dataclass

# Environment variables read by load_options()
ENV_OPTS = "FAILRITE_OPTS"
ENV_STACK_EXCLUDE = "FAILRITE_STACK_EXCLUDE"


@dataclass(frozen=True)
class ReporterOptions:
    hide_titles: bool = False
    hide_stats: bool = False
    clear_screen: bool = False
    # Glob pattern of stack frame files never shown
    stack_exclude: str | None = None
    # Failure summary in reverse order (live output is never reversed)
    show_fails_in_back_order: bool = False
    # Snippets of original sources resolved through source maps
    show_source_map_files: bool = False
    # Snippets of the files as executed (generated code)
    show_javascript_files: bool = True
    mock_console: bool = True
    hide_node_modules_stack: bool = True
    # Only the first line of "Unable to find an element" messages
    hide_testing_library_dom: bool = True


def options_from_env(
    options: ReporterOptions, environ: Mapping[str, str] | None = None
) -> ReporterOptions:
    """Apply FAILRITE_OPTS flags and FAILRITE_STACK_EXCLUDE."""
    environ = os.environ if environ is None else environ
    value = environ.get(ENV_OPTS, "")
    changes: dict = {
        "hide_titles": "hide-titles" in value,
        "hide_stats": "hide-stats" in value,
        "clear_screen": "clear-screen" in value,
    }
    if environ.get(ENV_STACK_EXCLUDE):
        changes["stack_exclude"] = environ[ENV_STACK_EXCLUDE]
    return dataclasses.replace(options, **changes)


def options_from_reporter_options(
    options: ReporterOptions, reporter_options: Mapping[str, str]
) -> ReporterOptions:
    """Apply runner-supplied reporter options (string values, e.g. from a CLI)."""
    changes: dict = {}
    flags = {
        "hide-titles": "hide_titles",
        "hide-stats": "hide_stats",
        "clear-screen": "clear_screen",
        "show-back-order": "show_fails_in_back_order",
    }
    for key, field in flags.items():
        if key in reporter_options:
            changes[field] = reporter_options[key] == "true"
    if "stack-exclude" in reporter_options:
        changes["stack_exclude"] = reporter_options["stack-exclude"]
    if "show-file-content" in reporter_options:
        content = reporter_options["show-file-content"]
        changes["show_source_map_files"] = "sm" in content
        changes["show_javascript_files"] = "js" in content
    return dataclasses.replace(options, **changes)


def load_options(
    reporter_options: Mapping[str, str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> ReporterOptions:
    """Build options from defaults, the environment and reporter options.

    When neither kind of file content is requested, generated files are shown.
    """
    options = options_from_env(ReporterOptions(), environ)
    options = options_from_reporter_options(options, reporter_options or {})
    if not options.show_source_map_files and not options.show_javascript_files:
        options = dataclasses.replace(options, show_javascript_files=True)
    return options
