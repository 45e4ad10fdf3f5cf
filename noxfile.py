"""Nox sessions for testing and linting failrite.

Run with: uv run nox [session]
"""

import shutil
from pathlib import Path

import nox

nox.options.default_venv_backend = "uv"
nox.options.stop_on_first_error = True
nox.options.error_on_external_run = True

# Lint first, then tests on every version, then one combined coverage report
nox.options.sessions = ["lint", "cov-clean", "test", "cov-combine"]

PYTHON_VERSIONS = ["3.9", "3.10", "3.11", "3.12", "3.13", "3.14"]
TOOLS_PYTHON = PYTHON_VERSIONS[-1]


@nox.session(python=PYTHON_VERSIONS)
def test(session):
    """Run the test suite under coverage."""
    session.install(".[test]")
    test_args = session.posargs or ["tests"]
    session.run(
        "coverage",
        "run",
        "--parallel-mode",
        "--source",
        "failrite",
        "-m",
        "pytest",
        "-qq",
        *test_args,
    )


@nox.session(python=TOOLS_PYTHON)
def lint(session):
    """Check formatting and lints with ruff, types with ty."""
    session.install("ruff", "ty")
    session.run("ruff", "check", ".")
    session.run("ruff", "format", "--check", ".")
    session.run("ty", "check", "failrite")


@nox.session(python=TOOLS_PYTHON)
def format(session):
    session.install("ruff")
    session.run("ruff", "check", "--fix", ".")
    session.run("ruff", "format", ".")


@nox.session(python=TOOLS_PYTHON, name="cov-clean")
def cov_clean(session):
    """Remove coverage data and reports of earlier runs."""
    for path in [*Path(".").glob(".coverage*"), Path("coverage.xml")]:
        if path.is_file():
            path.unlink()
    shutil.rmtree("htmlcov", ignore_errors=True)


@nox.session(python=TOOLS_PYTHON, name="cov-combine")
def cov_combine(session):
    """Combine the per-version coverage data and report it."""
    session.install("coverage")
    # --keep so that single test sessions can be rerun and combined again
    session.run("coverage", "combine", "--keep", success_codes=[0, 1])
    session.run("coverage", "report", "-m")
    session.run("coverage", "html")
    session.run("coverage", "xml")
