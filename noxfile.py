"""Nox sessions for the insightflow scheduler."""

import nox

nox.options.sessions = ["tests"]
nox.options.default_venv_backend = "uv"

PYTHON_VERSIONS = ["3.10", "3.11", "3.12", "3.13"]


@nox.session(python=PYTHON_VERSIONS)
def tests(session):
    """Run the unit suite, scheduler and API included."""
    session.install(".[dev]")
    session.run("pytest", "tests/", "-q", "--no-cov", *session.posargs)


@nox.session(python="3.12")
def coverage(session):
    """Run the suite once with a line coverage report for the package."""
    session.install(".[dev]")
    session.run(
        "pytest",
        "tests/",
        "-q",
        "--cov=insightflow_scheduler",
        "--cov-report=term-missing",
        *session.posargs,
    )


@nox.session(python=PYTHON_VERSIONS)
def type_check(session):
    """Run mypy over the package."""
    session.install(".[dev]")
    session.install("mypy")
    session.run("mypy", "src/insightflow_scheduler", *session.posargs)
