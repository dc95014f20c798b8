import os
from pathlib import Path
import nox

# Reuse existing virtualenvs for faster runs
nox.options.reuse_existing_virtualenvs = True
# Default sessions when running "nox"
nox.options.sessions = ["lint", "unit", "integration"]

# Environment variables to propagate
PASSED_ENV_VARS = [
    "RPC_URL",
    "CONTRACT_ADDRESS",
    "CHAIN_ID",
    "LOG_LEVEL",
]


def _set_env(session):
    """
    Propagate ledger-related environment variables into the session.
    Also ensure the project root is on PYTHONPATH.
    """
    session.env["PYTHONPATH"] = str(Path.cwd())
    # Tests never sign with a real key
    session.env["SIGNER_PRIVATE_KEY"] = ""
    for var in PASSED_ENV_VARS:
        if var in os.environ:
            session.env[var] = os.environ[var]


@nox.session(name="lint")
def lint(session):
    """
    Code formatting, linting, and type-checks:
      - isort
      - black
      - flake8
      - mypy
    """
    _set_env(session)
    session.install("-e", ".[dev]")
    session.run("isort", "anoncheckin/", "tests/")
    session.run("black", "anoncheckin/", "tests/")
    session.run("flake8", "anoncheckin/", "tests/")
    session.run("mypy", "anoncheckin/")


@nox.session(name="unit")
def unit(session):
    """
    Run unit tests against the in-memory fake ledger.
    Usage:
      nox -s unit
      nox -s unit -- tests/unit/test_services/test_registry.py
    """
    _set_env(session)
    session.install("-e", ".[test]")
    tests = session.posargs or ["tests/unit"]
    session.run(
        "pytest",
        *tests,
        "-m", "unit",
        "-vv",
        "--tb=short",
        "--cov=anoncheckin",
        "--cov-report=term-missing",
        "--cov-report=html:.nox/htmlcov",
        "--cov-fail-under=80",
    )


@nox.session(name="integration")
def integration(session):
    """
    Run the HTTP API tests through FastAPI's TestClient.
    Usage:
      nox -s integration
    """
    _set_env(session)
    session.install("-e", ".[test]")
    tests = session.posargs or ["tests/integration"]
    session.run("pytest", *tests, "-vv", "--tb=short")
