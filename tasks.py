"""Developer tasks powered by Invoke."""

from __future__ import annotations

import pathlib
import subprocess
from typing import Iterable

from invoke import task

ROOT = pathlib.Path(__file__).parent.resolve()
RESULTS_DIR = ROOT / "results"


def _run(command: Iterable[str] | str) -> None:
    if isinstance(command, str):
        cmd = command
    else:
        cmd = " ".join(command)
    subprocess.run(cmd, shell=True, check=True, cwd=ROOT)


def _ensure_results_dir() -> None:
    RESULTS_DIR.mkdir(exist_ok=True)


@task
def tests(_context):
    """Run the test suite (quick feedback)."""
    _run(["pytest", "tests/"])


@task
def coverage(_context):
    """Run tests under coverage and generate reports."""
    _ensure_results_dir()
    _run(["coverage", "erase"])
    _run(["coverage", "run", "-m", "pytest", "tests/", "--junitxml=results/pytest.xml"])
    _run(["coverage", "report"])
    _run(["coverage", "html", "-d", "results/htmlcov"])


@task
def lint(_context):
    """Run formatting and type checks."""
    _run(["black", "--check", "src", "tests"])
    _run(["mypy", "src"])


@task
def serve(_context, intents="", components="", port=8000):
    """Run the IXP server over HTTP for local development."""
    command = ["python", "-m", "ixpserver", "--transport", "http", "--port", str(port)]
    if intents:
        command += ["--intents", intents]
    if components:
        command += ["--components", components]
    _run(command)


@task
def build(_context):
    """Build distribution artifacts."""
    _run(["python", "-m", "build"])
