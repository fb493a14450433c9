"""
Copyright 2026 Google LLC

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

  https://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

import os

import nox

BLACK_VERSION = "black==23.12.1"
ISORT_VERSION = "isort==5.13.2"

SOURCE_PATHS = ["google", "tests"]
LINT_PATHS = SOURCE_PATHS + ["samples", "noxfile.py", "setup.py"]

TEST_PYTHON_VERSIONS = ["3.9", "3.10", "3.11", "3.12", "3.13"]

# instance settings the system tests read
SYSTEM_TEST_ENV = (
    "POSTGRES_CONNECTION_NAME",
    "POSTGRES_USER",
    "POSTGRES_PASS",
    "POSTGRES_DB",
)


@nox.session
def lint(session):
    """Check import order, formatting, flake8 and mypy, then verify
    the sdist builds and its metadata renders."""
    session.install("-r", "requirements.txt")
    session.install(
        "flake8",
        "flake8-annotations",
        "mypy",
        BLACK_VERSION,
        ISORT_VERSION,
        "twine",
        "build",
    )
    session.run(
        "isort", "--fss", "--check-only", "--diff", "--profile=google", *LINT_PATHS
    )
    session.run("black", "--check", "--diff", *LINT_PATHS)
    session.run("flake8", *SOURCE_PATHS)
    session.run(
        "mypy",
        "-p",
        "google.cloud.sql.relay",
        "--install-types",
        "--non-interactive",
    )
    session.run("python", "-m", "build", "--sdist")
    session.run("twine", "check", "--strict", "dist/*")


@nox.session
def format(session):
    """Sort imports (strict alphabetical, google profile) and run black."""
    session.install(BLACK_VERSION, ISORT_VERSION)
    session.run("isort", "--fss", "--profile=google", *LINT_PATHS)
    session.run("black", *LINT_PATHS)


def run_pytest(session, path, fail_under=0):
    session.install("-r", "requirements-test.txt")
    session.install("-e", ".[pg8000,psycopg,asyncpg]")
    session.run(
        "pytest",
        "--cov=google.cloud.sql.relay",
        "--cov-config=.coveragerc",
        "--cov-report=term-missing",
        f"--cov-fail-under={fail_under}",
        "-v",
        path,
        *session.posargs,
    )


@nox.session(python=TEST_PYTHON_VERSIONS)
def unit(session):
    run_pytest(session, os.path.join("tests", "unit"))


@nox.session(python=TEST_PYTHON_VERSIONS)
def system(session):
    missing = [var for var in SYSTEM_TEST_ENV if not os.environ.get(var)]
    if missing:
        session.skip(f"System tests need a Cloud SQL instance; unset: {missing}")
    run_pytest(session, os.path.join("tests", "system"))


@nox.session
def samples(session):
    """Install the Cloud Run sample's requirements and make sure it imports."""
    sample = os.path.join("samples", "cloudrun", "postgres")
    session.install("-e", ".")
    session.install("-r", os.path.join(sample, "requirements.txt"))
    session.run("python", "-m", "py_compile", os.path.join(sample, "main.py"))
