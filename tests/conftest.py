"""Pytest configuration and shared fixtures."""

import shutil
from pathlib import Path

import libcst as cst
import pytest

from graft_engine.source import parse_source


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line(
        "markers", "integration: Integration tests that test multiple components"
    )
    config.addinivalue_line("markers", "cli: End-to-end CLI tests through typer's CliRunner")


@pytest.fixture
def fixtures_dir():
    """Return the fixtures directory path."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def django_project(tmp_path, fixtures_dir):
    """
    Copy the fixture Django project (as generated by `django-admin startproject`)
    into a temporary directory and return its root.
    """
    root = tmp_path / "project"
    shutil.copytree(fixtures_dir / "django_project", root)
    return root


@pytest.fixture
def helper_source():
    """A module with scope M holding f/1, which does not call helper()."""
    return (
        "import logging\n"
        "\n"
        "\n"
        "class M:\n"
        "    \"\"\"Scope under test.\"\"\"\n"
        "\n"
        "    def f(self, x):\n"
        "        # keep this comment\n"
        "        y = x * 2\n"
        "        return y\n"
        "\n"
        "    def g(self):\n"
        "        return helper(1)\n"
        "\n"
        "\n"
        "def helper(value):\n"
        "    return value\n"
    )


@pytest.fixture
def helper_tree(helper_source) -> cst.Module:
    return parse_source(helper_source)
