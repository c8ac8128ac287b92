"""Pytest configuration for the hybrid-transpiler test suite."""

import sys
from pathlib import Path

import pytest

# Add the repository root to path for hybrid imports
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest.fixture
def write_source(tmp_path):
    """Write C++ source to a file under tmp_path and return its path."""

    def write(source: str, name: str = "input.cpp") -> Path:
        path = tmp_path / name
        path.write_text(source, encoding="utf-8")
        return path

    return write
