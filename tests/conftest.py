"""Shared pytest configuration for the SubMiner bridge test suite."""

import sys
from pathlib import Path

import pytest

# tests.infrastructure is imported as a package from the repo root
REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: exercises real timers or sockets")


@pytest.fixture(autouse=True)
def isolated_state_dir(tmp_path, monkeypatch):
    """Keep logs and state out of the real home directory."""
    state_dir = tmp_path / "state"
    monkeypatch.setenv("SUBMINER_STATE_DIR", str(state_dir))
    monkeypatch.delenv("MPV_HOME", raising=False)
    return state_dir
