from __future__ import annotations

import os
import socket

import pytest

from blama_probe.mockserver import MockInferenceServer


def pytest_sessionstart(session):
    # Make sure UTF-8 is used for any subprocess/file ops in tests.
    os.environ.setdefault("PYTHONUTF8", "1")


@pytest.fixture
def mock_server():
    """A mock inference server on a free local port; routes can be overridden per test."""
    with MockInferenceServer() as server:
        yield server


@pytest.fixture
def dead_url() -> str:
    """Base URL of a local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
    return f"http://127.0.0.1:{port}"
