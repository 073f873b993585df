import os
import sys
from pathlib import Path

import pytest

from mcp_testclient.config.settings import get_settings

FAKE_WORKER = str(Path(__file__).resolve().parent / "mocks" / "fake_worker.py")


@pytest.fixture(scope="session", autouse=True)
def test_env() -> None:
    os.environ["MCP_TESTCLIENT_WORKER_COMMAND"] = sys.executable
    os.environ["MCP_TESTCLIENT_WORKER_ENTRY_POINT"] = FAKE_WORKER
    os.environ["MCP_TESTCLIENT_CLOSE_GRACE_SECONDS"] = "1.0"
    os.environ["MCP_TESTCLIENT_LOG_LEVEL"] = "DEBUG"
    get_settings.cache_clear()


@pytest.fixture
def fake_worker() -> str:
    return FAKE_WORKER
