import asyncio

import httpx
import pytest

from ahamai import database
from ahamai.tools.base import ToolContext

_ENV_KEYS = (
    "AHAMAI_DATA_DIR",
    "AHAMAI_DEFAULT_MODEL",
    "AHAMAI_API_BASE_URL",
    "AHAMAI_API_KEY",
    "AHAMAI_HTTP_TIMEOUT",
    "BRAVE_API_KEY",
    "TAVILY_API_KEY",
    "AVIATIONSTACK_API_KEY",
    "OCR_SPACE_API_KEY",
    "SCREENSHOTMACHINE_API_KEY",
)


@pytest.fixture(autouse=True)
def temp_db(tmp_path, monkeypatch):
    """Every test gets a fresh database and a clean provider environment."""
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    db_file = tmp_path / "ahamai-test.db"
    monkeypatch.setenv("AHAMAI_DB_PATH", str(db_file))
    database.init_db()
    return db_file


@pytest.fixture
def run_tool():
    """Run a tool's execute() against an httpx.MockTransport handler."""

    def _run(execute, args, handler, user_id="local"):
        async def _go():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                return await execute(args, ToolContext(client=client, user_id=user_id))

        return asyncio.run(_go())

    return _run


@pytest.fixture
def with_client():
    """Await `fn(client)` with a client backed by a MockTransport handler."""

    def _run(fn, handler):
        async def _go():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                return await fn(client)

        return asyncio.run(_go())

    return _run
