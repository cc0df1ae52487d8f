"""Shared pytest fixtures.

Provides:
  - ``db``: an ``AsyncSession`` on a freshly created SQLite schema.
  - ``client``: an httpx ``AsyncClient`` bound to the ASGI app, same schema.
"""

from __future__ import annotations

import os
import tempfile

# must be set before anything imports app.core.settings
_TMP_DIR = tempfile.mkdtemp(prefix="stock-dashboard-tests-")
os.environ["DB_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["ENV"] = "test"
os.environ["SCORER"] = "heuristic"
os.environ.pop("LLM_API_KEY", None)

from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import AsyncSessionLocal, create_all, drop_all


@pytest_asyncio.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    await drop_all()
    await create_all()
    async with AsyncSessionLocal() as session:
        yield session


@pytest_asyncio.fixture
async def client(db) -> AsyncGenerator[httpx.AsyncClient, None]:
    from app.main import app

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def sample_csv() -> str:
    return (
        "symbol,name,sector,current_price,price_change_24h,volume,market_cap\n"
        "AAPL,Apple Inc.,Technology,175.50,-2.34,50000000,0\n"
        "NVDA,NVIDIA Corporation,Technology,450.30,8.75,45000000,1100000000000\n"
        "MSFT,Microsoft Corporation,Technology,380.45,0.95,30000000,2800000000000\n"
    )
