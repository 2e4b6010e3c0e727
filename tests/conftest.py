"""Shared pytest configuration: database engine and session per test."""

import asyncio
import os
import sys
from typing import AsyncGenerator

import pytest
from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tests.models import Base

# TABLEQL_TEST_DATABASE_URL may come from a local .env file
load_dotenv()

IN_MEMORY_URL = "sqlite+aiosqlite:///:memory:"


def database_url() -> str:
    return os.getenv('TABLEQL_TEST_DATABASE_URL') or IN_MEMORY_URL


@pytest.fixture(scope="session", autouse=True)
def event_loop_policy():
    if sys.platform.startswith("win"):
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    yield


@pytest.fixture(scope="function")
async def engine():
    """Fresh tables for every test; external databases are dropped afterwards."""
    url = database_url()
    external = url != IN_MEMORY_URL
    engine = create_async_engine(url, echo=False, future=True, pool_pre_ping=external)
    async with engine.begin() as conn:
        if external:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        if external:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


from tests.fixtures import (  # noqa: E402,F401
    sample_users,
    populated_db,
)
