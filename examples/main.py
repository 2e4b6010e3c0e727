"""Serve the test models as a GraphQL API with the GraphiQL playground.

    uvicorn examples.main:app --reload

then open http://127.0.0.1:8000/graphql. Settings come from the environment
(or a ``.env`` file):

  TABLEQL_TEST_DATABASE_URL  async SQLAlchemy URL; a shared in-memory SQLite
                             database when unset
  TABLEQL_*                  compile options, see ``BuildSchemaConfig.from_env``
  DEMO_SEED                  '0' skips loading the demo rows
  SQL_ECHO                   '0' silences statement logging
"""
from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import RedirectResponse
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from strawberry.fastapi import GraphQLRouter

from tableql import BuildSchemaConfig, build_schema
from tests.fixtures import seed_populated_db
from tests.models import Base, User

load_dotenv()
logging.basicConfig(level=logging.INFO)
logging.getLogger("tableql").setLevel(logging.DEBUG)


def _make_engine():
    url = os.getenv("TABLEQL_TEST_DATABASE_URL")
    echo = os.getenv("SQL_ECHO", "1") != "0"
    if url:
        return create_async_engine(url, echo=echo)
    # One connection shared by every session keeps the in-memory data alive
    return create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=echo,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


engine = _make_engine()
sessions = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
# Passing the engine lets the backend decide whether mutations return rows
compiled = build_schema(Base, dialect=engine, config=BuildSchemaConfig.from_env())


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    if os.getenv("DEMO_SEED", "1") != "0":
        async with sessions() as session:
            if not (await session.execute(select(func.count()).select_from(User))).scalar_one():
                await seed_populated_db(session)
    yield
    await engine.dispose()


async def get_context(request: Request):
    return {"db_session": request.state.db_session}


app = FastAPI(title="tableql playground", lifespan=lifespan)


@app.middleware("http")
async def open_session(request: Request, call_next):
    async with sessions() as session:
        request.state.db_session = session
        return await call_next(request)


@app.get("/")
async def index() -> RedirectResponse:
    return RedirectResponse(url="/graphql")


app.include_router(GraphQLRouter(compiled.schema, graphiql=True, context_getter=get_context), prefix="/graphql")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8000)
