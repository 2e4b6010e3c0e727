"""Database fixtures for tableql tests (shared)."""

import pytest
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession

from .models import User, Post, PostComment, PostStatus


async def create_sample_users(session: AsyncSession):
    """Create and commit two users; Bob was invited by Alice."""
    alice = User(id=1, name="Alice Johnson", email="alice@example.com", is_admin=True)
    bob = User(id=2, name="Bob Smith", email=None, is_admin=False, invited_by_id=1)
    session.add_all([alice, bob])
    await session.flush()
    await session.commit()
    return [alice, bob]


@pytest.fixture(scope="function")
async def sample_users(db_session: AsyncSession):
    return await create_sample_users(db_session)


async def create_sample_posts(session: AsyncSession):
    """Three posts: (1, author 1, "A"), (2, author 1, "B"), (3, author 2, "A")."""
    posts = [
        Post(
            id=1,
            content="A",
            author_id=1,
            status=PostStatus.PUBLISHED,
            metadata_json={"tags": ["intro"], "views": 10},
            payload=b"\x00\x01\xff",
            views=9007199254740993,
            created_at=datetime(2024, 1, 1, 9, 30, 0),
        ),
        Post(id=2, content="B", author_id=1, status=PostStatus.DRAFT, created_at=datetime(2024, 1, 2, 9, 30, 0)),
        Post(id=3, content="A", author_id=2, status=None, created_at=datetime(2024, 1, 3, 9, 30, 0)),
    ]
    session.add_all(posts)
    await session.flush()
    await session.commit()
    return posts


async def create_sample_comments(session: AsyncSession):
    comments = [
        PostComment(id=1, post_id=1, body="first!", rating=5),
        PostComment(id=2, post_id=1, body="nice", rating=3),
        PostComment(id=3, post_id=1, body="meh", rating=1),
        PostComment(id=4, post_id=3, body="ok", rating=4),
    ]
    session.add_all(comments)
    await session.flush()
    await session.commit()
    return comments


async def seed_populated_db(session: AsyncSession):
    """Seed users, posts and comments; returns them keyed by kind."""
    users = await create_sample_users(session)
    posts = await create_sample_posts(session)
    comments = await create_sample_comments(session)
    return {'users': users, 'posts': posts, 'comments': comments}


@pytest.fixture(scope="function")
async def populated_db(db_session: AsyncSession):
    return await seed_populated_db(db_session)
