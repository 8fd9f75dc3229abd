"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator
from dataclasses import dataclass

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from role_permission.config import Settings
from role_permission.core.cache import MemoryCacheBackend
from role_permission.core.database import create_session_factory, create_tables
from role_permission.permissions.models import Permission, PermissionKind, Role
from role_permission.permissions.service import RolePermissionService
from role_permission.permissions.store import SQLAlchemyPermissionStore


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@dataclass
class Tree:
    """Sample hierarchy used across tests.

    blog (module)
    ├── posts (module)
    │   └── posts.edit (action)
    └── comments (action)
    """

    blog: Permission
    posts: Permission
    posts_edit: Permission
    comments: Permission


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory test database with the schema applied."""
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    await create_tables(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for tests."""
    session_factory = create_session_factory(engine)
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings() -> Settings:
    """Settings with the in-process cache and no .env lookup."""
    return Settings(_env_file=None, cache_backend="memory")


@pytest.fixture
def cache_backend() -> MemoryCacheBackend:
    return MemoryCacheBackend()


@pytest.fixture
def store(db: AsyncSession) -> SQLAlchemyPermissionStore:
    return SQLAlchemyPermissionStore(db)


@pytest.fixture
def service(
    store: SQLAlchemyPermissionStore,
    settings: Settings,
    cache_backend: MemoryCacheBackend,
) -> RolePermissionService:
    return RolePermissionService(store, settings, cache_backend)


@pytest.fixture
async def tree(service: RolePermissionService) -> Tree:
    """Create the sample hierarchy."""
    blog = await service.create_permission("Blog", "blog", route_key="blog.index")
    posts = await service.create_permission("Posts", "posts", parent_id=blog.id, order=1)
    posts_edit = await service.create_permission(
        "Edit posts",
        "posts.edit",
        kind=PermissionKind.ACTION,
        parent_id=posts.id,
        route_key="posts.edit",
    )
    comments = await service.create_permission(
        "Comments",
        "comments",
        kind=PermissionKind.ACTION,
        parent_id=blog.id,
        order=2,
    )
    return Tree(blog=blog, posts=posts, posts_edit=posts_edit, comments=comments)


@pytest.fixture
async def editor(store: SQLAlchemyPermissionStore) -> Role:
    """Create a regular role without assignments."""
    return await store.save_role(Role(name="Editor", slug="editor"))


@pytest.fixture
async def viewer(store: SQLAlchemyPermissionStore) -> Role:
    """Create a second regular role."""
    return await store.save_role(Role(name="Viewer", slug="viewer"))


@pytest.fixture
async def master(store: SQLAlchemyPermissionStore, settings: Settings) -> Role:
    """Create the master role."""
    return await store.save_role(Role(name="Master Admin", slug=settings.master_role_slug))
