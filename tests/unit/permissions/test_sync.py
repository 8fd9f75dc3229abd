"""Unit tests for assignment synchronization.

These tests verify:
- Strict and recursive replacement of a role's assignment set
- Rejection of unknown ids without partial writes
- Rollback when the store write fails
- Cache eviction after a sync
- Serialization of concurrent syncs for one role
"""

import asyncio
from collections.abc import AsyncGenerator

import pytest
from sqlalchemy import event
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.sql.dml import Insert

from role_permission.config import Settings
from role_permission.core.cache import MemoryCacheBackend
from role_permission.core.database import create_session_factory, create_tables
from role_permission.core.errors import InvalidAssignmentError
from role_permission.permissions.models import Role
from role_permission.permissions.service import RolePermissionService
from role_permission.permissions.store import SQLAlchemyPermissionStore
from tests.conftest import Tree


pytestmark = pytest.mark.unit


class TestStrictSync:
    """Tests for non-recursive sync."""

    async def test_sets_exact_ids(self, service: RolePermissionService, tree: Tree, editor: Role):
        result = await service.sync_permissions(editor, [tree.posts_edit.id, tree.comments.id])

        assert result == {tree.posts_edit.id, tree.comments.id}
        assert await service.assigned_permission_ids(editor) == result

    async def test_no_ancestors_or_children_added(
        self, service: RolePermissionService, tree: Tree, editor: Role
    ):
        """Strict sync stores neither modules above nor actions below."""
        await service.sync_permissions(editor, [tree.posts.id])

        assert await service.assigned_permission_ids(editor) == {tree.posts.id}

    async def test_full_replace(self, service: RolePermissionService, tree: Tree, editor: Role):
        """Previously assigned ids absent from the new set are removed."""
        await service.sync_permissions(editor, [tree.posts_edit.id, tree.comments.id])
        await service.sync_permissions(editor, [tree.comments.id, tree.blog.id])

        assert await service.assigned_permission_ids(editor) == {tree.comments.id, tree.blog.id}

    async def test_empty_clears(self, service: RolePermissionService, tree: Tree, editor: Role):
        await service.sync_permissions(editor, [tree.posts_edit.id])
        await service.sync_permissions(editor, [])

        assert await service.assigned_permission_ids(editor) == set()

    async def test_duplicates_collapse(
        self, service: RolePermissionService, tree: Tree, editor: Role
    ):
        await service.sync_permissions(editor, [tree.comments.id, tree.comments.id])

        assert await service.assigned_permission_ids(editor) == {tree.comments.id}

    async def test_other_roles_untouched(
        self, service: RolePermissionService, tree: Tree, editor: Role, viewer: Role
    ):
        await service.sync_permissions(viewer, [tree.comments.id])
        await service.sync_permissions(editor, [tree.posts_edit.id])
        await service.sync_permissions(editor, [])

        assert await service.assigned_permission_ids(viewer) == {tree.comments.id}


class TestRecursiveSync:
    """Tests for recursive sync."""

    async def test_includes_descendants(
        self, service: RolePermissionService, tree: Tree, editor: Role
    ):
        result = await service.sync_permissions(editor, [tree.posts.id], recursive=True)

        assert result == {tree.posts.id, tree.posts_edit.id}
        assert await service.assigned_permission_ids(editor) == result

    async def test_root_expands_whole_subtree(
        self, service: RolePermissionService, tree: Tree, editor: Role
    ):
        await service.sync_permissions(editor, [tree.blog.id], recursive=True)

        assert await service.assigned_permission_ids(editor) == {
            tree.blog.id,
            tree.posts.id,
            tree.posts_edit.id,
            tree.comments.id,
        }

    async def test_overlapping_requests_deduplicate(
        self, service: RolePermissionService, tree: Tree, editor: Role
    ):
        result = await service.sync_permissions(
            editor, [tree.blog.id, tree.posts.id, tree.posts_edit.id], recursive=True
        )

        assert len(result) == 4


class TestValidation:
    """Tests for rejected syncs."""

    async def test_unknown_id_rejected(
        self, service: RolePermissionService, tree: Tree, editor: Role
    ):
        await service.sync_permissions(editor, [tree.comments.id])

        with pytest.raises(InvalidAssignmentError) as exc_info:
            await service.sync_permissions(editor, [tree.posts.id, 9998, 9999])

        assert exc_info.value.missing_ids == [9998, 9999]
        assert exc_info.value.details["missing_ids"] == [9998, 9999]
        assert await service.assigned_permission_ids(editor) == {tree.comments.id}

    async def test_unknown_id_rejected_when_recursive(
        self, service: RolePermissionService, tree: Tree, editor: Role
    ):
        with pytest.raises(InvalidAssignmentError):
            await service.sync_permissions(editor, [tree.blog.id, 9999], recursive=True)

        assert await service.assigned_permission_ids(editor) == set()

    async def test_failed_write_keeps_previous_set(
        self,
        monkeypatch: pytest.MonkeyPatch,
        store: SQLAlchemyPermissionStore,
        service: RolePermissionService,
        tree: Tree,
        editor: Role,
    ):
        """A store failure mid-replace must roll back the delete as well."""
        role_id = editor.id
        await service.sync_permissions(editor, [tree.comments.id])
        comments_id = tree.comments.id
        posts_edit_id = tree.posts_edit.id

        original_execute = AsyncSession.execute

        async def failing_execute(session, statement, *args, **kwargs):
            if isinstance(statement, Insert):
                raise OperationalError("INSERT INTO role_permissions", {}, Exception("disk full"))
            return await original_execute(session, statement, *args, **kwargs)

        monkeypatch.setattr(AsyncSession, "execute", failing_execute)

        with pytest.raises(OperationalError):
            await service.sync_permissions(editor, [posts_edit_id])

        monkeypatch.undo()
        assert await store.assigned_ids(role_id) == {comments_id}


class TestCacheConsistency:
    """Tests for cache eviction after sync."""

    async def test_grant_visible_immediately(
        self, service: RolePermissionService, tree: Tree, editor: Role
    ):
        assert await service.has_permission(editor, "comments") is False

        await service.sync_permissions(editor, [tree.comments.id])

        assert await service.has_permission(editor, "comments") is True

    async def test_revoke_visible_immediately(
        self, service: RolePermissionService, tree: Tree, editor: Role
    ):
        await service.sync_permissions(editor, [tree.posts_edit.id])
        assert await service.has_permission(editor, "blog") is True

        await service.sync_permissions(editor, [])

        assert await service.has_permission(editor, "blog") is False
        assert await service.has_permission(editor, "posts.edit") is False


class TestConcurrentSync:
    """Tests for concurrent syncs of the same role."""

    @pytest.fixture
    async def file_engine(self, tmp_path) -> AsyncGenerator[AsyncEngine, None]:
        """File-backed database where each transaction takes the write lock up front.

        ``BEGIN IMMEDIATE`` stands in for the role row lock that
        ``SELECT ... FOR UPDATE`` takes on PostgreSQL.
        """
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'sync.db'}")

        @event.listens_for(engine.sync_engine, "connect")
        def disable_driver_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        await create_tables(engine)

        yield engine

        await engine.dispose()

    async def test_same_role_syncs_serialize(self, file_engine: AsyncEngine, settings: Settings):
        """Last commit wins; the stored set is never a mix of both requests."""
        session_factory = create_session_factory(file_engine)
        backend = MemoryCacheBackend()

        async with session_factory() as session:
            service = RolePermissionService.from_session(session, settings, backend)
            role = await service.store.save_role(Role(name="Editor", slug="editor"))
            ids = [
                (await service.create_permission(f"Perm {n}", f"perm.{n}")).id for n in range(6)
            ]
            role_id = role.id

        first, second = set(ids[:3]), set(ids[3:])

        async def sync(requested: set[int]) -> set[int]:
            async with session_factory() as session:
                service = RolePermissionService.from_session(session, settings, backend)
                role = await session.get(Role, role_id)
                return await service.sync_permissions(role, requested)

        results = await asyncio.gather(sync(first), sync(second))

        assert results == [first, second]
        async with session_factory() as session:
            stored = await SQLAlchemyPermissionStore(session).assigned_ids(role_id)
        assert stored in (first, second)
