"""Database layer - session management, base models, and mixins."""

from role_permission.core.database.base import Base, IntegerIDMixin, TimestampMixin
from role_permission.core.database.session import (
    create_engine,
    create_session_factory,
    create_tables,
    session_scope,
)


__all__ = [
    "Base",
    "IntegerIDMixin",
    "TimestampMixin",
    "create_engine",
    "create_session_factory",
    "create_tables",
    "session_scope",
]
