"""Persistent Store - interface plus the SQLAlchemy implementation."""
from .base import PersistentStore
from .sql_store import SqlAlchemyStore, member_from_row, organization_from_row

__all__ = ["PersistentStore", "SqlAlchemyStore", "member_from_row", "organization_from_row"]
