"""
Database utilities and common operations to reduce code duplication
"""
from datetime import datetime, timezone
from typing import Type, TypeVar, Optional, List, Any

from sqlalchemy import DateTime
from sqlalchemy.orm import Session
from sqlalchemy.types import TypeDecorator

from utils.errors import ActiveError, ErrorKind

T = TypeVar('T')


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC timestamps on every backend.

    Values are normalised to UTC when bound. SQLite has no timezone
    support, so values are stored naive there and re-tagged as UTC on load.
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class DatabaseUtils:
    """Utility class for common database operations"""

    @staticmethod
    def get_by_id_or_raise(
        db: Session,
        model_class: Type[T],
        obj_id: Any,
        kind: ErrorKind,
        op: str,
        for_update: bool = False,
    ) -> T:
        """
        Get object by ID or raise the given not-found error

        Args:
            db: Database session
            model_class: SQLAlchemy model class
            obj_id: Object ID
            kind: Error kind raised when the row is missing
            op: Operation tag for the error
            for_update: Lock the row (ignored by SQLite)
        """
        query = db.query(model_class).filter(model_class.id == obj_id)
        if for_update:
            query = query.with_for_update()
        obj = query.first()
        if not obj:
            raise ActiveError(kind, op, f"{model_class.__name__} {obj_id}")
        return obj

    @staticmethod
    def get_batch_by_ids(db: Session, model_class: Type[T], ids: List[Any]) -> List[T]:
        if not ids:
            return []
        return db.query(model_class).filter(model_class.id.in_(ids)).all()

    @staticmethod
    def exists(db: Session, model_class: Type[T], **filters) -> bool:
        return db.query(
            db.query(model_class).filter_by(**filters).exists()
        ).scalar()

    @staticmethod
    def count(db: Session, model_class: Type[T], **filters) -> int:
        query = db.query(model_class)
        if filters:
            query = query.filter_by(**filters)
        return query.count()


def utc_now() -> datetime:
    """The single place the HTTP layer and the worker read the clock."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
