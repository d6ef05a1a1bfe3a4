import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Type

from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlmodel import Session, select

from ....application.ports.store import (
    M,
    Store,
    StoreTransaction,
    StorageUnavailable,
    TransientStorageError,
)

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected
TRANSIENT_SQLSTATES = {"40001", "40P01"}
TRANSIENT_MESSAGES = ("database is locked", "deadlock", "could not serialize")


def _is_transient(exc: DBAPIError) -> bool:
    if exc.connection_invalidated:
        return False
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(getattr(orig, "diag", None), "sqlstate", None)
    if code in TRANSIENT_SQLSTATES:
        return True
    message = str(orig).lower()
    return any(marker in message for marker in TRANSIENT_MESSAGES)


def _column_matches(kind: Type[M], name: str, value: Any):
    column = getattr(kind, name)
    return column.is_(None) if value is None else column == value


class SqlStoreTransaction(StoreTransaction):
    def __init__(self, session: Session):
        self.session = session

    def get(self, kind: Type[M], entity_id: int) -> Optional[M]:
        return self.session.get(kind, entity_id)

    def find(self, kind: Type[M], **equals: Any) -> List[M]:
        statement = select(kind)
        for name, value in equals.items():
            statement = statement.where(_column_matches(kind, name, value))
        return list(self.session.exec(statement.order_by(kind.id)).all())

    def add(self, entity: M) -> M:
        self.session.add(entity)
        self.session.flush()
        self.session.refresh(entity)
        return entity

    def compare_and_set(self, kind: Type[M], entity_id: int, expected: Dict[str, Any], changes: Dict[str, Any]) -> bool:
        statement = update(kind).where(kind.id == entity_id)
        for name, value in expected.items():
            statement = statement.where(_column_matches(kind, name, value))
        result = self.session.exec(statement.values(**changes))
        return result.rowcount == 1

    def delete(self, kind: Type[M], entity_id: int) -> bool:
        entity = self.session.get(kind, entity_id)
        if entity is None:
            return False
        self.session.delete(entity)
        self.session.flush()
        return True


class SqlStore(Store):
    """One database transaction per ``atomic()`` block; commits on clean exit."""

    def __init__(self, engine: Engine):
        self.engine = engine

    @contextmanager
    def atomic(self) -> Iterator[SqlStoreTransaction]:
        session = Session(self.engine, expire_on_commit=False)
        try:
            with session.begin():
                yield SqlStoreTransaction(session)
        except OperationalError as e:
            if _is_transient(e):
                raise TransientStorageError(str(e.orig)) from e
            logger.error(f"Storage unavailable: {e.orig}")
            raise StorageUnavailable(str(e.orig)) from e
        except DBAPIError as e:
            if e.connection_invalidated:
                logger.error(f"Storage connection lost: {e.orig}")
                raise StorageUnavailable(str(e.orig)) from e
            raise
        finally:
            session.close()
