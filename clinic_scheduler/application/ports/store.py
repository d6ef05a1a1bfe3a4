from typing import Any, ContextManager, Dict, List, Optional, Protocol, Type, TypeVar

from sqlmodel import SQLModel

M = TypeVar("M", bound=SQLModel)


class TransientStorageError(Exception):
    """Lock contention or serialization failure; the unit of work may be retried."""


class StorageUnavailable(Exception):
    """The backing store cannot be reached. Never retried."""


class StoreTransaction(Protocol):
    def get(self, kind: Type[M], entity_id: int) -> Optional[M]:
        ...

    def find(self, kind: Type[M], **equals: Any) -> List[M]:
        ...

    def add(self, entity: M) -> M:
        ...

    def compare_and_set(self, kind: Type[M], entity_id: int, expected: Dict[str, Any], changes: Dict[str, Any]) -> bool:
        ...

    def delete(self, kind: Type[M], entity_id: int) -> bool:
        ...


class Store(Protocol):
    def atomic(self) -> ContextManager[StoreTransaction]:
        ...
