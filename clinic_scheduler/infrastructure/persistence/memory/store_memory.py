import copy
import threading
from collections import defaultdict
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Type

from ....application.ports.store import M, Store, StoreTransaction


class InMemoryStoreTransaction(StoreTransaction):
    def __init__(self, store: "InMemoryStore"):
        self._store = store

    def _rows(self, kind: Type[M]) -> Dict[int, Dict[str, Any]]:
        return self._store._tables[kind]

    def get(self, kind: Type[M], entity_id: int) -> Optional[M]:
        row = self._rows(kind).get(entity_id)
        return kind(**row) if row is not None else None

    def find(self, kind: Type[M], **equals: Any) -> List[M]:
        rows = self._rows(kind)
        return [
            kind(**rows[key]) for key in sorted(rows)
            if all(rows[key].get(name) == value for name, value in equals.items())
        ]

    def add(self, entity: M) -> M:
        kind = type(entity)
        if entity.id is None:
            self._store._ids[kind] += 1
            entity.id = self._store._ids[kind]
        self._rows(kind)[entity.id] = entity.model_dump()
        return entity

    def compare_and_set(self, kind: Type[M], entity_id: int, expected: Dict[str, Any], changes: Dict[str, Any]) -> bool:
        row = self._rows(kind).get(entity_id)
        if row is None:
            return False
        if any(row.get(name) != value for name, value in expected.items()):
            return False
        row.update(changes)
        return True

    def delete(self, kind: Type[M], entity_id: int) -> bool:
        return self._rows(kind).pop(entity_id, None) is not None


class InMemoryStore(Store):
    """Process-local store. Transactions are fully serialized and roll back on any error."""

    def __init__(self) -> None:
        self._tables: Dict[type, Dict[int, Dict[str, Any]]] = defaultdict(dict)
        self._ids: Dict[type, int] = defaultdict(int)
        self._lock = threading.RLock()

    @contextmanager
    def atomic(self) -> Iterator[InMemoryStoreTransaction]:
        with self._lock:
            tables, ids = copy.deepcopy(self._tables), defaultdict(int, self._ids)
            try:
                yield InMemoryStoreTransaction(self)
            except BaseException:
                self._tables, self._ids = tables, ids
                raise
