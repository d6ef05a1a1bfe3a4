import logging
import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from ..ports.store import Store, StoreTransaction, TransientStorageError
from ...exceptions import SchedulingError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class AtomicRunner:
    """Runs a unit of work in one store transaction, retrying transient storage failures
    with exponential backoff. Domain errors propagate on the first attempt."""

    store: Store
    max_attempts: int = 3
    backoff_seconds: float = 0.05
    sleep: Callable[[float], None] = field(default=time.sleep)

    def run(self, work: Callable[[StoreTransaction], T], on_exhausted: Callable[[], SchedulingError], label: str = "unit") -> T:
        attempts = max(1, self.max_attempts)
        for attempt in range(attempts):
            try:
                with self.store.atomic() as tx:
                    return work(tx)
            except TransientStorageError as e:
                logger.warning(f"Transient storage failure in {label} (attempt {attempt + 1}/{attempts}): {e}")
                if attempt == attempts - 1:
                    logger.error(f"All retries failed for {label}")
                    raise on_exhausted() from e
            self.sleep(self.backoff_seconds * (2 ** attempt))
