"""In-process guard against concurrent checkouts of the same cart.

A second attempt on a held cart fails fast with CheckoutInProgressError
instead of waiting: it would only find the cart already converted. The
persisted checkout token on the cart covers attempts that run in other
processes.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from threading import Lock

from ordering.exceptions import CheckoutInProgressError


class CheckoutGuard:
    def __init__(self) -> None:
        self._locks: dict[str, Lock] = {}
        self._global_lock = Lock()

    def _lock_for(self, resource_id: str) -> Lock:
        with self._global_lock:
            if resource_id not in self._locks:
                self._locks[resource_id] = Lock()
            return self._locks[resource_id]

    def is_held(self, resource_id: str) -> bool:
        return self._lock_for(str(resource_id)).locked()

    @contextmanager
    def hold(self, resource_id: str) -> Iterator[None]:
        lock = self._lock_for(str(resource_id))
        if not lock.acquire(blocking=False):
            raise CheckoutInProgressError(str(resource_id))
        try:
            yield
        finally:
            lock.release()


_default_guard = CheckoutGuard()


def default_guard() -> CheckoutGuard:
    return _default_guard
