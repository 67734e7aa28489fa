"""
Per-tournament mutation lock.

FastAPI runs sync handlers on a thread pool, so two writes to the same
tournament could otherwise interleave between reading the match list and
writing recomputed placements. One generate/update/correct call holds the
tournament's lock for its whole duration.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator

_registry_lock = threading.Lock()
_tournament_locks: Dict[int, threading.Lock] = {}


def _lock_for(tournament_id: int) -> threading.Lock:
    with _registry_lock:
        lock = _tournament_locks.get(tournament_id)
        if lock is None:
            lock = threading.Lock()
            _tournament_locks[tournament_id] = lock
        return lock


@contextmanager
def tournament_lock(tournament_id: int) -> Iterator[None]:
    lock = _lock_for(tournament_id)
    with lock:
        yield
