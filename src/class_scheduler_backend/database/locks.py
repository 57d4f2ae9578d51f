'''
Locks that serialize check-then-write sequences on the same room or instructor.
'''
import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..common.logger import log

# one lock per resource key while anyone holds or waits for it
_local_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


def scheduling_lock_keys(*resource_ids: UUID | None) -> list[str]:
    """Sorted, de-duplicated keys so every request locks in the same order."""
    return sorted({str(resource_id) for resource_id in resource_ids if resource_id is not None})


def _local_lock(key: str) -> asyncio.Lock:
    lock = _local_locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _local_locks[key] = lock
    return lock


@asynccontextmanager
async def scheduling_locks(db: AsyncSession, *resource_ids: UUID | None) -> AsyncIterator[list[str]]:
    """
    Holds a lock per room/instructor id for the body of the block, which must
    contain the conflict check, the writes and the commit.

    PostgreSQL takes an advisory transaction lock per key, released when the
    transaction ends, so it also covers several worker processes. Other
    dialects fall back to in-process asyncio locks held until the block exits.
    """
    keys = scheduling_lock_keys(*resource_ids)

    if db.bind is not None and db.bind.dialect.name == "postgresql":
        for key in keys:
            await db.execute(select(func.pg_advisory_xact_lock(func.hashtext(key))))
        log.info(f"Acquired advisory scheduling locks for {keys}")
        yield keys
        return

    held: list[asyncio.Lock] = []
    try:
        for key in keys:
            lock = _local_lock(key)
            await lock.acquire()
            held.append(lock)
        log.debug(f"Acquired local scheduling locks for {keys}")
        yield keys
    finally:
        for lock in reversed(held):
            lock.release()
