from __future__ import annotations
"""Run blocking store calls without stalling an asyncio event loop."""
import asyncio
from concurrent.futures import ThreadPoolExecutor
import logging
import threading
from typing import Callable, TypeVar

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

S3_FS_TYPE = "s3"

_POOLS: dict[str, ThreadPoolExecutor] = {}
_POOLS_LOCK = threading.Lock()


def get_worker_pool(fs_type: str, max_workers: int | None = None) -> ThreadPoolExecutor:
    """Return the process-wide worker pool for ``fs_type``, creating it once."""

    with _POOLS_LOCK:
        pool = _POOLS.get(fs_type)
        if pool is None:
            pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=f"{fs_type}-io")
            _POOLS[fs_type] = pool
        return pool


def shutdown_worker_pools(wait: bool = True) -> None:
    with _POOLS_LOCK:
        pools = list(_POOLS.values())
        _POOLS.clear()
    for pool in pools:
        pool.shutdown(wait=wait)


def in_event_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


class DispatchBridge:
    """Runs store operations from either plain threads or coroutines.

    Plain threads run the operation inline. A synchronous :meth:`execute`
    made from an event loop thread is handed to the worker pool, so the
    network call never executes on the loop's thread, but the loop thread
    still blocks on the result and no other task runs meanwhile. Coroutines
    should ``await run(...)`` (or use ``AsyncS3FileSystem``), which parks only
    the calling task.
    """

    def __init__(self, fs_type: str = S3_FS_TYPE, max_workers: int | None = None):
        self._fs_type = fs_type
        self._max_workers = max_workers

    @property
    def fs_type(self) -> str:
        return self._fs_type

    def _pool(self) -> ThreadPoolExecutor:
        return get_worker_pool(self._fs_type, self._max_workers)

    def execute(self, op: Callable[..., T], *args, **kwargs) -> T:
        if not in_event_loop():
            return op(*args, **kwargs)
        LOGGER.debug("Handing %s to the %s worker pool", getattr(op, "__name__", op), self._fs_type)
        future = self._pool().submit(op, *args, **kwargs)
        return future.result()

    async def run(self, op: Callable[..., T], *args, **kwargs) -> T:
        future = self._pool().submit(op, *args, **kwargs)
        return await asyncio.wrap_future(future)
