"""Bridge blocking producers running in worker threads into async iterators.

The Docker SDK only offers blocking generators.  ``threaded_source`` runs a
producer function in a daemon thread and hands every item it emits to the
event loop through a bounded ``asyncio.Queue``.  ``emit`` blocks the calling
thread while the queue is full, so a slow sink slows the producer down
instead of growing memory.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from collections.abc import AsyncIterator, Callable
from typing import Any

logger = logging.getLogger(__name__)

Emit = Callable[[Any], None]
Producer = Callable[[Emit, threading.Event], None]

_END = object()
_POLL_SECONDS = 0.5


class SourceClosed(Exception):
    """Raised inside a producer thread once the consumer has gone away."""


class _Failure:
    def __init__(self, exc: BaseException) -> None:
        self.exc = exc


async def threaded_source(
    producer: Producer,
    *,
    name: str = "source",
    maxsize: int = 1024,
) -> AsyncIterator[Any]:
    """Run *producer* in a thread and yield what it emits.

    Parameters
    ----------
    producer:
        ``producer(emit, stopped)``.  Calls ``emit(item)`` for every item
        (from any thread) and should return once ``stopped`` is set.  The
        iterator ends when the producer returns; an exception raised by the
        producer is re-raised to the consumer.
    name:
        Thread name, for diagnostics.
    maxsize:
        Bound of the hand-off queue.
    """
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)
    stopped = threading.Event()

    def emit(item: Any) -> None:
        if stopped.is_set():
            raise SourceClosed(name)
        future = asyncio.run_coroutine_threadsafe(queue.put(item), loop)
        while True:
            try:
                future.result(timeout=_POLL_SECONDS)
                return
            except concurrent.futures.TimeoutError:
                if stopped.is_set():
                    future.cancel()
                    raise SourceClosed(name) from None

    def finish(item: Any) -> None:
        if loop.is_closed():
            return
        try:
            asyncio.run_coroutine_threadsafe(queue.put(item), loop)
        except RuntimeError:
            logger.debug("Event loop gone before %s finished", name)

    def worker() -> None:
        try:
            producer(emit, stopped)
        except SourceClosed:
            pass
        except Exception as exc:  # noqa: BLE001
            finish(_Failure(exc))
        finally:
            finish(_END)

    thread = threading.Thread(target=worker, name=f"{name}-producer", daemon=True)
    thread.start()
    try:
        while True:
            item = await queue.get()
            if item is _END:
                return
            if isinstance(item, _Failure):
                raise item.exc
            yield item
    finally:
        stopped.set()


def spawn(target: Callable[..., None], *args: Any, name: str) -> threading.Thread:
    """Start a daemon thread running ``target(*args)`` and return it."""
    thread = threading.Thread(target=target, args=args, name=name, daemon=True)
    thread.start()
    return thread
