
from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Coroutine, TypeVar

T = TypeVar("T")


def run_sync(coro: Coroutine[Any, Any, T]) -> T:
    """Drive ``coro`` to completion from synchronous code.

    The coroutine runs on a fresh event loop in a worker thread and the calling
    thread blocks until it finishes. Calling this from a thread that already runs
    an event loop would block that loop, so it is refused.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        pass
    else:
        coro.close()
        raise RuntimeError("run_sync() cannot be called from a running event loop; await the coroutine instead")

    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="dpaws-sync") as executor:
        return executor.submit(asyncio.run, coro).result()


__all__ = ["run_sync"]
