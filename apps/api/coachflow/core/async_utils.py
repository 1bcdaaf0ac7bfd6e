from __future__ import annotations

import asyncio
from typing import Coroutine, TypeVar

import anyio
from anyio import from_thread

T = TypeVar("T")


def run_async(coro: Coroutine[object, object, T], *, timeout: float | None = None) -> T:
    """
    Drive an async collaborator call (content producer) from the sync service layer.

    - Inside FastAPI sync endpoints and worker threads the call is handed back
      to the event loop via anyio.from_thread.run.
    - From the CLI or tests (no AnyIO worker thread) a fresh loop is started
      with anyio.run.
    - When timeout is set and exceeded, TimeoutError is raised and the
      coroutine is cancelled.
    """
    started = False

    async def _bounded() -> T:
        nonlocal started
        started = True
        if timeout is None:
            return await coro
        with anyio.fail_after(timeout):
            return await coro

    try:
        return from_thread.run(_bounded)
    except RuntimeError:
        # The collaborator itself raised; not a missing event loop
        if started:
            raise
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return anyio.run(_bounded)
        coro.close()
        raise RuntimeError("run_async called from async context; use await instead")
