import asyncio
from typing import Any, Callable, TypeVar

T = TypeVar("T")


async def run_to_completion(func: Callable[..., T], *args: Any) -> T:
    """
    Run a blocking call in a worker thread and wait for it to finish even if
    the calling task is cancelled meanwhile.

    A cancellation received while waiting is re-raised only after the call
    has succeeded; if the call failed, its own exception is raised instead.
    """
    task = asyncio.ensure_future(asyncio.to_thread(func, *args))
    cancelled = False
    while not task.done():
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            cancelled = True

    result = task.result()
    if cancelled:
        raise asyncio.CancelledError()
    return result
