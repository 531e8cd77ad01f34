"""All-or-nothing join for concurrent work."""

import asyncio
from typing import Awaitable, Sequence, TypeVar

T = TypeVar("T")


async def gather_all_or_nothing(awaitables: Sequence[Awaitable[T]]) -> list[T]:
    """
    Run awaitables concurrently and wait for every one of them.

    Either all results are returned, in input order, or the first failure is
    raised after every still-running sibling has been cancelled and awaited.
    There is no per-task isolation: one failure fails the whole batch. If the
    caller is cancelled, all tasks are cancelled too.

    Args:
        awaitables: Coroutines or futures to run

    Returns:
        Results in the same order as ``awaitables``
    """
    tasks = [asyncio.ensure_future(aw) for aw in awaitables]
    if not tasks:
        return []

    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        failed = next(
            (t for t in tasks if t in done and not t.cancelled() and t.exception() is not None),
            None,
        )
        if failed is not None:
            await _cancel_all(pending)
            raise failed.exception()
        return [t.result() for t in tasks]
    finally:
        await _cancel_all([t for t in tasks if not t.done()])


async def _cancel_all(tasks) -> None:
    for task in tasks:
        task.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)
