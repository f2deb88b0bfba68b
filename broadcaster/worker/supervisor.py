"""
Supervision for detached background tasks.

Tasks spawned here are strongly referenced until they finish, their
failures are logged, and ``shutdown`` cancels whatever is still running.
"""

import asyncio
from typing import Coroutine, Set

from ..logging_config import worker_logger


class TaskSupervisor:
    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    @property
    def active(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine, name: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        worker_logger.debug("Spawned background task", task=name)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            worker_logger.debug("Background task cancelled", task=task.get_name())
            return
        error = task.exception()
        if error is not None:
            worker_logger.error("Background task crashed", error=error, task=task.get_name())

    async def shutdown(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        worker_logger.info("Background tasks stopped", count=len(tasks))
