import asyncio
from typing import Callable, Coroutine, List, Optional, Set

from app.core.logger import logger


class AttendanceSession:
    """
    Explicitly owned state of one attendance flow on the volunteer's device.

    Closing the session (navigating away) cancels every task it owns, runs
    the registered teardown callbacks and bumps the generation so responses
    that arrive afterwards are recognised as stale and dropped.
    """

    def __init__(self, access_token: Optional[str], expected_action: Optional[str] = None):
        self.access_token = access_token
        self.expected_action = expected_action
        self.generation = 0
        self.closed = False
        self._tasks: Set[asyncio.Task] = set()
        self._teardown: List[Callable[[], None]] = []

    def is_current(self, generation: int) -> bool:
        return not self.closed and generation == self.generation

    def spawn(self, coro: Coroutine) -> asyncio.Task:
        if self.closed:
            coro.close()
            raise RuntimeError('Attendance session is closed')
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def add_teardown(self, callback: Callable[[], None]):
        self._teardown.append(callback)

    def close(self):
        if self.closed:
            return
        self.closed = True
        self.generation += 1
        for task in list(self._tasks):
            task.cancel()
        for callback in self._teardown:
            callback()
        logger.info('Attendance session closed, %s task(s) cancelled', len(self._tasks))

    async def aclose(self):
        """Close and wait until owned tasks have released their resources."""
        tasks = list(self._tasks)
        self.close()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
