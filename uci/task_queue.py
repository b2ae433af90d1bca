"""
FIFO task queue bound to a single engine worker.

Each task is an async operation that writes commands to the worker and
awaits the lines it needs. Exactly one task is active at a time, so a
worker's command stream is never interleaved between two tasks.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Optional

from .correlator import DEFAULT_TIMEOUT, LineCallback, LineCorrelator, LinePredicate
from .errors import EngineTaskCanceledError
from .worker import BaseWorker

logger = logging.getLogger(__name__)

Operation = Callable[[], Awaitable[Any]]


@dataclass(eq=False)
class _Task:
    """A queued operation and the future its submitter awaits."""
    operation: Operation
    future: asyncio.Future

    def resolve(self, value: Any) -> None:
        if not self.future.done():
            self.future.set_result(value)

    def reject(self, error: BaseException) -> None:
        if not self.future.done():
            self.future.set_exception(error)


class WorkerTaskQueue:
    """
    Owns one worker handle and serializes everything written to it.

    Handles:
    - strict submission-order execution, one active task at a time
    - flushing queued (not yet started) tasks with a reason
    - permanent termination that rejects queued, active and waiting work
    """

    def __init__(self, worker: BaseWorker, name: str = "worker", timeout: float = DEFAULT_TIMEOUT):
        """
        Initialize the queue.

        Args:
            worker: Worker handle (owned by this queue from now on)
            name: Label used in log output ("play", "analysis")
            timeout: Default seconds to wait for an engine response
        """
        self.name = name
        self.timeout = timeout
        self._worker = worker
        self._correlator = LineCorrelator()
        self._queued: Deque[_Task] = deque()
        self._active: Optional[_Task] = None
        self._runner: Optional[asyncio.Future] = None
        self._terminated = False

        worker.add_listener(self._correlator.dispatch)

    @property
    def terminated(self) -> bool:
        return self._terminated

    @property
    def busy(self) -> bool:
        return self._active is not None

    @property
    def queued_count(self) -> int:
        return len(self._queued)

    # ------------------------------------------------------------------
    # Worker I/O (only called from inside enqueued operations)
    # ------------------------------------------------------------------

    def send(self, command: str) -> None:
        """Write one command line to the worker."""
        if self._terminated:
            raise EngineTaskCanceledError("terminated")
        logger.debug(f"[{self.name}] >> {command}")
        self._worker.post_message(command)

    def wait_for_line(
        self,
        predicate: LinePredicate,
        timeout: Optional[float] = None,
        on_line: Optional[LineCallback] = None,
    ) -> asyncio.Future:
        """Await the first worker line matching `predicate` (see LineCorrelator)."""
        if self._terminated:
            return self._failed_future(EngineTaskCanceledError("terminated"))
        return self._correlator.wait_for_line(
            predicate,
            timeout=self.timeout if timeout is None else timeout,
            on_line=on_line,
        )

    # ------------------------------------------------------------------
    # Task lifecycle
    # ------------------------------------------------------------------

    def enqueue(self, operation: Operation) -> asyncio.Future:
        """
        Append an operation to the queue.

        The operation starts immediately when the queue is idle. On a
        terminated queue the returned future is already failed.

        Returns:
            Future settling with the operation's result or error
        """
        if self._terminated:
            return self._failed_future(EngineTaskCanceledError("terminated"))

        task = _Task(operation=operation, future=asyncio.get_running_loop().create_future())
        self._queued.append(task)
        self._process_queue()
        return task.future

    def _process_queue(self) -> None:
        """Start the queue head if nothing is active."""
        if self._active is not None or not self._queued or self._terminated:
            return

        task = self._queued.popleft()
        self._active = task

        try:
            awaitable = task.operation()
        except Exception as e:
            task.reject(e)
            self._active = None
            self._process_queue()
            return

        self._runner = asyncio.ensure_future(self._run(task, awaitable))

    async def _run(self, task: _Task, awaitable: Awaitable[Any]) -> None:
        """Drive one operation and hand over to the next task afterwards."""
        try:
            value = await awaitable
        except asyncio.CancelledError:
            task.reject(EngineTaskCanceledError("canceled"))
            raise
        except Exception as e:
            logger.debug(f"[{self.name}] task failed: {e}")
            task.reject(e)
        else:
            task.resolve(value)
        finally:
            if self._active is task:
                self._active = None
            self._process_queue()

    def flush(self, reason: str = "flushed") -> int:
        """
        Reject every queued task that has not started yet.

        The active task is left alone.

        Returns:
            Number of tasks rejected
        """
        queued, self._queued = self._queued, deque()
        for task in queued:
            task.reject(EngineTaskCanceledError(reason))
        if queued:
            logger.debug(f"[{self.name}] flushed {len(queued)} task(s): {reason}")
        return len(queued)

    def terminate(self) -> None:
        """
        Close the queue for good and release the worker. Idempotent.
        """
        if self._terminated:
            return

        self._terminated = True
        error = EngineTaskCanceledError("terminated")
        self.flush("terminated")
        self._correlator.reject_all(error)

        if self._active is not None:
            self._active.reject(error)
            self._active = None

        self._worker.terminate()
        logger.debug(f"[{self.name}] terminated")

    async def wait_closed(self) -> None:
        """Wait for the released worker to exit."""
        await self._worker.wait_closed()

    @staticmethod
    def _failed_future(error: BaseException) -> asyncio.Future:
        future = asyncio.get_running_loop().create_future()
        future.set_exception(error)
        return future
