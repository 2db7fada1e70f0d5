"""
WorkScheduler - Bounded-concurrency execution of one task per work item.
"""

import logging
import os
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Iterable, Iterator, Optional, TypeVar

T = TypeVar('T')
R = TypeVar('R')


@dataclass
class TaskOutcome(Generic[T, R]):
    """
    Settled result of one task.

    Attributes:
        item: The work item the task ran for
        result: Return value of the task (None if it raised)
        error: Exception raised by the task, if any
    """
    item: T
    result: Optional[R] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class WorkScheduler:
    """
    Runs one task per item with at most `concurrency` tasks in flight.

    Items are submitted lazily, so a stop request prevents further items
    from starting while in-flight tasks run to completion. Outcomes are
    yielded to the caller's thread as tasks settle; a task failure never
    cancels other tasks.
    """

    def __init__(
        self,
        concurrency: Optional[int] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize scheduler.

        Args:
            concurrency: Maximum tasks in flight (default: CPU count)
            logger: Optional logger instance
        """
        self.concurrency = concurrency or os.cpu_count() or 1
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self.logger = logger or logging.getLogger(__name__)
        self._stop = threading.Event()

    def stop(self) -> None:
        """Stop starting new tasks; in-flight tasks still complete."""
        self._stop.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def run(self, items: Iterable[T], task: Callable[[T], R]) -> Iterator[TaskOutcome[T, R]]:
        """
        Execute `task` for every item, yielding outcomes as they settle.

        Args:
            items: Work items; consumed lazily
            task: Callable invoked once per item in a worker thread

        Yields:
            TaskOutcome for each started item, in completion order
        """
        pending: Dict[Future, T] = {}
        source = iter(items)

        with ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix='imgbatch') as executor:
            exhausted = self._fill(executor, source, task, pending)

            while pending:
                done, _ = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    item = pending.pop(future)
                    error = future.exception()
                    if error is not None:
                        yield TaskOutcome(item=item, error=error)
                    else:
                        yield TaskOutcome(item=item, result=future.result())

                if not exhausted:
                    exhausted = self._fill(executor, source, task, pending)

        if self.stop_requested:
            self.logger.info("Stop requested, remaining items were not started")

    def _fill(
        self,
        executor: ThreadPoolExecutor,
        source: Iterator[T],
        task: Callable[[T], R],
        pending: Dict[Future, T]
    ) -> bool:
        """Top up in-flight tasks to the limit. Returns True once nothing more will start."""
        while len(pending) < self.concurrency:
            if self.stop_requested:
                return True
            try:
                item = next(source)
            except StopIteration:
                return True
            pending[executor.submit(task, item)] = item
        return False
