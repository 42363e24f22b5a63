import logging
from typing import Callable, Optional

from fastapi import BackgroundTasks

logger = logging.getLogger(__name__)


class BestEffortDispatcher:
    """
    Runs side effects whose failure must never reach the caller.

    With a ``BackgroundTasks`` instance the work is deferred until after the
    response has been sent; without one it runs inline. Either way every
    exception is logged and discarded.
    """

    def __init__(self, background_tasks: Optional[BackgroundTasks] = None):
        self.background_tasks = background_tasks

    def submit(self, label: str, func: Callable, *args, **kwargs) -> None:
        if self.background_tasks is not None:
            self.background_tasks.add_task(self._run, label, func, *args, **kwargs)
        else:
            self._run(label, func, *args, **kwargs)

    @staticmethod
    def _run(label: str, func: Callable, *args, **kwargs) -> None:
        try:
            func(*args, **kwargs)
        except Exception as e:
            logger.error(f"{label} failed: {e}", exc_info=True)
