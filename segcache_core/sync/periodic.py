"""SegCache Periodic Task - Cancellable Timed Background Work.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class TaskStats:
    """Periodic task statistics.

    Attributes:
        runs: Invocations that completed
        failures: Invocations that raised
        timeouts: Invocations abandoned at the timeout
        skipped: Ticks skipped because the previous run was still going
    """

    runs: int = 0
    failures: int = 0
    timeouts: int = 0
    skipped: int = 0


class PeriodicTask:
    """Runs a function on a fixed interval until stopped.

    Each run happens on a single worker thread and is waited on for at
    most ``timeout`` seconds; a run that overstays is abandoned for that
    tick and logged. A tick that finds the previous run still going is
    skipped, so runs never overlap.

    Example:
        task = PeriodicTask(synchronizer.reconcile, interval=360, timeout=45)
        task.start()
        ...
        task.stop()
    """

    def __init__(
        self,
        func: Callable[[], Any],
        interval: float,
        timeout: Optional[float] = None,
        name: str = "periodic",
        run_immediately: bool = True,
    ):
        """Initialize task.

        Args:
            func: Work to run each tick
            interval: Seconds between ticks
            timeout: Seconds to wait for one run
            name: Thread name
            run_immediately: Run once at start instead of after one interval
        """
        self.func = func
        self.interval = interval
        self.timeout = timeout
        self.name = name
        self.run_immediately = run_immediately

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._current: Optional[Future] = None
        self._stats = TaskStats()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and not self._stop_event.is_set()

    def start(self) -> None:
        """Start ticking."""
        if self._thread is not None:
            return

        self._stop_event.clear()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"{self.name}-worker")
        self._thread = threading.Thread(
            target=self._loop,
            daemon=True,
            name=self.name,
        )
        self._thread.start()
        logger.info(f"Periodic task {self.name} started (every {self.interval}s)")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop ticking. A run in progress may finish on its own."""
        self._stop_event.set()

        if self._thread is not None:
            if self._thread is not threading.current_thread():
                self._thread.join(timeout=timeout)
            self._thread = None

        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
            logger.info(f"Periodic task {self.name} stopped")

    def run_once(self) -> bool:
        """Submit one run and wait for it.

        Returns:
            True if the run completed without error
        """
        if self._executor is None:
            return False

        if self._current is not None and not self._current.done():
            self._stats.skipped += 1
            logger.warning(f"Periodic task {self.name} still running, skipping tick")
            return False

        self._current = self._executor.submit(self.func)
        try:
            self._current.result(timeout=self.timeout)
            self._stats.runs += 1
            return True
        except FutureTimeoutError:
            self._stats.timeouts += 1
            logger.warning(
                f"Periodic task {self.name} exceeded {self.timeout}s, abandoned for this cycle"
            )
        except Exception as e:
            self._stats.failures += 1
            logger.error(f"Periodic task {self.name} failed: {e}")
        return False

    def _loop(self) -> None:
        if not self.run_immediately:
            self._stop_event.wait(self.interval)

        while not self._stop_event.is_set():
            try:
                self.run_once()
            except Exception as e:
                logger.error(f"Periodic task {self.name} error: {e}")

            self._stop_event.wait(self.interval)

    def get_stats(self) -> TaskStats:
        return self._stats

    def __enter__(self) -> "PeriodicTask":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def __repr__(self) -> str:
        return f"PeriodicTask(name={self.name!r}, interval={self.interval}, running={self.is_running})"


__all__ = ["PeriodicTask", "TaskStats"]
