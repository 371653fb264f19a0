"""Task lifecycle: shutdown signals and trackers for background tasks.

Each task phase (node, wallet, mining, ...) owns a shutdown signal and a
tracker for the fire-and-forget tasks spawned on its behalf. Trackers are
created by the application and injected into managers.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from .binaries import TaskPhase

if TYPE_CHECKING:
    from collections.abc import Coroutine

logger = structlog.get_logger(__name__)

DEFAULT_STOP_TIMEOUT = 5.0


class ShutdownSignal:
    """One-shot cancellation signal observed cooperatively by tasks."""

    def __init__(self) -> None:
        """Initialize an untriggered signal."""
        self._event = asyncio.Event()

    def trigger(self) -> None:
        """Fire the signal. Idempotent."""
        self._event.set()

    def is_triggered(self) -> bool:
        """Check whether the signal has fired."""
        return self._event.is_set()

    async def wait(self) -> None:
        """Wait until the signal fires."""
        await self._event.wait()


class TaskTracker:
    """Keeps references to spawned tasks until they finish.

    Tasks are not awaited by whoever spawned them; the tracker only makes
    sure they are not garbage collected mid-flight and can be drained on
    shutdown.
    """

    def __init__(self, name: str) -> None:
        """Initialize the tracker.

        Args:
            name: Name used in log entries and task names.
        """
        self._name = name
        self._tasks: set[asyncio.Task[Any]] = set()
        self._log = logger.bind(component="task_tracker", tracker=name)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task[Any]:
        """Schedule a coroutine as a tracked task.

        Args:
            coro: Coroutine to run.
            name: Optional task name.

        Returns:
            The created task.
        """
        task = asyncio.create_task(coro, name=name or f"{self._name}-task")
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._log.error("tracked_task_failed", task=task.get_name(), error=str(error))

    @property
    def active_count(self) -> int:
        """Number of tasks still running."""
        return len(self._tasks)

    async def wait(self, timeout: float = DEFAULT_STOP_TIMEOUT) -> None:
        """Wait for tracked tasks, cancelling whatever outlives the timeout."""
        if not self._tasks:
            return

        pending = set(self._tasks)
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            self._log.warning("cancelling_tracked_task", task=task.get_name())
            task.cancel()
        for task in still_running:
            with contextlib.suppress(asyncio.CancelledError):
                await task


@dataclass
class PhaseTracker:
    """Shutdown signal and task tracker for one task phase."""

    phase: TaskPhase
    signal: ShutdownSignal = field(default_factory=ShutdownSignal)
    tracker: TaskTracker = field(init=False)

    def __post_init__(self) -> None:
        """Create the task tracker named after the phase."""
        self.tracker = TaskTracker(self.phase.value)

    async def stop(self, timeout: float = DEFAULT_STOP_TIMEOUT) -> None:
        """Trigger the shutdown signal and drain the phase's tasks."""
        self.signal.trigger()
        await self.tracker.wait(timeout)


class TasksTrackers:
    """Registry of per-phase trackers.

    Example:
        >>> trackers = TasksTrackers()
        >>> trackers.get(TaskPhase.NODE).signal.is_triggered()
        False
    """

    def __init__(self) -> None:
        """Create a tracker for every task phase."""
        self._phases = {phase: PhaseTracker(phase) for phase in TaskPhase}

    def get(self, phase: TaskPhase) -> PhaseTracker:
        """Return the tracker for a task phase."""
        return self._phases[phase]

    async def stop_all(self, timeout: float = DEFAULT_STOP_TIMEOUT) -> None:
        """Stop every phase."""
        logger.info("stopping_all_task_phases")
        for phase_tracker in self._phases.values():
            await phase_tracker.stop(timeout)
