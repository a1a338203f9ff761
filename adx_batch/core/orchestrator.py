"""
Drives one engine task at a time and merges its two observation channels.

Pushed events supply the narrative log lines, while polled snapshots are the
only source of numeric progress. Both channels, and the outcome of a start
call, are turned into messages and applied by a single reducer, `apply()`.
Everything runs on one event loop, so the reducer needs no locks.
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Optional, Union

from adx_batch.engine.base import Subscription, TaskEngine
from adx_batch.models import EventEnvelope, Task, TaskRequest

from .log_buffer import LogBuffer

log = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.9


@dataclass(frozen=True)
class StartSucceeded:
    task_id: str


@dataclass(frozen=True)
class PollObserved:
    task_id: str
    task: Task


@dataclass(frozen=True)
class EventObserved:
    envelope: EventEnvelope


@dataclass(frozen=True)
class TrackingCleared:
    pass


Observation = Union[StartSucceeded, PollObserved, EventObserved, TrackingCleared]


class TaskOrchestrator:
    """
    Owns the tracked task id, the busy gate, the poll loop and the event subscription.

    `busy` is set as soon as a launch begins, before the engine has reported
    any status, and is cleared only by a failed start or by a terminal status
    observed for the tracked task.
    """

    def __init__(
        self,
        engine: TaskEngine,
        logs: LogBuffer,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self.engine = engine
        self.logs = logs
        self.poll_interval = poll_interval

        self.task_id: Optional[str] = None
        self.task: Optional[Task] = None
        self.busy = False

        self._poll_task: Optional[asyncio.Task] = None
        self._subscription: Optional[Subscription] = None

    @property
    def state(self) -> str:
        if not self.busy:
            return "idle"
        return "active" if self.task_id else "starting"

    async def launch(self, request: TaskRequest) -> Optional[str]:
        """
        Starts a task unless one is already in progress.

        Returns the new task id, or None when the call was ignored because the
        orchestrator is busy. Engine failures propagate after busy is reset.
        """
        if self.busy:
            log.debug("Launch ignored: a task is already in progress.")
            return None

        self.busy = True
        self.logs.clear()
        self.task = None
        try:
            # Untrack the previous task first so its late polls cannot clear busy.
            await self._track(None)
            task_id = await self.engine.start_task(request)
        except BaseException:
            self.busy = False
            raise

        await self._track(task_id)
        return task_id

    async def cancel(self) -> None:
        """
        Asks the engine to cancel the tracked task. No-op when nothing is tracked.

        The local status is left alone; the engine's terminal status arrives
        through the normal channels.
        """
        task_id = self.task_id
        if not task_id:
            return
        await self.engine.cancel_task(task_id)
        self.logs.append(f"Cancel requested for task: {task_id}")
        log.info(f"Cancel requested for task [cyan]{task_id}[/cyan]")

    async def close(self) -> None:
        """Stops tracking the current task and tears down both channels."""
        await self._track(None)

    def clear_logs(self) -> None:
        self.logs.clear()

    def apply(self, message: Observation) -> None:
        """Applies one observation to the orchestrator state."""
        if isinstance(message, StartSucceeded):
            self.task_id = message.task_id
            self.logs.append(f"Task started: {message.task_id}")
            log.info(f"Task started: [cyan]{message.task_id}[/cyan]")

        elif isinstance(message, TrackingCleared):
            self.task_id = None

        elif isinstance(message, PollObserved):
            if message.task_id != self.task_id:
                log.debug(f"Dropping stale poll result for task {message.task_id}")
                return
            self.task = message.task
            if message.task.status.is_terminal:
                self.busy = False

        elif isinstance(message, EventObserved):
            envelope = message.envelope
            if self.task_id is None or envelope.task_id != self.task_id:
                log.debug(f"Dropping event for untracked task {envelope.task_id}")
                return
            self.logs.append(envelope.message)
            if envelope.status is not None and envelope.status.is_terminal:
                self.busy = False

    async def _track(self, task_id: Optional[str]) -> None:
        if task_id is not None and task_id == self.task_id:
            return
        # Untrack before any await so observations delivered during teardown are stale.
        self.apply(TrackingCleared())
        await self._stop_channels()
        if task_id is None:
            return
        self.apply(StartSucceeded(task_id))
        self._poll_task = asyncio.create_task(
            self._poll_loop(task_id), name=f"poll-{task_id}"
        )
        try:
            self._subscription = await self.engine.subscribe(
                self._on_event, self._on_event_error
            )
        except Exception as e:
            self._on_event_error(e)

    async def _stop_channels(self) -> None:
        poll_task, self._poll_task = self._poll_task, None
        if poll_task and not poll_task.done():
            poll_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await poll_task

        subscription, self._subscription = self._subscription, None
        if subscription:
            await subscription.close()

    async def _poll_loop(self, task_id: str) -> None:
        """Fetches state at a fixed interval until untracked; one request is in flight at most."""
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                task = await self.engine.fetch_task_state(task_id)
            except Exception as e:
                self.logs.append(f"Failed to poll task state: {e}")
                log.warning(f"[yellow]Failed to poll task state: {e}[/yellow]")
                continue

            if task is None:
                continue
            self.apply(PollObserved(task_id, task))

    def _on_event(self, envelope: EventEnvelope) -> None:
        self.apply(EventObserved(envelope))

    def _on_event_error(self, error: Exception) -> None:
        self.logs.append(f"Failed to listen for task events: {error}")
        log.warning(f"[yellow]Failed to listen for task events: {error}[/yellow]")
