"""
Interface to the external worker engine that actually runs download tasks.
"""

from typing import Callable, Optional, Protocol

from adx_batch.models import EventEnvelope, ManifestDescriptor, Task, TaskRequest

EventHandler = Callable[[EventEnvelope], None]
ErrorHandler = Callable[[Exception], None]


class Subscription(Protocol):
    """Handle for a live event subscription."""

    async def close(self) -> None:
        """Stops delivery. Safe to call more than once."""


class TaskEngine(Protocol):
    """
    Protocol implemented by engine clients.

    Every method may suspend for an unbounded time; callers do not add
    their own timeouts. Failures surface as `IOFailure`, or as
    `ValidationFailure` when the engine rejects the input.
    """

    async def list_catalog(self) -> list[ManifestDescriptor]:
        """Returns the full catalog in the engine's order."""

    async def refresh_catalog(self, directory: str) -> None:
        """Rebuilds the catalog from the given directory."""

    async def start_task(self, request: TaskRequest) -> str:
        """Starts a task and returns its identifier."""

    async def cancel_task(self, task_id: str) -> None:
        """Requests cancellation. Returns before the task actually stops."""

    async def fetch_task_state(self, task_id: str) -> Optional[Task]:
        """Returns the current snapshot, or None if the engine does not know the task."""

    async def subscribe(
        self, handler: EventHandler, on_error: Optional[ErrorHandler] = None
    ) -> Subscription:
        """Delivers every task event to `handler` until the subscription is closed."""
