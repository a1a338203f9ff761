"""
The display-facing facade that wires the catalog selection, the task
orchestrator and the shared log buffer together for one user session.
"""

import logging
from typing import Optional

from adx_batch.engine.base import TaskEngine
from adx_batch.exceptions import ValidationFailure
from adx_batch.models import ManifestDescriptor, Task, TaskOptions, TaskRequest
from adx_batch.models.task import TaskStatusView

from .log_buffer import DEFAULT_LOG_CAPACITY, LogBuffer
from .orchestrator import DEFAULT_POLL_INTERVAL, TaskOrchestrator
from .selection import SelectionReconciler

log = logging.getLogger(__name__)


class DownloadSession:
    """
    Everything a display collaborator reads or triggers, owned by one instance.

    Failures of user-triggered operations are written to the log buffer for
    session history and then re-raised so the caller can notify the user.
    """

    def __init__(
        self,
        engine: TaskEngine,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        log_capacity: int = DEFAULT_LOG_CAPACITY,
    ):
        self.engine = engine
        self.log_buffer = LogBuffer(log_capacity)
        self.selection = SelectionReconciler(engine)
        self.orchestrator = TaskOrchestrator(
            engine, self.log_buffer, poll_interval=poll_interval
        )

    # State exposed to display collaborators
    @property
    def catalog(self) -> list[ManifestDescriptor]:
        return self.selection.catalog

    @property
    def selected_paths(self) -> list[str]:
        return self.selection.selected_paths

    @property
    def selected_count(self) -> int:
        return self.selection.selected_count

    @property
    def deduped_count(self) -> int:
        return self.selection.deduped_count

    @property
    def loading(self) -> bool:
        return self.selection.loading

    @property
    def task(self) -> Optional[Task]:
        return self.orchestrator.task

    @property
    def task_id(self) -> Optional[str]:
        return self.orchestrator.task_id

    @property
    def status_view(self) -> Optional[TaskStatusView]:
        return TaskStatusView.from_task(self.orchestrator.task)

    @property
    def logs(self) -> list[str]:
        return self.log_buffer.lines

    @property
    def busy(self) -> bool:
        return self.orchestrator.busy

    # Operations
    async def load_catalog(self) -> None:
        try:
            await self.selection.load_catalog()
        except Exception as e:
            self._record_failure("Failed to load catalog", e)
            raise

    async def refresh_catalog_from_directory(self, directory: str) -> None:
        try:
            await self.selection.refresh_catalog_from_directory(directory)
        except Exception as e:
            self._record_failure("Failed to refresh catalog", e)
            raise
        self.log_buffer.append(f"Catalog refreshed: {directory.strip()}")

    def toggle(self, path: str) -> None:
        self.selection.toggle(path)

    def select_all(self) -> None:
        self.selection.select_all()

    def clear_all(self) -> None:
        self.selection.clear_all()

    def build_request(self, options: TaskOptions) -> TaskRequest:
        """
        Combines the submittable selection with the task options.

        Raises:
            ValidationFailure: If nothing is selected or a required option is missing.
        """
        paths = self.selection.deduped_selection()
        if not paths:
            raise ValidationFailure("Select at least one manifest.")
        return TaskRequest.from_options(paths, options)

    async def launch(self, options: TaskOptions) -> Optional[str]:
        """Validates the request and starts a task; None if one is already running."""
        if self.busy:
            return None
        try:
            request = self.build_request(options)
            return await self.orchestrator.launch(request)
        except Exception as e:
            self._record_failure("Failed to start task", e)
            raise

    async def cancel(self) -> None:
        try:
            await self.orchestrator.cancel()
        except Exception as e:
            self._record_failure("Failed to cancel task", e)
            raise

    def clear_logs(self) -> None:
        self.log_buffer.clear()

    async def close(self) -> None:
        await self.orchestrator.close()

    def _record_failure(self, prefix: str, error: Exception) -> None:
        line = f"{prefix}: {error}"
        self.log_buffer.append(line)
        log.error(f"[red]{line}[/red]")
