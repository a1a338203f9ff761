"""
Core task lifecycle layer.

`DownloadSession` is the facade handed to display code. It delegates task
lifecycle work to `TaskOrchestrator`, catalog and selection bookkeeping to
`SelectionReconciler`, and keeps the shared `LogBuffer`.
"""

from .log_buffer import LogBuffer
from .orchestrator import TaskOrchestrator
from .selection import SelectionReconciler
from .session import DownloadSession

__all__ = ["DownloadSession", "LogBuffer", "SelectionReconciler", "TaskOrchestrator"]
