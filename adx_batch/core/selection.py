"""
Keeps the user's manifest selection consistent with a reloadable catalog.
"""

import logging

from adx_batch.engine.base import TaskEngine
from adx_batch.exceptions import ValidationFailure
from adx_batch.models import ManifestDescriptor

log = logging.getLogger(__name__)


class SelectionReconciler:
    """
    Owns the loaded catalog and the set of paths the user wants in the next task.

    The raw selection only tracks what the user toggled. `deduped_selection()`
    is what a task is actually started with, and it is always a subset of the
    current catalog, even if a reload lands after further toggles.
    """

    def __init__(self, engine: TaskEngine):
        self.engine = engine
        self.catalog: list[ManifestDescriptor] = []
        self.loading = False
        # dict keys double as an insertion-ordered set
        self._selected: dict[str, None] = {}

    @property
    def selected_paths(self) -> list[str]:
        return list(self._selected)

    @property
    def selected_count(self) -> int:
        return len(self._selected)

    @property
    def deduped_count(self) -> int:
        return len(self.deduped_selection())

    def catalog_paths(self) -> set[str]:
        return {item.path for item in self.catalog}

    async def load_catalog(self) -> None:
        """
        Replaces the catalog with the engine's current one and drops selected
        paths that are no longer present.

        Raises:
            IOFailure: If the engine call fails; existing state is left untouched.
        """
        self.loading = True
        try:
            catalog = await self.engine.list_catalog()
        finally:
            self.loading = False
        self._apply_catalog(catalog)

    async def refresh_catalog_from_directory(self, directory: str) -> None:
        """
        Asks the engine to rebuild its catalog from `directory`, then reloads it.

        Raises:
            ValidationFailure: If `directory` is empty or whitespace.
            IOFailure: If either engine call fails.
        """
        directory = (directory or "").strip()
        if not directory:
            raise ValidationFailure("Enter a catalog directory to refresh from.")

        self.loading = True
        try:
            await self.engine.refresh_catalog(directory)
            await self.load_catalog()
        finally:
            self.loading = False

    def _apply_catalog(self, catalog: list[ManifestDescriptor]) -> None:
        self.catalog = list(catalog)
        available = self.catalog_paths()
        dropped = [p for p in self._selected if p not in available]
        self._selected = {p: None for p in self._selected if p in available}
        if dropped:
            log.debug(f"Dropped {len(dropped)} selected path(s) missing from catalog.")
        log.debug(f"Catalog loaded with {len(self.catalog)} manifest(s).")

    def toggle(self, path: str) -> None:
        if path in self._selected:
            del self._selected[path]
        else:
            self._selected[path] = None

    def select_all(self) -> None:
        self._selected = {item.path: None for item in self.catalog}

    def clear_all(self) -> None:
        self._selected = {}

    def deduped_selection(self) -> list[str]:
        """The selected paths present in the current catalog, in catalog order."""
        seen: dict[str, None] = {}
        for item in self.catalog:
            if item.path in self._selected:
                seen[item.path] = None
        return list(seen)
