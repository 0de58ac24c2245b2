"""Event handlers for store and selection events."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, List

if TYPE_CHECKING:
    from triview.application.selection_coordinator import SelectionCoordinator
    from triview.application.store import NormalizedStore
    from triview.domain.events import SelectionChanged, StoreChanged

logger = logging.getLogger(__name__)


class AuditLogHandler:
    """Logs store and selection changes for an audit trail."""

    def __init__(self, store_name: str = "default") -> None:
        self.store_name = store_name

    def handle_store_changed(self, event: StoreChanged) -> None:
        if event.removed_ids:
            logger.info(f"[AUDIT] Store '{self.store_name}' removed {len(event.removed_ids)} entities (version {event.version})")
        elif event.changed_ids:
            logger.info(f"[AUDIT] Store '{self.store_name}' changed {len(event.changed_ids)} entities (version {event.version})")

    def handle_selection_changed(self, event: SelectionChanged) -> None:
        logger.info(
            f"[AUDIT] Selection v{event.selection_version}: {len(event.selected)} selected, "
            f"+{len(event.added)} -{len(event.removed)}"
        )


class DanglingReferenceHandler:
    """Warns when merged entities reference ids the store does not hold."""

    def __init__(self, store: NormalizedStore) -> None:
        self._store = store

    def handle_store_changed(self, event: StoreChanged) -> None:
        for entity_id in event.relinked_ids:
            entity = self._store.get(entity_id)
            if entity is None:
                continue
            for role, target in entity.relations.items():
                if target and target not in self._store:
                    logger.debug(f"[REFERENCE] {entity_id}.{role} -> {target} is not loaded")


def register_event_handlers(store: NormalizedStore, selection: SelectionCoordinator) -> List[Callable[[], None]]:
    """Register all event handlers; returns their unsubscribe callables."""
    audit = AuditLogHandler(store.name)
    references = DanglingReferenceHandler(store)
    return [
        store.subscribe(audit.handle_store_changed),
        store.subscribe(references.handle_store_changed),
        selection.subscribe(audit.handle_selection_changed),
    ]
