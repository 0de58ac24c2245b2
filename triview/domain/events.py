"""Domain events for decoupled change notification."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, FrozenSet, List, Tuple
from uuid import uuid4

logger = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    """Base class for all domain events."""
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True, kw_only=True)
class StoreChanged(DomainEvent):
    """Raised after every store merge or removal, even when nothing changed.

    ``relinked_ids`` are changed ids whose kind or relations differ from the
    previous snapshot (or which are new); changes outside it are
    attribute-only.
    """
    version: int
    changed_ids: Tuple[str, ...] = ()
    relinked_ids: FrozenSet[str] = frozenset()
    removed_ids: Tuple[str, ...] = ()

    @property
    def is_noop(self) -> bool:
        return not self.changed_ids and not self.removed_ids


@dataclass(frozen=True, kw_only=True)
class SelectionChanged(DomainEvent):
    """Raised when the selection set actually changes."""
    selection_version: int
    selected: FrozenSet[str]
    added: Tuple[str, ...] = ()
    removed: Tuple[str, ...] = ()


@dataclass(frozen=True, kw_only=True)
class ProjectionsStale(DomainEvent):
    """Raised when cached views no longer match the store or selection."""
    store_version: int
    selection_version: int


Handler = Callable[[DomainEvent], None]


class DomainEventPublisher:
    """Per-instance publisher; each store and selection owns one."""

    def __init__(self) -> None:
        self._subscribers: Dict[type, List[Handler]] = {}

    def subscribe(self, event_type: type[DomainEvent], handler: Handler) -> Callable[[], None]:
        """Subscribe a handler to an event type; returns an unsubscribe callable."""
        if event_type not in self._subscribers:
            self._subscribers[event_type] = []
        self._subscribers[event_type].append(handler)

        def unsubscribe() -> None:
            handlers = self._subscribers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def publish(self, event: DomainEvent) -> None:
        """Publish an event to all subscribers of its exact type."""
        # Copy so handlers may unsubscribe while being notified
        for handler in list(self._subscribers.get(type(event), [])):
            try:
                handler(event)
            except Exception:
                # Log error but don't fail the mutating operation
                logger.exception(f"Event handler error for {type(event).__name__}")

    def subscriber_count(self, event_type: type[DomainEvent]) -> int:
        return len(self._subscribers.get(event_type, []))

    def clear_subscribers(self) -> None:
        """Clear all subscribers (useful for testing)."""
        self._subscribers = {}
