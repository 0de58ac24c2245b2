"""Cross-view selection: one set of selected ids shared by all projections."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, FrozenSet, Iterable, List, Optional

from triview.application.store import NormalizedStore
from triview.domain.events import DomainEventPublisher, SelectionChanged

logger = logging.getLogger(__name__)


class SelectionMode(str, Enum):
    REPLACE = "replace"
    TOGGLE = "toggle"
    EXTEND = "extend"


class SelectionCoordinator:
    """Holds the selected entity ids.

    Only ids present in the store can be selected. Ids the store removes are
    pruned inside the store's ``remove`` call, before store subscribers
    are notified of the removal.
    """

    def __init__(self, store: NormalizedStore) -> None:
        self._store = store
        self._order: List[str] = []
        self._current: FrozenSet[str] = frozenset()
        self._version = 0
        self._events = DomainEventPublisher()
        self._detach = store.add_removal_hook(self._prune)

    # --------------- Read API ---------------
    @property
    def version(self) -> int:
        return self._version

    def current(self) -> FrozenSet[str]:
        """The selected ids; the same instance is returned until the selection changes."""
        return self._current

    def count(self) -> int:
        return len(self._order)

    def is_selected(self, entity_id: str) -> bool:
        return entity_id in self._current

    def last_selected(self) -> Optional[str]:
        return self._order[-1] if self._order else None

    def ordered(self) -> List[str]:
        """Selected ids, oldest selection first."""
        return list(self._order)

    # --------------- Mutation API ---------------
    def select(self, entity_id: str, mode: SelectionMode | str = SelectionMode.REPLACE) -> None:
        mode = SelectionMode(mode)
        if entity_id not in self._store:
            logger.debug(f"Ignoring selection of unknown entity {entity_id}")
            return

        if mode == SelectionMode.REPLACE:
            order = [entity_id]
        elif mode == SelectionMode.TOGGLE:
            if entity_id in self._current:
                order = [i for i in self._order if i != entity_id]
            else:
                order = self._order + [entity_id]
        else:
            order = [i for i in self._order if i != entity_id] + [entity_id]
        self._apply(order)

    def select_many(self, ids: Iterable[str], mode: SelectionMode | str = SelectionMode.EXTEND) -> None:
        """Apply one gesture over several ids; unknown ids are skipped."""
        mode = SelectionMode(mode)
        known = [i for i in dict.fromkeys(ids) if i in self._store]
        if mode == SelectionMode.REPLACE:
            order = known
        elif mode == SelectionMode.TOGGLE:
            toggled = set(known)
            order = [i for i in self._order if i not in toggled]
            order += [i for i in known if i not in self._current]
        else:
            extra = set(known)
            order = [i for i in self._order if i not in extra] + known
        self._apply(order)

    def clear(self) -> None:
        self._apply([])

    def subscribe(self, listener: Callable[[SelectionChanged], None]) -> Callable[[], None]:
        return self._events.subscribe(SelectionChanged, listener)

    def close(self) -> None:
        """Detach from the store."""
        self._detach()

    # --------------- Internal helpers ---------------
    def _prune(self, removed: FrozenSet[str]) -> None:
        if self._current & removed:
            logger.debug(f"Pruning {len(self._current & removed)} removed entities from selection")
            self._apply([i for i in self._order if i not in removed])

    def _apply(self, order: List[str]) -> None:
        before = self._current
        after = frozenset(order)
        self._order = order
        if after == before:
            # Membership unchanged: keep the set instance and version
            return
        self._current = after
        self._version += 1
        self._events.publish(SelectionChanged(
            selection_version=self._version,
            selected=after,
            added=tuple(i for i in order if i not in before),
            removed=tuple(i for i in before if i not in after),
        ))
