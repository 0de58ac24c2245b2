"""Normalized entity store: the single source of truth every view derives from."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterable, Iterator, List, Optional, Set, Tuple

from triview.domain.entities import OF, Entity
from triview.domain.events import DomainEventPublisher, StoreChanged

logger = logging.getLogger(__name__)

RemovalHook = Callable[[FrozenSet[str]], None]


@dataclass(frozen=True)
class MergeResult:
    changed_ids: Tuple[str, ...]
    version: int

    @property
    def changed(self) -> bool:
        return bool(self.changed_ids)


class NormalizedStore:
    """Canonical, deduplicated entities keyed by id.

    ``version`` advances by one for every entity whose content changed or
    which was removed, so it never decreases and stays put for a merge that
    changed nothing. Subscribers are notified once per ``merge`` and once
    per ``remove`` call regardless.
    """

    def __init__(self, name: str = "default") -> None:
        self.name = name
        self._entities: Dict[str, Entity] = {}
        self._version = 0
        # target id -> ids of entities whose relations point at it
        self._referrers: Dict[str, Set[str]] = {}
        self._events = DomainEventPublisher()
        self._removal_hooks: List[RemovalHook] = []

    # --------------- Read API ---------------
    @property
    def version(self) -> int:
        return self._version

    def get(self, entity_id: str) -> Optional[Entity]:
        return self._entities.get(entity_id)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entities

    def __len__(self) -> int:
        return len(self._entities)

    def __iter__(self) -> Iterator[Entity]:
        return iter(list(self._entities.values()))

    def ids(self) -> Tuple[str, ...]:
        return tuple(self._entities)

    def all(self) -> List[Entity]:
        """All entities in first-merge order."""
        return list(self._entities.values())

    def referrers(self, entity_id: str) -> FrozenSet[str]:
        """Ids of entities holding a relation to ``entity_id``."""
        return frozenset(self._referrers.get(entity_id, ()))

    def with_dependents(self, roots: Iterable[str]) -> List[str]:
        """The given ids followed by everything attached to them through ``of``."""
        roots = list(roots)
        ordered = list(roots)
        seen = set(roots)
        queue = list(roots)
        while queue:
            current = queue.pop(0)
            for referrer in sorted(self._referrers.get(current, ())):
                entity = self._entities.get(referrer)
                if referrer in seen or entity is None or entity.relation(OF) != current:
                    continue
                seen.add(referrer)
                ordered.append(referrer)
                queue.append(referrer)
        return ordered

    # --------------- Mutation API ---------------
    def merge(self, batch: Iterable[Entity]) -> MergeResult:
        """Upsert a batch by id; never fails.

        Within one batch a later snapshot of an id wins. Only ids whose
        content differs from the stored snapshot count as changed.
        """
        incoming: Dict[str, Entity] = {}
        for entity in batch:
            incoming[entity.id] = entity

        changed: List[str] = []
        relinked: Set[str] = set()
        for entity_id, entity in incoming.items():
            previous = self._entities.get(entity_id)
            if previous == entity:
                continue
            if previous is None or previous.kind != entity.kind or previous.relations != entity.relations:
                relinked.add(entity_id)
                if previous is not None:
                    self._unindex(previous)
                self._index(entity)
            self._entities[entity_id] = entity
            changed.append(entity_id)

        self._version += len(changed)
        logger.debug(f"Store '{self.name}' merged {len(incoming)} entities, {len(changed)} changed, version {self._version}")
        self._events.publish(StoreChanged(
            version=self._version,
            changed_ids=tuple(changed),
            relinked_ids=frozenset(relinked),
        ))
        return MergeResult(changed_ids=tuple(changed), version=self._version)

    def remove(self, ids: Iterable[str], cascade: bool = False) -> Tuple[str, ...]:
        """Delete entities; unknown ids are ignored.

        The version advances first; removal hooks (selection pruning,
        projection invalidation) then run in the same step, before
        subscribers are notified. With ``cascade`` the
        entities attached through an ``of`` relation are removed as well.
        """
        pending = [i for i in dict.fromkeys(ids) if i in self._entities]
        if cascade:
            pending = self.with_dependents(pending)

        for entity_id in pending:
            self._unindex(self._entities.pop(entity_id))

        self._version += len(pending)
        removed = frozenset(pending)
        if removed:
            # Events raised by hooks must already carry the new version
            for hook in list(self._removal_hooks):
                hook(removed)
        logger.debug(f"Store '{self.name}' removed {len(pending)} entities, version {self._version}")
        self._events.publish(StoreChanged(version=self._version, removed_ids=tuple(pending)))
        return tuple(pending)

    # --------------- Subscriptions ---------------
    def subscribe(self, listener: Callable[[StoreChanged], None]) -> Callable[[], None]:
        """Register a listener called after every merge/remove; returns unsubscribe."""
        return self._events.subscribe(StoreChanged, listener)

    def add_removal_hook(self, hook: RemovalHook) -> Callable[[], None]:
        """Register a hook run synchronously inside ``remove``."""
        self._removal_hooks.append(hook)

        def detach() -> None:
            if hook in self._removal_hooks:
                self._removal_hooks.remove(hook)

        return detach

    # --------------- Internal helpers ---------------
    def _index(self, entity: Entity) -> None:
        for target in entity.relations.values():
            if target:
                self._referrers.setdefault(target, set()).add(entity.id)

    def _unindex(self, entity: Entity) -> None:
        for target in entity.relations.values():
            sources = self._referrers.get(target) if target else None
            if sources is None:
                continue
            sources.discard(entity.id)
            if not sources:
                del self._referrers[target]

