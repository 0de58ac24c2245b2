"""Derives the tree, table and graph view models from the store and selection."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, List, Optional, Set, Tuple

from triview.application.selection_coordinator import SelectionCoordinator
from triview.application.store import NormalizedStore
from triview.config import settings
from triview.domain.entities import OF, Entity, EntityKind
from triview.domain.events import DomainEventPublisher, ProjectionsStale, SelectionChanged, StoreChanged
from triview.domain.strategies import InsertionOrderStrategy, OrderingStrategy
from triview.domain.views import GraphEdge, GraphNode, GraphView, TableRow, TableView, TreeNode, TreeView

logger = logging.getLogger(__name__)

TREE = "tree"
TABLE = "table"
GRAPH = "graph"


@dataclass
class _Delta:
    """Store changes not yet folded into one cached view."""
    changed: Dict[str, None] = field(default_factory=dict)
    removed: Set[str] = field(default_factory=set)
    relinked: bool = False

    def reset(self) -> None:
        self.changed.clear()
        self.removed.clear()
        self.relinked = False


@dataclass
class ProjectionStats:
    full: Dict[str, int] = field(default_factory=lambda: {TREE: 0, TABLE: 0, GRAPH: 0})
    incremental: Dict[str, int] = field(default_factory=lambda: {TREE: 0, TABLE: 0, GRAPH: 0})


class ProjectionEngine:
    """Memoized projections keyed on (store version, selection version).

    A view is recomputed on the first read after its key changes. When only
    entity attributes changed and the selection did not, the cached view is
    patched for the changed ids; a selection change, a removal (tree and
    graph), or a change of kind or relations forces a full rebuild.
    """

    def __init__(
        self,
        store: NormalizedStore,
        selection: SelectionCoordinator,
        ordering: Optional[OrderingStrategy] = None,
        unassigned_root_id: Optional[str] = None,
        unassigned_root_label: Optional[str] = None,
    ) -> None:
        self._store = store
        self._selection = selection
        self._ordering = ordering or InsertionOrderStrategy()
        self._unassigned_id = unassigned_root_id or settings.UNASSIGNED_ROOT_ID
        self._unassigned_label = unassigned_root_label or settings.UNASSIGNED_ROOT_LABEL
        self._tree: Optional[TreeView] = None
        self._table: Optional[TableView] = None
        self._graph: Optional[GraphView] = None
        self._deltas = {TREE: _Delta(), TABLE: _Delta(), GRAPH: _Delta()}
        self._events = DomainEventPublisher()
        self.stats = ProjectionStats()

        self._detach = [
            store.subscribe(self._on_store_changed),
            store.add_removal_hook(self._on_removed),
            selection.subscribe(self._on_selection_changed),
        ]

    # --------------- Public API ---------------
    @property
    def memo_key(self) -> Tuple[int, int]:
        return (self._store.version, self._selection.version)

    def get_tree_view(self) -> TreeView:
        key = self.memo_key
        if self._tree is not None and self._key_of(self._tree) == key:
            return self._tree
        delta = self._deltas[TREE]
        if self._can_patch(self._tree, delta, row_local=False) and self._ordering.get_name() == "insertion":
            self._tree = self._patch_tree(self._tree, delta)
            self.stats.incremental[TREE] += 1
        else:
            self._tree = self._build_tree()
            self.stats.full[TREE] += 1
        delta.reset()
        return self._tree

    def get_table_view(self) -> TableView:
        key = self.memo_key
        if self._table is not None and self._key_of(self._table) == key:
            return self._table
        delta = self._deltas[TABLE]
        if self._can_patch(self._table, delta, row_local=True):
            self._table = self._patch_table(self._table, delta)
            self.stats.incremental[TABLE] += 1
        else:
            self._table = self._build_table()
            self.stats.full[TABLE] += 1
        delta.reset()
        return self._table

    def get_graph_view(self) -> GraphView:
        key = self.memo_key
        if self._graph is not None and self._key_of(self._graph) == key:
            return self._graph
        delta = self._deltas[GRAPH]
        if self._can_patch(self._graph, delta, row_local=False):
            self._graph = self._patch_graph(self._graph, delta)
            self.stats.incremental[GRAPH] += 1
        else:
            self._graph = self._build_graph()
            self.stats.full[GRAPH] += 1
        delta.reset()
        return self._graph

    def get_views(self) -> Tuple[TreeView, TableView, GraphView]:
        """All three views for the same store and selection versions."""
        return self.get_tree_view(), self.get_table_view(), self.get_graph_view()

    def set_ordering(self, ordering: OrderingStrategy) -> None:
        """Change tree child ordering; the tree is rebuilt on next read."""
        self._ordering = ordering
        self._tree = None

    def subscribe(self, listener: Callable[[ProjectionsStale], None]) -> Callable[[], None]:
        """Notified whenever cached views go stale, so renderers re-read."""
        return self._events.subscribe(ProjectionsStale, listener)

    def invalidate(self) -> None:
        """Drop every cached view."""
        self._tree = self._table = self._graph = None
        for delta in self._deltas.values():
            delta.reset()

    def close(self) -> None:
        for detach in self._detach:
            detach()
        self._detach = []

    # --------------- Change tracking ---------------
    def _on_store_changed(self, event: StoreChanged) -> None:
        if event.is_noop:
            return
        for delta in self._deltas.values():
            for entity_id in event.changed_ids:
                delta.changed[entity_id] = None
            delta.relinked = delta.relinked or bool(event.relinked_ids)
        self._publish_stale()

    def _on_removed(self, removed: FrozenSet[str]) -> None:
        for delta in self._deltas.values():
            delta.removed.update(removed)
            # A later re-merge must append in store order, not at its old change position
            for entity_id in removed:
                delta.changed.pop(entity_id, None)

    def _on_selection_changed(self, event: SelectionChanged) -> None:
        self._publish_stale()

    def _publish_stale(self) -> None:
        store_version, selection_version = self.memo_key
        self._events.publish(ProjectionsStale(store_version=store_version, selection_version=selection_version))

    def _key_of(self, view) -> Tuple[int, int]:
        return (view.store_version, view.selection_version)

    def _can_patch(self, view, delta: _Delta, row_local: bool) -> bool:
        """Whether a cached view can be patched rather than rebuilt.

        ``row_local`` views (the table) tolerate removals and relinks because
        a row depends on its own entity only.
        """
        if view is None or view.selection_version != self._selection.version:
            return False
        if row_local:
            return True
        return not delta.removed and not delta.relinked

    # --------------- Tree ---------------
    def _build_tree(self) -> TreeView:
        selected = self._selection.current()
        definitions: List[Entity] = []
        children: Dict[str, List[Entity]] = {}
        orphans: List[Entity] = []
        entities = self._store.all()

        for entity in entities:
            if entity.kind == EntityKind.DEFINITION:
                definitions.append(entity)
                children.setdefault(entity.id, [])
        for entity in entities:
            if entity.kind != EntityKind.USAGE:
                continue
            parent_id = entity.relation(OF)
            if parent_id is not None and parent_id in children:
                children[parent_id].append(entity)
            else:
                orphans.append(entity)

        roots = [
            TreeNode(
                id=definition.id,
                label=definition.label,
                kind=definition.kind.value,
                selected=definition.id in selected,
                children=tuple(self._usage_node(u, selected) for u in self._ordering.order(children[definition.id])),
            )
            for definition in self._ordering.order(definitions)
        ]
        if orphans:
            roots.append(TreeNode(
                id=self._unassigned_id,
                label=self._unassigned_label,
                kind="",
                selected=False,
                children=tuple(self._usage_node(u, selected) for u in self._ordering.order(orphans)),
                synthetic=True,
            ))
        logger.debug(f"Built tree with {len(roots)} roots and {len(orphans)} unassigned usages")
        return TreeView(
            roots=tuple(roots),
            store_version=self._store.version,
            selection_version=self._selection.version,
            selection=selected,
        )

    def _usage_node(self, usage: Entity, selected: FrozenSet[str]) -> TreeNode:
        return TreeNode(
            id=usage.id,
            label=usage.label,
            kind=usage.kind.value,
            selected=usage.id in selected,
        )

    def _patch_tree(self, view: TreeView, delta: _Delta) -> TreeView:
        # Attribute-only changes: kinds and parents are unchanged, labels may not be
        relabel = {}
        for entity_id in delta.changed:
            entity = self._store.get(entity_id)
            if entity is not None and entity.kind in (EntityKind.DEFINITION, EntityKind.USAGE):
                relabel[entity_id] = entity.label

        def patched(node: TreeNode) -> TreeNode:
            kids = tuple(patched(child) for child in node.children) if node.children else node.children
            label = relabel.get(node.id, node.label) if not node.synthetic else node.label
            if label == node.label and kids == node.children:
                return node
            return TreeNode(node.id, label, node.kind, node.selected, kids, node.synthetic)

        roots = view.roots if not relabel else tuple(patched(root) for root in view.roots)
        return TreeView(
            roots=roots,
            store_version=self._store.version,
            selection_version=view.selection_version,
            selection=view.selection,
        )

    # --------------- Table ---------------
    def _row(self, entity: Entity, selected: FrozenSet[str]) -> TableRow:
        attrs = entity.attributes
        return TableRow(
            id=entity.id,
            kind=entity.kind.value,
            declared_name=attrs.declared_name or "",
            declared_short_name=attrs.declared_short_name or "",
            status=attrs.status or "",
            documentation=attrs.documentation or "",
            selected=entity.id in selected,
        )

    def _build_table(self) -> TableView:
        selected = self._selection.current()
        return TableView(
            rows=tuple(self._row(entity, selected) for entity in self._store.all()),
            store_version=self._store.version,
            selection_version=self._selection.version,
            selection=selected,
        )

    def _patch_table(self, view: TableView, delta: _Delta) -> TableView:
        rows = {row.id: row for row in view.rows}
        for entity_id in delta.removed:
            rows.pop(entity_id, None)
        for entity_id in delta.changed:
            entity = self._store.get(entity_id)
            if entity is not None:
                # Existing keys keep their position; new ids append, as in the store
                rows[entity_id] = self._row(entity, view.selection)
        return TableView(
            rows=tuple(rows.values()),
            store_version=self._store.version,
            selection_version=view.selection_version,
            selection=view.selection,
        )

    # --------------- Graph ---------------
    def _node(self, entity: Entity, selected: FrozenSet[str]) -> GraphNode:
        return GraphNode(id=entity.id, kind=entity.kind.value, label=entity.label, selected=entity.id in selected)

    def _build_graph(self) -> GraphView:
        selected = self._selection.current()
        nodes = []
        edges = []
        for entity in self._store.all():
            nodes.append(self._node(entity, selected))
            for role, target in entity.relations.items():
                if target is None:
                    continue
                edges.append(GraphEdge(
                    id=f"{entity.id}:{role}:{target}",
                    source=entity.id,
                    target=target,
                    role=role,
                    resolved=target in self._store,
                    selected=entity.id in selected,
                ))
        unresolved = sum(1 for e in edges if not e.resolved)
        if unresolved:
            logger.debug(f"Graph has {unresolved} unresolved edges")
        return GraphView(
            nodes=tuple(nodes),
            edges=tuple(edges),
            store_version=self._store.version,
            selection_version=self._selection.version,
            selection=selected,
        )

    def _patch_graph(self, view: GraphView, delta: _Delta) -> GraphView:
        nodes = {node.id: node for node in view.nodes}
        for entity_id in delta.changed:
            entity = self._store.get(entity_id)
            if entity is not None:
                nodes[entity_id] = self._node(entity, view.selection)
        return GraphView(
            nodes=tuple(nodes.values()),
            edges=view.edges,
            store_version=self._store.version,
            selection_version=view.selection_version,
            selection=view.selection,
        )
