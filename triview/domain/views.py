"""Read-only view models produced by the projection engine.

Every view of one (store version, selection version) pair references the
same frozen ``selection`` set instance, so tree, table and graph agree on
"is selected" exactly.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional, Tuple

TABLE_COLUMNS: Tuple[str, ...] = (
    "id",
    "kind",
    "declared_name",
    "declared_short_name",
    "status",
    "documentation",
)


@dataclass(frozen=True)
class TreeNode:
    id: str
    label: str
    kind: str
    selected: bool
    children: Tuple[TreeNode, ...] = ()
    synthetic: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "kind": self.kind,
            "selected": self.selected,
            "synthetic": self.synthetic,
            "children": [child.to_dict() for child in self.children],
        }


@dataclass(frozen=True)
class TreeView:
    roots: Tuple[TreeNode, ...]
    store_version: int
    selection_version: int
    selection: FrozenSet[str] = field(default_factory=frozenset)

    def find(self, node_id: str) -> Optional[TreeNode]:
        """Depth-first lookup of a node by id."""
        stack = list(self.roots)
        while stack:
            node = stack.pop()
            if node.id == node_id:
                return node
            stack.extend(node.children)
        return None

    def parent_of(self, node_id: str) -> Optional[TreeNode]:
        for root in self.roots:
            if any(child.id == node_id for child in root.children):
                return root
        return None

    def selected_ids(self) -> FrozenSet[str]:
        found = set()
        stack = list(self.roots)
        while stack:
            node = stack.pop()
            if node.selected:
                found.add(node.id)
            stack.extend(node.children)
        return frozenset(found)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "store_version": self.store_version,
            "selection_version": self.selection_version,
            "roots": [root.to_dict() for root in self.roots],
        }


@dataclass(frozen=True)
class TableRow:
    id: str
    kind: str
    declared_name: str
    declared_short_name: str
    status: str
    documentation: str
    selected: bool

    def to_dict(self) -> Dict[str, Any]:
        return {column: getattr(self, column) for column in TABLE_COLUMNS + ("selected",)}


@dataclass(frozen=True)
class TableView:
    rows: Tuple[TableRow, ...]
    store_version: int
    selection_version: int
    selection: FrozenSet[str] = field(default_factory=frozenset)
    columns: Tuple[str, ...] = TABLE_COLUMNS

    def row(self, row_id: str) -> Optional[TableRow]:
        return next((r for r in self.rows if r.id == row_id), None)

    def selected_ids(self) -> FrozenSet[str]:
        return frozenset(r.id for r in self.rows if r.selected)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "store_version": self.store_version,
            "selection_version": self.selection_version,
            "columns": list(self.columns),
            "rows": [row.to_dict() for row in self.rows],
        }


@dataclass(frozen=True)
class GraphNode:
    id: str
    kind: str
    label: str
    selected: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "kind": self.kind, "label": self.label, "selected": self.selected}


@dataclass(frozen=True)
class GraphEdge:
    id: str
    source: str
    target: str
    role: str
    resolved: bool
    # Selected when the entity owning the relation is selected
    selected: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "role": self.role,
            "resolved": self.resolved,
            "selected": self.selected,
        }


@dataclass(frozen=True)
class GraphView:
    nodes: Tuple[GraphNode, ...]
    edges: Tuple[GraphEdge, ...]
    store_version: int
    selection_version: int
    selection: FrozenSet[str] = field(default_factory=frozenset)

    def node(self, node_id: str) -> Optional[GraphNode]:
        return next((n for n in self.nodes if n.id == node_id), None)

    def edges_from(self, source_id: str) -> Tuple[GraphEdge, ...]:
        return tuple(e for e in self.edges if e.source == source_id)

    def unresolved_edges(self) -> Tuple[GraphEdge, ...]:
        return tuple(e for e in self.edges if not e.resolved)

    def selected_ids(self) -> FrozenSet[str]:
        return frozenset(n.id for n in self.nodes if n.selected)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "store_version": self.store_version,
            "selection_version": self.selection_version,
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }
