"""
Diagram Editor - In-memory editing session for one diagram variant.

This module implements:
- One node/edge structure (mechanism or flow) being edited
- O(1) node/edge lookups via index dictionaries
- Linear undo/redo history using snapshots
- Validation recomputed after every mutation
- Layout recomputed after structural mutations, and after attribute edits
  only when they change a node's estimated width

Invalid graph shapes are accepted: validation results are advisory and only
edges to unknown nodes are refused.
"""

import logging
from typing import Any, Callable, Optional, Union

from .identifiers import DiagramKind
from .layout import Position, layout_structure, needs_relayout
from .models import (
    DiagramDocument,
    DiagramNode,
    Edge,
    FlowDiagram,
    MechanismDiagram,
    node_to_json_dict,
    parse_edges,
    parse_node,
    parse_nodes,
)
from .settings import KijoSettings
from .validation import ValidationResult, validate_structure

logger = logging.getLogger(__name__)


EDITABLE_EDGE_FIELDS = ("role", "label")


class DiagramEditor:
    """
    Manages the state and history of one diagram structure.

    The history system works via snapshots:
    - Each mutation first records a snapshot of the nodes and edges
    - Undo restores the previous snapshot
    - Redo re-applies a snapshot from the future stack
    """

    def __init__(
        self,
        nodes: Optional[list[Any]] = None,
        edges: Optional[list[Any]] = None,
        kind: DiagramKind = DiagramKind.MECHANISM,
        settings: Optional[KijoSettings] = None
    ):
        self._settings = settings or KijoSettings()
        self._kind = DiagramKind(kind)
        # Private copies: edits never reach the caller's objects
        self._nodes: list[DiagramNode] = [n.model_copy(deep=True) for n in parse_nodes(nodes or [])]
        self._edges: list[Edge] = [e.model_copy(deep=True) for e in parse_edges(edges or [])]
        self._history: list[dict] = []  # Past states (snapshots)
        self._future: list[dict] = []   # Future states (for redo)
        self._max_history = self._settings.editor.max_history
        self._on_change_callbacks: list[Callable] = []

        # O(1) lookup indexes
        self._node_index: dict[str, DiagramNode] = {}   # node_id -> node
        self._edge_index: dict[str, Edge] = {}          # edge_id -> Edge
        self._edges_by_node: dict[str, set[str]] = {}   # node_id -> set of edge_ids

        self._validation = ValidationResult()
        self._positions: dict[str, Position] = {}
        self._layout_runs = 0

        self._rebuild_indexes()
        self._refresh(relayout=True)

    @classmethod
    def from_document(
        cls,
        document: Union[DiagramDocument, dict],
        kind: DiagramKind = DiagramKind.MECHANISM,
        settings: Optional[KijoSettings] = None
    ) -> "DiagramEditor":
        """Open one variant of a diagram document for editing."""
        if not isinstance(document, DiagramDocument):
            document = DiagramDocument.from_json_dict(document)
        structure = document.structure(kind)
        if structure is None:
            return cls(kind=kind, settings=settings)
        return cls(structure.nodes, structure.edges, kind=kind, settings=settings)

    # --- Index Management ---

    def _rebuild_indexes(self):
        """Rebuild all indexes from the current state."""
        self._node_index.clear()
        self._edge_index.clear()
        self._edges_by_node.clear()

        for node in self._nodes:
            self._node_index[node.id] = node
        for edge in self._edges:
            self._index_edge(edge)

    def _index_edge(self, edge: Edge):
        self._edge_index[edge.id] = edge
        self._edges_by_node.setdefault(edge.source, set()).add(edge.id)
        self._edges_by_node.setdefault(edge.target, set()).add(edge.id)

    def _replace_edge(self, edge: Edge, updated: Edge):
        position = next(i for i, e in enumerate(self._edges) if e is edge)
        self._edges[position] = updated
        self._unindex_edge(edge)
        self._index_edge(updated)

    def _unindex_edge(self, edge: Edge):
        self._edge_index.pop(edge.id, None)
        if edge.source in self._edges_by_node:
            self._edges_by_node[edge.source].discard(edge.id)
        if edge.target in self._edges_by_node:
            self._edges_by_node[edge.target].discard(edge.id)

    # --- Properties ---

    @property
    def kind(self) -> DiagramKind:
        return self._kind

    @property
    def nodes(self) -> list[DiagramNode]:
        return list(self._nodes)

    @property
    def edges(self) -> list[Edge]:
        return list(self._edges)

    @property
    def validation(self) -> ValidationResult:
        """Validation result of the current state."""
        return self._validation

    @property
    def positions(self) -> dict[str, Position]:
        """Layout of the current state, keyed by node id."""
        return self._positions

    @property
    def layout_runs(self) -> int:
        """Number of times the layout has been computed in this session."""
        return self._layout_runs

    @property
    def can_undo(self) -> bool:
        return len(self._history) > 0

    @property
    def can_redo(self) -> bool:
        return len(self._future) > 0

    # --- Change Callbacks ---

    def on_change(self, callback: Callable):
        """Register a callback for diagram changes."""
        self._on_change_callbacks.append(callback)

    def _notify_change(self):
        for callback in self._on_change_callbacks:
            callback()

    def _refresh(self, relayout: bool):
        self._validation = validate_structure(self._nodes, self._edges, self._kind)
        if relayout:
            self._positions = layout_structure(
                self._nodes, self._edges, self._kind, self._settings.layout
            )
            self._layout_runs += 1

    def _commit(self, relayout: bool):
        self._refresh(relayout)
        self._notify_change()

    # --- History Management ---

    def _snapshot(self) -> dict:
        return {
            "nodes": [node_to_json_dict(n) for n in self._nodes],
            "edges": [e.to_json_dict() for e in self._edges],
        }

    def _restore(self, snapshot: dict):
        self._nodes = parse_nodes(snapshot["nodes"])
        self._edges = parse_edges(snapshot["edges"])
        self._rebuild_indexes()

    def _save_to_history(self):
        """Save current state to history before a mutation."""
        # New action invalidates the redo stack
        self._future.clear()
        self._history.append(self._snapshot())
        if len(self._history) > self._max_history:
            self._history.pop(0)

    def undo(self) -> bool:
        """Undo the last action."""
        if not self.can_undo:
            return False
        self._future.append(self._snapshot())
        self._restore(self._history.pop())
        self._commit(relayout=True)
        return True

    def redo(self) -> bool:
        """Redo the last undone action."""
        if not self.can_redo:
            return False
        self._history.append(self._snapshot())
        self._restore(self._future.pop())
        self._commit(relayout=True)
        return True

    # --- Node Operations ---

    def add_node(self, node: Union[DiagramNode, dict, None] = None, **kwargs) -> DiagramNode:
        """
        Add a node, given as a model, a JSON dict or keyword fields.

        Raises:
            ValueError: if the node cannot be mapped or its id is already used
        """
        data = node if node is not None else kwargs
        parsed = parse_node(data)
        if parsed is None:
            raise ValueError(f"Invalid node: {data!r}")
        parsed = parsed.model_copy(deep=True)
        if parsed.id in self._node_index:
            raise ValueError(f"Node already exists: {parsed.id}")

        self._save_to_history()
        self._nodes.append(parsed)
        self._node_index[parsed.id] = parsed
        self._commit(relayout=True)
        return parsed

    def update_node(self, node_id: str, **kwargs) -> Optional[DiagramNode]:
        """
        Update attributes of an existing node.

        Fields given as None are left unchanged. The node type is immutable.

        Returns:
            The updated node, or None if no node has this id

        Raises:
            ValueError: on an attempt to change ``type`` or ``id``, or when the
                new attributes do not form a valid node
        """
        node = self._node_index.get(node_id)
        if node is None:
            return None

        changes = {k: v for k, v in kwargs.items() if v is not None}
        if changes.get("type", node.type) != node.type:
            raise ValueError(f"Node type is immutable: {node_id} is {node.type!r}")
        if changes.get("id", node_id) != node_id:
            raise ValueError(f"Node id is immutable: {node_id}")

        updated = parse_node({**node_to_json_dict(node), **changes})
        if updated is None:
            raise ValueError(f"Invalid attributes for node {node_id}: {changes!r}")

        self._save_to_history()
        position = next(i for i, n in enumerate(self._nodes) if n is node)
        self._nodes[position] = updated
        self._node_index[node_id] = updated
        self._commit(relayout=needs_relayout(node, updated, self._kind, self._settings.layout))
        return updated

    def delete_node(self, node_id: str) -> bool:
        """Delete a node and all connected edges."""
        node = self._node_index.get(node_id)
        if node is None:
            return False

        self._save_to_history()
        self._nodes = [n for n in self._nodes if n.id != node_id]
        self._node_index.pop(node_id, None)

        connected = self._edges_by_node.pop(node_id, set())
        if connected:
            for edge_id in connected:
                edge = self._edge_index.get(edge_id)
                if edge:
                    self._unindex_edge(edge)
            self._edges = [e for e in self._edges if e.id not in connected]
            logger.debug("Deleted node %s with %d edges", node_id, len(connected))

        self._commit(relayout=True)
        return True

    def get_node(self, node_id: str) -> Optional[DiagramNode]:
        """Get a node by ID (O(1) lookup)."""
        return self._node_index.get(node_id)

    def get_nodes_by_type(self, node_type: str) -> list[DiagramNode]:
        return [n for n in self._nodes if n.type == node_type]

    # --- Edge Operations ---

    def add_edge(
        self,
        source: str,
        target: str,
        role: Optional[str] = None,
        label: Optional[str] = None,
        edge_id: Optional[str] = None
    ) -> Edge:
        """
        Add a new edge between two existing nodes.

        Raises:
            ValueError: if either endpoint is unknown or the edge id is taken
        """
        if source not in self._node_index:
            raise ValueError(f"Source node not found: {source}")
        if target not in self._node_index:
            raise ValueError(f"Target node not found: {target}")
        if edge_id is not None and edge_id in self._edge_index:
            raise ValueError(f"Edge already exists: {edge_id}")

        fields = {"source": source, "target": target, "role": role, "label": label}
        if edge_id is not None:
            fields["id"] = edge_id
        edge = Edge(**fields)

        self._save_to_history()
        self._edges.append(edge)
        self._index_edge(edge)
        self._commit(relayout=True)
        return edge

    def update_edge(self, edge_id: str, **kwargs) -> Optional[Edge]:
        """Update the role or label of an edge; the layout is unaffected."""
        edge = self._edge_index.get(edge_id)
        if edge is None:
            return None

        changes = {
            key: value or None
            for key, value in kwargs.items()
            if value is not None and key in EDITABLE_EDGE_FIELDS
        }
        updated = edge.model_copy(update=changes)

        self._save_to_history()
        self._replace_edge(edge, updated)
        self._commit(relayout=False)
        return updated

    def reconnect_edge(
        self,
        edge_id: str,
        source: Optional[str] = None,
        target: Optional[str] = None
    ) -> Optional[Edge]:
        """
        Move one or both endpoints of an edge.

        Raises:
            ValueError: if a new endpoint is unknown
        """
        edge = self._edge_index.get(edge_id)
        if edge is None:
            return None
        for endpoint in (source, target):
            if endpoint is not None and endpoint not in self._node_index:
                raise ValueError(f"Node not found: {endpoint}")

        changes = {k: v for k, v in (("source", source), ("target", target)) if v is not None}
        updated = edge.model_copy(update=changes)

        self._save_to_history()
        self._replace_edge(edge, updated)
        self._commit(relayout=True)
        return updated

    def delete_edge(self, edge_id: str) -> bool:
        """Delete an edge."""
        edge = self._edge_index.get(edge_id)
        if edge is None:
            return False

        self._save_to_history()
        self._edges = [e for e in self._edges if e.id != edge_id]
        self._unindex_edge(edge)
        self._commit(relayout=True)
        return True

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        """Get an edge by ID (O(1) lookup)."""
        return self._edge_index.get(edge_id)

    def get_edges_for_node(self, node_id: str) -> list[Edge]:
        """Get all edges connected to a node, in edge order."""
        edge_ids = self._edges_by_node.get(node_id, set())
        return [e for e in self._edges if e.id in edge_ids]

    # --- Export ---

    def to_structure(self, title: str = "") -> Union[MechanismDiagram, FlowDiagram]:
        """Return the edited nodes and edges as a diagram variant."""
        snapshot = self._snapshot()
        if self._kind is DiagramKind.FLOW:
            return FlowDiagram(title=title, **snapshot)
        return MechanismDiagram(**snapshot)

    def get_state(self) -> dict:
        """Get the full current state for display."""
        snapshot = self._snapshot()
        return {
            "kind": self._kind.value,
            "nodes": snapshot["nodes"],
            "edges": snapshot["edges"],
            "validation": self._validation.to_dict(),
            "positions": {k: p.to_dict() for k, p in self._positions.items()},
            "can_undo": self.can_undo,
            "can_redo": self.can_redo,
        }
