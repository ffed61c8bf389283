"""
Layered (Sugiyama-style) auto-layout for diagram nodes.

Phases:
  1. Cycle breaking (DFS back-edges are reversed; flow diagrams may loop)
  2. Rank assignment (longest path from the sources)
  3. Dummy nodes for edges spanning more than one rank
  4. Crossing reduction (barycenter sweeps)
  5. Coordinate assignment

Mechanism diagrams are laid out left-to-right ("LR"), flow diagrams
top-to-bottom ("TB"). The layout is pure and deterministic: the same nodes,
edges and sizes in the same order always produce the same positions. Nothing
is modified in place; positions are returned keyed by node id.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import networkx as nx

from .analysis import BLACK, GRAY, WHITE
from .identifiers import DiagramKind
from .models import is_decision_node, is_information_node, parse_edges, parse_node, parse_nodes
from .settings import LayoutSettings

logger = logging.getLogger(__name__)


DIRECTIONS = ("LR", "TB")
DUMMY = "__dummy__"


@dataclass(frozen=True)
class SizedNode:
    """A node id with its rendered (or estimated) size."""
    id: str
    width: float
    height: float


@dataclass(frozen=True)
class Position:
    """Top-left corner and size of a laid-out node."""
    x: float
    y: float
    width: float
    height: float

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


def direction_for(kind: DiagramKind) -> str:
    """Flow diagrams read top-to-bottom, mechanism diagrams left-to-right."""
    return "TB" if DiagramKind(kind) is DiagramKind.FLOW else "LR"


def estimate_node_width(
    node: Any,
    kind: DiagramKind = DiagramKind.MECHANISM,
    settings: Optional[LayoutSettings] = None
) -> float:
    """
    Estimate the rendered width of a node from its title.

    width = max(min width, chars * char width + padding), where an information
    node's symbol and its brackets count towards the characters. Decision
    nodes of flow diagrams are drawn as diamonds and get a larger minimum.
    """
    settings = settings or LayoutSettings()
    node = parse_node(node)
    if node is None:
        return settings.min_node_width

    chars = len(node.title or "")
    if is_information_node(node) and node.symbol:
        chars += len(node.symbol) + settings.symbol_affix

    width = max(settings.min_node_width, chars * settings.char_width + settings.padding)
    if DiagramKind(kind) is DiagramKind.FLOW and is_decision_node(node):
        width = max(width, settings.flow_decision_min_width)
    return width


def size_nodes(
    nodes: list[Any],
    kind: DiagramKind = DiagramKind.MECHANISM,
    settings: Optional[LayoutSettings] = None
) -> list[SizedNode]:
    """Attach estimated sizes to diagram nodes."""
    settings = settings or LayoutSettings()
    return [
        SizedNode(id=n.id, width=estimate_node_width(n, kind, settings), height=settings.node_height)
        for n in parse_nodes(nodes)
    ]


def _dimension(item: dict, key: str, default: float) -> float:
    value = item.get(key)
    if value is None:
        return default
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    logger.warning("Ignoring non-numeric %s of layout node %r: %r", key, item["id"], value)
    return default


def _as_sized(item: Any, settings: LayoutSettings) -> Optional[SizedNode]:
    if isinstance(item, SizedNode):
        return item
    if isinstance(item, dict) and isinstance(item.get("id"), str):
        return SizedNode(
            id=item["id"],
            width=_dimension(item, "width", settings.min_node_width),
            height=_dimension(item, "height", settings.node_height),
        )
    logger.warning("Skipping unsized layout node: %r", item)
    return None


# --- Phase 1: cycle breaking ---

def _back_edges(graph: nx.DiGraph) -> list[tuple[str, str]]:
    """Edges closing a cycle, found by a DFS in node insertion order."""
    color: dict[str, int] = {}
    back: list[tuple[str, str]] = []

    for start in graph.nodes:
        if color.get(start, WHITE) != WHITE:
            continue
        color[start] = GRAY
        stack = [(start, iter(graph.successors(start)))]

        while stack:
            node, successors = stack[-1]
            child = next(successors, None)
            if child is None:
                color[node] = BLACK
                stack.pop()
                continue
            state = color.get(child, WHITE)
            if state == GRAY:
                back.append((node, child))
            elif state == WHITE:
                color[child] = GRAY
                stack.append((child, iter(graph.successors(child))))

    return back


def _acyclic_copy(graph: nx.DiGraph) -> nx.DiGraph:
    dag = graph.copy()
    for source, target in _back_edges(graph):
        dag.remove_edge(source, target)
        dag.add_edge(target, source)
    return dag


# --- Phases 2-3: ranks and dummy nodes ---

def _longest_path_ranks(dag: nx.DiGraph) -> dict[Any, int]:
    ranks: dict[Any, int] = {}
    for node in nx.topological_sort(dag):
        ranks[node] = max((ranks[p] + 1 for p in dag.predecessors(node)), default=0)
    return ranks


def _insert_dummies(dag: nx.DiGraph, ranks: dict[Any, int]) -> nx.DiGraph:
    """Split every edge spanning several ranks into unit-length segments."""
    layered = nx.DiGraph()
    layered.add_nodes_from(dag.nodes)

    for k, (source, target) in enumerate(list(dag.edges)):
        span = ranks[target] - ranks[source]
        previous = source
        for i in range(1, span):
            dummy = (DUMMY, k, i)
            ranks[dummy] = ranks[source] + i
            layered.add_edge(previous, dummy)
            previous = dummy
        layered.add_edge(previous, target)

    return layered


# --- Phase 4: crossing reduction ---

def _count_crossings(layers: list[list[Any]], graph: nx.DiGraph) -> int:
    total = 0
    for upper, lower in zip(layers, layers[1:]):
        lower_pos = {n: i for i, n in enumerate(lower)}
        segments = [
            (i, lower_pos[succ])
            for i, node in enumerate(upper)
            for succ in graph.successors(node)
            if succ in lower_pos
        ]
        for a in range(len(segments)):
            for b in range(a + 1, len(segments)):
                (u1, v1), (u2, v2) = segments[a], segments[b]
                if (u1 - u2) * (v1 - v2) < 0:
                    total += 1
    return total


def _reorder(layer: list[Any], fixed: list[Any], neighbors) -> None:
    """Sort a layer by the mean position of its neighbours in the fixed layer.

    Nodes without neighbours there keep their current index; ties keep the
    current order because the sort is stable.
    """
    fixed_pos = {n: i for i, n in enumerate(fixed)}
    current = {n: i for i, n in enumerate(layer)}

    def barycenter(node) -> float:
        positions = [fixed_pos[m] for m in neighbors(node) if m in fixed_pos]
        if not positions:
            return float(current[node])
        return sum(positions) / len(positions)

    layer.sort(key=barycenter)


def _order_layers(graph: nx.DiGraph, ranks: dict[Any, int], sweeps: int) -> list[list[Any]]:
    layers: list[list[Any]] = [[] for _ in range(max(ranks.values(), default=-1) + 1)]
    for node in graph.nodes:
        layers[ranks[node]].append(node)

    best = [list(layer) for layer in layers]
    best_crossings = _count_crossings(layers, graph)

    for _ in range(sweeps):
        if best_crossings == 0:
            break
        for r in range(1, len(layers)):
            _reorder(layers[r], layers[r - 1], graph.predecessors)
        for r in range(len(layers) - 2, -1, -1):
            _reorder(layers[r], layers[r + 1], graph.successors)

        crossings = _count_crossings(layers, graph)
        if crossings >= best_crossings:
            break
        best = [list(layer) for layer in layers]
        best_crossings = crossings

    logger.debug("Crossing reduction finished with %d crossings", best_crossings)
    return best


# --- Phase 5: coordinates ---

def _assign_coordinates(
    layers: list[list[Any]],
    sizes: dict[str, SizedNode],
    direction: str,
    settings: LayoutSettings
) -> dict[str, Position]:
    horizontal = direction == "LR"
    node_sep = settings.node_sep(direction)
    rank_sep = settings.rank_sep(direction)

    def extents(node) -> tuple[float, float]:
        """(extent along the rank axis, extent across it); dummies are points."""
        sized = sizes.get(node) if isinstance(node, str) else None
        if sized is None:
            return 0.0, 0.0
        if horizontal:
            return sized.width, sized.height
        return sized.height, sized.width

    thickness = [max((extents(n)[0] for n in layer), default=0.0) for layer in layers]
    breadth = [
        sum(extents(n)[1] for n in layer) + node_sep * max(len(layer) - 1, 0)
        for layer in layers
    ]
    widest = max(breadth, default=0.0)

    rank_margin, cross_margin = (
        (settings.margin_x, settings.margin_y) if horizontal else (settings.margin_y, settings.margin_x)
    )

    positions: dict[str, Position] = {}
    rank_start = rank_margin
    for r, layer in enumerate(layers):
        cursor = cross_margin + (widest - breadth[r]) / 2
        for node in layer:
            along, across = extents(node)
            if isinstance(node, str) and node in sizes:
                rank_coord = rank_start + (thickness[r] - along) / 2
                sized = sizes[node]
                if horizontal:
                    positions[node] = Position(rank_coord, cursor, sized.width, sized.height)
                else:
                    positions[node] = Position(cursor, rank_coord, sized.width, sized.height)
            cursor += across + node_sep
        rank_start += thickness[r] + rank_sep

    return positions


def layout(
    sized_nodes: list[Any],
    edges: list[Any],
    direction: str = "LR",
    settings: Optional[LayoutSettings] = None
) -> dict[str, Position]:
    """
    Compute positions for every node.

    Args:
        sized_nodes: SizedNode objects (or ``{id, width, height}`` dicts)
        edges: Diagram edges; edges to unknown nodes and self-loops are ignored
        direction: "LR" (ranks run left to right) or "TB" (top to bottom)
        settings: Spacing configuration

    Returns:
        Mapping of node id to the Position of its top-left corner, in input order

    Raises:
        ValueError: if direction is not "LR" or "TB"
    """
    if direction not in DIRECTIONS:
        raise ValueError(f"Unknown layout direction: {direction!r}")
    settings = settings or LayoutSettings()

    sizes: dict[str, SizedNode] = {}
    for item in sized_nodes if isinstance(sized_nodes, (list, tuple)) else []:
        sized = _as_sized(item, settings)
        if sized is not None and sized.id not in sizes:
            sizes[sized.id] = sized
    if not sizes:
        return {}

    graph = nx.DiGraph()
    graph.add_nodes_from(sizes)
    for edge in parse_edges(edges):
        if edge.source in sizes and edge.target in sizes and edge.source != edge.target:
            graph.add_edge(edge.source, edge.target)

    dag = _acyclic_copy(graph)
    ranks = _longest_path_ranks(dag)
    layered = _insert_dummies(dag, ranks)
    layers = _order_layers(layered, ranks, settings.crossing_sweeps)
    positions = _assign_coordinates(layers, sizes, direction, settings)

    logger.debug(
        "Laid out %d nodes in %d ranks (%d dummy nodes, direction %s)",
        len(sizes), len(layers), layered.number_of_nodes() - len(sizes), direction
    )
    return {node_id: positions[node_id] for node_id in sizes}


def layout_structure(
    nodes: list[Any],
    edges: list[Any],
    kind: DiagramKind = DiagramKind.MECHANISM,
    settings: Optional[LayoutSettings] = None
) -> dict[str, Position]:
    """Size and lay out one diagram variant in its natural direction."""
    settings = settings or LayoutSettings()
    return layout(size_nodes(nodes, kind, settings), edges, direction_for(kind), settings)


def needs_relayout(
    before: Any,
    after: Any,
    kind: DiagramKind = DiagramKind.MECHANISM,
    settings: Optional[LayoutSettings] = None
) -> bool:
    """
    Decide whether an attribute-only edit of one node requires a new layout.

    Structural edits (adding, removing or reconnecting nodes and edges) always
    do; an attribute edit does only when it changes the estimated width.
    """
    return estimate_node_width(before, kind, settings) != estimate_node_width(after, kind, settings)
