"""
Diagram analysis - Cycle detection and graph summarization utilities.

All functions take node and edge lists (models or raw JSON dicts) and never
modify them.
"""

from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any, Optional

from .models import DiagramNode, Edge, parse_edges, parse_nodes

# DFS colours
WHITE = 0  # unvisited
GRAY = 1   # on the current DFS path
BLACK = 2  # fully explored


@dataclass
class ConnectedComponent:
    """A weakly connected component of the diagram graph."""
    node_ids: list[str] = field(default_factory=list)
    edge_count: int = 0

    @property
    def size(self) -> int:
        return len(self.node_ids)


@dataclass
class NodeConnectionInfo:
    """Connection information for a single node."""
    node_id: str
    title: str
    incoming: int = 0   # Edges pointing to this node
    outgoing: int = 0   # Edges pointing from this node

    @property
    def total(self) -> int:
        return self.incoming + self.outgoing


@dataclass
class DiagramSummary:
    """Structural summary of one diagram variant."""
    total_nodes: int
    total_edges: int
    nodes_by_type: dict[str, int]
    edges_by_role: dict[str, int]
    source_ids: list[str]
    terminal_ids: list[str]
    connected_components: int
    most_connected_nodes: list[NodeConnectionInfo]
    isolated_count: int
    has_cycle: bool

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "total_nodes": self.total_nodes,
            "total_edges": self.total_edges,
            "nodes_by_type": self.nodes_by_type,
            "edges_by_role": self.edges_by_role,
            "source_ids": self.source_ids,
            "terminal_ids": self.terminal_ids,
            "connected_components": self.connected_components,
            "most_connected_nodes": [
                {
                    "id": n.node_id,
                    "title": n.title,
                    "connections": n.total,
                    "incoming": n.incoming,
                    "outgoing": n.outgoing
                }
                for n in self.most_connected_nodes
            ],
            "isolated_count": self.isolated_count,
            "has_cycle": self.has_cycle,
        }


def _successors(nodes: list[DiagramNode], edges: list[Edge]) -> dict[str, list[str]]:
    """Directed adjacency list in edge order; edges from unknown nodes are ignored."""
    adjacency: dict[str, list[str]] = {n.id: [] for n in nodes}
    for edge in edges:
        if edge.source in adjacency:
            adjacency[edge.source].append(edge.target)
    return adjacency


def find_cycle(nodes: list[Any], edges: list[Any]) -> Optional[list[str]]:
    """
    Find one directed cycle using a three-colour DFS.

    A back-edge into a node still on the DFS path (GRAY) closes a cycle.

    Args:
        nodes: Diagram nodes
        edges: Diagram edges

    Returns:
        The cycle as a list of node ids with the first id repeated at the end,
        or None if the graph is acyclic
    """
    nodes = parse_nodes(nodes)
    edges = parse_edges(edges)
    adjacency = _successors(nodes, edges)
    color: dict[str, int] = {}

    for start in adjacency:
        if color.get(start, WHITE) != WHITE:
            continue

        color[start] = GRAY
        path = [start]
        stack = [iter(adjacency[start])]

        while stack:
            neighbor = next(stack[-1], None)
            if neighbor is None:
                color[path.pop()] = BLACK
                stack.pop()
                continue

            state = color.get(neighbor, WHITE)
            if state == GRAY:
                return path[path.index(neighbor):] + [neighbor]
            if state == WHITE:
                color[neighbor] = GRAY
                path.append(neighbor)
                stack.append(iter(adjacency.get(neighbor, [])))

    return None


def has_cycle(nodes: list[Any], edges: list[Any]) -> bool:
    """Return True if the directed graph contains a cycle."""
    return find_cycle(nodes, edges) is not None


def find_connected_components(nodes: list[Any], edges: list[Any]) -> list[ConnectedComponent]:
    """
    Find all connected components using BFS.

    Edges are treated as undirected; edges touching unknown nodes are ignored.

    Returns:
        List of ConnectedComponent objects, in node order of their first member
    """
    nodes = parse_nodes(nodes)
    edges = parse_edges(edges)
    if not nodes:
        return []

    adjacency: dict[str, list[str]] = {n.id: [] for n in nodes}
    for edge in edges:
        if edge.source in adjacency and edge.target in adjacency:
            adjacency[edge.source].append(edge.target)
            adjacency[edge.target].append(edge.source)

    visited: set[str] = set()
    components: list[ConnectedComponent] = []

    for start_node in adjacency:
        if start_node in visited:
            continue

        component_nodes: list[str] = []
        queue = deque([start_node])
        visited.add(start_node)

        while queue:
            current = queue.popleft()
            component_nodes.append(current)
            for neighbor in adjacency[current]:
                if neighbor not in visited:
                    visited.add(neighbor)
                    queue.append(neighbor)

        members = set(component_nodes)
        edge_count = sum(
            1 for e in edges if e.source in members and e.target in members
        )
        components.append(ConnectedComponent(node_ids=component_nodes, edge_count=edge_count))

    return components


def calculate_node_connections(nodes: list[Any], edges: list[Any]) -> dict[str, NodeConnectionInfo]:
    """
    Calculate incoming/outgoing edge counts for all nodes.

    Returns:
        Dictionary mapping node_id to NodeConnectionInfo
    """
    nodes = parse_nodes(nodes)
    edges = parse_edges(edges)

    connections: dict[str, NodeConnectionInfo] = {}
    for node in nodes:
        connections[node.id] = NodeConnectionInfo(node_id=node.id, title=node.title)

    for edge in edges:
        if edge.source in connections:
            connections[edge.source].outgoing += 1
        if edge.target in connections:
            connections[edge.target].incoming += 1

    return connections


def summarize_diagram(nodes: list[Any], edges: list[Any], top_n: int = 5) -> DiagramSummary:
    """
    Generate a structural summary of a diagram variant.

    Args:
        nodes: Diagram nodes
        edges: Diagram edges
        top_n: Number of top connected nodes to include

    Returns:
        DiagramSummary object with all analysis results
    """
    nodes = parse_nodes(nodes)
    edges = parse_edges(edges)

    type_counts: dict[str, int] = defaultdict(int)
    for node in nodes:
        type_counts[node.type] += 1

    role_counts: dict[str, int] = defaultdict(int)
    for edge in edges:
        role_counts[edge.role or "none"] += 1

    connections = calculate_node_connections(nodes, edges)

    # Stable sort keeps node order among ties
    sorted_by_connections = sorted(
        connections.values(),
        key=lambda x: x.total,
        reverse=True
    )
    most_connected = [n for n in sorted_by_connections[:top_n] if n.total > 0]

    return DiagramSummary(
        total_nodes=len(nodes),
        total_edges=len(edges),
        nodes_by_type=dict(type_counts),
        edges_by_role=dict(role_counts),
        source_ids=[c.node_id for c in connections.values() if c.incoming == 0 and c.outgoing > 0],
        terminal_ids=[c.node_id for c in connections.values() if c.outgoing == 0 and c.incoming > 0],
        connected_components=len(find_connected_components(nodes, edges)),
        most_connected_nodes=most_connected,
        isolated_count=sum(1 for c in connections.values() if c.total == 0),
        has_cycle=has_cycle(nodes, edges),
    )
