"""
Diagram validation - Check diagrams for structural issues.

Validation is advisory: an editor may keep and display an invalid graph
together with its warnings. Nothing here raises; every applicable issue is
collected in one pass. Only dangling edge references are errors, and they are
the one precondition for handing a diagram to external persistence.
"""

from collections import defaultdict, deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from .analysis import find_cycle
from .identifiers import DiagramKind
from .models import (
    DECISION_EDGE_ROLES,
    DiagramDocument,
    DiagramNode,
    EdgeRole,
    is_decision_node,
    is_information_node,
    is_process_node,
    parse_edges,
    parse_nodes,
)


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Broken reference, must be fixed before persisting
    WARNING = "warning"  # Structural problem, should review
    INFO = "info"        # Informational, may be intentional


class IssueCode(str, Enum):
    """Machine-readable kind of a validation issue."""
    ISOLATED_NODE = "isolated_node"
    NEVER_REACHES_TERMINAL = "never_reaches_terminal"
    UNWIRED_SCOPE_NODE = "unwired_scope_node"
    DANGLING_REFERENCE = "dangling_reference"
    INFORMATION_TO_INFORMATION = "information_to_information"
    WRONG_EDGE_ROLE = "wrong_edge_role"
    MISSING_PROCESS_INPUT = "missing_process_input"
    CYCLE = "cycle"
    DECISION_EDGE_ROLE = "decision_edge_role"


# Id suffixes of nodes holding an applicability/scope result
SCOPE_ID_SUFFIXES = ("-applicability", "-scope")

# Titles/descriptions naming an applicability condition (法適用状況 = status of
# law application, 工事種別 = kind of construction work, ...)
SCOPE_CONDITION_KEYWORDS = (
    "法適用状況",
    "工事種別",
    "工事内容",
    "本項適用該当",
    "条適用完了",
    "適用範囲該当",
    "適用範囲",
)

# Titles naming a final determination (適合 = conformity, 判定 = judgment, ...)
FINAL_RESULT_KEYWORDS = (
    "適合",
    "判定",
    "適用除外",
    "結果",
    "最終",
    "適用時",
    "基準適合",
    "号該当",
    "項該当",
    "条該当",
)


@dataclass
class ValidationIssue:
    """A single validation issue found in a diagram."""
    code: IssueCode
    severity: IssueSeverity
    message: str
    node_id: Optional[str] = None
    edge_id: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "code": self.code.value,
            "type": self.severity.value,
            "message": self.message
        }
        if self.node_id:
            result["node_id"] = self.node_id
        if self.edge_id:
            result["edge_id"] = self.edge_id
        return result


@dataclass
class ValidationResult:
    """Outcome of validating one node/edge structure."""
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues]

    @property
    def valid(self) -> bool:
        return not self.issues

    @property
    def persistable(self) -> bool:
        """True when every edge references existing nodes."""
        return not any(i.code == IssueCode.DANGLING_REFERENCE for i in self.issues)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "persistable": self.persistable,
            "warnings": self.warnings,
            "issues": [i.to_dict() for i in self.issues],
        }


@dataclass
class DiagramReport:
    """Validation results for both variants of a diagram document."""
    key: str
    mechanism: Optional[ValidationResult] = None
    flow: Optional[ValidationResult] = None

    @property
    def valid(self) -> bool:
        return all(r.valid for r in (self.mechanism, self.flow) if r is not None)

    @property
    def persistable(self) -> bool:
        return all(r.persistable for r in (self.mechanism, self.flow) if r is not None)

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "valid": self.valid,
            "persistable": self.persistable,
            "kijo_diagram": self.mechanism.to_dict() if self.mechanism else None,
            "flow_diagram": self.flow.to_dict() if self.flow else None,
        }


def _label(node: DiagramNode) -> str:
    return f"{node.id} ({node.title})"


def _is_final_result(node: DiagramNode) -> bool:
    return any(kw in node.title for kw in FINAL_RESULT_KEYWORDS)


def _is_scope_condition(node: DiagramNode) -> bool:
    if node.id.endswith(SCOPE_ID_SUFFIXES):
        return True
    description = node.description or ""
    return any(kw in node.title or kw in description for kw in SCOPE_CONDITION_KEYWORDS)


def validate(nodes: list[Any], edges: list[Any]) -> ValidationResult:
    """
    Validate the structure of a diagram and return every issue found.

    Checks, in order:
    1. Isolated nodes (no edge touches them)
    2. Connected nodes that never reach a terminal (a node with no outgoing
       edge), found by a reverse BFS from the terminals
    3. Terminal scope/applicability information nodes that are not wired into
       a final determination
    4. Dangling edge references (per missing endpoint) - ERROR
    5. information -> information edges
    6. information -> process edges without role "input" and
       process -> information edges without role "output"
    7. Information nodes that have incoming edges but none from a process.
       Nodes without incoming edges are raw external inputs and are exempt.

    Args:
        nodes: Diagram nodes (models or JSON dicts)
        edges: Diagram edges (models or JSON dicts)

    Returns:
        ValidationResult; ``valid`` is True only when no issue was found
    """
    nodes = parse_nodes(nodes)
    edges = parse_edges(edges)
    issues: list[ValidationIssue] = []

    # Quick lookups
    node_map = {n.id: n for n in nodes}
    connected: set[str] = set()
    has_outgoing: set[str] = set()
    has_incoming: set[str] = set()
    predecessors: dict[str, list[str]] = defaultdict(list)
    for edge in edges:
        connected.add(edge.source)
        connected.add(edge.target)
        has_outgoing.add(edge.source)
        has_incoming.add(edge.target)
        predecessors[edge.target].append(edge.source)

    # 1. Isolated nodes
    for node in nodes:
        if node.id not in connected:
            issues.append(ValidationIssue(
                code=IssueCode.ISOLATED_NODE,
                severity=IssueSeverity.WARNING,
                message=f"Isolated node: {_label(node)}",
                node_id=node.id
            ))

    # 2. Reverse BFS from terminals
    terminals = [n.id for n in nodes if n.id in connected and n.id not in has_outgoing]
    reached: set[str] = set()
    queue = deque(terminals)
    while queue:
        current = queue.popleft()
        if current in reached:
            continue
        reached.add(current)
        for pred in predecessors[current]:
            if pred not in reached:
                queue.append(pred)

    for node in nodes:
        if node.id in connected and node.id not in reached:
            issues.append(ValidationIssue(
                code=IssueCode.NEVER_REACHES_TERMINAL,
                severity=IssueSeverity.WARNING,
                message=f"Node never reaches a terminal: {_label(node)}",
                node_id=node.id
            ))

    # 3. Scope nodes left as terminals
    for node_id in terminals:
        node = node_map[node_id]
        if not is_information_node(node) or _is_final_result(node):
            continue
        if _is_scope_condition(node):
            issues.append(ValidationIssue(
                code=IssueCode.UNWIRED_SCOPE_NODE,
                severity=IssueSeverity.WARNING,
                message=f"Scope node not wired into final determination: {_label(node)}",
                node_id=node.id
            ))

    # 4-6. Per-edge checks
    for edge in edges:
        from_node = node_map.get(edge.source)
        to_node = node_map.get(edge.target)

        if from_node is None:
            issues.append(ValidationIssue(
                code=IssueCode.DANGLING_REFERENCE,
                severity=IssueSeverity.ERROR,
                message=f"Edge {edge.id}: dangling reference to missing source node {edge.source!r}",
                edge_id=edge.id
            ))
        if to_node is None:
            issues.append(ValidationIssue(
                code=IssueCode.DANGLING_REFERENCE,
                severity=IssueSeverity.ERROR,
                message=f"Edge {edge.id}: dangling reference to missing target node {edge.target!r}",
                edge_id=edge.id
            ))
        if from_node is None or to_node is None:
            continue

        if is_information_node(from_node) and is_information_node(to_node):
            issues.append(ValidationIssue(
                code=IssueCode.INFORMATION_TO_INFORMATION,
                severity=IssueSeverity.WARNING,
                message=f"Forbidden information -> information edge {edge.id}: {edge.source} -> {edge.target}",
                edge_id=edge.id
            ))
        elif is_information_node(from_node) and is_process_node(to_node):
            if edge.role != EdgeRole.INPUT.value:
                issues.append(ValidationIssue(
                    code=IssueCode.WRONG_EDGE_ROLE,
                    severity=IssueSeverity.WARNING,
                    message=f"Edge {edge.id}: information -> process must have role 'input' (found {edge.role!r})",
                    edge_id=edge.id
                ))
        elif is_process_node(from_node) and is_information_node(to_node):
            if edge.role != EdgeRole.OUTPUT.value:
                issues.append(ValidationIssue(
                    code=IssueCode.WRONG_EDGE_ROLE,
                    severity=IssueSeverity.WARNING,
                    message=f"Edge {edge.id}: process -> information must have role 'output' (found {edge.role!r})",
                    edge_id=edge.id
                ))

    # 7. Derived information must come from a process
    process_fed: set[str] = set()
    for edge in edges:
        if is_process_node(node_map.get(edge.source)) and edge.target in node_map:
            process_fed.add(edge.target)

    for node in nodes:
        if is_information_node(node) and node.id in has_incoming and node.id not in process_fed:
            issues.append(ValidationIssue(
                code=IssueCode.MISSING_PROCESS_INPUT,
                severity=IssueSeverity.WARNING,
                message=f"Missing process-derived input: information node {_label(node)} has incoming edges but none from a process",
                node_id=node.id
            ))

    return ValidationResult(issues=issues)


def check_decision_edges(nodes: list[Any], edges: list[Any]) -> list[ValidationIssue]:
    """Flag outgoing edges of decision nodes that carry no yes/no/option role."""
    nodes = parse_nodes(nodes)
    edges = parse_edges(edges)
    node_map = {n.id: n for n in nodes}

    issues: list[ValidationIssue] = []
    for edge in edges:
        if is_decision_node(node_map.get(edge.source)) and edge.role not in DECISION_EDGE_ROLES:
            issues.append(ValidationIssue(
                code=IssueCode.DECISION_EDGE_ROLE,
                severity=IssueSeverity.WARNING,
                message=f"Edge {edge.id}: outgoing edge of decision {edge.source} should have role yes/no/option (found {edge.role!r})",
                edge_id=edge.id
            ))
    return issues


def validate_structure(
    nodes: list[Any],
    edges: list[Any],
    kind: DiagramKind = DiagramKind.MECHANISM
) -> ValidationResult:
    """
    Validate one diagram variant.

    Mechanism diagrams must also be loop-free. Flow diagrams may loop
    (remediation loops are expected) but their decision edges must be labelled.
    """
    nodes = parse_nodes(nodes)
    edges = parse_edges(edges)
    result = validate(nodes, edges)

    if DiagramKind(kind) is DiagramKind.FLOW:
        result.issues.extend(check_decision_edges(nodes, edges))
    else:
        cycle = find_cycle(nodes, edges)
        if cycle:
            result.issues.append(ValidationIssue(
                code=IssueCode.CYCLE,
                severity=IssueSeverity.WARNING,
                message=f"Graph contains a cycle: {' -> '.join(cycle)}",
                node_id=cycle[0]
            ))

    return result


def validate_diagram(document: Union[DiagramDocument, dict]) -> DiagramReport:
    """Validate every variant present in a diagram document."""
    if not isinstance(document, DiagramDocument):
        document = DiagramDocument.from_json_dict(document)

    report = DiagramReport(key=document.key)
    if document.kijo_diagram is not None:
        report.mechanism = validate_structure(
            document.kijo_diagram.nodes, document.kijo_diagram.edges, DiagramKind.MECHANISM
        )
    if document.flow_diagram is not None:
        report.flow = validate_structure(
            document.flow_diagram.nodes, document.flow_diagram.edges, DiagramKind.FLOW
        )
    return report


def validation_summary(result: ValidationResult) -> dict:
    """
    Create a summary of validation issues.

    Args:
        result: Outcome of a validation run

    Returns:
        Dictionary with counts by severity
    """
    issues = result.issues
    return {
        "total": len(issues),
        "errors": len([i for i in issues if i.severity == IssueSeverity.ERROR]),
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": result.valid,
        "persistable": result.persistable,
    }
