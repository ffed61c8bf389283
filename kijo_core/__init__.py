"""
kijo core - Statute parsing, diagram models, validation, analysis and layout.

This package provides the pure, synchronous logic behind the compliance-
mechanism diagram viewer/editor.
"""

from .identifiers import (
    DiagramKind,
    make_diagram_id,
    make_diagram_key,
    format_article_number,
    format_related_article,
    parse_article_ref,
)

from .law_parser import (
    LawNode,
    Reference,
    parse_law_data,
    is_regulation_text,
    collect_regulations,
    find_article_content,
    find_references,
)
from .law_cache import StatuteCache

from .models import (
    # Enums
    NodeType,
    PropertyType,
    ProcessType,
    DecisionType,
    TerminalResult,
    EdgeRole,
    # Core models
    InformationNode,
    ProcessNode,
    DecisionNode,
    TerminalNode,
    DiagramNode,
    Edge,
    MechanismDiagram,
    FlowDiagram,
    DiagramDocument,
    # Parsing and predicates
    parse_node,
    parse_nodes,
    parse_edge,
    parse_edges,
    is_information_node,
    is_process_node,
    is_decision_node,
    is_terminal_node,
)

from .validation import (
    validate,
    validate_structure,
    validate_diagram,
    validation_summary,
    ValidationIssue,
    ValidationResult,
    IssueSeverity,
    IssueCode,
)
from .analysis import find_cycle, has_cycle, summarize_diagram, find_connected_components
from .layout import Position, SizedNode, layout, layout_structure, estimate_node_width, needs_relayout
from .editor import DiagramEditor
from .settings import KijoSettings, LayoutSettings, ParserSettings, EditorSettings, get_settings

__version__ = "0.1.0"

__all__ = [
    # Identifiers
    "DiagramKind",
    "make_diagram_id",
    "make_diagram_key",
    "format_article_number",
    "format_related_article",
    "parse_article_ref",
    # Statute parsing
    "LawNode",
    "Reference",
    "parse_law_data",
    "is_regulation_text",
    "collect_regulations",
    "find_article_content",
    "find_references",
    "StatuteCache",
    # Enums
    "NodeType",
    "PropertyType",
    "ProcessType",
    "DecisionType",
    "TerminalResult",
    "EdgeRole",
    # Models
    "InformationNode",
    "ProcessNode",
    "DecisionNode",
    "TerminalNode",
    "DiagramNode",
    "Edge",
    "MechanismDiagram",
    "FlowDiagram",
    "DiagramDocument",
    "parse_node",
    "parse_nodes",
    "parse_edge",
    "parse_edges",
    "is_information_node",
    "is_process_node",
    "is_decision_node",
    "is_terminal_node",
    # Validation
    "validate",
    "validate_structure",
    "validate_diagram",
    "validation_summary",
    "ValidationIssue",
    "ValidationResult",
    "IssueSeverity",
    "IssueCode",
    # Analysis
    "find_cycle",
    "has_cycle",
    "summarize_diagram",
    "find_connected_components",
    # Layout
    "Position",
    "SizedNode",
    "layout",
    "layout_structure",
    "estimate_node_width",
    "needs_relayout",
    # Editing
    "DiagramEditor",
    # Settings
    "KijoSettings",
    "LayoutSettings",
    "ParserSettings",
    "EditorSettings",
    "get_settings",
]
