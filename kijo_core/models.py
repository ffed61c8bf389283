"""
Core data models for compliance-mechanism diagrams.

These models define the canonical schema for diagrams:
- Nodes as a tagged union on ``type`` (information, process, decision, terminal)
- Edges connecting nodes, with an optional role and label
- The diagram document wrapping the mechanism diagram, the optional flow
  diagram and the legal reference they explain

Field Naming Convention:
- JSON uses snake_case and edges use ``from``/``to``
- Python exposes edge endpoints as ``source``/``target`` (``from`` is a keyword)
- For backward compatibility, camelCase keys and ``source``/``target`` are
  accepted on input and converted

Parsing never fails on missing optional fields; they take their defaults.
Enumerated attributes are plain strings defaulting to the enum values, so
authored values outside the vocabulary are kept as-is.
"""

import logging
import uuid
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .identifiers import DiagramKind, make_diagram_key

logger = logging.getLogger(__name__)


class NodeType(str, Enum):
    """Discriminator values for diagram nodes."""
    INFORMATION = "information"
    PROCESS = "process"
    DECISION = "decision"
    TERMINAL = "terminal"


class PropertyType(str, Enum):
    """Kind of property an information node carries."""
    PROPOSITION = "proposition"
    CLASSIFICATION = "classification"
    NUMERIC = "numeric"
    GEOMETRIC_POINT = "geometric_point"
    GEOMETRIC_DIRECTION = "geometric_direction"
    GEOMETRIC_LINE = "geometric_line"
    GEOMETRIC_SURFACE = "geometric_surface"
    GEOMETRIC_SOLID = "geometric_solid"
    SET_DEFINITION = "set_definition"
    VISUAL = "visual"


class Plurality(str, Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"


class ProcessType(str, Enum):
    """Kind of processing a process node performs."""
    MECHANICAL = "mechanical"
    HUMAN_JUDGMENT = "human_judgment"
    CONSISTENCY_CHECK = "consistency_check"
    SUB_DIAGRAM_REFERENCE = "sub_diagram_reference"
    UNDEFINED_INPUT = "undefined_input"


class Iteration(str, Enum):
    SINGLE = "single"
    ITERATIVE = "iterative"


class SoftwareFunctionCategory(str, Enum):
    USER_INPUT = "user_input"
    GRAPHIC_DISPLAY = "graphic_display"
    TEXT_DISPLAY = "text_display"
    PROGRAM_PROCESSING = "program_processing"


class DecisionType(str, Enum):
    BINARY = "binary"
    MULTI = "multi"


class TerminalResult(str, Enum):
    START = "start"
    END = "end"
    PASS = "pass"
    FAIL = "fail"


class EdgeRole(str, Enum):
    """Roles an edge can play."""
    INPUT = "input"            # information -> process
    OUTPUT = "output"          # process -> information
    PRIMARY = "primary"        # authoritative input of a consistency check
    SUPPORTING = "supporting"  # corroborating input of a consistency check
    FLOW = "flow"              # plain sequencing in a flow diagram
    YES = "yes"
    NO = "no"
    OPTION = "option"


DECISION_EDGE_ROLES = frozenset({EdgeRole.YES.value, EdgeRole.NO.value, EdgeRole.OPTION.value})


def generate_node_id() -> str:
    """Generate a unique node ID."""
    return f"n{uuid.uuid4().hex[:8]}"


def generate_edge_id() -> str:
    """Generate a unique edge ID."""
    return f"e{uuid.uuid4().hex[:8]}"


# camelCase keys written by older tooling -> canonical snake_case
_LEGACY_FIELD_NAMES = {
    "propertyType": "property_type",
    "relatedArticles": "related_articles",
    "delegatedRequirements": "delegated_requirements",
    "mvdRelated": "mvd_related",
    "processType": "process_type",
    "targetSubject": "target_subject",
    "logicExpression": "logic_expression",
    "softwareFunctions": "software_functions",
    "subDiagramRef": "sub_diagram_ref",
    "decisionType": "decision_type",
}


def _convert_legacy_fields(data: Any) -> Any:
    """Rename camelCase keys and drop explicit nulls so defaults apply."""
    if not isinstance(data, dict):
        return data
    converted = {}
    for key, value in data.items():
        if value is None:
            continue
        key = _LEGACY_FIELD_NAMES.get(key, key)
        converted.setdefault(key, value)
    return converted


def _drop_error_field(data: dict, loc: tuple) -> bool:
    """Remove the input field a validation error points at (copying nested dicts)."""
    container = data
    for i, part in enumerate(loc):
        if not isinstance(part, str) or part not in container:
            return False
        child = container[part]
        following = loc[i + 1] if i + 1 < len(loc) else None
        if not isinstance(child, dict) or not isinstance(following, str) or following not in child:
            del container[part]
            return True
        container[part] = dict(child)
        container = container[part]
    return False


def _validate_leniently(model_cls: type, data: dict, required: tuple[str, ...] = ()) -> Any:
    """
    Validate a dict, dropping fields that fail so they take their defaults.

    Raises:
        ValidationError: if a field named in ``required`` fails, or an error
            cannot be traced back to an input field
    """
    data = dict(data)
    while True:
        try:
            return model_cls.model_validate(data)
        except ValidationError as e:
            locs = [err["loc"] for err in e.errors()]
            if any(loc and loc[0] in required for loc in locs):
                raise
            dropped = [loc for loc in locs if _drop_error_field(data, loc)]
            if not dropped:
                raise
            logger.warning(
                "Dropped malformed %s fields: %s",
                model_cls.__name__, ", ".join(".".join(map(str, loc)) for loc in dropped)
            )


class SoftwareFunction(BaseModel):
    """A software capability a process step relies on."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    category: str = SoftwareFunctionCategory.PROGRAM_PROCESSING.value
    description: Optional[str] = None


class Operand(BaseModel):
    """One side of a decision condition."""
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    symbol: Optional[str] = None
    value: Any = None
    description: Optional[str] = None


class Condition(BaseModel):
    """A comparison evaluated by a decision node."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    operator: str = "=="
    left: Optional[Operand] = None
    right: Optional[Operand] = None


class DecisionOption(BaseModel):
    """One enumerated branch of a multi-way decision."""
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    label: str = ""
    description: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def accept_plain_label(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"label": data}
        return data


class InformationNode(BaseModel):
    """A piece of information (fact, classification, measurement...)."""
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: str = Field(default_factory=generate_node_id)
    type: Literal["information"] = "information"
    title: str = ""
    symbol: Optional[str] = None
    subject: Optional[str] = None
    property: Optional[str] = None
    property_type: str = PropertyType.PROPOSITION.value
    plurality: str = Plurality.SINGLE.value
    unit: Optional[str] = None
    description: Optional[str] = None
    related_articles: list[str] = Field(default_factory=list)
    delegated_requirements: list[str] = Field(default_factory=list)
    remarks: Optional[str] = None
    mvd_related: Optional[str] = None  # IFC class / property set hints

    @model_validator(mode="before")
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        return _convert_legacy_fields(data)


class ProcessNode(BaseModel):
    """A processing step deriving information from information."""
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: str = Field(default_factory=generate_node_id)
    type: Literal["process"] = "process"
    title: str = ""
    process_type: str = ProcessType.MECHANICAL.value
    target_subject: Optional[str] = None
    iteration: str = Iteration.SINGLE.value
    description: Optional[str] = None
    logic_expression: Optional[str] = None
    software_functions: list[SoftwareFunction] = Field(default_factory=list)
    related_articles: list[str] = Field(default_factory=list)
    remarks: Optional[str] = None
    sub_diagram_ref: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        return _convert_legacy_fields(data)


class DecisionNode(BaseModel):
    """A branching point (yes/no or multi-way)."""
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: str = Field(default_factory=generate_node_id)
    type: Literal["decision"] = "decision"
    title: str = ""
    decision_type: str = DecisionType.BINARY.value
    condition: Optional[Condition] = None
    options: list[DecisionOption] = Field(default_factory=list)
    description: Optional[str] = None
    related_articles: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        return _convert_legacy_fields(data)


class TerminalNode(BaseModel):
    """Start/end point or final pass/fail outcome."""
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: str = Field(default_factory=generate_node_id)
    type: Literal["terminal"] = "terminal"
    title: str = ""
    result: str = TerminalResult.END.value
    description: Optional[str] = None
    related_articles: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        return _convert_legacy_fields(data)


DiagramNode = Annotated[
    Union[InformationNode, ProcessNode, DecisionNode, TerminalNode],
    Field(discriminator="type"),
]

NODE_CLASSES = (InformationNode, ProcessNode, DecisionNode, TerminalNode)
NODE_TYPES = frozenset(t.value for t in NodeType)
NODE_CLASS_BY_TYPE = {cls.model_fields["type"].default: cls for cls in NODE_CLASSES}


# --- Type predicates (the only supported way to branch on node kind) ---

def is_information_node(node: Any) -> bool:
    return getattr(node, "type", None) == NodeType.INFORMATION.value


def is_process_node(node: Any) -> bool:
    return getattr(node, "type", None) == NodeType.PROCESS.value


def is_decision_node(node: Any) -> bool:
    return getattr(node, "type", None) == NodeType.DECISION.value


def is_terminal_node(node: Any) -> bool:
    return getattr(node, "type", None) == NodeType.TERMINAL.value


class Edge(BaseModel):
    """
    A directed edge between two nodes.

    Serialized as ``{id, from, to, role?, label?}``; the endpoints are exposed
    in Python as ``source`` and ``target``.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow", coerce_numbers_to_str=True)

    id: str = Field(default_factory=generate_edge_id)
    source: str = Field(default="", alias="from")
    target: str = Field(default="", alias="to")
    role: Optional[str] = None
    label: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        """Drop explicit nulls so defaults apply."""
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        result = {"id": self.id, "from": self.source, "to": self.target}
        # Only include role/label if they're set
        if self.role:
            result["role"] = self.role
        if self.label:
            result["label"] = self.label
        if self.model_extra:
            result.update(self.model_extra)
        return result


# --- Parsing helpers ---

def parse_node(data: Any) -> Optional[DiagramNode]:
    """
    Map one JSON node to its model.

    Optional fields of the wrong shape are dropped and take their defaults.
    Returns None (with a logged warning) for non-objects, unknown ``type``
    values and nodes whose ``id`` is unusable.
    """
    if isinstance(data, NODE_CLASSES):
        return data
    if not isinstance(data, dict):
        logger.warning("Skipping non-object node: %r", data)
        return None
    if not isinstance(data.get("type"), str) or data["type"] not in NODE_TYPES:
        logger.warning("Skipping node %r with unknown type %r", data.get("id"), data.get("type"))
        return None
    try:
        return _validate_leniently(
            NODE_CLASS_BY_TYPE[data["type"]], _convert_legacy_fields(data), required=("id", "type")
        )
    except ValidationError as e:
        logger.warning("Skipping malformed node %r: %s", data.get("id"), e)
        return None


def parse_edge(data: Any) -> Optional[Edge]:
    """
    Map one JSON edge to its model.

    A malformed ``role``, ``label`` or ``id`` is dropped; None is returned for
    non-objects and edges whose endpoints are unusable.
    """
    if isinstance(data, Edge):
        return data
    if not isinstance(data, dict):
        logger.warning("Skipping non-object edge: %r", data)
        return None
    try:
        return _validate_leniently(Edge, data, required=("from", "to", "source", "target"))
    except ValidationError as e:
        logger.warning("Skipping malformed edge %r: %s", data.get("id"), e)
        return None


def parse_nodes(items: Any) -> list[DiagramNode]:
    """Parse a node list, skipping entries that cannot be mapped."""
    if not isinstance(items, (list, tuple)):
        return []
    return [n for n in (parse_node(item) for item in items) if n is not None]


def parse_edges(items: Any) -> list[Edge]:
    """Parse an edge list, skipping entries that cannot be mapped."""
    if not isinstance(items, (list, tuple)):
        return []
    return [e for e in (parse_edge(item) for item in items) if e is not None]


def node_to_json_dict(node: DiagramNode) -> dict:
    """Convert a node to a JSON-serializable dict, omitting unset optionals."""
    return node.model_dump(mode="json", exclude_none=True)


# --- Diagram document ---

class PageTitle(BaseModel):
    """Heading of a diagram page."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    title: str = ""
    target_subject: Optional[str] = None
    description: Optional[str] = None
    related_articles: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        return _convert_legacy_fields(data)


class LegalRef(BaseModel):
    """The statute provision a diagram explains."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    law_id: str = ""
    law_type: str = "act"
    law_name: str = ""
    law_abbrev: str = ""
    article: str = ""
    paragraph: Optional[str] = None
    item: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        return _convert_legacy_fields(data)


class RelatedLaw(BaseModel):
    """Cross-reference to another law the diagram depends on."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    law_id: str = ""
    law_name: str = ""
    law_type: str = "act"
    relationship: str = "references"
    articles: list[str] = Field(default_factory=list)
    description: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        return _convert_legacy_fields(data)


class MechanismDiagram(BaseModel):
    """Node/edge structure of a mechanism diagram (must be loop-free)."""
    nodes: list[DiagramNode] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)

    @field_validator("nodes", mode="before")
    @classmethod
    def lenient_nodes(cls, value: Any) -> list:
        return parse_nodes(value)

    @field_validator("edges", mode="before")
    @classmethod
    def lenient_edges(cls, value: Any) -> list:
        return parse_edges(value)

    def to_json_dict(self) -> dict:
        return {
            "nodes": [node_to_json_dict(n) for n in self.nodes],
            "edges": [e.to_json_dict() for e in self.edges],
        }


class FlowDiagram(BaseModel):
    """Node/edge structure of a procedural flow diagram (loops permitted)."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    title: str = ""
    description: Optional[str] = None
    nodes: list[DiagramNode] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)

    @field_validator("nodes", mode="before")
    @classmethod
    def lenient_nodes(cls, value: Any) -> list:
        return parse_nodes(value)

    @field_validator("edges", mode="before")
    @classmethod
    def lenient_edges(cls, value: Any) -> list:
        return parse_edges(value)

    def to_json_dict(self) -> dict:
        result = {
            "title": self.title,
            "nodes": [node_to_json_dict(n) for n in self.nodes],
            "edges": [e.to_json_dict() for e in self.edges],
        }
        if self.description is not None:
            result["description"] = self.description
        return result


class DiagramDocument(BaseModel):
    """
    The complete diagram document for one statute provision.
    This is what gets exchanged with the surrounding application as JSON.
    """
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str = ""
    version: str = "3.0.0"
    page_title: PageTitle = Field(default_factory=PageTitle)
    legal_ref: LegalRef = Field(default_factory=LegalRef)
    labels: list[str] = Field(default_factory=list)
    text_raw: Optional[str] = None
    compliance_logic: Any = None
    kijo_diagram: Optional[MechanismDiagram] = None
    flow_diagram: Optional[FlowDiagram] = None
    kijo_diagram_ref: Optional[str] = None
    related_laws: list[RelatedLaw] = Field(default_factory=list)
    metadata: Optional[dict] = None

    @model_validator(mode="before")
    @classmethod
    def coerce_shapes(cls, data: Any) -> Any:
        """Replace wrongly-shaped sections with their defaults."""
        if not isinstance(data, dict):
            return {}
        data = {k: v for k, v in data.items() if v is not None}
        for key in ("page_title", "legal_ref", "kijo_diagram", "flow_diagram", "metadata"):
            if key in data and not isinstance(data[key], dict):
                logger.warning("Ignoring malformed %s section: %r", key, data[key])
                data.pop(key)
        for key in ("labels", "related_laws"):
            if key in data and not isinstance(data[key], list):
                logger.warning("Ignoring malformed %s section: %r", key, data[key])
                data.pop(key)
        if "related_laws" in data:
            data["related_laws"] = [law for law in data["related_laws"] if isinstance(law, dict)]
        return data

    @property
    def key(self) -> str:
        """The ``{lawId}/{articleId}`` key addressing this diagram."""
        return make_diagram_key(self.legal_ref.law_id, self.id)

    def structure(self, kind: DiagramKind = DiagramKind.MECHANISM) -> Optional[Union[MechanismDiagram, FlowDiagram]]:
        """Return the node/edge structure of one variant, if present."""
        if DiagramKind(kind) is DiagramKind.FLOW:
            return self.flow_diagram
        return self.kijo_diagram

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict with proper field names."""
        result: dict[str, Any] = {
            "id": self.id,
            "version": self.version,
            "page_title": self.page_title.model_dump(mode="json", exclude_none=True),
            "legal_ref": self.legal_ref.model_dump(mode="json"),
        }
        if self.labels:
            result["labels"] = list(self.labels)
        if self.text_raw is not None:
            result["text_raw"] = self.text_raw
        if self.compliance_logic is not None:
            result["compliance_logic"] = self.compliance_logic
        if self.kijo_diagram is not None:
            result["kijo_diagram"] = self.kijo_diagram.to_json_dict()
        if self.flow_diagram is not None:
            result["flow_diagram"] = self.flow_diagram.to_json_dict()
        if self.kijo_diagram_ref is not None:
            result["kijo_diagram_ref"] = self.kijo_diagram_ref
        if self.related_laws:
            result["related_laws"] = [
                law.model_dump(mode="json", exclude_none=True) for law in self.related_laws
            ]
        if self.metadata is not None:
            result["metadata"] = self.metadata
        return result

    @classmethod
    def from_json_dict(cls, data: Any) -> "DiagramDocument":
        """Create a document from a JSON dict; non-objects yield an empty document."""
        if not isinstance(data, dict):
            return cls()
        try:
            return _validate_leniently(cls, data)
        except ValidationError as e:
            logger.warning("Diagram document could not be mapped, using an empty one: %s", e)
            return cls()
