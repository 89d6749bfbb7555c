"""
Semantic operations - The only way documents are mutated.

A batch of operations is applied in order to one working copy of the
document. The batch is atomic:
- the first failing operation aborts the batch
- after every operation succeeds, the result is validated as a whole, so
  combinations that are fine one by one but break an invariant together
  are rejected too
- on failure the caller gets an error and the input document is untouched

Operations are tagged records (`{"op": "add_node", ...}`), accepted either
as the pydantic models below or as plain dicts.
"""

from dataclasses import dataclass
from typing import Annotated, Any, Callable, Literal, Optional, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .errors import NotFoundError, OperationError, SourceNotFoundError, TargetNotFoundError
from .models import (
    DEFAULT_NODE_HEIGHT,
    DEFAULT_NODE_WIDTH,
    ArrowType,
    DiagramDocument,
    DiagramEdge,
    DiagramGroup,
    DiagramNode,
    EdgeStyle,
    NodeColor,
    NodeShape,
    generate_id,
    utc_timestamp,
)
from .sorting import sort_document
from .summary import generate_agent_context
from .validation import validate_diagram


IdGenerator = Callable[[], str]


# --- Operation payloads ---

class NodeInput(BaseModel):
    """Fields for a new node; everything but the label has a default."""
    label: str
    x: float = 0
    y: float = 0
    width: float = DEFAULT_NODE_WIDTH
    height: float = DEFAULT_NODE_HEIGHT
    shape: str = NodeShape.RECTANGLE.value
    color: str = NodeColor.DEFAULT.value
    pinned: bool = False
    notes: Optional[str] = None
    group: Optional[str] = None


class NodeChanges(BaseModel):
    """Partial node update. Only fields that were sent are applied."""
    label: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    shape: Optional[str] = None
    color: Optional[str] = None
    pinned: Optional[bool] = None
    notes: Optional[str] = None
    group: Optional[str] = None


class EdgeInput(BaseModel):
    """Fields for a new edge."""
    source: str
    target: str
    label: Optional[str] = None
    style: str = EdgeStyle.SOLID.value
    arrow: str = ArrowType.ARROW.value
    animated: Optional[bool] = None


class EdgeChanges(BaseModel):
    """Partial edge update."""
    source: Optional[str] = None
    target: Optional[str] = None
    label: Optional[str] = None
    style: Optional[str] = None
    arrow: Optional[str] = None
    animated: Optional[bool] = None


class GroupInput(BaseModel):
    """Fields for a new group; `id` may be supplied by the caller."""
    id: Optional[str] = None
    label: str
    color: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    collapsed: Optional[bool] = None


class GroupChanges(BaseModel):
    """Partial group update."""
    label: Optional[str] = None
    color: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    collapsed: Optional[bool] = None


# Fields an explicit null clears; for all others a null is ignored
NULLABLE_NODE_FIELDS = {"notes", "group"}
NULLABLE_EDGE_FIELDS = {"label", "animated"}
NULLABLE_GROUP_FIELDS = {"color", "x", "y", "collapsed"}


# --- Operations ---

class AddNodeOp(BaseModel):
    op: Literal["add_node"] = "add_node"
    node: NodeInput


class RemoveNodeOp(BaseModel):
    op: Literal["remove_node"] = "remove_node"
    id: str


class UpdateNodeOp(BaseModel):
    op: Literal["update_node"] = "update_node"
    id: str
    changes: NodeChanges


class AddEdgeOp(BaseModel):
    op: Literal["add_edge"] = "add_edge"
    edge: EdgeInput


class RemoveEdgeOp(BaseModel):
    op: Literal["remove_edge"] = "remove_edge"
    id: str


class UpdateEdgeOp(BaseModel):
    op: Literal["update_edge"] = "update_edge"
    id: str
    changes: EdgeChanges


class AddGroupOp(BaseModel):
    op: Literal["add_group"] = "add_group"
    group: GroupInput


class RemoveGroupOp(BaseModel):
    op: Literal["remove_group"] = "remove_group"
    id: str


class UpdateGroupOp(BaseModel):
    op: Literal["update_group"] = "update_group"
    id: str
    changes: GroupChanges


class SortNodesOp(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    op: Literal["sort_nodes"] = "sort_nodes"
    direction: Literal["TB", "BT", "LR", "RL"]
    group_id: Optional[str] = Field(default=None, alias="groupId")


SemanticOp = Annotated[
    Union[
        AddNodeOp, RemoveNodeOp, UpdateNodeOp,
        AddEdgeOp, RemoveEdgeOp, UpdateEdgeOp,
        AddGroupOp, RemoveGroupOp, UpdateGroupOp,
        SortNodesOp,
    ],
    Field(discriminator="op"),
]

_op_adapter: TypeAdapter = TypeAdapter(SemanticOp)


@dataclass
class OpResult:
    """Outcome of a batch. `document` is set only on success."""
    success: bool
    document: Optional[DiagramDocument] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        result: dict[str, Any] = {"success": self.success}
        if self.document is not None:
            result["document"] = self.document.to_json_dict()
        if self.error is not None:
            result["error"] = self.error
        return result


def parse_op(raw: Any) -> BaseModel:
    """Turn a tagged dict into its operation model (models pass through)."""
    if isinstance(raw, BaseModel):
        return raw
    return _op_adapter.validate_python(raw)


def _format_validation_error(e: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
    )


# --- Batch application ---

def apply_ops(
    doc: DiagramDocument,
    ops: list[Any],
    generate_id: IdGenerator = generate_id,
) -> OpResult:
    """
    Apply a batch of operations atomically.

    Args:
        doc: Current document (never modified)
        ops: Operation models or tagged dicts, applied in order
        generate_id: Supplies ids for new entities

    Returns:
        OpResult with the new document on success, or the first error
    """
    try:
        parsed = [parse_op(op) for op in ops]
    except ValidationError as e:
        error = f"Invalid operation: {_format_validation_error(e)}"
        logger.warning("Batch rejected: {}", error)
        return OpResult(success=False, error=error)

    working = doc.clone()
    for op in parsed:
        try:
            working = _apply_single_op(working, op, generate_id)
        except OperationError as e:
            logger.warning("Batch rejected at {}: {}", op.op, e)
            return OpResult(success=False, error=str(e))

    validation = validate_diagram(working)
    if not validation.valid:
        error = f"Validation failed: {', '.join(validation.errors)}"
        logger.warning("Batch rejected: {}", error)
        return OpResult(success=False, error=error)

    working.meta.modified = utc_timestamp()
    working.agent_context = generate_agent_context(working)
    logger.debug(
        "Applied {} operations ({} nodes, {} edges, {} groups)",
        len(parsed), len(working.nodes), len(working.edges), len(working.groups),
    )
    return OpResult(success=True, document=working)


def _apply_single_op(doc: DiagramDocument, op: BaseModel, generate_id: IdGenerator) -> DiagramDocument:
    handler = _HANDLERS[op.op]
    return handler(doc, op, generate_id)


def _merge(entity: BaseModel, changes: dict, nullable: set[str]) -> None:
    for key, value in changes.items():
        if value is None and key not in nullable:
            continue
        setattr(entity, key, value)


def _require_node(doc: DiagramDocument, node_id: str) -> DiagramNode:
    node = doc.get_node(node_id)
    if node is None:
        raise NotFoundError("Node", node_id)
    return node


def _require_edge(doc: DiagramDocument, edge_id: str) -> DiagramEdge:
    edge = doc.get_edge(edge_id)
    if edge is None:
        raise NotFoundError("Edge", edge_id)
    return edge


def _require_group(doc: DiagramDocument, group_id: str) -> DiagramGroup:
    group = doc.get_group(group_id)
    if group is None:
        raise NotFoundError("Group", group_id)
    return group


# --- Node operations ---

def _add_node(doc: DiagramDocument, op: AddNodeOp, generate_id: IdGenerator) -> DiagramDocument:
    doc.nodes.append(DiagramNode(id=generate_id(), **op.node.model_dump()))
    return doc


def _remove_node(doc: DiagramDocument, op: RemoveNodeOp, generate_id: IdGenerator) -> DiagramDocument:
    _require_node(doc, op.id)
    # Cascade: edges touching the node go with it
    doc.edges = [e for e in doc.edges if e.source != op.id and e.target != op.id]
    doc.nodes = [n for n in doc.nodes if n.id != op.id]
    return doc


def _update_node(doc: DiagramDocument, op: UpdateNodeOp, generate_id: IdGenerator) -> DiagramDocument:
    node = _require_node(doc, op.id)
    changes = op.changes.model_dump(exclude_unset=True)

    # A pinned node keeps its position; the rest of the update still applies
    if node.pinned:
        changes.pop("x", None)
        changes.pop("y", None)

    _merge(node, changes, NULLABLE_NODE_FIELDS)
    return doc


# --- Edge operations ---

def _add_edge(doc: DiagramDocument, op: AddEdgeOp, generate_id: IdGenerator) -> DiagramDocument:
    if doc.get_node(op.edge.source) is None:
        raise SourceNotFoundError(op.edge.source)
    if doc.get_node(op.edge.target) is None:
        raise TargetNotFoundError(op.edge.target)

    doc.edges.append(DiagramEdge(id=generate_id(), **op.edge.model_dump()))
    return doc


def _remove_edge(doc: DiagramDocument, op: RemoveEdgeOp, generate_id: IdGenerator) -> DiagramDocument:
    _require_edge(doc, op.id)
    doc.edges = [e for e in doc.edges if e.id != op.id]
    return doc


def _update_edge(doc: DiagramDocument, op: UpdateEdgeOp, generate_id: IdGenerator) -> DiagramDocument:
    edge = _require_edge(doc, op.id)
    changes = op.changes.model_dump(exclude_unset=True)

    source = changes.get("source")
    if source is not None and doc.get_node(source) is None:
        raise SourceNotFoundError(source)
    target = changes.get("target")
    if target is not None and doc.get_node(target) is None:
        raise TargetNotFoundError(target)

    _merge(edge, changes, NULLABLE_EDGE_FIELDS)
    return doc


# --- Group operations ---

def _add_group(doc: DiagramDocument, op: AddGroupOp, generate_id: IdGenerator) -> DiagramDocument:
    fields = op.group.model_dump(exclude={"id"})
    doc.groups.append(DiagramGroup(id=op.group.id or generate_id(), **fields))
    return doc


def _remove_group(doc: DiagramDocument, op: RemoveGroupOp, generate_id: IdGenerator) -> DiagramDocument:
    _require_group(doc, op.id)
    doc.groups = [g for g in doc.groups if g.id != op.id]
    # Members are detached, not deleted
    for node in doc.nodes:
        if node.group == op.id:
            node.group = None
    return doc


def _update_group(doc: DiagramDocument, op: UpdateGroupOp, generate_id: IdGenerator) -> DiagramDocument:
    group = _require_group(doc, op.id)
    _merge(group, op.changes.model_dump(exclude_unset=True), NULLABLE_GROUP_FIELDS)
    return doc


# --- Sorting ---

def _sort_nodes(doc: DiagramDocument, op: SortNodesOp, generate_id: IdGenerator) -> DiagramDocument:
    return sort_document(doc, op.direction, op.group_id)


_HANDLERS: dict[str, Callable[..., DiagramDocument]] = {
    "add_node": _add_node,
    "remove_node": _remove_node,
    "update_node": _update_node,
    "add_edge": _add_edge,
    "remove_edge": _remove_edge,
    "update_edge": _update_edge,
    "add_group": _add_group,
    "remove_group": _remove_group,
    "update_group": _update_group,
    "sort_nodes": _sort_nodes,
}
