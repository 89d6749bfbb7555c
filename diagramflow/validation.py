"""
Diagram validation - Check documents for structural and referential integrity.

Used by the operation engine to gate every batch, and by loaders before a
document is accepted. Validation never raises and never stops at the first
problem: every violation is collected so callers can show all of them.

Checks:
- meta.title / created / modified are non-empty strings
- node fields (id, label, position, size, shape, color, pinned)
- edge fields and that source/target resolve to existing nodes
- group id/label, and that node.group resolves to an existing group
- optional fields (notes, labels, group origin, layoutDirection, ...) have the
  right type when present
- viewport x/y/zoom when present
- ids are unique across nodes, edges and groups combined
"""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from pydantic import ValidationError

from .models import (
    ARROW_TYPES,
    EDGE_STYLES,
    LAYOUT_DIRECTIONS,
    NODE_COLORS,
    NODE_SHAPES,
    DiagramDocument,
)


@dataclass
class ValidationResult:
    """Outcome of validating a document."""
    valid: bool
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {"valid": self.valid, "errors": list(self.errors)}


@dataclass
class ParseResult:
    """Outcome of parsing document text; `doc` is set only when valid."""
    doc: Optional[DiagramDocument]
    errors: list[str] = field(default_factory=list)


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a coordinate
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and len(value) > 0


def _is_str(value: Any) -> bool:
    return isinstance(value, str)


def _is_bool(value: Any) -> bool:
    return isinstance(value, bool)


# Optional fields: (check, message) applied only when the key holds a non-null value
OptionalChecks = dict[str, tuple[Callable[[Any], bool], str]]

_NODE_OPTIONAL: OptionalChecks = {
    "notes": (_is_str, "must be a string"),
    "group": (_is_str, "must be a string"),
}
_EDGE_OPTIONAL: OptionalChecks = {
    "label": (_is_str, "must be a string"),
    "animated": (_is_bool, "must be a boolean"),
}
_GROUP_OPTIONAL: OptionalChecks = {
    "color": (_is_str, "must be a string"),
    "x": (_is_number, "must be a number"),
    "y": (_is_number, "must be a number"),
    "collapsed": (_is_bool, "must be a boolean"),
}
_META_OPTIONAL: OptionalChecks = {
    "version": (_is_str, "must be a string"),
    "description": (_is_str, "must be a string"),
    "layoutDirection": (
        lambda v: isinstance(v, str) and v in LAYOUT_DIRECTIONS,
        f"must be one of: {', '.join(LAYOUT_DIRECTIONS)}",
    ),
}


def _validate_optional(entity: dict, prefix: str, checks: OptionalChecks, errors: list[str]) -> None:
    for key, (check, message) in checks.items():
        value = entity.get(key)
        if value is not None and not check(value):
            errors.append(f"{prefix}.{key} {message}")


def validate_diagram(doc: Any) -> ValidationResult:
    """
    Validate a document and return every violation found.

    Args:
        doc: A raw JSON-like dict, or a DiagramDocument

    Returns:
        ValidationResult with `valid` and the accumulated `errors`
    """
    if isinstance(doc, DiagramDocument):
        doc = doc.to_json_dict()

    if not isinstance(doc, dict):
        return ValidationResult(valid=False, errors=["Document must be a non-null object"])

    errors: list[str] = []

    _validate_meta(doc.get("meta"), errors)
    node_ids = _validate_nodes(doc.get("nodes"), errors)
    group_ids = _validate_groups(doc.get("groups"), errors)
    _validate_edges(doc.get("edges"), errors, node_ids)
    _validate_node_group_refs(doc.get("nodes"), errors, group_ids)
    _validate_viewport(doc.get("viewport"), errors)
    _validate_agent_context(doc.get("agentContext"), errors)
    _validate_id_uniqueness(doc, errors)

    return ValidationResult(valid=not errors, errors=errors)


def _validate_meta(meta: Any, errors: list[str]) -> None:
    if not isinstance(meta, dict):
        errors.append("meta is required and must be an object")
        return

    for key in ("title", "created", "modified"):
        if not _is_non_empty_str(meta.get(key)):
            errors.append(f"meta.{key} is required and must be a non-empty string")

    _validate_optional(meta, "meta", _META_OPTIONAL, errors)


def _validate_nodes(nodes: Any, errors: list[str]) -> set[str]:
    ids: set[str] = set()
    if not isinstance(nodes, list):
        errors.append("nodes must be an array")
        return ids

    for i, node in enumerate(nodes):
        prefix = f"nodes[{i}]"

        if not isinstance(node, dict):
            errors.append(f"{prefix} must be an object")
            continue

        if _is_non_empty_str(node.get("id")):
            ids.add(node["id"])
        else:
            errors.append(f"{prefix}.id is required")

        if not isinstance(node.get("label"), str):
            errors.append(f"{prefix}.label must be a string")

        for axis in ("x", "y"):
            if not _is_number(node.get(axis)):
                errors.append(f"{prefix}.{axis} must be a number")

        for dim in ("width", "height"):
            value = node.get(dim)
            if not _is_number(value) or value <= 0:
                errors.append(f"{prefix}.{dim} must be a positive number")

        if node.get("shape") not in NODE_SHAPES:
            errors.append(f"{prefix}.shape must be one of: {', '.join(NODE_SHAPES)}")

        if node.get("color") not in NODE_COLORS:
            errors.append(f"{prefix}.color must be one of: {', '.join(NODE_COLORS)}")

        if not isinstance(node.get("pinned"), bool):
            errors.append(f"{prefix}.pinned must be a boolean")

        _validate_optional(node, prefix, _NODE_OPTIONAL, errors)

    return ids


def _validate_groups(groups: Any, errors: list[str]) -> set[str]:
    group_ids: set[str] = set()
    if groups is None:
        return group_ids
    if not isinstance(groups, list):
        errors.append("groups must be an array if present")
        return group_ids

    for i, group in enumerate(groups):
        prefix = f"groups[{i}]"

        if not isinstance(group, dict):
            errors.append(f"{prefix} must be an object")
            continue

        if _is_non_empty_str(group.get("id")):
            group_ids.add(group["id"])
        else:
            errors.append(f"{prefix}.id is required")

        if not _is_non_empty_str(group.get("label")):
            errors.append(f"{prefix}.label is required and must be a non-empty string")

        _validate_optional(group, prefix, _GROUP_OPTIONAL, errors)

    return group_ids


def _validate_edges(edges: Any, errors: list[str], node_ids: set[str]) -> None:
    if not isinstance(edges, list):
        errors.append("edges must be an array")
        return

    for i, edge in enumerate(edges):
        prefix = f"edges[{i}]"

        if not isinstance(edge, dict):
            errors.append(f"{prefix} must be an object")
            continue

        if not _is_non_empty_str(edge.get("id")):
            errors.append(f"{prefix}.id is required")

        for end in ("source", "target"):
            ref = edge.get(end)
            if not isinstance(ref, str) or ref not in node_ids:
                errors.append(f"{prefix}.{end} must reference an existing node id")

        if edge.get("style") not in EDGE_STYLES:
            errors.append(f"{prefix}.style must be one of: {', '.join(EDGE_STYLES)}")

        if edge.get("arrow") not in ARROW_TYPES:
            errors.append(f"{prefix}.arrow must be one of: {', '.join(ARROW_TYPES)}")

        _validate_optional(edge, prefix, _EDGE_OPTIONAL, errors)


def _validate_node_group_refs(nodes: Any, errors: list[str], group_ids: set[str]) -> None:
    if not isinstance(nodes, list):
        return

    for i, node in enumerate(nodes):
        if not isinstance(node, dict):
            continue
        group = node.get("group")
        # Non-string values are reported with the other node fields
        if isinstance(group, str) and group and group not in group_ids:
            errors.append(f'nodes[{i}].group "{group}" must reference an existing group id')


def _validate_viewport(viewport: Any, errors: list[str]) -> None:
    if viewport is None:
        return
    if not isinstance(viewport, dict):
        errors.append("viewport must be an object if present")
        return

    if not _is_number(viewport.get("x")):
        errors.append("viewport.x must be a number")
    if not _is_number(viewport.get("y")):
        errors.append("viewport.y must be a number")
    zoom = viewport.get("zoom")
    if not _is_number(zoom) or zoom <= 0:
        errors.append("viewport.zoom must be a positive number")


def _validate_agent_context(context: Any, errors: list[str]) -> None:
    if context is not None and not isinstance(context, dict):
        errors.append("agentContext must be an object if present")


def _validate_id_uniqueness(doc: dict, errors: list[str]) -> None:
    """Single pass over nodes, edges and groups; cross-kind collisions count."""
    seen: set[str] = set()
    for key in ("nodes", "edges", "groups"):
        items = doc.get(key)
        if not isinstance(items, list):
            continue
        for item in items:
            if not isinstance(item, dict):
                continue
            entity_id = item.get("id")
            if not _is_non_empty_str(entity_id):
                continue
            if entity_id in seen:
                errors.append(f'Duplicate id: "{entity_id}"')
            seen.add(entity_id)


def parse_diagram_json(text: str) -> ParseResult:
    """
    Parse and validate document text.

    Args:
        text: JSON text of a `.diagram` document

    Returns:
        ParseResult whose `doc` is set only when the text is valid JSON
        and passes validation
    """
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        return ParseResult(doc=None, errors=[f"Invalid JSON: {e}"])

    result = validate_diagram(parsed)
    if not result.valid:
        return ParseResult(doc=None, errors=result.errors)

    try:
        doc = DiagramDocument.from_json_dict(parsed)
    except ValidationError as e:
        return ParseResult(doc=None, errors=[
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        ])

    return ParseResult(doc=doc, errors=[])


def validation_summary(result: ValidationResult) -> dict:
    """
    Create a summary of a validation result.

    Args:
        result: Result of validate_diagram

    Returns:
        Dictionary with the error count and validity flag
    """
    return {
        "total": len(result.errors),
        "valid": result.valid,
    }
