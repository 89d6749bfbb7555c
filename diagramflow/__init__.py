"""
DiagramFlow Core - Document model, validation, operations, sorting and layout.

This package is the diagram document engine shared by the HTTP backend and
any other collaborator, ensuring a single source of truth for all diagram
logic. Every entry point takes a document and returns a new one.
"""

from .models import (
    # Enums
    NodeShape,
    NodeColor,
    EdgeStyle,
    ArrowType,
    LayoutDirection,
    # Core models
    DiagramNode,
    DiagramEdge,
    DiagramGroup,
    DiagramMeta,
    Viewport,
    DiagramDocument,
    # Helpers
    create_empty_document,
    generate_id,
)

from .errors import (
    DiagramError,
    OperationError,
    NotFoundError,
    SourceNotFoundError,
    TargetNotFoundError,
)
from .validation import validate_diagram, parse_diagram_json, ValidationResult, ParseResult
from .operations import apply_ops, parse_op, OpResult, SemanticOp
from .sorting import sort_nodes_by_position, apply_grid_layout, sort_groups_by_position, sort_document
from .layout import (
    LayoutConfig,
    LayoutResult,
    DEFAULT_LAYOUT_CONFIG,
    rank_nodes,
    compute_partial_layout,
    compute_full_layout,
    compute_forced_layout,
    apply_partial_layout,
    auto_layout,
)
from .geometry import GroupBounds, NodeMove, compute_group_bounds, resolve_group_geometry, move_group, move_nodes
from .history import HistoryManager, HISTORY_MAX
from .svg_metadata import extract_diagram_from_svg, embed_diagram_in_svg, build_metadata_element
from .summary import generate_agent_context, find_connected_components

__all__ = [
    # Enums
    "NodeShape",
    "NodeColor",
    "EdgeStyle",
    "ArrowType",
    "LayoutDirection",
    # Models
    "DiagramNode",
    "DiagramEdge",
    "DiagramGroup",
    "DiagramMeta",
    "Viewport",
    "DiagramDocument",
    "create_empty_document",
    "generate_id",
    # Errors
    "DiagramError",
    "OperationError",
    "NotFoundError",
    "SourceNotFoundError",
    "TargetNotFoundError",
    # Validation
    "validate_diagram",
    "parse_diagram_json",
    "ValidationResult",
    "ParseResult",
    # Operations
    "apply_ops",
    "parse_op",
    "OpResult",
    "SemanticOp",
    # Sorting
    "sort_nodes_by_position",
    "apply_grid_layout",
    "sort_groups_by_position",
    "sort_document",
    # Layout
    "LayoutConfig",
    "LayoutResult",
    "DEFAULT_LAYOUT_CONFIG",
    "rank_nodes",
    "compute_partial_layout",
    "compute_full_layout",
    "compute_forced_layout",
    "apply_partial_layout",
    "auto_layout",
    # Group geometry
    "GroupBounds",
    "NodeMove",
    "compute_group_bounds",
    "resolve_group_geometry",
    "move_group",
    "move_nodes",
    # History
    "HistoryManager",
    "HISTORY_MAX",
    # SVG metadata
    "extract_diagram_from_svg",
    "embed_diagram_in_svg",
    "build_metadata_element",
    # Summary
    "generate_agent_context",
    "find_connected_components",
]
