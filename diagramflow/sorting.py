"""
Spatial sort - Put nodes into reading order and re-flow them on a grid.

Two pure phases, shared by the `sort_nodes` operation and direct sort requests:
- Order: sort nodes by position for a flow direction (stable on ties)
- Reposition: lay the ordered nodes out on a square-ish grid so the array
  order matches the visual reading order

Nothing here mutates its input; every function returns new objects.
"""

import math
from typing import Optional

from .geometry import compute_group_bounds
from .models import (
    DEFAULT_NODE_HEIGHT,
    DEFAULT_NODE_WIDTH,
    DiagramDocument,
    DiagramGroup,
    DiagramNode,
)


# Gap between grid cells, added to the default node size
SORT_GRID_GAP = 40


def _reading_key(direction: str, x: float, y: float) -> tuple[float, float]:
    """Sort key for a point; a negated primary axis gives descending order."""
    if direction == "BT":
        return (-y, x)
    if direction == "LR":
        return (x, y)
    if direction == "RL":
        return (-x, y)
    return (y, x)


def sort_nodes_by_position(nodes: list[DiagramNode], direction: str) -> list[DiagramNode]:
    """
    Sort nodes into reading order for a direction.

    - TB: y ascending, then x ascending
    - BT: y descending, then x ascending
    - LR: x ascending, then y ascending
    - RL: x descending, then y ascending

    Args:
        nodes: Nodes to order
        direction: One of "TB", "BT", "LR", "RL"

    Returns:
        A new list; the input list is left as it was
    """
    return sorted(nodes, key=lambda n: _reading_key(direction, n.x, n.y))


def apply_grid_layout(
    ordered_nodes: list[DiagramNode],
    direction: str,
    start_x: float,
    start_y: float,
) -> list[DiagramNode]:
    """
    Place already-ordered nodes on a compact grid.

    TB/BT fill rows first; LR/RL fill columns first. The grid has
    ceil(sqrt(n)) columns (or rows) and a fixed cell pitch.

    Args:
        ordered_nodes: Nodes in the order they should be read
        direction: One of "TB", "BT", "LR", "RL"
        start_x: X coordinate of the first cell
        start_y: Y coordinate of the first cell

    Returns:
        Repositioned copies of the nodes, in the same order
    """
    if not ordered_nodes:
        return []

    col_count = max(1, math.ceil(math.sqrt(len(ordered_nodes))))
    step_w = DEFAULT_NODE_WIDTH + SORT_GRID_GAP
    step_h = DEFAULT_NODE_HEIGHT + SORT_GRID_GAP

    placed = []
    for i, node in enumerate(ordered_nodes):
        if direction in ("LR", "RL"):
            row = i % col_count
            col = i // col_count
        else:
            col = i % col_count
            row = i // col_count
        placed.append(node.model_copy(update={
            "x": start_x + col * step_w,
            "y": start_y + row * step_h,
        }))

    return placed


def _group_sort_origin(group: DiagramGroup, nodes: list[DiagramNode]) -> tuple[float, float]:
    if group.x is not None and group.y is not None:
        return (group.x, group.y)
    bounds = compute_group_bounds(nodes, group.id)
    if bounds is None:
        return (0, 0)
    return (bounds.x, bounds.y)


def sort_groups_by_position(
    groups: list[DiagramGroup],
    nodes: list[DiagramNode],
    direction: str,
) -> list[DiagramGroup]:
    """
    Sort groups into reading order using stored x/y, or the origin of their
    members' bounding box when no position is stored.
    """
    return sorted(
        groups,
        key=lambda g: _reading_key(direction, *_group_sort_origin(g, nodes)),
    )


def _grid_origin(nodes: list[DiagramNode]) -> tuple[float, float]:
    if not nodes:
        return (0, 0)
    return (min(n.x for n in nodes), min(n.y for n in nodes))


def sort_document(
    doc: DiagramDocument,
    direction: str,
    group_id: Optional[str] = None,
) -> DiagramDocument:
    """
    Sort and re-flow part of a document.

    With `group_id`, only that group's members are reordered and
    repositioned. Without it, only ungrouped nodes are; grouped nodes keep
    their exact positions and the groups array itself is re-sorted.
    The direction is remembered in `meta.layoutDirection`.

    Args:
        doc: Document to sort (not modified)
        direction: One of "TB", "BT", "LR", "RL"
        group_id: Restrict the sort to one group's members

    Returns:
        A new document
    """
    modified = doc.clone()

    if group_id:
        inside = [n for n in modified.nodes if n.group == group_id]
        outside = [n for n in modified.nodes if n.group != group_id]
        start_x, start_y = _grid_origin(inside)
        ordered = sort_nodes_by_position(inside, direction)
        modified.nodes = outside + apply_grid_layout(ordered, direction, start_x, start_y)
    else:
        top_level = [n for n in modified.nodes if not n.group]
        grouped = [n for n in modified.nodes if n.group]
        start_x, start_y = _grid_origin(top_level)
        ordered = sort_nodes_by_position(top_level, direction)
        modified.nodes = apply_grid_layout(ordered, direction, start_x, start_y) + grouped
        modified.groups = sort_groups_by_position(modified.groups, modified.nodes, direction)

    modified.meta.layout_direction = direction
    return modified
