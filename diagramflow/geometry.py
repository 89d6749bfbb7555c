"""
Group geometry - Derive a group's origin and size from its members.

A group with members is drawn around them: their bounding box, padded on
every side, with a label strip on top and minimum width/height floors.
Stored `group.x`/`group.y` only matter while a group is empty; for any
other group they are recomputed on every read.
"""

from dataclasses import dataclass
from typing import Optional

from .errors import NotFoundError
from .models import (
    GROUP_LABEL_HEIGHT,
    GROUP_MIN_HEIGHT,
    GROUP_MIN_WIDTH,
    GROUP_PADDING,
    DiagramDocument,
    DiagramGroup,
    DiagramNode,
)


@dataclass
class GroupBounds:
    """Rendered rectangle of a group."""
    x: float
    y: float
    width: float
    height: float

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass
class NodeMove:
    """Target position for a dragged node."""
    node_id: str
    x: float
    y: float


def compute_group_bounds(nodes: list[DiagramNode], group_id: str) -> Optional[GroupBounds]:
    """
    Compute the padded bounding box of a group's members.

    Args:
        nodes: All nodes in the document
        group_id: Group to measure

    Returns:
        GroupBounds, or None when the group has no members
    """
    members = [n for n in nodes if n.group == group_id]
    if not members:
        return None

    boxes = [n.bounds() for n in members]
    min_x = min(b[0] for b in boxes)
    min_y = min(b[1] for b in boxes)
    max_x = max(b[2] for b in boxes)
    max_y = max(b[3] for b in boxes)

    return GroupBounds(
        x=min_x - GROUP_PADDING,
        y=min_y - GROUP_PADDING - GROUP_LABEL_HEIGHT,
        width=max(max_x - min_x + 2 * GROUP_PADDING, GROUP_MIN_WIDTH),
        height=max(max_y - min_y + 2 * GROUP_PADDING + GROUP_LABEL_HEIGHT, GROUP_MIN_HEIGHT),
    )


def resolve_group_geometry(group: DiagramGroup, nodes: list[DiagramNode]) -> GroupBounds:
    """Rendered geometry: derived from members, or stored x/y when empty."""
    bounds = compute_group_bounds(nodes, group.id)
    if bounds is not None:
        return bounds
    return GroupBounds(
        x=group.x if group.x is not None else 0,
        y=group.y if group.y is not None else 0,
        width=GROUP_MIN_WIDTH,
        height=GROUP_MIN_HEIGHT,
    )


def move_group(doc: DiagramDocument, group_id: str, x: float, y: float) -> DiagramDocument:
    """
    Drag a whole group to a new origin.

    Every member moves by the offset between the group's current derived
    origin and (x, y); the new origin is stored on the group.

    Raises:
        NotFoundError: if the group does not exist
    """
    modified = doc.clone()
    group = modified.get_group(group_id)
    if group is None:
        raise NotFoundError("Group", group_id)

    origin = resolve_group_geometry(group, modified.nodes)
    dx = x - origin.x
    dy = y - origin.y

    for node in modified.nodes:
        if node.group == group_id:
            node.x += dx
            node.y += dy

    group.x = x
    group.y = y
    return modified


def move_nodes(doc: DiagramDocument, moves: list[NodeMove]) -> DiagramDocument:
    """
    Drag one or more nodes to explicit positions.

    A drag is a deliberate placement: it bypasses the pin check and pins the
    node so auto-layout leaves it alone. Stored x/y of every affected group is
    dropped so the group is re-derived from its members. Unknown ids are skipped.
    """
    modified = doc.clone()
    affected_groups: set[str] = set()

    for move in moves:
        node = modified.get_node(move.node_id)
        if node is None:
            continue
        node.x = move.x
        node.y = move.y
        node.pinned = True
        if node.group:
            affected_groups.add(node.group)

    for group_id in affected_groups:
        group = modified.get_group(group_id)
        if group:
            group.x = None
            group.y = None

    return modified
