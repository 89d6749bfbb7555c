"""
Core data models for diagram documents.

These models define the canonical schema for a `.diagram` document:
- Nodes with a position, size, shape, color and an optional group
- Edges connecting nodes (using source/target naming convention)
- Groups that visually contain nodes
- Metadata for timestamps and the last layout direction

Field Naming Convention:
- Python attributes are snake_case
- JSON serialization uses the on-disk camelCase keys (`layoutDirection`,
  `agentContext`) through field aliases
- Fields are plain `str`/`float` so an invalid state can still be represented;
  rejecting it is the job of `diagramflow.validation`
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, ConfigDict, Field
import uuid


class NodeShape(str, Enum):
    """Visual shapes for nodes on the canvas."""
    RECTANGLE = "rectangle"
    ROUNDED = "rounded"
    DIAMOND = "diamond"
    CYLINDER = "cylinder"


class NodeColor(str, Enum):
    """Named color palette for nodes and groups."""
    DEFAULT = "default"
    BLUE = "blue"
    GREEN = "green"
    RED = "red"
    YELLOW = "yellow"
    PURPLE = "purple"
    GRAY = "gray"


class EdgeStyle(str, Enum):
    """Line styles for edges."""
    SOLID = "solid"
    DASHED = "dashed"
    DOTTED = "dotted"


class ArrowType(str, Enum):
    """Arrow types for the target end of an edge."""
    NORMAL = "normal"
    ARROW = "arrow"
    OPEN = "open"
    NONE = "none"


class LayoutDirection(str, Enum):
    """Flow directions shared by auto-layout and spatial sort."""
    TB = "TB"
    BT = "BT"
    LR = "LR"
    RL = "RL"


NODE_SHAPES = tuple(s.value for s in NodeShape)
NODE_COLORS = tuple(c.value for c in NodeColor)
EDGE_STYLES = tuple(s.value for s in EdgeStyle)
ARROW_TYPES = tuple(a.value for a in ArrowType)
LAYOUT_DIRECTIONS = tuple(d.value for d in LayoutDirection)

DEFAULT_NODE_WIDTH = 160
DEFAULT_NODE_HEIGHT = 48

# Group chrome: padding around members plus a label strip on top
GROUP_PADDING = 20
GROUP_LABEL_HEIGHT = 28
GROUP_MIN_WIDTH = 200
GROUP_MIN_HEIGHT = 120


def generate_id() -> str:
    """Generate a short unique entity ID."""
    return uuid.uuid4().hex[:8]


def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string with millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class DiagramNode(BaseModel):
    """A node in the diagram."""
    id: str
    label: str = ""
    x: float = 0
    y: float = 0
    width: float = DEFAULT_NODE_WIDTH
    height: float = DEFAULT_NODE_HEIGHT
    shape: str = NodeShape.RECTANGLE.value
    color: str = NodeColor.DEFAULT.value
    pinned: bool = False
    notes: Optional[str] = None
    group: Optional[str] = None  # Group ID, if the node sits inside a group

    def extent(self) -> tuple[float, float]:
        """Width and height, falling back to defaults for non-positive sizes."""
        width = self.width if self.width > 0 else DEFAULT_NODE_WIDTH
        height = self.height if self.height > 0 else DEFAULT_NODE_HEIGHT
        return (width, height)

    def bounds(self) -> tuple[float, float, float, float]:
        """Get the bounding box (x, y, right, bottom)."""
        width, height = self.extent()
        return (self.x, self.y, self.x + width, self.y + height)


class DiagramEdge(BaseModel):
    """A directed edge between two nodes."""
    id: str
    source: str  # Source node ID
    target: str  # Target node ID
    label: Optional[str] = None
    style: str = EdgeStyle.SOLID.value
    arrow: str = ArrowType.ARROW.value
    animated: Optional[bool] = None


class DiagramGroup(BaseModel):
    """
    A visual container for nodes.

    `x`/`y` are only authoritative while the group has no members; once it
    has members its geometry is derived from them (see `diagramflow.geometry`).
    """
    id: str
    label: str
    color: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    collapsed: Optional[bool] = None


class DiagramMeta(BaseModel):
    """Metadata about the diagram."""
    model_config = ConfigDict(populate_by_name=True)

    version: Optional[str] = None
    title: str = "Untitled Diagram"
    description: Optional[str] = None
    created: str = Field(default_factory=utc_timestamp)
    modified: str = Field(default_factory=utc_timestamp)
    layout_direction: Optional[str] = Field(default=None, alias="layoutDirection")


class Viewport(BaseModel):
    """Last known canvas pan/zoom."""
    x: float = 0
    y: float = 0
    zoom: float = 1


class DiagramDocument(BaseModel):
    """
    The complete diagram structure.
    This is what gets saved to/loaded from `.diagram` JSON files.
    """
    model_config = ConfigDict(populate_by_name=True)

    meta: DiagramMeta = Field(default_factory=DiagramMeta)
    nodes: list[DiagramNode] = Field(default_factory=list)
    edges: list[DiagramEdge] = Field(default_factory=list)
    groups: list[DiagramGroup] = Field(default_factory=list)
    viewport: Optional[Viewport] = None
    agent_context: Optional[dict[str, Any]] = Field(default=None, alias="agentContext")

    def to_json_dict(self) -> dict:
        """Convert to a JSON-serializable dict with on-disk field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_json_dict(cls, data: dict) -> "DiagramDocument":
        """Create a document from a JSON dict (a missing `groups` means none)."""
        return cls.model_validate(data)

    def clone(self) -> "DiagramDocument":
        """Deep copy, so the result shares no state with this snapshot."""
        return self.model_copy(deep=True)

    def get_node(self, node_id: str) -> Optional[DiagramNode]:
        """Get a node by ID (O(n))."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_edge(self, edge_id: str) -> Optional[DiagramEdge]:
        """Get an edge by ID (O(n))."""
        for edge in self.edges:
            if edge.id == edge_id:
                return edge
        return None

    def get_group(self, group_id: str) -> Optional[DiagramGroup]:
        """Get a group by ID (O(n))."""
        for group in self.groups:
            if group.id == group_id:
                return group
        return None

    def members_of(self, group_id: str) -> list[DiagramNode]:
        """Nodes whose `group` points at the given group."""
        return [n for n in self.nodes if n.group == group_id]


def create_empty_document(title: str = "Untitled Diagram") -> DiagramDocument:
    """Create a new empty document with matching created/modified stamps."""
    now = utc_timestamp()
    return DiagramDocument(
        meta=DiagramMeta(version="1.0", title=title, created=now, modified=now),
        viewport=Viewport(x=0, y=0, zoom=1),
    )
