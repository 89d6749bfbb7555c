"""
Diagram summary - Agent-readable description of a document.

Regenerated after every successful mutation and stored under `agentContext`,
so tools that read the raw `.diagram` JSON (without this engine) still get:
- a plain-English summary
- compact node, edge and group indexes keyed by labels rather than ids
- a hint on how to edit the diagram programmatically
"""

from collections import deque
from dataclasses import dataclass, field

from .models import DiagramDocument, utc_timestamp


CONTEXT_FORMAT = "diagramflow-v1"

USAGE_HINT = (
    "Edit this diagram through operation batches (add_node, update_node, "
    "remove_node, add_edge, update_edge, remove_edge, add_group, update_group, "
    "remove_group, sort_nodes) posted to /api/diagram/ops; never edit the "
    "agentContext section by hand, it is regenerated on every change."
)

# Node labels named in the summary sentence before it says "and N more"
SUMMARY_NODE_LIMIT = 5


@dataclass
class ConnectedComponent:
    """A group of nodes connected by edges (ignoring direction)."""
    node_ids: list[str] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.node_ids)


def find_connected_components(doc: DiagramDocument) -> list[ConnectedComponent]:
    """
    Find all connected components in the document.

    Edges are treated as undirected. Traversal is an iterative BFS, so
    cycles and deep chains are safe.

    Args:
        doc: The document to analyze

    Returns:
        List of ConnectedComponent objects, in node order
    """
    adjacency: dict[str, set[str]] = {n.id: set() for n in doc.nodes}
    for edge in doc.edges:
        if edge.source in adjacency and edge.target in adjacency:
            adjacency[edge.source].add(edge.target)
            adjacency[edge.target].add(edge.source)

    visited: set[str] = set()
    components: list[ConnectedComponent] = []

    for node in doc.nodes:
        if node.id in visited:
            continue

        component = ConnectedComponent()
        visited.add(node.id)
        queue = deque([node.id])
        while queue:
            current = queue.popleft()
            component.node_ids.append(current)
            for neighbor in sorted(adjacency[current]):
                if neighbor not in visited:
                    visited.add(neighbor)
                    queue.append(neighbor)

        components.append(component)

    return components


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def build_summary(doc: DiagramDocument, group_index: list[dict]) -> str:
    """One-paragraph description of the document."""
    title = doc.meta.title or "Untitled Diagram"
    description = f" {doc.meta.description}" if doc.meta.description else ""

    if not doc.nodes:
        return f'"{title}" is an empty diagram.{description}'

    names = ", ".join(f'"{n.label}"' for n in doc.nodes[:SUMMARY_NODE_LIMIT])
    extra = len(doc.nodes) - SUMMARY_NODE_LIMIT
    more = f" and {extra} more" if extra > 0 else ""

    text = (
        f'"{title}" contains {_plural(len(doc.nodes), "node")} ({names}{more}) '
        f'connected by {_plural(len(doc.edges), "edge")}.'
    )

    components = find_connected_components(doc)
    if len(components) > 1:
        text += f" It forms {len(components)} separate clusters."

    if group_index:
        groups = ", ".join(
            f'"{g["group"]}" ({_plural(len(g["members"]), "node")})' for g in group_index
        )
        text += f" Grouped into: {groups}."

    return text + description


def generate_agent_context(doc: DiagramDocument) -> dict:
    """
    Build the `agentContext` block for a document.

    Args:
        doc: The document to describe

    Returns:
        JSON-serializable dict
    """
    labels = {n.id: n.label for n in doc.nodes}

    node_index = []
    for node in doc.nodes:
        entry = {"id": node.id, "label": node.label}
        if node.notes:
            entry["notes"] = node.notes
        if node.group:
            entry["group"] = node.group
        node_index.append(entry)

    edge_index = []
    for edge in doc.edges:
        entry = {
            "from": labels.get(edge.source, edge.source),
            "to": labels.get(edge.target, edge.target),
        }
        if edge.label:
            entry["label"] = edge.label
        if edge.style != "solid":
            entry["style"] = edge.style
        edge_index.append(entry)

    group_index = [
        {"group": g.label, "members": [n.label for n in doc.members_of(g.id)]}
        for g in doc.groups
    ]

    return {
        "format": CONTEXT_FORMAT,
        "generatedAt": utc_timestamp(),
        "summary": build_summary(doc, group_index),
        "nodeIndex": node_index,
        "edgeIndex": edge_index,
        "groupIndex": group_index,
        "usage": USAGE_HINT,
    }
