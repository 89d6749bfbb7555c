"""
Layered auto-layout for diagram nodes.

A directed, Sugiyama-style placement in three steps:
- Ranking: Kahn-style topological peel over the subgraph induced by the
  target nodes. Cycles collapse into one final rank instead of looping.
- Ordering: nodes within a rank are ordered by id for reproducible output.
- Placement: ranks advance along the flow axis, nodes spread along the cross
  axis; BT and RL reverse the rank order.

Three selection policies share that core:
- Partial: unpinned nodes sitting exactly at the origin (freshly added)
- Full: every unpinned node; pinned nodes stay out of the layout graph
- Forced: every node, pinned or not

Layout functions return positions; the `apply_*` / `auto_layout` helpers
write them into a new document.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Literal, Optional

from loguru import logger
from pydantic import BaseModel

from .models import LAYOUT_DIRECTIONS, DiagramDocument, DiagramEdge, DiagramNode


class LayoutConfig(BaseModel):
    """Spacing and direction for a layout run."""
    rankdir: Literal["TB", "BT", "LR", "RL"] = "LR"
    ranksep: float = 120  # Gap between consecutive ranks
    nodesep: float = 60   # Gap between nodes within a rank
    marginx: float = 60
    marginy: float = 60


DEFAULT_LAYOUT_CONFIG = LayoutConfig()

# Used when neither the caller nor the document names a direction
FALLBACK_DIRECTION = "TB"


@dataclass
class LayoutResult:
    """Computed top-left position for one node."""
    node_id: str
    x: int
    y: int


def rank_nodes(node_ids: list[str], edges: list[DiagramEdge]) -> list[list[str]]:
    """
    Partition nodes into ranks by peeling zero in-degree nodes.

    Only edges with both endpoints in `node_ids` take part. Self-loops and
    parallel duplicates are ignored. If the peel stalls on a cycle, every
    node still remaining goes into one final rank.

    Args:
        node_ids: IDs of the nodes to rank
        edges: All edges of the document

    Returns:
        Ranks in flow order; each rank is sorted by node id
    """
    targets = set(node_ids)
    successors: dict[str, set[str]] = defaultdict(set)
    in_degree: dict[str, int] = {nid: 0 for nid in targets}

    for edge in edges:
        if edge.source == edge.target:
            continue
        if edge.source not in targets or edge.target not in targets:
            continue
        if edge.target in successors[edge.source]:
            continue
        successors[edge.source].add(edge.target)
        in_degree[edge.target] += 1

    ranks: list[list[str]] = []
    placed: set[str] = set()
    current = sorted(nid for nid in targets if in_degree[nid] == 0)

    while current:
        ranks.append(current)
        placed.update(current)
        ready = []
        for nid in current:
            for succ in successors[nid]:
                in_degree[succ] -= 1
                if in_degree[succ] == 0:
                    ready.append(succ)
        current = sorted(ready)

    remaining = sorted(targets - placed)
    if remaining:
        ranks.append(remaining)

    return ranks


def compute_layout(
    doc: DiagramDocument,
    target_nodes: list[DiagramNode],
    config: LayoutConfig = DEFAULT_LAYOUT_CONFIG,
) -> list[LayoutResult]:
    """
    Rank and place the given nodes.

    Args:
        doc: Document supplying the edges
        target_nodes: Nodes to position; everything else is ignored
        config: Direction and spacing

    Returns:
        One LayoutResult per target node, in the order given
    """
    if not target_nodes:
        return []

    by_id = {n.id: n for n in target_nodes}
    ranks = rank_nodes(list(by_id), doc.edges)
    horizontal = config.rankdir in ("LR", "RL")

    def rank_extent(node: DiagramNode) -> float:
        width, height = node.extent()
        return width if horizontal else height

    def cross_extent(node: DiagramNode) -> float:
        width, height = node.extent()
        return height if horizontal else width

    # Length of each rank along the cross axis, for centring
    cross_lengths = []
    for rank in ranks:
        sizes = [cross_extent(by_id[nid]) for nid in rank]
        cross_lengths.append(sum(sizes) + config.nodesep * (len(sizes) - 1))
    widest = max(cross_lengths)

    ordered = list(range(len(ranks)))
    if config.rankdir in ("BT", "RL"):
        ordered.reverse()

    rank_margin = config.marginx if horizontal else config.marginy
    cross_margin = config.marginy if horizontal else config.marginx

    positions: dict[str, tuple[float, float]] = {}
    rank_offset = rank_margin
    for index in ordered:
        rank = ranks[index]
        cross_offset = cross_margin + (widest - cross_lengths[index]) / 2
        for nid in rank:
            node = by_id[nid]
            positions[nid] = (rank_offset, cross_offset)
            cross_offset += cross_extent(node) + config.nodesep
        rank_offset += max(rank_extent(by_id[nid]) for nid in rank) + config.ranksep

    results = []
    for node in target_nodes:
        along, across = positions[node.id]
        x, y = (along, across) if horizontal else (across, along)
        results.append(LayoutResult(node_id=node.id, x=round(x), y=round(y)))

    logger.debug(
        "Laid out {} nodes in {} ranks ({})",
        len(results), len(ranks), config.rankdir,
    )
    return results


def compute_partial_layout(
    doc: DiagramDocument,
    config: LayoutConfig = DEFAULT_LAYOUT_CONFIG,
) -> list[LayoutResult]:
    """Position unpinned nodes that sit exactly at (0, 0)."""
    at_origin = [n for n in doc.nodes if not n.pinned and n.x == 0 and n.y == 0]
    return compute_layout(doc, at_origin, config)


def compute_full_layout(
    doc: DiagramDocument,
    config: LayoutConfig = DEFAULT_LAYOUT_CONFIG,
) -> list[LayoutResult]:
    """Position every unpinned node; pinned nodes keep their place."""
    unpinned = [n for n in doc.nodes if not n.pinned]
    return compute_layout(doc, unpinned, config)


def compute_forced_layout(
    doc: DiagramDocument,
    config: LayoutConfig = DEFAULT_LAYOUT_CONFIG,
) -> list[LayoutResult]:
    """Position every node, pinned ones included."""
    return compute_layout(doc, list(doc.nodes), config)


def _with_direction(config: LayoutConfig, direction: str) -> LayoutConfig:
    """Copy of the config with another rankdir; unknown directions fall back."""
    if direction not in LAYOUT_DIRECTIONS:
        logger.warning("Unknown layout direction {!r}, using {}", direction, FALLBACK_DIRECTION)
        direction = FALLBACK_DIRECTION
    return config.model_copy(update={"rankdir": direction})


def apply_layout_results(doc: DiagramDocument, results: list[LayoutResult]) -> DiagramDocument:
    """Return a copy of the document with the computed positions written in."""
    modified = doc.clone()
    positions = {r.node_id: r for r in results}
    for node in modified.nodes:
        result = positions.get(node.id)
        if result:
            node.x = result.x
            node.y = result.y
    return modified


def apply_partial_layout(
    doc: DiagramDocument,
    config: Optional[LayoutConfig] = None,
) -> DiagramDocument:
    """
    Place freshly added nodes.

    Uses the document's last layout direction when it has one. Returns the
    document itself when no node needs placing.
    """
    if config is None:
        config = DEFAULT_LAYOUT_CONFIG
        if doc.meta.layout_direction:
            config = _with_direction(config, doc.meta.layout_direction)

    results = compute_partial_layout(doc, config)
    if not results:
        return doc
    return apply_layout_results(doc, results)


def auto_layout(
    doc: DiagramDocument,
    direction: Optional[str] = None,
    config: Optional[LayoutConfig] = None,
    force: bool = False,
) -> DiagramDocument:
    """
    Re-run the layered layout over a whole document.

    The direction is taken from the argument, then `meta.layoutDirection`,
    then "TB", and is stored back into meta. A forced layout also moves
    pinned nodes and clears their `pinned` flag.

    Args:
        doc: Document to lay out (not modified)
        direction: One of "TB", "BT", "LR", "RL"
        config: Spacing; its rankdir is overridden by the resolved direction
        force: Include pinned nodes and unpin them

    Returns:
        A new document
    """
    requested = direction or doc.meta.layout_direction or FALLBACK_DIRECTION
    config = _with_direction(config or DEFAULT_LAYOUT_CONFIG, requested)

    reset = doc.clone()
    reset.meta.layout_direction = config.rankdir
    for node in reset.nodes:
        if force or not node.pinned:
            node.x = 0
            node.y = 0
        if force:
            node.pinned = False

    layout_fn = compute_forced_layout if force else compute_full_layout
    return apply_layout_results(reset, layout_fn(reset, config))
