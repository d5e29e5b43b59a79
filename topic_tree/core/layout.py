"""
Deterministic layout for progressively expanded topic trees.

Every node reserves a horizontal slice wide enough for its whole descendant
structure. An expanded node's children tile its slice left to right, each
centered in its own share, one level lower. Collapsed nodes contribute their
reserved width but none of their descendants are emitted.

Both passes use explicit stacks so tree depth is not bounded by the
interpreter's recursion limit.
"""

from typing import AbstractSet, Dict, List, Optional, Tuple

from .types import LayoutEdge, LayoutGraph, PositionedNode, TopicNode

# Horizontal slot reserved for a single node (layout units)
NODE_WIDTH = 180.0

# Distance between tree levels
VERTICAL_SPACING = 150.0

WidthCache = Dict[int, float]


def subtree_width(node: TopicNode, cache: Optional[WidthCache] = None) -> float:
    """
    Horizontal footprint reserved for a node and its full descendant structure.

    Width does not depend on which nodes are expanded: a leaf takes one
    NODE_WIDTH slot, an inner node takes the larger of one slot and the sum of
    its children's widths.

    Args:
        node: Subtree root
        cache: Optional memo keyed by node object identity. Only valid while
            the tree it was filled from is alive and unchanged.

    Returns:
        Width in layout units, never below NODE_WIDTH
    """
    memo = cache if cache is not None else {}
    stack: List[Tuple[TopicNode, bool]] = [(node, False)]

    while stack:
        current, children_done = stack.pop()
        key = id(current)
        if key in memo:
            continue
        if not current.subtopics:
            memo[key] = NODE_WIDTH
            continue
        if children_done:
            memo[key] = max(NODE_WIDTH, sum(memo[id(child)] for child in current.subtopics))
        else:
            stack.append((current, True))
            stack.extend((child, False) for child in current.subtopics)

    return memo[id(node)]


def slice_bounds(
    node: TopicNode, center_x: float, cache: Optional[WidthCache] = None
) -> List[Tuple[TopicNode, float, float]]:
    """
    Reserved horizontal slices for the direct children of a node.

    The slices tile [center_x - total/2, center_x + total/2] in child order,
    where total is the sum of the children's subtree widths.

    Returns:
        List of (child, left, right) tuples; empty for a leaf
    """
    if not node.subtopics:
        return []

    widths = [subtree_width(child, cache) for child in node.subtopics]
    cursor = center_x - sum(widths) / 2
    slices = []
    for child, width in zip(node.subtopics, widths):
        slices.append((child, cursor, cursor + width))
        cursor += width
    return slices


def layout_tree(
    tree: TopicNode,
    expanded: AbstractSet[str],
    center_x: float = 0.0,
    y: float = 0.0,
    width_cache: Optional[WidthCache] = None,
) -> LayoutGraph:
    """
    Position every visible node of the tree.

    A node is visible when every ancestor is in `expanded`. Nodes are emitted in
    pre-order with children left to right, and each non-root node gets one
    edge from its parent. The result depends only on the tree and the
    expansion set.

    Args:
        tree: Root of the topic tree
        expanded: Ids whose children are shown
        center_x: Horizontal center of the root
        y: Vertical position of the root
        width_cache: Optional subtree width memo (see subtree_width)

    Returns:
        LayoutGraph with the visible nodes and their edges
    """
    cache = width_cache if width_cache is not None else {}
    nodes: List[PositionedNode] = []
    edges: List[LayoutEdge] = []

    stack: List[Tuple[TopicNode, Optional[str], float, float]] = [(tree, None, center_x, y)]
    while stack:
        node, parent_id, node_x, node_y = stack.pop()
        is_expanded = node.id in expanded

        nodes.append(
            PositionedNode(
                id=node.id,
                label=node.topic,
                accuracy=node.accuracy,
                has_children=node.has_children,
                is_expanded=is_expanded,
                x=node_x,
                y=node_y,
            )
        )
        if parent_id is not None:
            edges.append(LayoutEdge(id=f"{parent_id}-{node.id}", source_id=parent_id, target_id=node.id))

        # Collapsed: descendants are left out of the graph entirely
        if not is_expanded:
            continue

        children = [(child, (left + right) / 2) for child, left, right in slice_bounds(node, node_x, cache)]
        for child, child_x in reversed(children):
            stack.append((child, node.id, child_x, node_y + VERTICAL_SPACING))

    return LayoutGraph(nodes=nodes, edges=edges)
