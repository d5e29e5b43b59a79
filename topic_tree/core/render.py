"""
Terminal and JSON renderings of a LayoutGraph.

The diagram renderer proper lives outside this package; these are the
surfaces the CLI uses: a rich tree mirroring what is currently visible, a
coordinate table, and the flow-diagram JSON export.
"""

import json
from typing import Dict, List, Optional

from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from .types import LayoutGraph, PositionedNode, format_accuracy


def node_caption(node: PositionedNode) -> Text:
    """Label, accuracy and an expand (+) / collapse (−) affordance."""
    caption = Text()
    if node.has_children:
        caption.append("− " if node.is_expanded else "+ ", style="bold cyan")
    else:
        caption.append("• ", style="dim")
    caption.append(node.label, style="bold" if node.has_children else "")
    caption.append(f"  {format_accuracy(node.accuracy)}", style="dim")
    caption.append(f"  [{node.id}]", style="dim italic")
    return caption


def render_rich_tree(graph: LayoutGraph) -> Tree:
    """
    Build a rich Tree of the visible nodes, following the graph's edges.
    """
    if not graph.nodes:
        return Tree(Text("(empty)", style="dim"))

    children: Dict[str, List[PositionedNode]] = {}
    targets = {edge.target_id for edge in graph.edges}
    by_id = {node.id: node for node in graph.nodes}
    for edge in graph.edges:
        child = by_id.get(edge.target_id)
        if child is not None:
            children.setdefault(edge.source_id, []).append(child)

    root = next((node for node in graph.nodes if node.id not in targets), graph.nodes[0])
    tree = Tree(node_caption(root))

    # Graph nodes are in pre-order, so each branch is created before its children
    stack = [(root, tree)]
    visited = set()
    while stack:
        node, parent_branch = stack.pop()
        if node.id in visited:
            continue
        visited.add(node.id)
        child_branches = []
        for child in children.get(node.id, []):
            child_branches.append((child, parent_branch.add(node_caption(child))))
        stack.extend(reversed(child_branches))
    return tree


def graph_table(graph: LayoutGraph) -> Table:
    """Table of node positions."""
    table = Table(title="Layout")
    table.add_column("Id", style="cyan")
    table.add_column("Topic", style="white")
    table.add_column("Accuracy", justify="right")
    table.add_column("x", justify="right")
    table.add_column("y", justify="right")
    table.add_column("State", style="dim")

    for node in graph.nodes:
        if not node.has_children:
            state = "leaf"
        else:
            state = "expanded" if node.is_expanded else "collapsed"
        table.add_row(node.id, node.label, format_accuracy(node.accuracy, 1), f"{node.x:g}", f"{node.y:g}", state)
    return table


def export_graph_json(graph: LayoutGraph, indent: Optional[int] = 2) -> str:
    return json.dumps(graph.to_flow_dict(), indent=indent, ensure_ascii=False)
