"""
Layout and disclosure engine for topic trees.

The engine owns three things: the installed topic tree, the set of expanded
node ids, and the positioned graph derived from both. Every change to the tree
or the expansion set rebuilds the whole graph from the root and publishes it to
the registered listeners (normally a diagram renderer, whose node-click
delegate is `TopicTreeEngine.toggle`).

All operations are synchronous. Upstream extraction is asynchronous in
practice, so `initialize_tree` accepts a generation ticket and drops results
that arrive after a newer tree has been installed.
"""

import logging
from typing import Callable, FrozenSet, Iterable, Iterator, List, Optional, Set

from .layout import WidthCache, layout_tree
from .timing import timer
from .tree import iter_nodes, iter_nodes_with_depth
from .types import LayoutGraph, TopicNode

logger = logging.getLogger(__name__)

GraphListener = Callable[[LayoutGraph], None]


class ExpansionState:
    """Set of node ids whose children are currently visible."""

    def __init__(self, expanded: Optional[Iterable[str]] = None):
        self._expanded: Set[str] = set(expanded or ())

    def toggle(self, node_id: str) -> bool:
        """Flip membership; returns True if the node is now expanded."""
        if node_id in self._expanded:
            self._expanded.discard(node_id)
            return False
        self._expanded.add(node_id)
        return True

    def is_expanded(self, node_id: str) -> bool:
        return node_id in self._expanded

    def update(self, node_ids: Iterable[str]) -> None:
        self._expanded.update(node_ids)

    def clear(self) -> None:
        self._expanded.clear()

    def snapshot(self) -> FrozenSet[str]:
        return frozenset(self._expanded)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._expanded

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._expanded))

    def __len__(self) -> int:
        return len(self._expanded)


class TopicTreeEngine:
    """
    Holds a topic tree plus its expansion state and keeps a LayoutGraph in sync.

    Example:
        engine = TopicTreeEngine(on_change=renderer.draw)
        engine.initialize_tree(tree)
        renderer.on_node_click = engine.toggle
    """

    def __init__(self, on_change: Optional[GraphListener] = None):
        self._tree: Optional[TopicNode] = None
        self._expansion = ExpansionState()
        self._graph = LayoutGraph()
        self._width_cache: WidthCache = {}
        self._listeners: List[GraphListener] = []
        self._next_ticket = 0
        self._installed_generation = 0

        if on_change is not None:
            self.subscribe(on_change)

    @property
    def tree(self) -> Optional[TopicNode]:
        return self._tree

    @property
    def graph(self) -> LayoutGraph:
        return self._graph

    @property
    def expanded(self) -> FrozenSet[str]:
        return self._expansion.snapshot()

    @property
    def generation(self) -> int:
        """Ticket of the currently installed tree (0 before the first install)."""
        return self._installed_generation

    def subscribe(self, listener: GraphListener) -> Callable[[], None]:
        """
        Register a callback that receives every newly computed graph.

        Returns:
            Function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def next_generation(self) -> int:
        """Hand out a ticket to attach to an upcoming initialize_tree call."""
        self._next_ticket += 1
        return self._next_ticket

    def initialize_tree(self, tree: TopicNode, generation: Optional[int] = None) -> bool:
        """
        Install a new tree with every node collapsed.

        Args:
            tree: Complete, already parsed topic tree
            generation: Ticket from next_generation(); when a newer ticket has
                already been installed, this tree is discarded

        Returns:
            True if the tree was installed, False if it was stale
        """
        if generation is not None:
            if generation <= self._installed_generation:
                logger.info(f"Discarding stale tree (generation {generation}, installed {self._installed_generation})")
                return False
            self._next_ticket = max(self._next_ticket, generation)
        else:
            generation = self.next_generation()

        self._tree = tree
        self._installed_generation = generation
        self._expansion.clear()
        self._width_cache = {}
        self._refresh()
        return True

    def toggle(self, node_id: str) -> bool:
        """
        Expand a collapsed node or collapse an expanded one.

        Collapsing hides the node's whole rendered subtree but keeps the
        descendants' own flags, so re-expanding restores them as they were.
        Unknown ids and nodes without children are ignored.

        Returns:
            True if the expansion state changed
        """
        matches = self._find_all(node_id)
        if not matches:
            logger.debug(f"Ignoring toggle for unknown node id: {node_id}")
            return False
        if not any(node.has_children for node in matches):
            return False

        now_expanded = self._expansion.toggle(node_id)
        logger.debug(f"{'Expanded' if now_expanded else 'Collapsed'} node {node_id}")
        self._refresh()
        return True

    def is_expanded(self, node_id: str) -> bool:
        return self._expansion.is_expanded(node_id)

    def expand_all(self) -> None:
        """Expand every node that has children."""
        if self._tree is None:
            return
        self._expansion.update(node.id for node in iter_nodes(self._tree) if node.has_children)
        self._refresh()

    def collapse_all(self) -> None:
        if self._tree is None:
            return
        self._expansion.clear()
        self._refresh()

    def expand_to_depth(self, depth: int) -> None:
        """
        Expand every node above the given depth, so `depth` levels below the
        root become visible. Existing expansions are kept.
        """
        if self._tree is None or depth <= 0:
            return
        self._expansion.update(
            node.id for node, level in iter_nodes_with_depth(self._tree) if level < depth and node.has_children
        )
        self._refresh()

    def _find_all(self, node_id: str) -> List[TopicNode]:
        # Ids are expected to be unique, but duplicates must not crash
        if self._tree is None:
            return []
        return [node for node in iter_nodes(self._tree) if node.id == node_id]

    def _refresh(self) -> None:
        self._graph = self._compute()
        for listener in list(self._listeners):
            listener(self._graph)

    @timer
    def _compute(self) -> LayoutGraph:
        if self._tree is None:
            return LayoutGraph()
        return layout_tree(self._tree, self._expansion.snapshot(), width_cache=self._width_cache)
