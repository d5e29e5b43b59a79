"""
Topic tree parsing and traversal helpers.

Chat models return the tree as JSON text, frequently wrapped in Markdown code
fences and occasionally with holes in it. This module turns that text into a
TopicNode and provides the traversal utilities used by the engine and CLI.
"""

import json
import logging
import re
from collections import Counter
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from pydantic import ValidationError

from .types import TopicNode

logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"^\s*```(?:json|JSON)?\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)


class TreeParseError(Exception):
    """Raised when a payload cannot be turned into a topic tree."""

    pass


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` block if present."""
    match = _FENCE_PATTERN.match(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def _fill_missing_ids(data: Dict[str, Any], path: Tuple[int, ...]) -> Dict[str, Any]:
    """Give id-less nodes a path-derived id so the model can be built."""
    node = dict(data)
    if node.get("id") in (None, ""):
        node["id"] = "node" + "".join(f"_{index}" for index in path)
        logger.debug(f"Assigned id {node['id']} to node without id")

    children = node.get("subtopics")
    if isinstance(children, (list, tuple)):
        node["subtopics"] = [
            _fill_missing_ids(child, path + (index,)) for index, child in enumerate(children) if isinstance(child, dict)
        ]
    return node


def parse_topic_tree(payload: Union[str, Dict[str, Any], TopicNode]) -> TopicNode:
    """
    Build a TopicNode from a JSON string or an already-decoded dict.

    Args:
        payload: JSON text (optionally fenced), a dict, or a TopicNode

    Returns:
        Parsed topic tree

    Raises:
        TreeParseError: If the JSON is invalid or the root is not an object
    """
    if isinstance(payload, TopicNode):
        return payload

    data: Any = payload
    if isinstance(payload, str):
        cleaned = strip_code_fences(payload)
        if not cleaned:
            raise TreeParseError("Empty topic tree payload")
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as e:
            raise TreeParseError(f"Invalid JSON in topic tree: {e}")

    if not isinstance(data, dict):
        raise TreeParseError(f"Topic tree root must be an object, got {type(data).__name__}")

    try:
        return TopicNode.model_validate(_fill_missing_ids(data, (0,)))
    except ValidationError as e:
        raise TreeParseError(f"Topic tree does not match the expected shape: {e}")


def iter_nodes(tree: TopicNode) -> Iterator[TopicNode]:
    """Yield every node in depth-first pre-order."""
    stack = [tree]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.subtopics))


def iter_nodes_with_depth(tree: TopicNode) -> Iterator[Tuple[TopicNode, int]]:
    stack = [(tree, 0)]
    while stack:
        node, depth = stack.pop()
        yield node, depth
        stack.extend((child, depth + 1) for child in reversed(node.subtopics))


def find_node(tree: TopicNode, node_id: str) -> Optional[TopicNode]:
    """Return the first node with the given id, or None."""
    for node in iter_nodes(tree):
        if node.id == node_id:
            return node
    return None


def count_nodes(tree: TopicNode) -> int:
    return sum(1 for _ in iter_nodes(tree))


def tree_depth(tree: TopicNode) -> int:
    """Number of levels in the tree (a lone root has depth 1)."""
    return max(depth for _, depth in iter_nodes_with_depth(tree)) + 1


def find_duplicate_ids(tree: TopicNode) -> List[str]:
    """Return ids that occur more than once, in first-seen order."""
    counts = Counter(node.id for node in iter_nodes(tree))
    seen = []
    for node in iter_nodes(tree):
        if counts[node.id] > 1 and node.id not in seen:
            seen.append(node.id)
    return seen


def disambiguate_ids(tree: TopicNode) -> TopicNode:
    """
    Return a copy of the tree in which every id is unique.

    The first occurrence (pre-order) keeps its id; later ones get a `~2`, `~3`
    suffix. Suffixed ids that would themselves collide are bumped further.
    """
    taken = set()
    seen: Counter = Counter()

    def rebuild(node: TopicNode) -> TopicNode:
        seen[node.id] += 1
        new_id = node.id
        if new_id in taken:
            suffix = max(2, seen[node.id])
            while f"{node.id}~{suffix}" in taken:
                suffix += 1
            new_id = f"{node.id}~{suffix}"
        taken.add(new_id)
        children = [rebuild(child) for child in node.subtopics]
        return node.model_copy(update={"id": new_id, "subtopics": children})

    return rebuild(tree)
