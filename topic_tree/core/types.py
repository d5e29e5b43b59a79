"""
Type definitions for Topic Tree.

This module defines the topic tree produced by the extraction model and the
positioned node/edge graph handed to a diagram renderer.
"""

import math
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class TopicNode(BaseModel):
    """
    A single topic in the extracted hierarchy.

    The tree comes from a chat model and may be incomplete, so construction is
    lenient: absent or null subtopics become an empty list, non-object children
    are dropped and a missing label falls back to the id.

    Attributes:
        id: Identifier, unique across the tree and stable across re-layouts
        topic: Human-readable label
        accuracy: Confidence in [0.0, 1.0]; not enforced
        subtopics: Ordered children, left to right
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique node identifier")
    topic: str = Field(default="", description="Human-readable topic label")
    accuracy: float = Field(default=0.0, description="Extraction confidence (0.0 to 1.0)")
    subtopics: List["TopicNode"] = Field(default_factory=list, description="Ordered child topics")

    @model_validator(mode="before")
    @classmethod
    def _fill_label(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("topic") in (None, "") and data.get("id") is not None:
            data = {**data, "topic": str(data["id"])}
        return data

    @field_validator("id", "topic", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        # Models sometimes emit numeric ids and labels
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("accuracy", mode="before")
    @classmethod
    def _coerce_accuracy(cls, value: Any) -> float:
        if value is None:
            return 0.0
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0.0

    @field_validator("subtopics", mode="before")
    @classmethod
    def _coerce_subtopics(cls, value: Any) -> List[Any]:
        if value is None:
            return []
        if not isinstance(value, (list, tuple)):
            return []
        return [child for child in value if isinstance(child, (dict, TopicNode))]

    @property
    def has_children(self) -> bool:
        return len(self.subtopics) > 0


class PositionedNode(BaseModel):
    """A visible node with its layout coordinates."""

    id: str = Field(..., description="Node identifier (matches TopicNode.id)")
    label: str = Field(..., description="Label to display")
    accuracy: float = Field(..., description="Extraction confidence")
    has_children: bool = Field(default=False, description="Whether the node can be expanded")
    is_expanded: bool = Field(default=False, description="Whether the node's children are visible")
    x: float = Field(..., description="Horizontal center")
    y: float = Field(..., description="Vertical position (depth * spacing)")


class LayoutEdge(BaseModel):
    """A parent-to-child connection between two visible nodes."""

    id: str = Field(..., description="Edge identifier")
    source_id: str = Field(..., description="Parent node id")
    target_id: str = Field(..., description="Child node id")


class LayoutGraph(BaseModel):
    """
    The positioned graph handed to the rendering surface.

    Always rebuilt from scratch after a state change; never patched.
    """

    nodes: List[PositionedNode] = Field(default_factory=list)
    edges: List[LayoutEdge] = Field(default_factory=list)

    def node_ids(self) -> List[str]:
        return [node.id for node in self.nodes]

    def get_node(self, node_id: str) -> Optional[PositionedNode]:
        """Return the node with the given id (last one wins on duplicates)."""
        found = None
        for node in self.nodes:
            if node.id == node_id:
                found = node
        return found

    def to_flow_dict(self) -> Dict[str, Any]:
        """
        Export in the node/edge shape used by flow-diagram renderers.

        Nodes carry a `position` and a `data` payload for the custom topic node
        visual; edges are drawn as smooth steps.
        """
        return {
            "nodes": [
                {
                    "id": node.id,
                    "type": "topicNode",
                    "position": {"x": node.x, "y": node.y},
                    "data": {
                        "label": node.label,
                        "accuracy": node.accuracy if math.isfinite(node.accuracy) else None,
                        "hasChildren": node.has_children,
                        "isExpanded": node.is_expanded,
                    },
                }
                for node in self.nodes
            ],
            "edges": [
                {"id": edge.id, "source": edge.source_id, "target": edge.target_id, "type": "smoothstep"}
                for edge in self.edges
            ],
        }


class Transcript(BaseModel):
    """
    Result of automatic speech recognition.
    """

    text: str = Field(..., description="Transcribed text")
    lang_hint: str = Field(default="auto", description="Detected or hinted language code")


class ExtractionResult(BaseModel):
    """Outcome of the extract-then-validate pipeline."""

    tree: TopicNode = Field(..., description="Tree to install in the layout engine")
    draft: TopicNode = Field(..., description="First-draft tree before validation")
    validated: bool = Field(default=False, description="Whether the validation pass succeeded")
    renamed_ids: List[str] = Field(default_factory=list, description="Duplicate ids that were disambiguated")
    extraction_model: str = Field(..., description="Model used for extraction")
    validation_model: Optional[str] = Field(default=None, description="Model used for validation, if run")


def format_accuracy(accuracy: float, digits: int = 0) -> str:
    """Render an accuracy value as a percentage, tolerating non-finite input."""
    if accuracy is None or not math.isfinite(accuracy):
        return "n/a"
    return f"{accuracy * 100:.{digits}f}%"
