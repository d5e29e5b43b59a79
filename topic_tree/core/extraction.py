"""
Topic tree extraction from free text.

Two chat-completion passes: the first drafts a topic tree from the text, the
second checks that draft against the text and returns a corrected tree. If the
validation pass fails for any reason the draft is used as-is. Duplicate ids are
disambiguated before the tree is handed to the layout engine.
"""

import logging
from typing import Any, Optional

from .config import ConfigError, config
from .debug_log import get_debug_logger
from .llm_handler import LLMHandler, LLMHandlerError, get_llm_handler
from .progress import reporter
from .prompts import render_extraction_prompt, render_validation_prompt
from .tree import TreeParseError, count_nodes, disambiguate_ids, find_duplicate_ids, parse_topic_tree
from .types import ExtractionResult, TopicNode

logger = logging.getLogger(__name__)


class ExtractionError(Exception):
    """Raised when no usable topic tree could be extracted."""

    pass


class TopicExtractor:
    """
    Turns text into a TopicNode tree using a chat-completion model.

    Attributes:
        extraction_model: Model for the first draft
        validation_model: Model for the validation pass
    """

    def __init__(
        self,
        project_root: str = ".",
        handler: Optional[LLMHandler] = None,
        extraction_model: Optional[str] = None,
        validation_model: Optional[str] = None,
    ):
        self.project_root = project_root
        self.handler = handler if handler is not None else get_llm_handler(project_root)
        self.extraction_model = extraction_model or config.extraction_model
        self.validation_model = validation_model or config.validation_model

    def extract(self, text: str) -> TopicNode:
        """
        Draft a topic tree from the text.

        Raises:
            ExtractionError: If the text is empty, the request fails, or the
                answer is not a topic tree
        """
        if not text.strip():
            raise ExtractionError("Cannot extract topics from empty text")

        prompt = render_extraction_prompt(text)
        try:
            data = self.handler.make_json_request(prompt, self.extraction_model, "extraction")
        except LLMHandlerError as e:
            raise ExtractionError(f"Extraction request failed: {e}")

        return self._to_tree(data, "extraction")

    def validate(self, text: str, tree: TopicNode) -> TopicNode:
        """
        Ask the validation model to correct a drafted tree against the text.

        Unlike a draft, the answer is not repaired: a root without an id means
        the model did not return a tree.

        Raises:
            ConfigError: If the validation prompt template cannot be loaded
            LLMHandlerError: If the request fails
            TreeParseError: If the answer is not a topic tree
        """
        prompt = render_validation_prompt(text, tree)
        data = self.handler.make_json_request(prompt, self.validation_model, "validation")
        try:
            if not isinstance(data, dict) or data.get("id") in (None, ""):
                raise TreeParseError("Validation answer has no root id")
            return parse_topic_tree(data)
        except TreeParseError as e:
            get_debug_logger(self.project_root).log_validation_error(e, data, "validation")
            raise

    def extract_and_validate(self, text: str, validate: bool = True) -> ExtractionResult:
        """
        Full pipeline: draft, optionally validate, then make ids unique.

        A failed validation pass is logged and the draft is kept.

        Raises:
            ExtractionError: If the draft itself cannot be produced
        """
        reporter.step(f"Extracting topics with {self.extraction_model}…")
        draft = self.extract(text)
        reporter.complete_sub_step(f"Draft tree with {count_nodes(draft)} topics")

        tree = draft
        validated = False
        if validate:
            reporter.step(f"Validating topics with {self.validation_model}…")
            try:
                tree = self.validate(text, draft)
                validated = True
                reporter.complete_sub_step(f"Validated tree with {count_nodes(tree)} topics")
            except (ConfigError, LLMHandlerError, TreeParseError) as e:
                logger.warning(f"Validation failed, using unvalidated tree: {e}")
                reporter.complete_sub_step("Validation failed, keeping draft tree")

        duplicates = find_duplicate_ids(tree)
        if duplicates:
            logger.warning(f"Duplicate topic ids renamed: {', '.join(duplicates)}")
            tree = disambiguate_ids(tree)

        return ExtractionResult(
            tree=tree,
            draft=draft,
            validated=validated,
            renamed_ids=duplicates,
            extraction_model=self.extraction_model,
            validation_model=self.validation_model if validate else None,
        )

    def _to_tree(self, data: Any, context: str) -> TopicNode:
        try:
            return parse_topic_tree(data)
        except TreeParseError as e:
            logger.error(f"Model returned an unusable topic tree ({context}): {e}")
            get_debug_logger(self.project_root).log_validation_error(e, data, context)
            raise ExtractionError(f"Model returned an unusable topic tree: {e}")
