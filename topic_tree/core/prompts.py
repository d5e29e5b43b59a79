"""
Prompt templates for topic tree extraction and validation.

Templates use `string.Template` placeholders: `${inputText}` for extraction,
`${originalText}` and `${topicTree}` for validation. Defaults can be replaced
by files named in EXTRACTION_PROMPT_FILE / VALIDATION_PROMPT_FILE.
"""

import json
from pathlib import Path
from string import Template
from typing import Optional

from .config import ConfigError, config
from .types import TopicNode

DEFAULT_EXTRACTION_PROMPT = """Extract a hierarchical topic tree from the following text. Include ALL explicitly mentioned topics, concepts, named entities, questions, and hypothetical scenarios, even if they are not factual statements.

EXTRACTION RULES:
- Include every topic, concept, named entity, or subject that is mentioned, even inside a question, suggestion, or hypothetical.
- Maintain logical hierarchy and grouping.
- Capture specific values, measurements, and names within appropriate categories.
- Do NOT add unmentioned topics or infer content.

HIERARCHY GUIDELINES:
- Group related information under logical main topics.
- Place specific values and names as subtopics under relevant categories.
- Create natural hierarchy depth based on content complexity.

ID FORMAT:
- Use descriptive, lowercase IDs with underscores (e.g. "cats", "space_travel").
- Make IDs hierarchical: main_topic -> main_topic_subtopic -> main_topic_subtopic_detail
- Every ID must be unique within the tree.

ACCURACY SCORING:
- 0.9-1.0: Topic discussed with significant detail or emphasis
- 0.7-0.9: Topic clearly mentioned with context
- 0.5-0.7: Topic briefly mentioned but clearly stated
- 0.3-0.5: Topic implied or indirectly referenced

JSON STRUCTURE:
{
  "id": "main_topic_name",
  "topic": "Main Topic Title",
  "accuracy": 0.95,
  "subtopics": [
    {
      "id": "main_topic_specific_item",
      "topic": "Specific Item Name",
      "accuracy": 0.85,
      "subtopics": []
    }
  ]
}

Return ONLY a single JSON object. The root should be the most representative or overarching topic of the text (for example "Conversation Overview" or "Space Exploration"). Only use "root" if there is truly no clear main topic. Use the "subtopics" field name at all levels.

Text: ${inputText}"""

DEFAULT_VALIDATION_PROMPT = """You are a precision topic extraction validator. Review and correct the extracted topic tree against the original text.

VALIDATION CHECKLIST:
- ACCURACY: Every topic must be explicitly mentioned in the original text
- COMPLETENESS: No significant topics should be missing
- HIERARCHY: Parent-child relationships must be logical
- PRECISION: Accuracy scores should reflect actual topic prominence (0.3-1.0)
- CONSISTENCY: IDs follow main_topic -> main_topic_subtopic -> main_topic_subtopic_detail and are unique

CORRECTION PRIORITIES:
1. REMOVE topics not present in the text
2. ADD major topics that were missed
3. REORGANIZE illogical parent-child relationships
4. ADJUST accuracy scores to the detail and emphasis each topic receives
5. FIX malformed IDs

ORIGINAL TEXT:
"${originalText}"

EXTRACTED TOPIC TREE:
${topicTree}

Make surgical corrections and keep what is already accurate. Return only the corrected JSON object with the same structure, no explanations or formatting."""


def _load_template(path: Optional[str], default: str) -> str:
    if not path:
        return default
    template_path = Path(path)
    if not template_path.is_file():
        raise ConfigError(f"Prompt template not found: {path}")
    return template_path.read_text(encoding="utf-8")


def get_extraction_template() -> str:
    return _load_template(config.extraction_prompt_file, DEFAULT_EXTRACTION_PROMPT)


def get_validation_template() -> str:
    return _load_template(config.validation_prompt_file, DEFAULT_VALIDATION_PROMPT)


def render_extraction_prompt(text: str, template: Optional[str] = None) -> str:
    """Fill the extraction template with the input text."""
    return Template(template or get_extraction_template()).safe_substitute(inputText=text)


def render_validation_prompt(original_text: str, tree: TopicNode, template: Optional[str] = None) -> str:
    """Fill the validation template with the original text and the draft tree as JSON."""
    tree_json = json.dumps(tree.model_dump(), indent=2, ensure_ascii=False)
    return Template(template or get_validation_template()).safe_substitute(originalText=original_text, topicTree=tree_json)
