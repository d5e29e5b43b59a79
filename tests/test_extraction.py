"""
Tests for extraction, validation, prompts and speech with mocked clients.

No API keys or network access are needed: the OpenAI client is replaced with
unittest.mock objects.
"""

import json
import os
from unittest.mock import Mock, patch

import pytest

from topic_tree.core.config import ConfigError
from topic_tree.core.extraction import ExtractionError, TopicExtractor
from topic_tree.core.llm_handler import (
    LLMHandler,
    LLMHandlerError,
    ReasoningModelError,
    adjust_llm_params_for_reasoning_model,
    is_reasoning_model_error,
    make_llm_request_with_reasoning_fallback,
)
from topic_tree.core.prompts import DEFAULT_EXTRACTION_PROMPT, render_extraction_prompt, render_validation_prompt
from topic_tree.core.speech import SpeechError, SpeechProcessor, extension_for_mime_type
from topic_tree.core.tree import iter_nodes
from topic_tree.core.types import TopicNode

DRAFT = {
    "id": "conversation_overview",
    "topic": "Conversation Overview",
    "accuracy": 1.0,
    "subtopics": [
        {"id": "cats", "topic": "Cats", "accuracy": 0.9, "subtopics": [{"id": "cats_space_travel", "topic": "Space Travel", "accuracy": 0.85}]},
        {"id": "space", "topic": "Space", "accuracy": 0.9, "subtopics": []},
    ],
}

VALIDATED = {
    "id": "conversation_overview",
    "topic": "Conversation Overview",
    "accuracy": 1.0,
    "subtopics": [
        {"id": "cats", "topic": "Cats", "accuracy": 0.9, "subtopics": []},
        {"id": "space", "topic": "Space", "accuracy": 0.9, "subtopics": [{"id": "space_mars", "topic": "Mars", "accuracy": 0.8}]},
    ],
}

TEXT = "Let's talk about cats going to space. Will people ever live on Mars?"


def completion(content: str) -> Mock:
    """Build a fake chat completion response."""
    return Mock(choices=[Mock(message=Mock(content=content))])


def make_extractor(*contents) -> TopicExtractor:
    client = Mock()
    client.chat.completions.create.side_effect = list(contents)
    handler = LLMHandler(".", client=client)
    return TopicExtractor(handler=handler, extraction_model="draft-model", validation_model="check-model")


class ReasoningError(Exception):
    """Mimics the 400 an OpenAI reasoning model returns for temperature."""

    status_code = 400
    body = {"error": {"type": "invalid_request_error", "code": "unsupported_value", "param": "temperature"}}


class TestTopicExtractor:
    """Test the extract-then-validate pipeline."""

    def test_extract_parses_fenced_json(self):
        extractor = make_extractor(completion("```json\n" + json.dumps(DRAFT) + "\n```"))
        tree = extractor.extract(TEXT)

        assert tree.id == "conversation_overview"
        assert [child.id for child in tree.subtopics] == ["cats", "space"]

    def test_extract_uses_extraction_model_and_prompt(self):
        extractor = make_extractor(completion(json.dumps(DRAFT)))
        extractor.extract(TEXT)

        kwargs = extractor.handler.client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "draft-model"
        assert TEXT in kwargs["messages"][0]["content"]
        assert kwargs["response_format"] == {"type": "json_object"}

    def test_extract_and_validate(self):
        extractor = make_extractor(completion(json.dumps(DRAFT)), completion(json.dumps(VALIDATED)))
        result = extractor.extract_and_validate(TEXT)

        assert result.validated is True
        assert result.tree.subtopics[1].subtopics[0].id == "space_mars"
        assert result.draft.subtopics[0].subtopics[0].id == "cats_space_travel"
        assert result.validation_model == "check-model"

        second_call = extractor.handler.client.chat.completions.create.call_args_list[1].kwargs
        assert second_call["model"] == "check-model"
        assert "cats_space_travel" in second_call["messages"][0]["content"]

    def test_validation_failure_falls_back_to_draft(self):
        extractor = make_extractor(completion(json.dumps(DRAFT)), RuntimeError("provider down"))
        result = extractor.extract_and_validate(TEXT)

        assert result.validated is False
        assert result.tree == result.draft

    def test_validation_returning_non_tree_falls_back(self):
        extractor = make_extractor(completion(json.dumps(DRAFT)), completion("[1, 2, 3]"))
        result = extractor.extract_and_validate(TEXT)

        assert result.validated is False
        assert result.tree.id == "conversation_overview"

    def test_missing_validation_template_keeps_draft(self):
        extractor = make_extractor(completion(json.dumps(DRAFT)))
        with patch.dict(os.environ, {"VALIDATION_PROMPT_FILE": "/nonexistent/validate.txt"}):
            result = extractor.extract_and_validate(TEXT)

        assert result.validated is False
        assert result.tree == result.draft
        assert extractor.handler.client.chat.completions.create.call_count == 1

    def test_validation_without_root_id_keeps_draft(self):
        extractor = make_extractor(completion(json.dumps(DRAFT)), completion("{}"))
        result = extractor.extract_and_validate(TEXT)

        assert result.validated is False
        assert result.tree == result.draft
        assert [child.id for child in result.tree.subtopics] == ["cats", "space"]

    def test_validation_without_choices_keeps_draft(self):
        extractor = make_extractor(completion(json.dumps(DRAFT)), Mock(choices=[]))
        result = extractor.extract_and_validate(TEXT)

        assert result.validated is False
        assert result.tree == result.draft

    def test_skip_validation(self):
        extractor = make_extractor(completion(json.dumps(DRAFT)))
        result = extractor.extract_and_validate(TEXT, validate=False)

        assert result.validated is False
        assert result.validation_model is None
        assert extractor.handler.client.chat.completions.create.call_count == 1

    def test_duplicate_ids_are_renamed(self):
        duplicated = {"id": "root", "topic": "Root", "subtopics": [{"id": "x", "topic": "X"}, {"id": "x", "topic": "X too"}]}
        extractor = make_extractor(completion(json.dumps(duplicated)))
        result = extractor.extract_and_validate(TEXT, validate=False)

        ids = [node.id for node in iter_nodes(result.tree)]
        assert ids == ["root", "x", "x~2"]
        assert result.renamed_ids == ["x"]

    def test_empty_text_rejected(self):
        extractor = make_extractor()
        with pytest.raises(ExtractionError, match="empty text"):
            extractor.extract("   ")

    def test_invalid_json_raises(self):
        extractor = make_extractor(completion("Sure! Here are the topics: cats, space"))
        with pytest.raises(ExtractionError):
            extractor.extract(TEXT)

    def test_empty_response_raises(self):
        extractor = make_extractor(completion(""))
        with pytest.raises(ExtractionError, match="Empty response"):
            extractor.extract(TEXT)


class TestReasoningFallback:
    """Test the reasoning model parameter fallback."""

    def test_detects_reasoning_error(self):
        assert is_reasoning_model_error(ReasoningError()) is True
        assert is_reasoning_model_error(RuntimeError("nope")) is False

    def test_adjust_params(self):
        adjusted = adjust_llm_params_for_reasoning_model({"model": "o3", "temperature": 0.2, "max_tokens": 100}, "extraction")
        assert "temperature" not in adjusted
        assert "max_tokens" not in adjusted
        assert adjusted["max_completion_tokens"] == 100

    def test_retry_without_temperature(self):
        client = Mock()
        client.chat.completions.create.side_effect = [ReasoningError(), completion("{}")]

        make_llm_request_with_reasoning_fallback(client, {"model": "o3", "temperature": 0.2}, "extraction")

        retry_kwargs = client.chat.completions.create.call_args_list[1].kwargs
        assert "temperature" not in retry_kwargs

    def test_retry_failure_raises(self):
        client = Mock()
        client.chat.completions.create.side_effect = [ReasoningError(), RuntimeError("still failing")]

        with pytest.raises(ReasoningModelError):
            make_llm_request_with_reasoning_fallback(client, {"model": "o3", "temperature": 0.2}, "validation")

    def test_handler_wraps_errors(self):
        client = Mock()
        client.chat.completions.create.side_effect = RuntimeError("timeout")
        handler = LLMHandler(".", client=client)

        with pytest.raises(LLMHandlerError, match="Extraction LLM request failed"):
            handler.make_json_request("prompt", "model", "extraction")

    def test_handler_rejects_response_without_choices(self):
        client = Mock()
        client.chat.completions.create.return_value = Mock(choices=[])
        handler = LLMHandler(".", client=client)

        with pytest.raises(LLMHandlerError, match="No choices"):
            handler.make_json_request("prompt", "model", "validation")

    def test_reasoning_model_flag_skips_temperature(self):
        handler = LLMHandler(".", client=Mock())
        with patch.dict(os.environ, {"IS_REASONING_MODEL": "true"}):
            params = handler.build_request_params("prompt", "o3")
        assert "temperature" not in params


class TestPrompts:
    """Test prompt template rendering."""

    def test_extraction_prompt_contains_text(self):
        prompt = render_extraction_prompt(TEXT)
        assert prompt.endswith(f"Text: {TEXT}")
        assert "${inputText}" not in prompt

    def test_validation_prompt_contains_tree(self):
        tree = TopicNode.model_validate(DRAFT)
        prompt = render_validation_prompt(TEXT, tree)
        assert TEXT in prompt
        assert '"id": "cats_space_travel"' in prompt

    def test_dollar_signs_in_text_are_kept(self):
        prompt = render_extraction_prompt("It costs $5 and ${weird}")
        assert "It costs $5 and ${weird}" in prompt

    def test_template_file_override(self, tmp_path):
        template = tmp_path / "extract.txt"
        template.write_text("Topics please: ${inputText}", encoding="utf-8")

        with patch.dict(os.environ, {"EXTRACTION_PROMPT_FILE": str(template)}):
            assert render_extraction_prompt("hello") == "Topics please: hello"

    def test_default_template_has_placeholder(self):
        assert "${inputText}" in DEFAULT_EXTRACTION_PROMPT

    def test_missing_template_file(self):
        with patch.dict(os.environ, {"VALIDATION_PROMPT_FILE": "/nonexistent/prompt.txt"}):
            with pytest.raises(ConfigError, match="Prompt template not found"):
                render_validation_prompt(TEXT, TopicNode(id="x", topic="X"))


class TestSpeech:
    """Test speech-to-text wrappers."""

    def test_mime_type_extension(self):
        assert extension_for_mime_type("audio/webm;codecs=opus") == ".webm"
        assert extension_for_mime_type("audio/mpeg") == ".mp3"
        assert extension_for_mime_type("application/unknown") == ".wav"
        assert extension_for_mime_type(None) == ".wav"

    def test_transcribe_bytes(self):
        client = Mock()
        client.audio.transcriptions.create.return_value = Mock(text="  cats in space  ", language="english")
        processor = SpeechProcessor(client=client)

        transcript = processor.transcribe_bytes(b"RIFF....", "audio/wav")

        assert transcript.text == "cats in space"
        assert transcript.lang_hint == "english"
        upload = client.audio.transcriptions.create.call_args.kwargs["file"]
        assert upload.name == "recording.wav"

    def test_transcribe_empty_bytes(self):
        processor = SpeechProcessor(client=Mock())
        with pytest.raises(SpeechError):
            processor.transcribe_bytes(b"", "audio/wav")

    def test_transcription_failure(self, tmp_path):
        audio = tmp_path / "clip.wav"
        audio.write_bytes(b"RIFF....")
        client = Mock()
        client.audio.transcriptions.create.side_effect = RuntimeError("bad audio")
        processor = SpeechProcessor(client=client)

        with pytest.raises(SpeechError, match="bad audio"):
            processor.transcribe_audio(str(audio))

    def test_missing_file(self):
        processor = SpeechProcessor(client=Mock())
        with pytest.raises(FileNotFoundError):
            processor.transcribe_audio("/nonexistent/clip.wav")

    def test_validate_audio_format(self):
        processor = SpeechProcessor(client=Mock())
        assert processor.validate_audio_format("test.wav") is True
        assert processor.validate_audio_format("test.WEBM") is True
        assert processor.validate_audio_format("test.txt") is False
