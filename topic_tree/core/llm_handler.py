"""
Centralized LLM handler for chat-completion requests.

Provides a single entry point for the extraction and validation calls, with
JSON decoding, debug logging and an automatic parameter fallback for reasoning
models that reject `temperature` / `max_tokens`.
"""

import json
import logging
import os
from typing import Any, Dict, Optional

from .config import config, get_client
from .debug_log import get_debug_logger
from .tree import strip_code_fences

logger = logging.getLogger(__name__)


class ReasoningModelError(Exception):
    """Raised when reasoning model parameter adjustment fails."""

    pass


class LLMHandlerError(Exception):
    """Base exception for LLM Handler errors."""

    pass


def get_env_model_temperature() -> float:
    """Get model temperature from environment variable with default fallback."""
    try:
        temp = float(os.getenv("MODEL_TEMPERATURE", "0.2"))
        if not (0.0 <= temp <= 2.0):
            logger.warning(f"Invalid MODEL_TEMPERATURE value: {temp}. Using 0.2 as default.")
            return 0.2
        return temp
    except (ValueError, TypeError):
        logger.warning("Invalid MODEL_TEMPERATURE format. Using 0.2 as default.")
        return 0.2


def _error_payload(exception: Exception) -> Optional[Dict[str, Any]]:
    response = getattr(exception, "response", None)
    if response is not None and hasattr(response, "json"):
        try:
            return response.json()
        except ValueError:
            return None
    for attr in ("body", "error"):
        data = getattr(exception, attr, None)
        if isinstance(data, dict):
            return data
    return None


def is_reasoning_model_error(exception: Exception) -> bool:
    """
    Check if the exception is the 400 a reasoning model returns for
    `temperature` or `max_tokens`.

    Matches type 'invalid_request_error', code 'unsupported_value' or
    'unsupported_parameter', param 'temperature' or 'max_tokens'.
    """
    if getattr(exception, "status_code", None) != 400:
        return False

    data = _error_payload(exception)
    if not isinstance(data, dict):
        return False

    # Some SDK versions hand over the inner error object directly
    error_info = data.get("error", data)
    if not isinstance(error_info, dict):
        return False

    error_type = str(error_info.get("type") or "").lower()
    error_code = str(error_info.get("code") or "").lower()
    error_param = str(error_info.get("param") or "").lower()

    return (
        error_type == "invalid_request_error"
        and error_code in ("unsupported_value", "unsupported_parameter")
        and error_param in ("temperature", "max_tokens")
    )


def adjust_llm_params_for_reasoning_model(original_params: Dict[str, Any], request_type: str) -> Dict[str, Any]:
    """
    Drop parameters reasoning models reject.

    `max_tokens` is carried over as `max_completion_tokens`.
    """
    adjusted_params = original_params.copy()
    for param in ("temperature", "max_tokens"):
        adjusted_params.pop(param, None)

    if "max_tokens" in original_params:
        adjusted_params["max_completion_tokens"] = original_params["max_tokens"]

    logger.info(f"Adjusted parameters for reasoning model ({request_type}): {sorted(adjusted_params)}")
    return adjusted_params


def make_llm_request_with_reasoning_fallback(client: Any, original_params: Dict[str, Any], request_type: str) -> Any:
    """
    Make a chat-completion request, retrying once with reasoning-model
    parameters if the first attempt is rejected for them.

    Raises:
        ReasoningModelError: If the adjusted retry also fails
    """
    try:
        return client.chat.completions.create(**original_params)
    except Exception as e:
        if not is_reasoning_model_error(e):
            raise

        logger.info(f"Detected reasoning model error, adjusting parameters for {request_type}")
        adjusted_params = adjust_llm_params_for_reasoning_model(original_params, request_type)
        try:
            return client.chat.completions.create(**adjusted_params)
        except Exception as retry_error:
            raise ReasoningModelError(f"Failed to make LLM request even after adjusting for reasoning model: {retry_error}") from e


class LLMHandler:
    """
    Sends prompts to the chat-completion provider and returns decoded JSON.
    """

    def __init__(self, project_root: str = ".", client: Any = None):
        """
        Args:
            project_root: Project root for debug logging and its .topic_tree/.env
            client: OpenAI-compatible client; the configured one if None
        """
        self.project_root = project_root
        self.client = client if client is not None else get_client(project_root)
        self.debug_logger = get_debug_logger(project_root)

    def build_request_params(self, prompt: str, model: str) -> Dict[str, Any]:
        request_params: Dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "response_format": {"type": "json_object"},
        }
        # Reasoning models reject temperature
        if not config.is_reasoning_model:
            request_params["temperature"] = get_env_model_temperature()
        return request_params

    def make_json_request(self, prompt: str, model: str, request_type: str = "extraction") -> Any:
        """
        Send a single-prompt request and decode the JSON answer.

        Args:
            prompt: Fully rendered prompt
            model: Model identifier
            request_type: 'extraction' or 'validation', used in logs

        Returns:
            Decoded JSON value

        Raises:
            LLMHandlerError: If the request fails or the answer is not JSON
        """
        self.debug_logger.log_llm_request(request_type, model, prompt)
        try:
            response = make_llm_request_with_reasoning_fallback(
                client=self.client,
                original_params=self.build_request_params(prompt, model),
                request_type=request_type,
            )
        except Exception as e:
            raise LLMHandlerError(f"{request_type.capitalize()} LLM request failed: {e}") from e

        if not response.choices:
            raise LLMHandlerError(f"No choices in response from {request_type} model")
        content = response.choices[0].message.content
        if not content:
            raise LLMHandlerError(f"Empty response from {request_type} model")

        self.debug_logger.log_llm_response(request_type, model, content)

        try:
            return json.loads(strip_code_fences(content))
        except json.JSONDecodeError as e:
            raise LLMHandlerError(f"Invalid JSON response from {request_type} model: {e}")


# Global LLM handler instance
_llm_handler: Optional[LLMHandler] = None


def get_llm_handler(project_root: str = ".") -> LLMHandler:
    """Get or create the global LLM handler for a project root."""
    global _llm_handler
    if _llm_handler is None or _llm_handler.project_root != project_root:
        _llm_handler = LLMHandler(project_root)
    return _llm_handler
