"""
Debug logging for the extraction pipeline.

When TT_DEBUG=1, every chat-completion request and response and every tree
that failed to parse is written as a JSON file under
{project_root}/.topic_tree/debug/session_<timestamp>/.
"""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from .config import METADATA_DIRNAME


def is_debug_enabled() -> bool:
    """True if TT_DEBUG=1 is set."""
    return os.getenv("TT_DEBUG", "0") == "1"


class DebugLogger:
    """
    Writes per-session JSON debug records for LLM traffic.

    Files are named after the step and a timestamp so a session can be read
    back in order.
    """

    def __init__(self, project_root: str = ".", enabled: Optional[bool] = None):
        """
        Args:
            project_root: Project root directory for log storage
            enabled: Override debug enable flag, uses TT_DEBUG env var if None
        """
        self.project_root = project_root
        self.enabled = enabled if enabled is not None else is_debug_enabled()
        self.session_id = datetime.now().strftime("%Y%m%d_%H%M%S")

        if self.enabled:
            self._setup_log_directory()

    def _setup_log_directory(self) -> None:
        self.log_dir = Path(self.project_root) / METADATA_DIRNAME / "debug"
        self.session_dir = self.log_dir / f"session_{self.session_id}"
        self.session_dir.mkdir(parents=True, exist_ok=True)

    def is_enabled(self) -> bool:
        return self.enabled

    def _write(self, step: str, record: dict) -> Optional[Path]:
        if not self.enabled:
            return None

        timestamp = datetime.now().isoformat()
        log_data = {"timestamp": timestamp, "session_id": self.session_id, "step": step, **record}

        filename = f"{step}_{timestamp.replace(':', '-').replace('.', '_')}.json"
        log_file = self.session_dir / filename
        with open(log_file, "w", encoding="utf-8") as f:
            json.dump(log_data, f, indent=2, ensure_ascii=False, default=str)
        return log_file

    def log_llm_request(self, request_type: str, model: str, prompt: str) -> Optional[Path]:
        """Log the prompt sent for an extraction or validation request."""
        return self._write(
            f"{request_type}_request",
            {"type": "request", "model": model, "prompt": prompt, "prompt_length": len(prompt)},
        )

    def log_llm_response(self, request_type: str, model: str, response_content: str) -> Optional[Path]:
        return self._write(
            f"{request_type}_response",
            {"type": "response", "model": model, "response_content": response_content, "response_length": len(response_content)},
        )

    def log_validation_error(self, error: Exception, raw_data: Any, context: str = "tree") -> Optional[Path]:
        """
        Log a payload that could not be turned into a topic tree.

        Args:
            error: The exception that occurred
            raw_data: The raw payload that failed
            context: Which pipeline stage produced it
        """
        return self._write(
            f"{context}_validation_error",
            {
                "type": "validation_error",
                "error": str(error),
                "error_type": type(error).__name__,
                "raw_data": raw_data,
            },
        )


# Global debug logger instance
_debug_logger: Optional[DebugLogger] = None


def get_debug_logger(project_root: str = ".") -> DebugLogger:
    """Get or create the global debug logger for a project root."""
    global _debug_logger
    if _debug_logger is None or _debug_logger.project_root != project_root or _debug_logger.enabled != is_debug_enabled():
        _debug_logger = DebugLogger(project_root)
    return _debug_logger
