"""
Configuration management for Topic Tree.

Environment variables, API keys and model selection, with explicit,
project-scoped .env loading through python-dotenv. Nothing is loaded at import
time.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from openai import OpenAI

METADATA_DIRNAME = ".topic_tree"
DEFAULT_ENV_FILENAME = os.getenv("TT_ENV_FILENAME", ".env")
ENV_FILE_ENV_VARS = ("TT_ENV_FILE", "TOPIC_TREE_ENV_FILE")
PROJECT_ROOT_ENV_VARS = ("TT_PROJECT_ROOT", "TOPIC_TREE_PROJECT_ROOT")


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


@lru_cache(maxsize=32)
def load_config(env_path: Optional[str] = None, override: bool = False) -> None:
    """Explicitly load environment variables from the given .env file path."""
    if env_path:
        load_dotenv(dotenv_path=env_path, override=override)


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes", "on")


class Config:
    """Configuration settings for Topic Tree."""

    @property
    def openai_api_key(self) -> str:
        """Get OpenAI API key from environment."""
        key = os.getenv("OPENAI_API_KEY")
        if not key:
            raise ConfigError("OPENAI_API_KEY not found in environment. Please set it in your environment or .env file.")
        return key

    @property
    def openai_base_url(self) -> Optional[str]:
        """Optional base URL for OpenAI-compatible providers (e.g. OpenRouter)."""
        return os.getenv("OPENAI_BASE_URL") or None

    @property
    def extraction_model(self) -> str:
        """Model for the first-draft tree extraction (default: gpt-4o-mini)."""
        return os.getenv("EXTRACTION_MODEL", os.getenv("LLM_MODEL", "gpt-4o-mini"))

    @property
    def validation_model(self) -> str:
        """Model for validating the extracted tree (default: gpt-4o)."""
        return os.getenv("VALIDATION_MODEL", "gpt-4o")

    @property
    def is_reasoning_model(self) -> bool:
        return _env_flag("IS_REASONING_MODEL")

    @property
    def asr_model(self) -> str:
        """Get the model name for ASR (default: whisper-1)."""
        return os.getenv("ASR_MODEL", "whisper-1")

    @property
    def openai_timeout(self) -> int:
        return int(os.getenv("OPENAI_TIMEOUT", "60"))

    @property
    def max_retries(self) -> int:
        return int(os.getenv("MAX_RETRIES", "3"))

    @property
    def extraction_prompt_file(self) -> Optional[str]:
        """Path to a file overriding the default extraction prompt template."""
        return os.getenv("EXTRACTION_PROMPT_FILE") or None

    @property
    def validation_prompt_file(self) -> Optional[str]:
        return os.getenv("VALIDATION_PROMPT_FILE") or None


# Global config instance
config = Config()

# --- Project-scoped environment helpers ---


def detect_project_root(start_dir: Optional[str] = None) -> Optional[Path]:
    """Detect project root by looking for a .topic_tree directory upwards from start_dir (or CWD)."""
    start = Path(start_dir) if start_dir else Path.cwd()
    for current in [start] + list(start.parents):
        if (current / METADATA_DIRNAME).is_dir():
            return current
    return None


def get_project_metadata_dir(project_root: Optional[str] = None) -> Path:
    root = Path(project_root) if project_root else (detect_project_root() or Path.cwd())
    return root / METADATA_DIRNAME


def get_project_env_path(project_root: Optional[str] = None, filename: str = DEFAULT_ENV_FILENAME) -> Path:
    return get_project_metadata_dir(project_root) / filename


def ensure_project_env(project_root: Optional[str] = None, filename: str = DEFAULT_ENV_FILENAME, overwrite: bool = False) -> Path:
    """
    Create a template env file under .topic_tree if none exists.

    Never loads the values; only writes the file.

    Returns:
        Path to the env file
    """
    meta = get_project_metadata_dir(project_root)
    meta.mkdir(parents=True, exist_ok=True)
    target = meta / filename
    if target.exists() and not overwrite:
        return target

    template = (
        "# Project-scoped environment for topic_tree\n"
        "EXTRACTION_MODEL=gpt-4o-mini\n"
        "VALIDATION_MODEL=gpt-4o\n"
        "ASR_MODEL=whisper-1\n"
        "IS_REASONING_MODEL=false\n"
        "MODEL_TEMPERATURE=0.2\n"
        "OPENAI_TIMEOUT=60\n"
        "MAX_RETRIES=3\n"
        "# OPENAI_BASE_URL=https://openrouter.ai/api/v1\n"
        "# OPENAI_API_KEY=your-key-here\n"
    )
    target.write_text(template, encoding="utf-8")
    return target


def load_project_env(project_root: Optional[str] = None, filename: str = DEFAULT_ENV_FILENAME, override: bool = False) -> Optional[str]:
    """
    Load a project-scoped environment file, if available.

    Load order (first match wins):
    1) Explicit env file path via TT_ENV_FILE or TOPIC_TREE_ENV_FILE
    2) <root>/.topic_tree/<filename> (default: .env), trying the given
       project_root, then TT_PROJECT_ROOT, then upward detection from CWD

    Returns the path loaded, or None if nothing was loaded.
    """
    for var in ENV_FILE_ENV_VARS:
        explicit = os.getenv(var)
        if explicit and Path(explicit).is_file():
            load_config(explicit, override=override)
            return explicit

    candidates = [project_root] + [os.getenv(var) for var in PROJECT_ROOT_ENV_VARS]
    detected = detect_project_root()
    if detected:
        candidates.append(str(detected))

    for root in candidates:
        if not root:
            continue
        env_path = get_project_env_path(root, filename)
        if env_path.exists():
            load_config(str(env_path), override=override)
            return str(env_path)

    return None


@lru_cache(maxsize=1)
def get_client(project_root: Optional[str] = None) -> OpenAI:
    """
    Get configured OpenAI client with timeout and retry settings.

    If OPENAI_API_KEY is missing, tries the project-scoped env first.

    Args:
        project_root: Root whose .topic_tree/.env is checked before the
            detected one

    Raises:
        ConfigError: If API key is not configured after project env lookup
    """
    if not os.getenv("OPENAI_API_KEY"):
        loaded_path = load_project_env(project_root)
        if not os.getenv("OPENAI_API_KEY"):
            where = loaded_path or f"{METADATA_DIRNAME}/{DEFAULT_ENV_FILENAME}"
            raise ConfigError(
                f"OPENAI_API_KEY not found in environment. Looked for project env at {where}. "
                f"Set it via environment, TT_ENV_FILE, or place it under {METADATA_DIRNAME}/{DEFAULT_ENV_FILENAME}."
            )
    try:
        return OpenAI(
            api_key=config.openai_api_key,
            base_url=config.openai_base_url,
            timeout=config.openai_timeout,
            max_retries=config.max_retries,
        )
    except Exception as e:
        raise ConfigError(f"Failed to create OpenAI client: {e}")


def validate_config(project_root: Optional[str] = None) -> None:
    """
    Validate that all required configuration is present.

    Raises:
        ConfigError: If required configuration is missing
    """
    _ = get_client(project_root)
