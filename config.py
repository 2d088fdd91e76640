# config.py
"""
Centralized configuration: YAML settings file plus environment-driven runtime constants.
"""
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Union

import yaml
from dotenv import load_dotenv

from errors import ConfigReadError, ConfigParseError

# Load environment variables from .env file
load_dotenv()

# Settings file, relative to the working directory
CONFIG_PATH = "config.yaml"

# === LOGGING ===
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = Path(os.getenv("LOG_FILE", "llm_chat.log"))

# === KNOWLEDGE STORE ===
KNOWLEDGE_COLLECTION = "knowledge"
DOCUMENT_ID_PREFIX = "doc_"
USER_INPUT_SOURCE = "user_input"
DEFAULT_TOP_K = 5  # used when rag.top_k is unset

# File types picked up by /index
INDEXABLE_EXTENSIONS = {".rs", ".go", ".py", ".js", ".ts", ".tsx", ".jsx", ".md", ".txt"}


@dataclass(frozen=True)
class LLMSettings:
    model: str = ""
    base_url: str = ""  # not wired: the client reads OLLAMA_HOST
    temperature: float = 0.0
    context_length: int = 0


@dataclass(frozen=True)
class RAGSettings:
    embedding_model: str = ""
    chunk_size: int = 0
    chunk_overlap: int = 0
    top_k: int = 0


@dataclass(frozen=True)
class StorageSettings:
    vector_db_path: str = ""
    chat_history_path: str = ""


@dataclass(frozen=True)
class PersonalizationSettings:
    learn_from_interactions: bool = False
    save_conversations: bool = False
    user_preferences_path: str = ""


@dataclass(frozen=True)
class Settings:
    """Application settings, immutable once loaded."""
    llm: LLMSettings = field(default_factory=LLMSettings)
    system_prompt: str = ""
    rag: RAGSettings = field(default_factory=RAGSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    personalization: PersonalizationSettings = field(default_factory=PersonalizationSettings)


def _check_type(value: Any, expected: type) -> bool:
    # bool is an int subclass; YAML "yes"/"true" must not pass as a number
    if expected is float:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if expected is int:
        return isinstance(value, int) and not isinstance(value, bool)
    return isinstance(value, expected)


def _build_section(cls, raw: Any, section: str, path: str):
    """Build one settings dataclass from a YAML mapping. Missing keys keep zero values."""
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigParseError(path, f"section '{section}' must be a mapping, got {type(raw).__name__}")

    kwargs = {}
    for f in fields(cls):
        if f.name not in raw or raw[f.name] is None:
            continue
        value = raw[f.name]
        expected = f.type
        if not _check_type(value, expected):
            raise ConfigParseError(
                path,
                f"'{section}.{f.name}' must be {expected.__name__}, got {type(value).__name__}",
                details={"path": path, "key": f"{section}.{f.name}", "value": repr(value)}
            )
        kwargs[f.name] = float(value) if expected is float else value
    return cls(**kwargs)


def parse_settings(data: Dict[str, Any], path: str = CONFIG_PATH) -> Settings:
    """Convert a parsed YAML document into Settings."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigParseError(path, f"top level must be a mapping, got {type(data).__name__}")

    system_prompt = data.get("system_prompt")
    if system_prompt is None:
        system_prompt = ""
    elif not isinstance(system_prompt, str):
        raise ConfigParseError(path, f"'system_prompt' must be str, got {type(system_prompt).__name__}")

    return Settings(
        llm=_build_section(LLMSettings, data.get("llm"), "llm", path),
        system_prompt=system_prompt,
        rag=_build_section(RAGSettings, data.get("rag"), "rag", path),
        storage=_build_section(StorageSettings, data.get("storage"), "storage", path),
        personalization=_build_section(
            PersonalizationSettings, data.get("personalization"), "personalization", path
        ),
    )


def load_config(path: Union[str, Path] = CONFIG_PATH) -> Settings:
    """
    Read and parse the YAML settings file.

    Raises:
        ConfigReadError: file missing or unreadable
        ConfigParseError: invalid YAML or a field of the wrong type
    """
    path = str(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise ConfigReadError(path, e.strerror or str(e))

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigParseError(path, f"invalid YAML: {e}")

    return parse_settings(data, path)
