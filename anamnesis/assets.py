from __future__ import annotations

import json
import logging
import os
from typing import Any, Tuple

from .errors import ConfigurationError, QuestionnaireError

logger = logging.getLogger("anamnesis.assets")

ASSETS_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "assets")

ENV_QUESTIONNAIRE_PATH = "ANAMNESIS_QUESTIONNAIRE_PATH"
DEFAULT_QUESTIONNAIRE_PATH = os.path.join(ASSETS_DIR, "questionnaire.json")

ENV_SAMPLE_TRANSCRIPT_PATH = "ANAMNESIS_SAMPLE_TRANSCRIPT_PATH"
DEFAULT_SAMPLE_TRANSCRIPT_PATH = os.path.join(ASSETS_DIR, "sample_transcript.txt")

ENV_API_KEY = "OPENAI_API_KEY"
ENV_API_KEY_FILE = "ANAMNESIS_API_KEY_FILE"
DEFAULT_API_KEY_FILE = os.path.join(ASSETS_DIR, "openai_api_key.txt")


def _path_from_env(env_name: str, default: str) -> str:
    return (os.getenv(env_name) or "").strip() or default


def load_questionnaire() -> Tuple[str, Any]:
    """
    Read the questionnaire definition from disk.
    Returns (serialized text, decoded tree); the text is embedded verbatim in prompts.
    """
    path = _path_from_env(ENV_QUESTIONNAIRE_PATH, DEFAULT_QUESTIONNAIRE_PATH)
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise QuestionnaireError(f"Questionnaire not readable at {path}: {e}") from e
    try:
        tree = json.loads(text)
    except json.JSONDecodeError as e:
        raise QuestionnaireError(f"Questionnaire at {path} is not valid JSON: {e}") from e
    return text, tree


def load_sample_transcript() -> str:
    path = _path_from_env(ENV_SAMPLE_TRANSCRIPT_PATH, DEFAULT_SAMPLE_TRANSCRIPT_PATH)
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except OSError:
        logger.info("Sample transcript not found at %s; starting empty", path)
        return ""


def load_api_key() -> str:
    key = (os.getenv(ENV_API_KEY) or "").strip()
    if key:
        return key
    path = _path_from_env(ENV_API_KEY_FILE, DEFAULT_API_KEY_FILE)
    try:
        with open(path, "r", encoding="utf-8") as f:
            key = f.read().strip()
    except OSError:
        key = ""
    if not key:
        raise ConfigurationError(f"{ENV_API_KEY} not set and no key file at {path}.")
    return key
