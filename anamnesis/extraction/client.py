from __future__ import annotations

import hashlib
import logging
import os
from typing import Any, Optional, Tuple

from openai import APIConnectionError, APIError, APIStatusError, OpenAI

from ..errors import ExtractionTransportError
from .prompts import EXTRACTION_SYSTEM

logger = logging.getLogger("anamnesis.extraction")

ANAMNESIS_MODEL = os.getenv("ANAMNESIS_MODEL", "gpt-4-1106-preview")
ANAMNESIS_MAX_TOKENS = int(os.getenv("ANAMNESIS_MAX_TOKENS", "4096"))
ANAMNESIS_TEMPERATURE = float(os.getenv("ANAMNESIS_TEMPERATURE", "0.2"))
ANAMNESIS_HTTP_TIMEOUT = float(os.getenv("ANAMNESIS_HTTP_TIMEOUT", "60"))
ANAMNESIS_DEBUG_LOG_PROMPTS = os.getenv("ANAMNESIS_DEBUG_LOG_PROMPTS", "0").strip() == "1"


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _usage_tokens(resp: Any) -> Tuple[Optional[int], Optional[int]]:
    usage = getattr(resp, "usage", None)
    if not usage:
        return None, None
    return getattr(usage, "prompt_tokens", None), getattr(usage, "completion_tokens", None)


def _extract_content(resp: Any) -> str:
    choices = getattr(resp, "choices", None) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    return getattr(message, "content", None) or ""


def _log_event(
    stage: str,
    model: str,
    prompt_hash: str,
    prompt_chars: int,
    ok: bool,
    input_tokens=None,
    output_tokens=None,
    status_code=None,
):
    logger.info(
        "extraction.%s model=%s prompt_hash=%s prompt_chars=%s ok=%s status=%s input_tokens=%s output_tokens=%s",
        stage,
        model,
        prompt_hash[:12],
        prompt_chars,
        ok,
        status_code,
        input_tokens,
        output_tokens,
    )


def request_extraction(prompt: str, credential: str, model: Optional[str] = None) -> str:
    """
    Send one extraction prompt to the chat completions backend and return the raw reply text.

    Exactly one attempt is made (SDK retries are disabled). Any non-success outcome
    becomes ExtractionTransportError; interpreting the reply is the parser's job.
    """
    model = model or ANAMNESIS_MODEL
    prompt_hash = _sha256(prompt)

    if ANAMNESIS_DEBUG_LOG_PROMPTS:
        logger.warning("ANAMNESIS_DEBUG_LOG_PROMPTS=1; logging prompts (PHI risk).")
        logger.info("Extraction prompt: %s", prompt)

    client = OpenAI(api_key=credential, timeout=ANAMNESIS_HTTP_TIMEOUT, max_retries=0)
    try:
        resp = client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": EXTRACTION_SYSTEM},
                {"role": "user", "content": prompt},
            ],
            max_tokens=ANAMNESIS_MAX_TOKENS,
            temperature=ANAMNESIS_TEMPERATURE,
        )
    except APIStatusError as e:
        body = e.response.text if e.response is not None else str(e.body or "")
        _log_event("call", model, prompt_hash, len(prompt), False, status_code=e.status_code)
        raise ExtractionTransportError(
            f"Extraction backend error: {e.status_code} {body}",
            status_code=e.status_code,
            body=body,
        ) from e
    except APIConnectionError as e:
        _log_event("call", model, prompt_hash, len(prompt), False)
        raise ExtractionTransportError(f"Extraction backend unreachable: {e}", body=str(e)) from e
    except APIError as e:
        # e.g. a 2xx body the SDK could not validate
        _log_event("call", model, prompt_hash, len(prompt), False)
        raise ExtractionTransportError(f"Extraction backend error: {e}", body=str(e)) from e

    inp, out = _usage_tokens(resp)
    _log_event("call", model, prompt_hash, len(prompt), True, inp, out, status_code=200)
    return _extract_content(resp)
