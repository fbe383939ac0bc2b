"""Gemini backend for the generation pipeline."""

from __future__ import annotations

import base64
import logging
import os
from typing import Any, Dict, List, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from .errors import BackendError, FailureKind, NonRetryableBackendError, TransientBackendError
from .schemas import BlobPart, GenerationRequest, TextPart
from .utils import configure_logging

configure_logging()
logger = logging.getLogger(__name__)

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
CHAT_MODEL_RAW = os.getenv("CHAT_MODEL", "gemini-2.0-flash")
if CHAT_MODEL_RAW.startswith(("models/", "tunedModels/")):
    CHAT_MODEL = CHAT_MODEL_RAW
else:
    CHAT_MODEL = f"models/{CHAT_MODEL_RAW}"

if GEMINI_API_KEY:
    genai.configure(api_key=GEMINI_API_KEY)
else:
    logger.warning("GEMINI_API_KEY not set; LLM calls will fail.")

_RATE_LIMITED = (google_exceptions.ResourceExhausted, google_exceptions.TooManyRequests)
_UNAVAILABLE = (google_exceptions.ServiceUnavailable,)
_AUTH = (google_exceptions.Unauthenticated, google_exceptions.PermissionDenied)
_MALFORMED = (google_exceptions.InvalidArgument, google_exceptions.BadRequest)
_POLICY = (
    genai.types.BlockedPromptException,
    genai.types.StopCandidateException,
)


def to_gemini_part(part: TextPart | BlobPart) -> Dict[str, Any]:
    """Translate a content part into the dict shape the Gemini SDK accepts."""
    if isinstance(part, BlobPart):
        return {
            "inline_data": {
                "mime_type": part.media_type,
                "data": base64.b64decode(part.data),
            }
        }
    return {"text": part.text}


def to_gemini_contents(request: GenerationRequest) -> List[Dict[str, Any]]:
    return [{"role": "user", "parts": [to_gemini_part(part) for part in request.parts]}]


def classify_exception(exc: BaseException) -> Optional[BackendError]:
    """Map an SDK exception onto the pipeline's backend error taxonomy."""
    message = str(exc)
    if isinstance(exc, _RATE_LIMITED):
        return TransientBackendError(FailureKind.RATE_LIMITED, message)
    if isinstance(exc, _UNAVAILABLE):
        return TransientBackendError(FailureKind.UNAVAILABLE, message)
    if isinstance(exc, _AUTH):
        return NonRetryableBackendError(FailureKind.AUTH, message)
    if isinstance(exc, _MALFORMED):
        return NonRetryableBackendError(FailureKind.MALFORMED, message)
    if isinstance(exc, _POLICY):
        return NonRetryableBackendError(FailureKind.POLICY, message)
    return None


def extract_text(response: Any) -> str:
    """Join the text parts of the first candidate, rejecting blocked or empty replies."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        feedback = getattr(response, "prompt_feedback", None)
        block_reason = getattr(feedback, "block_reason", None)
        if block_reason:
            raise NonRetryableBackendError(
                FailureKind.POLICY, f"Prompt blocked by Gemini: {block_reason}"
            )
        raise NonRetryableBackendError(FailureKind.MALFORMED, "No candidates returned from Gemini.")
    content = getattr(candidates[0], "content", None)
    parts = getattr(content, "parts", None) or []
    text = "".join(getattr(part, "text", "") for part in parts)
    if not text.strip():
        raise NonRetryableBackendError(FailureKind.MALFORMED, "Empty Gemini response.")
    return text


class GeminiBackend:
    """Async generation backend built on `google.generativeai`."""

    def __init__(self, api_key: Optional[str] = None) -> None:
        self.api_key = api_key or GEMINI_API_KEY
        if api_key:
            genai.configure(api_key=api_key)

    async def generate(self, request: GenerationRequest) -> str:
        if not self.api_key:
            raise NonRetryableBackendError(FailureKind.AUTH, "GEMINI_API_KEY is missing.")
        model = genai.GenerativeModel(
            request.model,
            system_instruction=request.system_instruction,
        )
        config = genai.types.GenerationConfig(
            temperature=request.generation.temperature,
            top_p=request.generation.top_p,
        )
        try:
            response = await model.generate_content_async(
                to_gemini_contents(request),
                generation_config=config,
            )
        except Exception as exc:  # noqa: BLE001
            mapped = classify_exception(exc)
            if mapped is None:
                logger.error("Gemini API error (model %s): %s", request.model, exc)
                raise
            logger.warning(
                "Gemini API %s error (model %s): %s",
                mapped.kind.value,
                request.model,
                exc,
            )
            raise mapped from exc
        text = extract_text(response)
        logger.info("Gemini response received (model %s, %d chars)", request.model, len(text))
        return text
