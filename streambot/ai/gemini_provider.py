from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

import httpx

from streambot.ai.base import CHAT_OPTIONS, GenerationOptions, ModelError
from streambot.ai.schema import ChatTurn
from streambot.core.config import GEMINI_API_KEY, GEMINI_MODEL, GEMINI_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)


def build_request_body(
    system_prompt: str,
    turns: Sequence[ChatTurn],
    max_tokens: int,
    options: Optional[GenerationOptions] = None,
) -> dict[str, Any]:
    options = options or CHAT_OPTIONS
    generation_config: dict[str, Any] = {
        "maxOutputTokens": max_tokens,
        "temperature": options.temperature,
        "topP": options.top_p,
    }
    if options.top_k is not None:
        generation_config["topK"] = options.top_k
    return {
        "system_instruction": {"parts": [{"text": system_prompt}]},
        "contents": [{"role": turn.role, "parts": [{"text": turn.text}]} for turn in turns],
        "generationConfig": generation_config,
        "safetySettings": [
            {"category": category, "threshold": options.safety_threshold} for category in SAFETY_CATEGORIES
        ],
    }


def extract_reply_text(data: dict[str, Any]) -> str:
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = ((candidates[0] or {}).get("content") or {}).get("parts") or []
    if not parts:
        return ""
    return str((parts[0] or {}).get("text") or "")


class GeminiProvider:
    name = "gemini"

    def __init__(
        self,
        api_key: str = GEMINI_API_KEY,
        model: str = GEMINI_MODEL,
        timeout: float = GEMINI_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._transport = transport

    @property
    def url(self) -> str:
        return f"{GEMINI_BASE_URL}/{self.model}:generateContent"

    async def generate(
        self,
        system_prompt: str,
        turns: Sequence[ChatTurn],
        max_tokens: int,
        options: Optional[GenerationOptions] = None,
    ) -> str:
        body = build_request_body(system_prompt, turns, max_tokens, options)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url=self.url, params={"key": self.api_key}, json=body)
        except httpx.TimeoutException as exc:
            raise ModelError(f"Gemini timeout after {self.timeout}s") from exc
        except httpx.HTTPError as exc:
            raise ModelError(f"Gemini request failed: {exc}") from exc

        if not response.is_success:
            body_text = response.text[:200]
            logger.error("Gemini API error status=%s body=%s", response.status_code, body_text)
            raise ModelError(f"Gemini error ({response.status_code}): {body_text}", status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as exc:
            raise ModelError("Gemini returned a non-JSON body") from exc
        return extract_reply_text(data)
