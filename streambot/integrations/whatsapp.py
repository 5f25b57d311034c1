import asyncio
import json
import logging
from typing import Any, Optional

import httpx

from streambot.core.config import META_API_VERSION, META_WA_ACCESS_TOKEN, META_WA_PHONE_NUMBER_ID

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.facebook.com"
RETRYABLE_STATUS = (429, 500, 502, 503, 504)
# "Something went wrong" genérico do Cloud API, costuma passar na segunda tentativa
RETRYABLE_ERROR_CODES = (131000,)


class WhatsAppSendError(RuntimeError):
    def __init__(self, status_code: int, body_text: str):
        self.status_code = status_code
        self.body_text = body_text
        self.error_code, detail = _parse_error(body_text)
        super().__init__(f"Erro WhatsApp {status_code}: {detail or body_text[:200]}")


def _parse_error(body_text: str) -> tuple[Optional[int], Optional[str]]:
    try:
        error = (json.loads(body_text or "{}") or {}).get("error") or {}
    except (ValueError, AttributeError):
        return None, None
    if not isinstance(error, dict):
        return None, None
    return error.get("code"), error.get("message")


def _should_retry(status_code: int, body_text: str) -> bool:
    if status_code in RETRYABLE_STATUS:
        return True
    error_code, _ = _parse_error(body_text)
    return error_code in RETRYABLE_ERROR_CODES


def _backoff_seconds(attempt: int) -> float:
    # 1s, 2s, 4s... (máx 8s)
    return min(1.0 * (2 ** max(0, attempt - 1)), 8.0)


def messages_url(phone_number_id: str) -> str:
    return f"{GRAPH_BASE_URL}/{META_API_VERSION}/{phone_number_id}/messages"


async def post_message(
    payload: dict[str, Any],
    phone_number_id: Optional[str] = None,
    access_token: Optional[str] = None,
    retries: int = 3,
    timeout: float = 20.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict[str, Any]:
    token = access_token or META_WA_ACCESS_TOKEN
    phone_id = phone_number_id or META_WA_PHONE_NUMBER_ID
    if not token or not phone_id:
        raise RuntimeError("Faltam META_WA_ACCESS_TOKEN ou META_WA_PHONE_NUMBER_ID no .env")

    headers = {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}

    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        for attempt in range(1, retries + 1):
            try:
                response = await client.post(messages_url(phone_id), headers=headers, json=payload)
            except (httpx.TimeoutException, httpx.NetworkError) as exc:
                if attempt >= retries:
                    raise
                logger.warning("WhatsApp request failed (attempt %d/%d): %s", attempt, retries, exc)
                await asyncio.sleep(_backoff_seconds(attempt))
                continue

            if response.is_success:
                try:
                    return response.json()
                except ValueError:
                    return {"ok": True, "raw": response.text}

            if attempt < retries and _should_retry(response.status_code, response.text):
                logger.warning(
                    "WhatsApp API %s (attempt %d/%d), retrying",
                    response.status_code,
                    attempt,
                    retries,
                )
                await asyncio.sleep(_backoff_seconds(attempt))
                continue

            raise WhatsAppSendError(response.status_code, response.text)

    raise RuntimeError("Falha desconhecida ao enviar WhatsApp")


async def send_text(to: str, text: str, **kwargs: Any) -> dict[str, Any]:
    payload = {
        "messaging_product": "whatsapp",
        "recipient_type": "individual",
        "to": to,
        "type": "text",
        "text": {"preview_url": False, "body": text},
    }
    return await post_message(payload, **kwargs)


async def mark_read(message_id: str, typing: bool = False, **kwargs: Any) -> dict[str, Any]:
    """Recibo de leitura; com ``typing`` o cliente vê "digitando..." até a próxima resposta."""
    payload: dict[str, Any] = {
        "messaging_product": "whatsapp",
        "status": "read",
        "message_id": message_id,
    }
    if typing:
        payload["typing_indicator"] = {"type": "text"}
    return await post_message(payload, **kwargs)
