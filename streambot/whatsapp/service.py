from __future__ import annotations

import logging

from streambot.core.config import IS_DEV, META_WA_ACCESS_TOKEN, META_WA_PHONE_NUMBER_ID, WHATSAPP_PROVIDER
from streambot.whatsapp.base import MessagingTransport
from streambot.whatsapp.cloud_provider import CloudWhatsAppTransport
from streambot.whatsapp.mock_provider import MockTransport

logger = logging.getLogger(__name__)


def build_transport(provider: str = WHATSAPP_PROVIDER) -> MessagingTransport:
    provider = (provider or "mock").strip().lower()
    if provider == "cloud":
        if META_WA_ACCESS_TOKEN and META_WA_PHONE_NUMBER_ID:
            return CloudWhatsAppTransport()
        if IS_DEV:
            logger.warning("WhatsApp Cloud sem credenciais, usando mock")
            return MockTransport()
        logger.error("WhatsApp Cloud sem credenciais: META_WA_ACCESS_TOKEN / META_WA_PHONE_NUMBER_ID")
        return CloudWhatsAppTransport()
    return MockTransport()
