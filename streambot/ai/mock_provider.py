from __future__ import annotations

import unicodedata
from typing import Optional, Sequence

from streambot.ai.base import GenerationOptions
from streambot.ai.schema import ChatTurn


def normalize(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.lower().split())


class MockProvider:
    """Gerador local para desenvolvimento sem GEMINI_API_KEY."""

    name = "mock"

    async def generate(
        self,
        system_prompt: str,
        turns: Sequence[ChatTurn],
        max_tokens: int,
        options: Optional[GenerationOptions] = None,
    ) -> str:
        last_user = next((turn.text for turn in reversed(turns) if turn.role == "user"), "")
        normalized_text = normalize(last_user)

        if any(token in normalized_text for token in ["precio", "cuesta", "costo"]):
            return "Un agente te confirma el precio en un momento 🙌"

        if any(token in normalized_text for token in ["netflix", "disney", "spotify", "max", "prime"]):
            return "¡Buena elección! ¿Me compartes tu nombre completo para apartarlo?"

        if any(token in normalized_text for token in ["hola", "buenas", "hey"]) and len(turns) <= 1:
            return "¡Hola! 👋 ¿Qué plataforma de streaming te interesa?"

        return "Gracias por tu mensaje, un agente te atenderá pronto."
