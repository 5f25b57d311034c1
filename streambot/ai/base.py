from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from streambot.ai.schema import ChatTurn


class ModelError(RuntimeError):
    """Falha na chamada ao modelo (HTTP != 2xx, timeout, rede)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class GenerationOptions:
    temperature: float = 0.8
    top_p: float = 0.92
    top_k: Optional[int] = 40
    safety_threshold: str = "BLOCK_ONLY_HIGH"


# parâmetros das respostas de venda no chat
CHAT_OPTIONS = GenerationOptions()


class TextGenerator(Protocol):
    name: str

    async def generate(
        self,
        system_prompt: str,
        turns: Sequence[ChatTurn],
        max_tokens: int,
        options: Optional[GenerationOptions] = None,
    ) -> str:
        ...
