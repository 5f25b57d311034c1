from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class ChatTurn(BaseModel):
    role: Literal["user", "model"]
    text: str


class OrderDirective(BaseModel):
    """JSON da etiqueta [PEDIDO_CONFIRMADO] emitida pelo modelo."""

    plataforma: Optional[str] = None
    nombre: Optional[str] = None
    telefono: Optional[str] = None
    cantidad: int = Field(1)

    @field_validator("plataforma", "nombre", "telefono", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("cantidad", mode="before")
    @classmethod
    def _as_quantity(cls, value: Any) -> int:
        try:
            quantity = int(value)
        except (TypeError, ValueError, OverflowError):
            return 1
        return max(quantity, 1)
