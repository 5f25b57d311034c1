from __future__ import annotations

import itertools
import json
import logging
import re
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Optional

from pydantic import ValidationError

from streambot.ai.prompt_builder import ORDER_TAG_MARKER
from streambot.ai.schema import OrderDirective

logger = logging.getLogger(__name__)

MAX_ORDERS = 500
STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
DEFAULT_PLATFORM = "Sin especificar"

_ORDER_TAG_RE = re.compile(re.escape(ORDER_TAG_MARKER) + r"(\{[^}]+\})")
# payload truncado (sem "}") é descartado até o fim da linha
_ORDER_TAG_CLEAN_RE = re.compile(re.escape(ORDER_TAG_MARKER) + r"(\{[^}]*\}|\{[^}\n]*)?")


class OrderNotFoundError(LookupError):
    pass


@dataclass
class Order:
    id: int
    platform: str
    customer_name: str
    phone_number: str
    quantity: int
    status: str
    source_chat_id: str
    created_at: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "plataforma": self.platform,
            "nombre": self.customer_name,
            "telefono": self.phone_number,
            "cantidad": self.quantity,
            "estado": self.status,
            "jid": self.source_chat_id,
            "timestamp": int(self.created_at * 1000),
            "fechaHora": datetime.fromtimestamp(self.created_at, tz=timezone.utc).isoformat(),
        }


@dataclass
class ExtractionResult:
    order: Optional[Order]
    cleaned_text: str


def strip_order_tags(text: str) -> str:
    """Remove toda etiqueta de pedido; texto sem etiqueta volta intacto."""
    if ORDER_TAG_MARKER not in text:
        return text
    return _ORDER_TAG_CLEAN_RE.sub("", text).strip()


class OrderLedger:
    """Lista de pedidos limitada a 500 (descarta os mais antigos, qualquer que seja o status)."""

    def __init__(self, capacity: int = MAX_ORDERS) -> None:
        self._orders: Deque[Order] = deque(maxlen=capacity)
        self._ids = itertools.count(1)

    def next_id(self) -> int:
        return next(self._ids)

    def add(self, order: Order) -> Order:
        self._orders.append(order)
        return order

    def list(self) -> list[Order]:
        return list(self._orders)

    def __len__(self) -> int:
        return len(self._orders)

    def get(self, order_id: int) -> Order:
        for order in self._orders:
            if order.id == order_id:
                return order
        raise OrderNotFoundError(order_id)

    def update_status(self, order_id: int, status: Optional[str]) -> Order:
        order = self.get(order_id)
        order.status = (status or "").strip() or STATUS_COMPLETED
        return order

    def remove(self, order_id: int) -> Order:
        order = self.get(order_id)
        self._orders.remove(order)
        return order

    def pending_count(self) -> int:
        return sum(1 for order in self._orders if order.status == STATUS_PENDING)


class OrderExtractor:
    """Detecta a etiqueta [PEDIDO_CONFIRMADO]{json} na resposta do modelo e registra o pedido."""

    def __init__(self, ledger: OrderLedger, clock: Callable[[], float] = time.time) -> None:
        self._ledger = ledger
        self._clock = clock

    def extract(
        self,
        reply_text: str,
        *,
        chat_id: str,
        display_name: str,
        phone: str,
    ) -> ExtractionResult:
        if ORDER_TAG_MARKER not in reply_text:
            return ExtractionResult(order=None, cleaned_text=reply_text)

        order = None
        match = _ORDER_TAG_RE.search(reply_text)
        if match is None:
            logger.warning("Order tag without JSON payload: %r", reply_text[-200:])
        else:
            try:
                directive = OrderDirective.model_validate(json.loads(match.group(1)))
            except (ValueError, OverflowError, ValidationError) as exc:
                logger.warning("Malformed order tag %r: %s", match.group(0), exc)
            else:
                order = Order(
                    id=self._ledger.next_id(),
                    platform=directive.plataforma or DEFAULT_PLATFORM,
                    customer_name=directive.nombre or display_name or phone,
                    phone_number=directive.telefono or phone,
                    quantity=directive.cantidad,
                    status=STATUS_PENDING,
                    source_chat_id=chat_id,
                    created_at=self._clock(),
                )
                self._ledger.add(order)

        return ExtractionResult(order=order, cleaned_text=strip_order_tags(reply_text))
