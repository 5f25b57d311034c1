from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable, Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class TimedCache(Generic[T]):
    """Valor com validade (ttl) e fallback silencioso para o último valor bom.

    ``get_or_refresh`` só chama o ``fetch`` quando o valor expirou. Se o fetch
    falhar, o erro é logado e o último valor bom (ou o default) é devolvido.
    Um fetch que devolve ``None`` mantém o valor atual sem renovar o relógio.
    """

    def __init__(
        self,
        ttl_seconds: float,
        *,
        default: T | None = None,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.name = name
        self._default = default
        self._clock = clock
        self._value: T | None = None
        self._fetched_at: float | None = None

    @property
    def value(self) -> T | None:
        return self._value if self._fetched_at is not None else self._default

    @property
    def fetched_at(self) -> float | None:
        return self._fetched_at

    def is_fresh(self, now: float | None = None) -> bool:
        if self._fetched_at is None:
            return False
        current = self._clock() if now is None else now
        return (current - self._fetched_at) < self.ttl_seconds

    def set(self, value: T) -> None:
        self._value = value
        self._fetched_at = self._clock()

    def invalidate(self) -> None:
        self._fetched_at = None
        self._value = None

    async def get_or_refresh(self, fetch: Callable[[], Awaitable[T | None]]) -> T | None:
        if self.is_fresh():
            return self._value
        try:
            fresh = await fetch()
        except Exception as exc:
            logger.warning("%s refresh failed, serving last good value: %s", self.name, exc)
            return self.value
        if fresh is None:
            return self.value
        self.set(fresh)
        return fresh
