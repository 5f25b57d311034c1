from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from streambot.models.bot_config import BotConfigRecord
from streambot.models.client import Client
from streambot.models.streaming_account import StreamingAccount

logger = logging.getLogger(__name__)


class StoreUnavailableError(RuntimeError):
    """O store de documentos não respondeu (credenciais, rede, schema)."""


@dataclass
class AccountRecord:
    platform: str
    total_profiles: int


@dataclass
class ClientRecord:
    platform: str
    end_date: datetime | None


class TenantStore(Protocol):
    async def fetch_config(self, tenant_id: str) -> dict[str, Any] | None:
        ...

    async def save_bot_settings(self, tenant_id: str, settings: dict[str, Any]) -> None:
        ...

    async def fetch_accounts_and_clients(
        self, tenant_id: str
    ) -> tuple[list[AccountRecord], list[ClientRecord]]:
        ...


class SqlTenantStore:
    """Implementação do contrato de store sobre SQLAlchemy.

    As consultas são síncronas e rodam em thread (``asyncio.to_thread``) para não
    bloquear o loop de mensagens.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def _run(self, fn: Callable[[Session], Any]) -> Any:
        db = self._session_factory()
        try:
            return fn(db)
        except SQLAlchemyError as exc:
            db.rollback()
            raise StoreUnavailableError(str(exc)) from exc
        finally:
            db.close()

    async def fetch_config(self, tenant_id: str) -> dict[str, Any] | None:
        def _query(db: Session) -> dict[str, Any] | None:
            record = db.query(BotConfigRecord).filter(BotConfigRecord.tenant_id == tenant_id).first()
            if not record:
                return None
            return dict(record.data or {})

        return await asyncio.to_thread(self._run, _query)

    async def save_bot_settings(self, tenant_id: str, settings: dict[str, Any]) -> None:
        def _merge(db: Session) -> None:
            record = db.query(BotConfigRecord).filter(BotConfigRecord.tenant_id == tenant_id).first()
            if not record:
                record = BotConfigRecord(tenant_id=tenant_id, data={})
                db.add(record)
            data = dict(record.data or {})
            data["botSettings"] = dict(settings)
            # JSON column: reatribuir para o SQLAlchemy detectar a mudança
            record.data = data
            db.commit()

        await asyncio.to_thread(self._run, _merge)

    async def fetch_accounts_and_clients(
        self, tenant_id: str
    ) -> tuple[list[AccountRecord], list[ClientRecord]]:
        def _query(db: Session) -> tuple[list[AccountRecord], list[ClientRecord]]:
            accounts = (
                db.query(StreamingAccount)
                .filter(StreamingAccount.tenant_id == tenant_id)
                .order_by(StreamingAccount.id.asc())
                .all()
            )
            clients = db.query(Client).filter(Client.tenant_id == tenant_id).all()
            return (
                [AccountRecord(platform=acc.platform, total_profiles=acc.total_profiles or 0) for acc in accounts],
                [ClientRecord(platform=cl.platform or "", end_date=cl.end_date) for cl in clients],
            )

        return await asyncio.to_thread(self._run, _query)


class UnavailableTenantStore:
    """Store usado quando o banco não está acessível: só vale o contexto sincronizado pelo painel."""

    async def fetch_config(self, tenant_id: str) -> dict[str, Any] | None:
        raise StoreUnavailableError("store disabled")

    async def save_bot_settings(self, tenant_id: str, settings: dict[str, Any]) -> None:
        raise StoreUnavailableError("store disabled")

    async def fetch_accounts_and_clients(
        self, tenant_id: str
    ) -> tuple[list[AccountRecord], list[ClientRecord]]:
        raise StoreUnavailableError("store disabled")
