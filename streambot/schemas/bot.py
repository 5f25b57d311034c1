from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BotSettings(BaseModel):
    """Filtros de resposta (grupos, contatos salvos, não salvos)."""

    model_config = ConfigDict(populate_by_name=True)

    respond_groups: bool = Field(False, alias="respondGroups")
    respond_saved: bool = Field(True, alias="respondSaved")
    respond_unsaved: bool = Field(True, alias="respondUnsaved")


class BotSettingsUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    respond_groups: Optional[bool] = Field(None, alias="respondGroups")
    respond_saved: Optional[bool] = Field(None, alias="respondSaved")
    respond_unsaved: Optional[bool] = Field(None, alias="respondUnsaved")


class TenantConfig(BaseModel):
    """Configuração do bot de um tenant (documento chatbot_config)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    enabled: bool = True
    business_name: Optional[str] = Field(None, alias="businessName")
    schedule: Optional[str] = None
    personality: Optional[str] = None
    context_text: Optional[str] = Field(None, alias="context")
    fallback_message: Optional[str] = Field(None, alias="fallbackMsg")
    max_tokens: Optional[int] = Field(None, alias="maxTokens")
    bot_settings: Optional[BotSettingsUpdate] = Field(None, alias="botSettings")


class InventoryEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    platform: str = Field(..., alias="plataforma")
    total_seats: int = Field(0, alias="total")
    occupied_seats: int = Field(0, alias="ocupados")

    @property
    def available_seats(self) -> int:
        return max(0, self.total_seats - self.occupied_seats)

    def to_public(self) -> dict:
        return {
            "plataforma": self.platform,
            "disponibles": self.available_seats,
            "total": self.total_seats,
            "ocupados": self.occupied_seats,
        }


class SyncInventoryEntry(BaseModel):
    """Entrada enviada pelo painel; pode trazer só ``disponibles``."""

    model_config = ConfigDict(populate_by_name=True)

    platform: str = Field(..., alias="plataforma")
    available: Optional[int] = Field(None, alias="disponibles")
    total: Optional[int] = None
    occupied: Optional[int] = Field(None, alias="ocupados")

    def to_entry(self) -> InventoryEntry:
        if self.total is not None:
            return InventoryEntry(platform=self.platform, total_seats=self.total, occupied_seats=self.occupied or 0)
        available = max(0, self.available or 0)
        return InventoryEntry(platform=self.platform, total_seats=available, occupied_seats=0)


class SyncContextRequest(BaseModel):
    config: Optional[TenantConfig] = None
    accounts: Optional[list[SyncInventoryEntry]] = None


class ManualReplyRequest(BaseModel):
    chat_id: str = Field(..., min_length=1, alias="jid")
    message: str = Field(..., min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class OrderStatusUpdate(BaseModel):
    status: Optional[str] = Field(None, alias="estado")

    model_config = ConfigDict(populate_by_name=True)


class ScheduledMessageCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    chat_id: str = Field(..., min_length=1, alias="jid")
    message: str = Field(..., min_length=1)
    label: Optional[str] = Field(None, alias="groupName")
    scheduled_time: Optional[str] = Field(None, alias="scheduledTime")
    recurring: bool = False
    interval_minutes: float = Field(0, alias="intervalMinutes", ge=0)


class ChatTestRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., min_length=1)
    config: Optional[TenantConfig] = None
    reset_history: bool = Field(False, alias="resetHistory")


class StatelessChatRequest(BaseModel):
    message: str = Field(..., min_length=1)
    config: Optional[TenantConfig] = None


class ImproveContextRequest(BaseModel):
    context: str = ""
