from __future__ import annotations

import hashlib
import json
import logging
from typing import Awaitable, Callable, Iterable, Optional

from streambot.schemas.bot import InventoryEntry, TenantConfig

logger = logging.getLogger(__name__)

DEFAULT_BOT_NAME = "StreamBot"
ORDER_TAG_MARKER = "[PEDIDO_CONFIRMADO]"
ORDER_TAG_EXAMPLE = (
    ORDER_TAG_MARKER
    + '{"plataforma":"NOMBRE_PLATAFORMA","nombre":"NOMBRE_CLIENTE","telefono":"NUMERO","cantidad":1}'
)

InventorySupplier = Callable[[], Awaitable[list[InventoryEntry]]]

_FORMAT_RULES = [
    "REGLAS DE FORMATO (obligatorias):",
    "- Escribe SIEMPRE en español mexicano casual.",
    "- Formato WhatsApp: texto plano, sin Markdown, sin asteriscos para negritas.",
    "- Usa emojis con moderación (máximo 2-3 por mensaje).",
    "- Sé breve y directo. Máximo 3-4 líneas por respuesta.",
    '- NUNCA uses "¡Hola!" ni te presentes si ya está avanzada la conversación.',
]

_MEMORY_RULES = [
    "REGLAS DE CONVERSACIÓN (obligatorias):",
    "- RECUERDA todo lo que el cliente ya dijo. NO repitas preguntas ya respondidas.",
    "- Si el cliente ya dijo su nombre, úsalo. No vuelvas a pedirlo.",
    "- Si el cliente ya eligió una plataforma, NO vuelvas a listar todas.",
    "- Saluda SOLO en tu PRIMER mensaje de la conversación (cuando el historial está vacío).",
    "- En mensajes siguientes, ve directo al punto sin re-presentarte.",
    "- Sigue el flujo natural: saludo → interés → plataforma → precio → datos → cierre.",
]

_SALES_FLOW = [
    "PROCESO DE VENTA:",
    "1. Si el cliente saluda/pregunta → Presenta brevemente qué plataformas hay disponibles.",
    '2. Si pregunta precios → Da precios SOLO si están en "Información del negocio". '
    "Si no los tienes, di que un agente le confirma.",
    "3. Si elige una plataforma → Confirma precio y pregunta si quiere proceder.",
    "4. Si quiere comprar → Pide nombre completo y número de WhatsApp (si no lo tienes).",
    "5. Confirma los datos y dile que un agente le contactará para el pago y enviar accesos.",
]

_ORDER_TAG_RULES = [
    "REGISTRO DE PEDIDOS (MUY IMPORTANTE):",
    "Cuando el cliente CONFIRMA que quiere comprar y ya tienes: nombre, teléfono "
    "(o lo puedes inferir del chat) y plataforma elegida,",
    "debes agregar AL FINAL de tu respuesta (después de tu mensaje normal) esta etiqueta EXACTA:",
    ORDER_TAG_EXAMPLE,
    "- Reemplaza los valores con los datos reales del cliente.",
    "- Si el cliente no dijo su teléfono, usa el número del chat (que ya conoces).",
    "- La etiqueta NO será visible para el cliente, el sistema la procesa internamente. No la expliques.",
    "- Solo incluye la etiqueta UNA vez, cuando se confirma la compra.",
    "- NO incluyas la etiqueta si el cliente solo pregunta o no ha confirmado.",
]

_RESTRICTIONS = [
    "RESTRICCIONES (nunca romper):",
    "- NUNCA compartas contraseñas, correos de acceso, PINs ni credenciales.",
    "- NUNCA ofrezcas plataformas marcadas como AGOTADO.",
    "- No inventes precios ni información que no tengas.",
    "- No reveles que eres IA a menos que pregunten directamente.",
]


def config_hash(config: TenantConfig) -> str:
    """Hash estável dos campos de config que entram no prompt."""
    payload = json.dumps(
        {
            "name": config.business_name,
            "personality": config.personality,
            "schedule": config.schedule,
            "context": config.context_text,
            "fallback": config.fallback_message,
        },
        sort_keys=True,
        ensure_ascii=False,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def render_inventory(entries: Iterable[InventoryEntry]) -> list[str]:
    entries = list(entries)
    if not entries:
        return []
    lines = ["INVENTARIO ACTUAL (datos reales, actualizado automáticamente):"]
    for entry in entries:
        if entry.available_seats > 0:
            lines.append(f"  ✅ {entry.platform}: {entry.available_seats} perfil(es) disponible(s)")
    for entry in entries:
        if entry.available_seats <= 0:
            lines.append(f"  ❌ {entry.platform}: AGOTADO")
    lines.append("")
    return lines


def render_system_prompt(config: TenantConfig, inventory: Iterable[InventoryEntry]) -> str:
    lines: list[str] = []

    bot_name = config.business_name or DEFAULT_BOT_NAME
    lines.append(f"Eres {bot_name}, un asistente virtual de ventas de cuentas de streaming por WhatsApp.")
    lines.append("")

    lines.extend(_FORMAT_RULES)
    lines.append("")
    lines.extend(_MEMORY_RULES)
    lines.append("")

    if config.personality:
        lines.append(f"Tu personalidad: {config.personality}")
        lines.append("")

    if config.schedule:
        lines.append(f"Horarios de atención: {config.schedule}")
    if config.context_text:
        lines.append("")
        lines.append("INFORMACIÓN DEL NEGOCIO:")
        lines.append(config.context_text)
        lines.append("")

    lines.extend(render_inventory(inventory))

    lines.extend(_SALES_FLOW)
    lines.append("")
    lines.extend(_ORDER_TAG_RULES)
    lines.append("")
    lines.extend(_RESTRICTIONS)
    if config.fallback_message:
        lines.append(f'- Si no puedes ayudar, responde: "{config.fallback_message}"')

    return "\n".join(lines)


class PromptBuilder:
    """Gera o system prompt e só o reconstrói quando o hash da config muda.

    O inventário é lido no momento da reconstrução; entre reconstruções o prompt
    em cache é devolvido sem consultar o inventário.
    """

    def __init__(self) -> None:
        self._cached_prompt: Optional[str] = None
        self._cached_hash: Optional[str] = None
        self.builds = 0

    async def build_system_prompt(
        self,
        config: TenantConfig,
        inventory_supplier: Optional[InventorySupplier] = None,
    ) -> str:
        current_hash = config_hash(config)
        if self._cached_prompt is not None and current_hash == self._cached_hash:
            return self._cached_prompt

        inventory: list[InventoryEntry] = []
        if inventory_supplier is not None:
            try:
                inventory = await inventory_supplier()
            except Exception as exc:
                logger.warning("Inventory lookup failed while building prompt: %s", exc)

        self._cached_prompt = render_system_prompt(config, inventory)
        self._cached_hash = current_hash
        self.builds += 1
        return self._cached_prompt

    def invalidate(self) -> None:
        self._cached_prompt = None
        self._cached_hash = None
