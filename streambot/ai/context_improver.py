from __future__ import annotations

import asyncio
import logging

from streambot.ai.base import GenerationOptions, ModelError, TextGenerator
from streambot.ai.schema import ChatTurn
from streambot.core.config import GEMINI_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

IMPROVE_CONTEXT_MAX_TOKENS = 2048
IMPROVE_CONTEXT_OPTIONS = GenerationOptions(
    temperature=0.7,
    top_p=0.9,
    top_k=None,
    safety_threshold="BLOCK_MEDIUM_AND_ABOVE",
)

IMPROVE_CONTEXT_PROMPT = """Eres un experto en diseño de instrucciones para chatbots de ventas por WhatsApp.

Tu tarea: Recibir el contexto crudo que un cliente escribió para configurar su chatbot de ventas y MEJORARLO, estructurándolo y optimizándolo para que el bot atienda mucho mejor.

REGLAS ESTRICTAS:
- Responde SOLO con el contexto mejorado, listo para copiar y pegar. NO agregues explicaciones, introducciones ni comentarios.
- NO uses formato Markdown (ni #, ni **, ni ```). Usa solo texto plano con emojis como separadores de sección.
- Mantén TODA la información original del cliente (precios, productos, nombres). NO inventes datos.
- Si el cliente no mencionó algo, NO lo agregues con datos inventados. Solo agrega la SECCIÓN vacía como guía.
- Escribe en español.

ESTRUCTURA QUE DEBES APLICAR:

1. 🏪 IDENTIDAD Y PERSONALIDAD DEL NEGOCIO
   - Nombre del negocio (si lo mencionó)
   - Tono y personalidad: Definir si es profesional, amigable, entusiasta o directo
   - Restricciones de lenguaje: Uso moderado de emojis, gramática impecable, mensajes cortos (formato WhatsApp, máximo 3-4 líneas)

2. 📋 CATÁLOGO DE PRODUCTOS/SERVICIOS
   - Organizar los productos en una lista limpia y estandarizada
   - Formato: "- Producto: $Precio /periodo"
   - Si hay categorías, agruparlos

3. 📝 DATOS QUE EL BOT DEBE PEDIR AL CLIENTE
   - Lista clara de datos necesarios para procesar una venta
   - Ejemplo: Nombre, WhatsApp, plataforma deseada, método de pago

4. 💳 POLÍTICAS Y PROCESO
   - Métodos de pago aceptados (si los mencionó)
   - Proceso de entrega/activación
   - Horarios de atención
   - Garantías o condiciones

5. 🤖 COMPORTAMIENTO DEL BOT
   - Mensaje de bienvenida sugerido
   - Si el cliente pregunta por algo no listado: "Responde amablemente que consultarás disponibilidad con un agente humano"
   - Manejo de objeciones o preguntas frecuentes implícitas

6. 🎯 CIERRE DE VENTA
   - Instrucción: "Siempre intenta cerrar la conversación pidiendo el método de pago preferido o confirmando el pedido"
   - Guiar al cliente hacia la acción de compra de forma natural

7. ⚠️ RESTRICCIONES
   - No compartir contraseñas ni credenciales
   - No inventar información que no esté en el contexto
   - No revelar que es una IA (a menos que pregunten directamente)
   - Mensaje de fallback cuando no sepa responder

IMPORTANTE: Conserva los precios EXACTOS y productos del cliente. Solo reorganiza, mejora la redacción y agrega estructura."""


async def improve_business_context(
    generator: TextGenerator,
    context: str,
    timeout: float = GEMINI_TIMEOUT_SECONDS,
) -> str:
    """Reescreve o contexto livre do negócio em seções; devolve "" se o modelo não gerar nada."""
    turns = [ChatTurn(role="user", text=context)]
    try:
        improved = await asyncio.wait_for(
            generator.generate(
                IMPROVE_CONTEXT_PROMPT,
                turns,
                IMPROVE_CONTEXT_MAX_TOKENS,
                options=IMPROVE_CONTEXT_OPTIONS,
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError as exc:
        raise ModelError(f"model timeout after {timeout}s") from exc
    improved = (improved or "").strip()
    if not improved:
        logger.warning("Context improvement returned an empty text (%d chars in)", len(context))
    return improved
