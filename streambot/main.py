import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from streambot.ai.gemini_provider import GeminiProvider
from streambot.ai.mock_provider import MockProvider
from streambot.core.config import (
    BOT_OWNER_UID,
    CONFIG_CACHE_SECONDS,
    CONVERSATION_MAX_AGE_SECONDS,
    CORS_ORIGINS,
    GEMINI_API_KEY,
    INVENTORY_CACHE_SECONDS,
    SKIP_STARTUP_DB,
)
from streambot.core.database import SessionLocal, engine
from streambot.core.logging_setup import configure_logging
from streambot.core.startup_checks import create_schema, find_missing_env, validate_database_environment
from streambot.middleware.observability import ObservabilityMiddleware
from streambot.routers.bot_admin import router as bot_admin_router
from streambot.routers.chat import router as chat_router
from streambot.routers.internal_metrics import router as internal_metrics_router
from streambot.routers.webhook import router as webhook_router
from streambot.services.background import start_background_tasks, stop_background_tasks
from streambot.services.bot_context import BotContext
from streambot.services.orchestrator import ResponseOrchestrator
from streambot.services.tenant_store import SqlTenantStore, UnavailableTenantStore
from streambot.whatsapp.service import build_transport

configure_logging()

logger = logging.getLogger(__name__)
STARTUP_PREFIX = "[STARTUP]"
DEFAULT_TENANT_ID = "default"


def _startup_tasks() -> bool:
    """Valida o ambiente e prepara o banco; devolve se o store está acessível."""
    validate_database_environment()
    if SKIP_STARTUP_DB:
        logger.warning("%s SKIP_STARTUP_DB set: store disabled, waiting for /sync-context", STARTUP_PREFIX)
        return False
    return create_schema(engine)


def _build_bot() -> tuple[BotContext, ResponseOrchestrator]:
    missing_env = find_missing_env()
    store_available = _startup_tasks()
    store = SqlTenantStore(SessionLocal) if store_available else UnavailableTenantStore()

    if GEMINI_API_KEY:
        generator = GeminiProvider()
    else:
        logger.warning("%s GEMINI_API_KEY missing: using mock text generator", STARTUP_PREFIX)
        generator = MockProvider()

    bot = BotContext(
        tenant_id=BOT_OWNER_UID or DEFAULT_TENANT_ID,
        store=store,
        generator=generator,
        transport=build_transport(),
        config_ttl_seconds=CONFIG_CACHE_SECONDS,
        inventory_ttl_seconds=INVENTORY_CACHE_SECONDS,
        conversation_max_age_seconds=CONVERSATION_MAX_AGE_SECONDS,
        store_available=store_available,
        missing_env=missing_env,
    )
    bot.activity.add(f"🚀 Bot iniciado (transport={getattr(bot.transport, 'name', 'unknown')})")
    return bot, ResponseOrchestrator(bot)


@asynccontextmanager
async def lifespan(app: FastAPI):
    bot, orchestrator = _build_bot()
    app.state.bot = bot
    app.state.orchestrator = orchestrator
    # carrega botSettings do store antes da primeira mensagem (filtros de grupo/contato)
    await bot.get_config()
    tasks = start_background_tasks(bot, orchestrator)
    try:
        yield
    finally:
        await stop_background_tasks(tasks)


app = FastAPI(
    title="StreamBot API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ObservabilityMiddleware)

# Routers
app.include_router(webhook_router)
app.include_router(bot_admin_router)
app.include_router(chat_router)
app.include_router(internal_metrics_router)


@app.get("/")
def root(request: Request):
    bot = getattr(request.app.state, "bot", None)
    return {
        "name": "streambot",
        "status": "ok",
        "missing_env": bot.missing_env if bot is not None else [],
    }
