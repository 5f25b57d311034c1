import os
from dotenv import load_dotenv

# Carrega o .env da raiz do projeto
load_dotenv()


def _env_flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./streambot.db")
ENV = os.getenv("ENV", os.getenv("RAILWAY_ENVIRONMENT", "dev"))
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_PROD = ENV_NORMALIZED in {"prod", "production"}

BOT_OWNER_UID = os.getenv("BOT_OWNER_UID", "").strip()

# Gemini
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "").strip()
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash").strip()
GEMINI_TIMEOUT_SECONDS = float(os.getenv("GEMINI_TIMEOUT_SECONDS", "25"))

# WhatsApp Cloud API
META_WA_ACCESS_TOKEN = os.getenv("META_WA_ACCESS_TOKEN", "")
META_WA_PHONE_NUMBER_ID = os.getenv("META_WA_PHONE_NUMBER_ID", "")
META_WA_VERIFY_TOKEN = os.getenv("META_WA_VERIFY_TOKEN", "")
META_API_VERSION = os.getenv("META_API_VERSION", "v19.0")

_provider_default = "cloud" if META_WA_ACCESS_TOKEN and META_WA_PHONE_NUMBER_ID else "mock"
WHATSAPP_PROVIDER = os.getenv("WHATSAPP_PROVIDER", _provider_default).strip().lower()

# Caches e temporizadores (segundos)
CONFIG_CACHE_SECONDS = float(os.getenv("CONFIG_CACHE_SECONDS", "60"))
INVENTORY_CACHE_SECONDS = float(os.getenv("INVENTORY_CACHE_SECONDS", "120"))
CONVERSATION_SWEEP_SECONDS = float(os.getenv("CONVERSATION_SWEEP_SECONDS", "1800"))
CONVERSATION_MAX_AGE_SECONDS = float(os.getenv("CONVERSATION_MAX_AGE_SECONDS", "86400"))
SCHEDULER_TICK_SECONDS = float(os.getenv("SCHEDULER_TICK_SECONDS", "10"))

# Pausa "humana" antes de responder
REPLY_DELAY_MIN_SECONDS = float(os.getenv("REPLY_DELAY_MIN_SECONDS", "0.8"))
REPLY_DELAY_MAX_SECONDS = float(os.getenv("REPLY_DELAY_MAX_SECONDS", "2.3"))

SKIP_STARTUP_DB = _env_flag("SKIP_STARTUP_DB")

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip()]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = ["*"]
