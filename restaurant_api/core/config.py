import os
from dotenv import load_dotenv

# Load .env from the project root
load_dotenv()


def _env_flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./restaurant_pos.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local", "test"}
IS_PROD = ENV_NORMALIZED in {"prod", "production"}

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
    ]

# Auth (JWT)
DEFAULT_JWT_SECRET = "dev-secret-change-me"
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", DEFAULT_JWT_SECRET)
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
OWNER_TOKEN_EXPIRE_HOURS = int(os.getenv("OWNER_TOKEN_EXPIRE_HOURS", "24"))
CUSTOMER_TOKEN_EXPIRE_HOURS = int(os.getenv("CUSTOMER_TOKEN_EXPIRE_HOURS", "12"))

# Platform operator, created on startup when both values are present
SUPERADMIN_EMAIL = os.getenv("SUPERADMIN_EMAIL", "").strip().lower()
SUPERADMIN_PASSWORD = os.getenv("SUPERADMIN_PASSWORD", "")
SUPERADMIN_NAME = os.getenv("SUPERADMIN_NAME", "Super Admin")

# Business-day window for order listings and dashboard (minutes east of UTC)
LOCAL_UTC_OFFSET_MINUTES = int(os.getenv("LOCAL_UTC_OFFSET_MINUTES", "330"))

# Loyalty
POINTS_PER_CURRENCY_UNIT = int(os.getenv("POINTS_PER_CURRENCY_UNIT", "100"))

# Plans
TRIAL_PLAN_NAME = "Free Trial"
TRIAL_PLAN_DAYS = int(os.getenv("TRIAL_PLAN_DAYS", "5"))
LOGIN_TRIAL_PLAN_DAYS = int(os.getenv("LOGIN_TRIAL_PLAN_DAYS", "30"))

# Password reset
PASSWORD_RESET_OTP_TTL_MINUTES = int(os.getenv("PASSWORD_RESET_OTP_TTL_MINUTES", "10"))
PASSWORD_RESET_MAX_PER_HOUR = int(os.getenv("PASSWORD_RESET_MAX_PER_HOUR", "5"))
PASSWORD_RESET_WINDOW_SECONDS = int(os.getenv("PASSWORD_RESET_WINDOW_SECONDS", "3600"))

# SMTP
SMTP_HOST = os.getenv("SMTP_HOST", "").strip()
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "").strip()
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_FROM = os.getenv("SMTP_FROM", SMTP_USER)
SMTP_USE_TLS = _env_flag("SMTP_USE_TLS", "1")

# WhatsApp Cloud API
META_API_VERSION = os.getenv("META_API_VERSION", "v19.0")
META_GRAPH_BASE_URL = os.getenv("META_GRAPH_BASE_URL", "https://graph.facebook.com")

# Uploads
ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}
