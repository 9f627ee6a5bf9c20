import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from restaurant_api.core.config import (
    CORS_ORIGINS,
    DATABASE_URL,
    SUPERADMIN_EMAIL,
    SUPERADMIN_NAME,
    SUPERADMIN_PASSWORD,
)
from restaurant_api.core.database import Base, SessionLocal, engine
from restaurant_api.core.errors import register_exception_handlers
from restaurant_api.core.logging_setup import configure_logging
from restaurant_api.core.startup_checks import ensure_migrations_applied, validate_runtime_environment
from restaurant_api.middleware.observability import ObservabilityMiddleware
import restaurant_api.models  # registers every table on Base.metadata before create_all

from restaurant_api.routers.admin import router as admin_router
from restaurant_api.routers.auth import router as auth_router
from restaurant_api.routers.bills import router as bills_router
from restaurant_api.routers.business import router as business_router
from restaurant_api.routers.business_users import router as business_users_router
from restaurant_api.routers.categories import router as categories_router
from restaurant_api.routers.coupons import router as coupons_router
from restaurant_api.routers.customers import router as customers_router
from restaurant_api.routers.dashboard import router as dashboard_router
from restaurant_api.routers.inventory import router as inventory_router
from restaurant_api.routers.orders import router as orders_router
from restaurant_api.routers.password_reset import router as password_reset_router
from restaurant_api.routers.plans import router as plans_router
from restaurant_api.routers.products import router as products_router
from restaurant_api.routers.tables import router as tables_router
from restaurant_api.routers.whatsapp import router as whatsapp_router
from restaurant_api.services.accounts import BOOTSTRAP_PREFIX, ensure_superadmin

configure_logging()

logger = logging.getLogger(__name__)
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(
    os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini"))
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield


app = FastAPI(
    title="Restaurant POS API",
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
register_exception_handlers(app)


def _bootstrap_superadmin() -> None:
    db = SessionLocal()
    try:
        ensure_superadmin(
            db,
            email=SUPERADMIN_EMAIL,
            password=SUPERADMIN_PASSWORD,
            name=SUPERADMIN_NAME,
        )
    except Exception:
        logger.exception("%s ERROR bootstrap failed", BOOTSTRAP_PREFIX)
        raise
    finally:
        db.close()


def _startup_tasks() -> None:
    try:
        validate_runtime_environment()
        if DATABASE_URL.startswith("sqlite"):
            Base.metadata.create_all(bind=engine)
        ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
        _bootstrap_superadmin()
    except Exception:
        logger.exception("[STARTUP] ERROR startup failed")
        raise


app.include_router(auth_router)
app.include_router(business_router)
app.include_router(business_users_router)
app.include_router(products_router)
app.include_router(categories_router)
app.include_router(inventory_router)
app.include_router(tables_router)
app.include_router(orders_router)
app.include_router(bills_router)
app.include_router(dashboard_router)
app.include_router(plans_router)
app.include_router(coupons_router)
app.include_router(customers_router)
app.include_router(password_reset_router)
app.include_router(whatsapp_router)
app.include_router(admin_router)


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}
