"""
FILE: main.py
Clinic Multi-Tenant API Entry Point
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager, suppress
from src.core.config import settings
from src.core.database import engine, init_db, close_db
from src.core.exceptions import register_exception_handlers
from src.auth.router import router as auth_router
from src.audit.router import router as audit_router
from src.resources.router import router as resources_router
from src.staff.router import router as staff_router
from src.otp.sweeper import sweep_forever
from src.resources.repository import verify_tenant_models
import asyncio
import logging
import os

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("=" * 60)
    logger.info("🏥 Clinic Multi-Tenant API")
    logger.info("=" * 60)
    try:
        verify_tenant_models()
        init_db()
        logger.info("✅ Database initialized")
    except Exception as e:
        logger.error(f"❌ Failed to initialize database: {e}")
        raise
    if settings.DEV_LOGIN_ENABLED and not settings.is_production:
        logger.warning("⚠️ Developer login is enabled")

    sweeper = asyncio.create_task(sweep_forever(engine, settings.OTP_SWEEP_INTERVAL_SECONDS))
    logger.info("✅ Application ready!")
    yield
    logger.info("🛑 Shutting down")
    sweeper.cancel()
    with suppress(asyncio.CancelledError):
        await sweeper
    try:
        close_db()
        logger.info("✅ DB connections closed")
    except Exception as e:
        logger.error(f"❌ Error closing connections: {e}")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Clinic Multi-Tenant API — tenant-scoped access control and OTP authentication",
    lifespan=lifespan,
    docs_url="/docs" if settings.ENVIRONMENT == "development" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT == "development" else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)

register_exception_handlers(app)


@app.get("/")
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "environment": settings.ENVIRONMENT,
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": settings.APP_VERSION}


app.include_router(auth_router, prefix=settings.API_V1_PREFIX)
app.include_router(resources_router, prefix=settings.API_V1_PREFIX)
app.include_router(staff_router, prefix=settings.API_V1_PREFIX)
app.include_router(audit_router, prefix=settings.API_V1_PREFIX)
logger.info("✅ Routers registered")


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", settings.PORT))
    uvicorn.run("main:app", host=settings.HOST, port=port, reload=settings.RELOAD)
