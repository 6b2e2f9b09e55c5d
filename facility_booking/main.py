import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError

from facility_booking.config import settings
from facility_booking.database import SessionLocal, check_db_connection, init_database
from facility_booking.services.system_setting_service import system_setting_service
from facility_booking.utils.exceptions import AppException
from facility_booking.middleware.error_handler import (
    app_exception_handler,
    validation_exception_handler,
    integrity_error_handler,
    generic_exception_handler,
)

from facility_booking.api.v1 import auth
from facility_booking.api.v1 import resources
from facility_booking.api.v1 import reservations
from facility_booking.api.v1 import check_in
from facility_booking.api.v1 import system_settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Create SQLite tables, verify the database and seed the settings row."""
    init_database()
    ok = check_db_connection()
    logger.info("DB connected" if ok else "DB connection FAILED")
    if ok:
        db = SessionLocal()
        try:
            system_setting_service.seed_defaults(db)
        finally:
            db.close()
    yield


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=APP_VERSION,
        description="University facility booking API: conflict detection and auto-approval",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ─── CORS ─────────────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ─── Exception Handlers ───────────────────────────────────────────────────
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # ─── Routers ──────────────────────────────────────────────────────────────
    PREFIX = "/api/v1"
    app.include_router(auth.router,            prefix=PREFIX, tags=["Auth"])
    app.include_router(resources.router,       prefix=PREFIX, tags=["Resources"])
    app.include_router(reservations.router,    prefix=PREFIX, tags=["Reservations"])
    app.include_router(check_in.router,        prefix=PREFIX, tags=["Check-in"])
    app.include_router(system_settings.router, prefix=PREFIX, tags=["System Settings"])

    # ─── Health ───────────────────────────────────────────────────────────────
    @app.get("/health", tags=["Health"])
    def health():
        return {"status": "ok", "app": settings.APP_NAME, "version": APP_VERSION}

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("facility_booking.main:app", host=settings.APP_HOST, port=settings.APP_PORT,
                reload=settings.is_development)
