# storefront/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.api.routes import admin as admin_routes
from storefront.api.routes import auth as auth_routes
from storefront.api.routes import cart as cart_routes
from storefront.api.routes import orders as order_routes
from storefront.api.routes import products as product_routes
from storefront.api.routes import realtime as realtime_routes
from storefront.api.routes import reviews as reviews_routes
from storefront.api.routes import support as support_routes
from storefront.api.routes import tracking as tracking_routes
from storefront.api.routes import users as user_routes
from storefront.config import Settings, get_settings
from storefront.core.errors import AppError, DependencyError
from storefront.core.logging import configure_logging
from storefront.database import FileBackedDB
from storefront.middleware.cors_config import configure_cors
from storefront.middleware.security_headers import add_security_headers
from storefront.notifications.email import build_email_sender
from storefront.notifications.notifier import OrderNotifier
from storefront.notifications.support import SupportMailer
from storefront.realtime.broadcaster import Broadcaster
from storefront.services.inventory import InventoryAdjuster
from storefront.services.orders import OrderService
from storefront.services.tracking import TrackingService

logger = logging.getLogger("storefront.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup checks before the app starts serving, and a log line on shutdown.
    """
    db: FileBackedDB = app.state.db
    users_path = db._file_path("users")
    if not users_path.exists():
        logger.warning(
            "Users file not found at %s; run scripts/init_db.py to create an admin account.", users_path
        )
    else:
        logger.info("Using data directory %s", db.data_dir)
    yield
    logger.info("Shutting down %s API", app.state.settings.STORE_NAME)


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Every error response is {"error": <message>, "details": <optional>}."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if isinstance(exc, DependencyError):
            logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.details)
            details = {"message": exc.message, "details": exc.details} if settings.is_development else None
            return JSONResponse(status_code=exc.status_code,
                                content={"error": "Internal server error", "details": jsonable_encoder(details)})
        return JSONResponse(status_code=exc.status_code,
                            content={"error": exc.message, "details": jsonable_encoder(exc.details)})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400,
                            content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail, "details": None},
                            headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        details = repr(exc) if settings.is_development else None
        return JSONResponse(status_code=500, content={"error": "Internal server error", "details": details})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application and its collaborators. Everything that handlers share
    (store, broadcaster, email sender, services) lives on app.state.
    """
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title=f"{settings.STORE_NAME} API", version="0.1.0", lifespan=lifespan)

    db = FileBackedDB(settings.DATA_DIR, settings.table_files)
    broadcaster = Broadcaster()
    email_sender = build_email_sender(settings)
    orders = OrderService(db, InventoryAdjuster(db), settings)

    app.state.settings = settings
    app.state.db = db
    app.state.broadcaster = broadcaster
    app.state.email_sender = email_sender
    app.state.notifier = OrderNotifier(email_sender, broadcaster, settings)
    app.state.orders = orders
    app.state.tracking = TrackingService(orders)
    app.state.support = SupportMailer(email_sender, settings)

    configure_cors(app, settings)
    add_security_headers(app)
    register_exception_handlers(app, settings)

    app.include_router(auth_routes.router)
    app.include_router(product_routes.router)
    app.include_router(reviews_routes.router)
    app.include_router(cart_routes.router)
    app.include_router(order_routes.router)
    app.include_router(admin_routes.router)
    app.include_router(tracking_routes.router)
    app.include_router(user_routes.router)
    app.include_router(support_routes.router)
    app.include_router(realtime_routes.router)

    @app.get("/health", tags=["root"])
    async def health():
        return {"status": "ok", "service": settings.STORE_NAME, "env": settings.ENV}

    logger.info("%s API configured (email backend: %s, status policy: %s)",
                settings.STORE_NAME, settings.EMAIL_BACKEND, settings.ORDER_STATUS_POLICY)
    return app


app = create_app()
