import logging
import os
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.orm.exc import StaleDataError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from vidhanto.config import UPLOAD_DIR, S3_BUCKET, cors_origins, is_production
from vidhanto.logging_config import setup_logging
from vidhanto.services.payment_gateway import PaymentGatewayError
from vidhanto.services.storage import StorageError
from vidhanto.workflow import InvalidTransition

from vidhanto.auth.routes import router as auth_router
from vidhanto.users.routes import router as users_router
from vidhanto.lawyers.routes import router as lawyers_router
from vidhanto.appointments.routes import router as appointments_router
from vidhanto.documents.routes import router as documents_router
from vidhanto.esignature.routes import router as esignature_router
from vidhanto.estamp.routes import router as estamp_router
from vidhanto.payments.routes import router as payments_router
from vidhanto.ai.routes import router as ai_router
from vidhanto.chats.routes import router as chats_router
from vidhanto.chats.realtime import router as realtime_router
from vidhanto.blogs.routes import router as blogs_router
from vidhanto.admin.routes import router as admin_router

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["Cross-Origin-Opener-Policy"] = "same-origin-allow-popups"
        response.headers["Cross-Origin-Embedder-Policy"] = "unsafe-none"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if is_production():
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 1),
            },
        )
        return response


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(part) for part in error["loc"] if part != "body") or "body",
                "message": error["msg"],
            }
            for error in exc.errors()
        ]
        return JSONResponse(status_code=400, content={"detail": "Validation failed", "errors": errors})

    @app.exception_handler(InvalidTransition)
    async def invalid_transition_handler(request: Request, exc: InvalidTransition):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(StaleDataError)
    async def stale_data_handler(request: Request, exc: StaleDataError):
        logger.warning("Concurrent update rejected", extra={"path": request.url.path})
        return JSONResponse(
            status_code=409,
            content={"detail": "This record was modified by another request. Please reload and try again."},
        )

    @app.exception_handler(PaymentGatewayError)
    async def payment_gateway_handler(request: Request, exc: PaymentGatewayError):
        return JSONResponse(status_code=500, content={"detail": f"Payment gateway error: {exc}"})

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        return JSONResponse(status_code=500, content={"detail": "File upload failed"})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error", extra={"path": request.url.path})
        detail = "Internal server error" if is_production() else str(exc)
        return JSONResponse(status_code=500, content={"detail": detail})


def create_app() -> FastAPI:
    setup_logging()

    app = FastAPI(
        title="Vidhanto Legal API",
        description="Legal services marketplace: lawyers, consultations, documents, e-sign and e-stamp",
        version=API_VERSION,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)

    for router in (
        auth_router,
        users_router,
        lawyers_router,
        appointments_router,
        documents_router,
        esignature_router,
        estamp_router,
        payments_router,
        ai_router,
        chats_router,
        realtime_router,
        blogs_router,
        admin_router,
    ):
        app.include_router(router)

    if not S3_BUCKET:
        os.makedirs(UPLOAD_DIR, exist_ok=True)
        app.mount(f"/{UPLOAD_DIR.strip('/')}", StaticFiles(directory=UPLOAD_DIR), name="uploads")

    @app.get("/")
    def root():
        return {
            "message": "Vidhanto Legal API",
            "version": API_VERSION,
            "status": "running",
        }

    @app.get("/health")
    def health_check():
        return {"status": "healthy"}

    @app.get("/api/health")
    def api_health():
        return {"status": "OK", "environment": "production" if is_production() else "development"}

    return app
