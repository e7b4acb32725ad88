"""
Main FastAPI application entry point.
"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException

from quizhub.core.config import settings
from quizhub.core.database import init_db
from quizhub.services.registry import SessionRegistry
from quizhub.api.auth import router as auth_router
from quizhub.api.quizzes import router as quizzes_router
from quizhub.api.sessions import router as sessions_router
from quizhub.api.progress import router as progress_router
from quizhub.api.admin import router as admin_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} ({settings.ENVIRONMENT})")
    init_db()
    yield
    logger.info(f"Shutting down {settings.APP_NAME}, dropping {len(app.state.sessions)} in-memory sessions")


def create_app() -> FastAPI:
    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)
    app.state.sessions = SessionRegistry()
    app.add_middleware(CORSMiddleware, allow_origins=settings.CORS_ORIGINS, allow_credentials=True, allow_methods=["*"], allow_headers=["*"])

    prefix = settings.API_V1_PREFIX
    app.include_router(auth_router, prefix=f"{prefix}/auth", tags=["auth"])
    app.include_router(quizzes_router, prefix=f"{prefix}/quizzes", tags=["quizzes"])
    app.include_router(sessions_router, prefix=f"{prefix}/session", tags=["quiz-taking"])
    app.include_router(progress_router, prefix=f"{prefix}/progress", tags=["progress"])
    app.include_router(admin_router, prefix=f"{prefix}/admin", tags=["admin"])

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": {"message": exc.detail, "type": "http_error", "status_code": exc.status_code}},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={"error": {"message": "Validation error", "type": "validation_error", "details": jsonable_encoder(
                [{k: v for k, v in e.items() if k != "ctx"} for e in exc.errors()]
            )}},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        message = "An internal error occurred" if settings.is_production() else str(exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": {"message": message, "type": "internal_error"}},
        )

    @app.get("/health", tags=["health"])
    def health():
        return {"status": "ok", "version": settings.APP_VERSION}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("quizhub.main:app", host="0.0.0.0", port=8000)
