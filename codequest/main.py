"""CodeQuest API application"""

from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
import logging
import time
import uuid

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from codequest.config import settings
from codequest.core.database import init_db, SessionLocal
from codequest.core.exceptions import BaseAPIException, CodeExecutionError
from codequest.api.v1 import execution, learning, progress, quiz, activity, review
from codequest.services.code_executor import code_executor

Path(settings.get_log_file()).parent.mkdir(parents=True, exist_ok=True)
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.FileHandler(settings.get_log_file()), logging.StreamHandler()],
)

logger = logging.getLogger(__name__)

REQUEST_COUNT = Counter(
    "codequest_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "codequest_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

SLOW_REQUEST_SECONDS = 1.0


def _log_toolchains():
    for language_status in code_executor.toolchain_status():
        if language_status.available:
            logger.info(f"Toolchain for {language_status.language}: {language_status.command}")
        else:
            logger.warning(
                f"No toolchain for {language_status.language} (tried: {', '.join(language_status.tried)})"
            )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.validate_runtime_settings()
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})")
    init_db()
    _log_toolchains()
    yield
    logger.info(f"Shutting down {settings.APP_NAME}")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url=None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _route_template(request: Request) -> str:
    """Route path with placeholders, so usernames don't explode metric labels"""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Request id, nosniff header and request metrics"""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    start = time.time()
    response = await call_next(request)
    duration = time.time() - start

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Request-ID"] = request_id

    path = _route_template(request)
    REQUEST_COUNT.labels(request.method, path, str(response.status_code)).inc()
    REQUEST_LATENCY.labels(request.method, path).observe(duration)
    if duration > SLOW_REQUEST_SECONDS:
        logger.warning(f"Slow request: {request.method} {path} took {duration:.2f}s request_id={request_id}")

    return response


def _error_response(request: Request, status_code: int, error: str, **fields) -> JSONResponse:
    """Every error body carries success, error, path and timestamp"""
    content = {"success": False, "error": error, **fields}
    content["path"] = request.url.path
    content["timestamp"] = datetime.utcnow().isoformat()
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(CodeExecutionError)
async def execution_exception_handler(request: Request, exc: CodeExecutionError):
    """Fatal runs share one shape: no case results, category in errorType"""
    logger.info(f"Run failed ({exc.error_type}): {exc.message} path={request.url.path}")
    return _error_response(
        request,
        exc.status_code,
        exc.message,
        message=exc.message,
        errorType=exc.error_type,
        details=exc.diagnostic,
        results=[],
        allPassed=False,
    )


@app.exception_handler(BaseAPIException)
async def api_exception_handler(request: Request, exc: BaseAPIException):
    logger.error(f"API Exception ({exc.status_code}): {exc.message} path={request.url.path}")
    return _error_response(request, exc.status_code, exc.message, details=exc.details)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(loc) for loc in error["loc"]), "message": error["msg"], "type": error["type"]}
        for error in exc.errors()
    ]
    logger.warning(f"Validation error on {request.url.path}: {errors}")
    return _error_response(request, status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation failed", details=errors)


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.url.path}: {exc}", exc_info=exc)
    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "A database error occurred. Please try again later.",
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.critical(f"Unhandled exception on {request.url.path}: {exc}", exc_info=exc)
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred.")


@app.get("/health")
def health_check():
    """Database reachability and the languages this host can run"""
    db_error = None
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        db_error = str(exc)
    finally:
        db.close()

    return {
        "status": "healthy" if db_error is None else "degraded",
        "version": settings.APP_VERSION,
        "timestamp": datetime.utcnow().isoformat(),
        "readiness": {
            "database": {"ok": db_error is None, "error": db_error},
            "languages": code_executor.supported_languages,
        },
    }


@app.get("/metrics")
def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/")
def root():
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/api/docs" if settings.DEBUG else "disabled",
    }


app.include_router(execution.router, prefix="/api/v1/execution", tags=["Execution"])
app.include_router(learning.router, prefix="/api/v1/learning", tags=["Learning"])
app.include_router(progress.router, prefix="/api/v1/progress", tags=["Progress"])
app.include_router(quiz.router, prefix="/api/v1/quiz", tags=["Quiz"])
app.include_router(activity.router, prefix="/api/v1/activity", tags=["Activity"])
app.include_router(review.router, prefix="/api/v1/review", tags=["Code Review"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "codequest.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=1 if settings.DEBUG else settings.WORKERS,
    )
