# paylink/main.py

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from paylink.config import settings, validate_settings
from paylink.db import init_db
from paylink.errors import PaylinkError, UpstreamError
from paylink.logging_config import get_logger
from paylink.middleware import request_id_middleware
from paylink.routers import payments, webhooks

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.ENVIRONMENT == "production":
        validate_settings()
    init_db()
    logger.info("app_started", version=settings.APP_VERSION, environment=settings.ENVIRONMENT)
    yield


# ---------------------------------------------
# APP INIT
# ---------------------------------------------
app = FastAPI(
    title="Paylink API",
    version=settings.APP_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------
# CORS
# ---------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.middleware("http")(request_id_middleware)


# ---------------------------------------------
# ERRORS
# ---------------------------------------------
@app.exception_handler(PaylinkError)
async def paylink_error_handler(request: Request, exc: PaylinkError):
    content = {"error": exc.message}
    if isinstance(exc, UpstreamError):
        content["code"] = exc.code
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    # pydantic prefixes messages raised from validators
    message = message.removeprefix("Value error, ")
    return JSONResponse(status_code=400, content={"error": message})


# ---------------------------------------------
# ROUTERS
# ---------------------------------------------
app.include_router(payments.router)
app.include_router(webhooks.router)


@app.get("/health")
def health():
    return {"ok": True}
