"""FastAPI application entry point.

Startup sequence: load settings → init MCP calendar client → init OpenAI client.
"""

import time
from collections import defaultdict
from contextlib import asynccontextmanager

import structlog
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from backend.api.routes import router
from backend.core.calendar_client import ZapierMCPClient
from backend.core.config import Settings
from backend.core.llm_adapter import OpenAIClient

load_dotenv()

logger = structlog.get_logger(__name__)

settings = Settings.from_env()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("startup.begin")

    calendar_client = ZapierMCPClient(settings.mcp)
    app.state.calendar_client = calendar_client
    if calendar_client.configured:
        logger.info("startup.mcp_configured", server=settings.mcp.server_label)
    else:
        logger.warning("startup.mcp_unconfigured", reason=settings.mcp.reason,
                       hint="Set ZAPIER_MCP_API_KEY and ZAPIER_MCP_URL in .env")

    llm_client = OpenAIClient(settings, calendar_client)
    app.state.llm_client = llm_client
    logger.info("startup.llm_initialized", model=settings.openai_model, healthy=llm_client.is_healthy())

    logger.info("startup.complete")
    yield
    logger.info("shutdown.complete")


app = FastAPI(
    title="Calendar Assistant API",
    description="Chat assistant for Google Calendar with confirmation-gated actions",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)

# Rate limiter: per-client request throttling on the chat endpoint
_rate_buckets: dict[str, list[float]] = defaultdict(list)


@app.middleware("http")
async def rate_limit_middleware(request: Request, call_next):
    """Enforce per-client rate limiting on POST /api/chat."""
    if request.url.path != "/api/chat" or request.method != "POST":
        return await call_next(request)

    client_id = request.client.host if request.client else "unknown"
    now = time.monotonic()

    # Prune timestamps older than 60s
    window = [t for t in _rate_buckets[client_id] if now - t < 60]
    _rate_buckets[client_id] = window

    if len(window) >= settings.rate_limit_per_min:
        logger.warning("rate_limit.exceeded", client=client_id)
        return JSONResponse(
            status_code=429,
            content={"detail": "I'm experiencing high demand right now. Please try again in a moment."},
        )

    window.append(now)
    return await call_next(request)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors (400), naming the offending field."""
    fields = [".".join(str(p) for p in err.get("loc", ()) if p != "body") for err in exc.errors()]
    logger.warning("request.invalid", path=request.url.path, fields=fields)
    detail = f"Invalid request fields: {', '.join(f for f in fields if f)}" if any(fields) else "Invalid request body"
    return JSONResponse(status_code=400, content={"detail": detail})


app.include_router(router)


@app.get("/")
@app.head("/")
def root_health():
    """Basic root health check for deployment platforms."""
    return {"status": "ok", "service": "calendar-assistant-api"}
