"""
Acto chat server - Main FastAPI application.

HTTP API for accounts, chats and messages plus the /ws real-time channel.
"""
import asyncio
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import logging

from acto.core.config import settings
from acto.core.errors import ChatServiceError
from acto.core.memory.db import init_db, db_session
from acto.core.api import auth, chats, health, messages, users
from acto.core.services.demo_users import seed_demo_users
from acto.core.websocket.routes import websocket_endpoint

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _log_loop_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    """Log faults that escaped every handler; the process keeps running."""
    exc = context.get("exception")
    logger.error("Unhandled event loop error: %s", context.get("message"), exc_info=exc)


# Lifespan event handlers
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    asyncio.get_running_loop().set_exception_handler(_log_loop_exception)

    logger.info("Initializing database...")
    init_db()
    logger.info("Database initialized")

    if settings.seed_demo_users:
        with db_session() as db:
            seed_demo_users(db)
        logger.info("Demo users: alice, bob, charlie (password: 123456)")

    logger.info("Acto chat server binding on %s:%s", settings.api_host, settings.api_port)

    yield

    logger.info("Acto chat server shutting down")


# Create FastAPI app
app = FastAPI(
    title="Acto Chat",
    description="Real-time chat server: accounts, private and group chats, presence and typing",
    version=health.SERVICE_VERSION,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all HTTP requests. Health checks at DEBUG to reduce log spam."""
    path = request.url.path
    level = logger.debug if path == "/health" else logger.info
    level(f"{request.method} {path}")
    response = await call_next(request)
    level(f"{request.method} {path} - {response.status_code}")
    return response


# Error handlers
@app.exception_handler(ChatServiceError)
async def chat_service_exception_handler(request: Request, exc: ChatServiceError):
    """Map core error kinds to their status code."""
    if exc.status_code >= 500:
        logger.error("Internal error on %s %s: %s", request.method, request.url.path, exc.message)
        message = "Internal server error"
    else:
        message = exc.message
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": message, "code": exc.code},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Missing or malformed fields are an invalid argument."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "message": "Missing or invalid fields",
            "code": "invalid_argument",
            "detail": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "message": "Internal server error",
            "code": "internal",
            "error": str(exc) if settings.debug else None,
        },
    )


# WebSocket real-time channel
app.add_api_websocket_route("/ws", websocket_endpoint)

# Include routers
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(chats.router)
app.include_router(messages.router)
app.include_router(users.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "acto.core.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
