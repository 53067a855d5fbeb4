# Load environment variables FIRST, before any module imports that need them
from dotenv import load_dotenv
load_dotenv()

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Dict

from fastapi import FastAPI, APIRouter, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from . import db
from .config import CORS_ORIGINS
from .logging_config import setup_logging
from .routes.checkout import checkout_router, limiter
from .routes.delivery import delivery_router

# Configure logging at module load time
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db.init_db()
    logger.info("Flower checkout API started")
    yield


app = FastAPI(
    title="Flower Checkout API",
    description="Checkout orchestration and delivery scheduling for the flower shop",
    version="1.0.0",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Health", "description": "Health check endpoints"},
        {"name": "Checkout", "description": "Checkout session steps, identity and payment"},
        {"name": "Delivery", "description": "Delivery window and district availability"},
    ],
)


# ---------- Request ID Middleware ----------
# Adds a unique request ID to each request for debugging and log correlation

class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds a unique request ID to each request.

    The ID is available in request.state.request_id and returned in X-Request-ID header.
    """

    async def dispatch(self, request: Request, call_next):
        # Generate unique request ID (or use one from header if provided)
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)

        response.headers["X-Request-ID"] = request_id
        return response


app.add_middleware(RequestIDMiddleware)

# Add rate limit exception handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS configuration
# In production, set CORS_ORIGINS environment variable to restrict allowed origins
# Example: CORS_ORIGINS="https://shop.example.com"
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
def health() -> Dict[str, str]:
    """Health check endpoint. Returns ok if the service is running."""
    return {"status": "ok"}


# ---------- Include Routers with API Version Prefix ----------
# All API endpoints are available under /api/v1/
# Example: /api/v1/checkout/sessions, /api/v1/delivery/window

api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(checkout_router)
api_v1_router.include_router(delivery_router)

app.include_router(api_v1_router)

# Also mount at root so the storefront can call /checkout/... directly
app.include_router(checkout_router)
app.include_router(delivery_router)
