"""
Streamify API - Main Application

FastAPI backend with:
- MongoDB for users, rooms, messages and friend requests
- Stream Chat for real-time messaging
- Cloudinary for faculty file attachments
- OpenAI for parent-facing chat analysis
- JWT authentication in an HTTP-only cookie

Run: uvicorn app.main:app --reload --port 5001
"""

import logging
from datetime import datetime
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import api_router
from app.core.config import get_settings
from app.core.errors import register_exception_handlers
from app.core.logging import setup_logging, request_logging_middleware
from app.core.rate_limit import limiter
from app.db.mongodb import init_mongo_indexes, test_mongo_connection

settings = get_settings()
setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Streamify API",
    description="""
    Messaging backend for students, faculty and parents.

    ## Features
    - **Authentication**: cookie-based JWT for students, faculty and parents
    - **Users**: friends, friend requests, parent/child linking
    - **Rooms**: classrooms created by faculty, joined by invite code
    - **Chat**: Stream Chat tokens and webhook mirroring
    - **Faculty Messaging**: messages, files and video calls to room members
    - **AI**: chat analysis for parents
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With", "Accept", "Origin"],
    expose_headers=["X-Request-ID", "Retry-After"],
)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    if settings.is_production:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains; preload"
    return response


app.middleware("http")(request_logging_middleware)

app.state.limiter = limiter
register_exception_handlers(app)

# Include API routes
app.include_router(api_router, prefix="/api")


# Startup event
@app.on_event("startup")
async def startup_event():
    """Initialize MongoDB indexes on startup."""
    try:
        init_mongo_indexes()
        logger.info("MongoDB indexes initialized")
    except Exception as e:
        logger.warning("MongoDB index initialization failed: %s", e)


@app.get("/api/health", tags=["Health"])
async def health_check():
    """Liveness plus MongoDB reachability."""
    return {
        "status": "OK",
        "message": "Server is running",
        "timestamp": datetime.utcnow().isoformat(),
        "mongodb": "connected" if test_mongo_connection() else "disconnected"
    }
