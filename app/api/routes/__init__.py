"""
API Routes - Combines all route modules into single router.

Rate limits are attached per route (see app.core.rate_limit):
- auth routes use the auth bucket
- link-code routes use the link_code bucket
- everything else uses the general bucket
"""

from fastapi import APIRouter

from app.api.routes.auth_routes import router as auth_router
from app.api.routes.user_routes import router as user_router
from app.api.routes.chat_routes import router as chat_router
from app.api.routes.room_routes import router as room_router
from app.api.routes.ai_routes import router as ai_router
from app.api.routes.faculty_messaging_routes import router as faculty_messaging_router

# Main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(auth_router)
api_router.include_router(user_router)
api_router.include_router(chat_router)
api_router.include_router(room_router)
api_router.include_router(ai_router)
api_router.include_router(faculty_messaging_router)
