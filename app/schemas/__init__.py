"""
Schemas module - Request/Response schemas for API endpoints.

Difference from services:
- Services: Mongo documents (camelCase dicts)
- Schemas: API contract (what client sends/receives)

Usage:
    from app.schemas.schemas import SignupRequest, CreateRoomRequest
"""
