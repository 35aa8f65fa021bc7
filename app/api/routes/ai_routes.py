"""
AI Routes

POST /ai/analyze-chat - Parent-facing summary of one child conversation
"""

import logging
from fastapi import APIRouter, HTTPException, Depends, Request
from openai import AuthenticationError

from app.core.auth import require_roles
from app.core.rate_limit import general_rate_limit
from app.services.mongo_service import UserService, to_object_id
from app.services.analysis_service import analyze_child_chat
from app.services.openai_client import AnalysisNotConfiguredError
from app.schemas.schemas import AnalyzeChatRequest, AnalyzeChatResponse

router = APIRouter(prefix="/ai", tags=["AI Analysis"])
logger = logging.getLogger(__name__)

API_KEY_ERROR = "OpenAI API key is invalid or missing. Please check your environment variables."


@router.post("/analyze-chat", response_model=AnalyzeChatResponse)
@general_rate_limit
async def analyze_chat(request: Request, data: AnalyzeChatRequest, user: dict = Depends(require_roles("parent"))):
    """
    Analyze the chat between the caller's child and one partner.
    The child must be linked to the calling parent.
    """
    users = UserService()
    child_id, target_id = to_object_id(data.child_uid), to_object_id(data.target_uid)

    if child_id not in (user.get("children") or []):
        raise HTTPException(status_code=403, detail="You can only analyze conversations of your linked children")

    child = users.get_by_id(child_id)
    if not child:
        raise HTTPException(status_code=404, detail="Child not found")

    target = users.get_by_id(target_id)
    if not target:
        raise HTTPException(status_code=404, detail="Target user not found")

    try:
        result = analyze_child_chat(child, target)
    except (AnalysisNotConfiguredError, AuthenticationError) as e:
        logger.error("Chat analysis failed for parent %s: %s", user["_id"], e)
        raise HTTPException(status_code=500, detail=API_KEY_ERROR)

    return {"success": True, **result}
