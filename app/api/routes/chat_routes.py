"""
Chat Routes

GET  /chat/token   - Stream user token for the current user
POST /chat/webhook - Stream webhook (signed, no auth); mirrors new messages
"""

import json
import logging
from fastapi import APIRouter, HTTPException, Depends, Request
from pymongo.errors import DuplicateKeyError

from app.core.auth import get_current_user
from app.core.rate_limit import general_rate_limit
from app.services.mongo_service import MessageService, to_object_id
from app.services.stream_client import (
    get_stream_client, parse_stream_time, message_type_of, attachment_details, StreamNotConfiguredError
)

router = APIRouter(prefix="/chat", tags=["Chat"])
logger = logging.getLogger(__name__)


@router.get("/token")
@general_rate_limit
async def get_stream_token(request: Request, user: dict = Depends(get_current_user)):
    try:
        token = get_stream_client().create_token(str(user["_id"]))
    except StreamNotConfiguredError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"token": token}


@router.post("/webhook")
@general_rate_limit
async def stream_webhook(request: Request):
    """
    Store `message.new` events from two-party channels.

    Channel ids have the form "<userId>-<userId>". Messages already stored
    (same streamMessageId) are ignored. Other events are acknowledged.
    """
    body = await request.body()

    stream = get_stream_client()
    if stream.configured and not stream.verify_webhook(body, request.headers.get("x-signature")):
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        event = json.loads(body or b"{}")
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    message = event.get("message")
    channel = event.get("channel") or {}
    channel_id = event.get("channel_id") or channel.get("id")
    if event.get("type") != "message.new" or not message or not channel_id:
        return {"message": "Webhook processed successfully"}

    user_ids = channel_id.split("-")
    if len(user_ids) != 2:
        raise HTTPException(status_code=400, detail="Invalid channel ID format")

    sender_id = (message.get("user") or {}).get("id")
    recipient_id = user_ids[1] if sender_id == user_ids[0] else user_ids[0]
    sender, recipient = to_object_id(sender_id), to_object_id(recipient_id)
    if sender is None or recipient is None:
        raise HTTPException(status_code=400, detail="Invalid channel ID format")

    messages = MessageService()
    stream_message_id = message.get("id")
    if stream_message_id and messages.stream_message_exists(stream_message_id):
        return {"message": "Duplicate message ignored"}

    file_url, file_name = attachment_details(message)
    try:
        messages.insert(
            sender=sender,
            recipient=recipient,
            content=message.get("text") or "",
            message_type=message_type_of(message),
            room_id=to_object_id(channel.get("roomId")),
            stream_message_id=stream_message_id,
            file_url=file_url,
            file_name=file_name,
            created_at=parse_stream_time(message.get("created_at"))
        )
    except DuplicateKeyError:
        return {"message": "Duplicate message ignored"}

    logger.info("Stored webhook message %s from %s", stream_message_id, sender)
    return {"message": "Webhook processed successfully"}
