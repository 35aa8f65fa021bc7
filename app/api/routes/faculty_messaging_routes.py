"""
Faculty Messaging Routes

Faculty only (own rooms):
POST /faculty-messaging/send-message     - Text message to room or one member
POST /faculty-messaging/send-file        - File attachment (multipart)
POST /faculty-messaging/send-video-call  - Existing video call link
POST /faculty-messaging/start-video-call - New call link for the room

Any authenticated user:
GET  /faculty-messaging/student-messages         - Messages from my rooms' faculty
GET  /faculty-messaging/room/{room_id}/messages  - My messages in a room
PUT  /faculty-messaging/messages/{id}/read       - Mark message read
"""

import logging
import time
from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, Request, UploadFile, File, Form

from app.core.auth import get_current_user, require_roles
from app.core.rate_limit import general_rate_limit
from app.core.config import get_settings
from app.services.mongo_service import UserService, RoomService, MessageService, serialize_doc
from app.services.messaging_service import FacultyMessenger
from app.services.storage_client import get_storage_client
from app.services.stream_client import get_stream_client
from app.utils.file_upload import read_upload, attachment_type
from app.utils.object_ids import parse_object_id
from app.schemas.schemas import (
    FacultyMessageRequest, VideoCallLinkRequest, StartVideoCallRequest, MessageType
)

router = APIRouter(prefix="/faculty-messaging", tags=["Faculty Messaging"])
logger = logging.getLogger(__name__)
settings = get_settings()


# ============================================================
# HELPERS
# ============================================================

def _owned_room(room_id: str, faculty: dict, action: str) -> dict:
    room = RoomService().get_by_id(parse_object_id(room_id, "room ID"))
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")
    if room["faculty"] != faculty["_id"]:
        raise HTTPException(status_code=403, detail=f"You can only {action} your own rooms")
    return room


def _target_user(target_user_id: Optional[str]) -> Optional[dict]:
    if not target_user_id:
        return None
    target = UserService().get_by_id(parse_object_id(target_user_id, "target user ID"))
    if not target:
        raise HTTPException(status_code=404, detail="Target user not found")
    return target


def _require_stream():
    if not get_stream_client().configured:
        raise HTTPException(
            status_code=500,
            detail="Stream Chat is not properly configured. Please contact administrator."
        )


def _response(message: str, delivery: dict, target: Optional[dict], **extra) -> dict:
    body = {"success": True, "message": message, **extra, **delivery}
    if target is not None:
        body["targetUser"] = serialize_doc({k: target.get(k) for k in ["_id", "fullName", "email"]})
    return body


# ============================================================
# FACULTY: SEND
# ============================================================

@router.post("/send-message")
@general_rate_limit
async def send_room_message(request: Request, data: FacultyMessageRequest, user: dict = Depends(require_roles("faculty"))):
    room = _owned_room(data.room_id, user, "send messages to")
    target = _target_user(data.target_user_id)
    _require_stream()

    delivery = FacultyMessenger(user, room).send(
        data.message, message_type=data.message_type.value, target_user=target
    )
    label = "Message sent to user successfully" if target else "Room message sent"
    return _response(label, delivery, target)


@router.post("/send-file")
@general_rate_limit
async def send_room_file(
    request: Request,
    room_id: str = Form(..., alias="roomId"),
    target_user_id: Optional[str] = Form(None, alias="targetUserId"),
    file: Optional[UploadFile] = File(None),
    user: dict = Depends(require_roles("faculty"))
):
    """
    Upload one file and send it to the room (or one member).
    The file is uploaded once and every delivery links the same URL.
    """
    content, filename, content_type = await read_upload(file)
    room = _owned_room(room_id, user, "send files to")
    target = _target_user(target_user_id)
    _require_stream()

    stored = get_storage_client().upload(content, filename, content_type)
    kind = attachment_type(content_type)
    attachments = [{"type": kind, "asset_url": stored["url"], "title": filename}]

    delivery = FacultyMessenger(user, room).send(
        f"📎 {filename}",
        message_type=MessageType.image.value if kind == "image" else MessageType.file.value,
        attachments=attachments,
        target_user=target,
        file_url=stored["url"],
        file_name=filename
    )
    label = "File sent to user successfully" if target else "File sent to room members"
    return _response(label, delivery, target, fileUrl=stored["url"], fileName=filename)


@router.post("/send-video-call")
@general_rate_limit
async def send_video_call_link(request: Request, data: VideoCallLinkRequest, user: dict = Depends(require_roles("faculty"))):
    room = _owned_room(data.room_id, user, "send video call links to")
    target = _target_user(data.target_user_id)
    _require_stream()

    text = f"🎥 {data.call_title}\n\nJoin the video call: {data.call_url}"
    delivery = FacultyMessenger(user, room).send(text, target_user=target)
    label = "Video call link sent to user successfully" if target else "Video call link sent to room members"
    return _response(label, delivery, target)


@router.post("/start-video-call")
@general_rate_limit
async def start_video_call(request: Request, data: StartVideoCallRequest, user: dict = Depends(require_roles("faculty"))):
    room = _owned_room(data.room_id, user, "start video calls for")
    target = _target_user(data.target_user_id)
    _require_stream()

    call_id = f"faculty-{room['_id']}-{int(time.time() * 1000)}"
    call_url = f"{settings.frontend_url.rstrip('/')}/call/{call_id}"
    text = f"🎥 {data.call_title}\n\nI've started a video call. Join me here: {call_url}"

    delivery = FacultyMessenger(user, room).send(text, target_user=target)
    label = (
        "Video call started and link sent to user successfully" if target
        else "Video call started and link sent to room members"
    )
    return _response(label, delivery, target, callId=call_id, callUrl=call_url)


# ============================================================
# ANY USER: READ
# ============================================================

@router.get("/student-messages")
@general_rate_limit
async def get_student_messages(request: Request, user: dict = Depends(get_current_user)):
    """Last 50 messages sent to me by the faculty of rooms I belong to."""
    rooms = RoomService()
    my_rooms = rooms.list_by_member(user["_id"])
    faculty_ids = list({room["faculty"] for room in my_rooms if room.get("faculty")})
    if not faculty_ids:
        return {"success": True, "messages": [], "rooms": rooms.populate_many(my_rooms)}

    messages = MessageService()
    found = messages.sent_to_by(user["_id"], faculty_ids, limit=50)
    return {
        "success": True,
        "messages": [messages.populate(m, with_room=True) for m in found],
        "rooms": rooms.populate_many(my_rooms)
    }


@router.get("/room/{room_id}/messages")
@general_rate_limit
async def get_room_messages(request: Request, room_id: str, user: dict = Depends(get_current_user)):
    rooms = RoomService()
    room = rooms.get_by_id(parse_object_id(room_id, "room ID"))
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")

    if user["_id"] != room["faculty"] and user["_id"] not in room.get("members", []):
        raise HTTPException(status_code=403, detail="Access denied")

    messages = MessageService()
    found = messages.for_room_user(room["_id"], user["_id"], limit=100)
    return {
        "success": True,
        "messages": [messages.populate(m) for m in found],
        "room": rooms.populate(room)
    }


@router.put("/messages/{message_id}/read")
@general_rate_limit
async def mark_message_as_read(request: Request, message_id: str, user: dict = Depends(get_current_user)):
    messages = MessageService()
    message = messages.get_by_id(parse_object_id(message_id, "message ID"))
    if not message:
        raise HTTPException(status_code=404, detail="Message not found")

    if message.get("recipient") != user["_id"]:
        raise HTTPException(status_code=403, detail="Access denied")

    read_at = messages.mark_as_read(message["_id"])
    return {
        "success": True,
        "message": "Message marked as read",
        "messageId": message_id,
        "readAt": read_at
    }
