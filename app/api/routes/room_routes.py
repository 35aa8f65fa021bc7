"""
Room Routes

POST   /rooms/create            - Create room (faculty)
POST   /rooms/join              - Join by invite code (student, parent)
GET    /rooms/my-rooms          - Rooms I created (faculty)
GET    /rooms/joined-rooms      - Rooms I joined (student, parent)
GET    /rooms/{room_id}/members - Room members (members only)
DELETE /rooms/bulk-delete       - Delete several of my rooms (faculty)
DELETE /rooms/{room_id}         - Delete one of my rooms (faculty)
"""

import logging
from typing import List
from bson import ObjectId
from fastapi import APIRouter, HTTPException, Depends, Request

from app.core.auth import get_current_user, require_roles
from app.core.rate_limit import general_rate_limit
from app.services.mongo_service import RoomService, MessageService, UserService, serialize_doc
from app.services.storage_client import get_storage_client
from app.utils.object_ids import parse_object_id
from app.schemas.schemas import CreateRoomRequest, JoinRoomRequest, BulkDeleteRoomsRequest

router = APIRouter(prefix="/rooms", tags=["Rooms"])
logger = logging.getLogger(__name__)


def _delete_room_messages(room_ids: List[ObjectId]) -> int:
    """Delete stored room messages and their uploaded attachments."""
    messages = MessageService()
    storage = get_storage_client()
    for url in messages.file_urls_for_rooms(room_ids):
        try:
            storage.delete_by_url(url)
        except Exception as e:
            logger.warning("Could not delete attachment %s: %s", url, e)
    return messages.delete_for_rooms(room_ids)


@router.post("/create", status_code=201)
@general_rate_limit
async def create_room(request: Request, data: CreateRoomRequest, user: dict = Depends(require_roles("faculty"))):
    rooms = RoomService()
    invite_code = rooms.generate_invite_code()
    if invite_code is None:
        raise HTTPException(status_code=500, detail="Failed to generate unique invite code")

    room = rooms.create(data.room_name, user["_id"], invite_code)
    logger.info("Faculty %s created room %s (%s)", user["_id"], room["_id"], invite_code)

    return {"success": True, "message": "Room created successfully", "room": rooms.populate(room)}


@router.post("/join")
@general_rate_limit
async def join_room(request: Request, data: JoinRoomRequest, user: dict = Depends(require_roles("student", "parent"))):
    rooms = RoomService()
    room = rooms.get_by_invite_code(data.invite_code)
    if not room:
        raise HTTPException(status_code=404, detail="Invalid invite code")

    if user["_id"] in room.get("members", []):
        raise HTTPException(status_code=400, detail="You are already a member of this room")

    room = rooms.add_member(room["_id"], user["_id"])
    return {"success": True, "message": "Successfully joined the room", "room": rooms.populate(room)}


@router.get("/my-rooms")
@general_rate_limit
async def get_faculty_rooms(request: Request, user: dict = Depends(require_roles("faculty"))):
    rooms = RoomService()
    return {"success": True, "rooms": rooms.populate_many(rooms.list_by_faculty(user["_id"]))}


@router.get("/joined-rooms")
@general_rate_limit
async def get_joined_rooms(request: Request, user: dict = Depends(require_roles("student", "parent"))):
    rooms = RoomService()
    return {"success": True, "rooms": rooms.populate_many(rooms.list_by_member(user["_id"]))}


@router.get("/{room_id}/members")
@general_rate_limit
async def get_room_members(request: Request, room_id: str, user: dict = Depends(get_current_user)):
    """Faculty first (isFaculty=True), then the other members."""
    room = RoomService().get_by_id(parse_object_id(room_id, "room ID"))
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")

    if user["_id"] not in room.get("members", []) and user["_id"] != room["faculty"]:
        raise HTTPException(status_code=403, detail="You are not a member of this room")

    fields = ["fullName", "email", "profilePic", "role"]
    users = UserService()
    members = []
    faculty = users.get_by_id(room["faculty"])
    if faculty:
        members.append({**{k: faculty.get(k) for k in ["_id", *fields]}, "isFaculty": True})
    others = [m for m in room.get("members", []) if m != room["faculty"]]
    members.extend({**member, "isFaculty": False} for member in users.get_many(others, fields))

    return {"success": True, "members": serialize_doc(members), "roomName": room.get("roomName")}


# Registered before /{room_id} so "bulk-delete" is not taken as a room id
@router.delete("/bulk-delete")
@general_rate_limit
async def bulk_delete_rooms(request: Request, data: BulkDeleteRoomsRequest, user: dict = Depends(require_roles("faculty"))):
    room_ids = [ObjectId(room_id) for room_id in data.room_ids]
    rooms = RoomService()
    owned = rooms.find_owned(room_ids, user["_id"])
    if not owned:
        raise HTTPException(status_code=404, detail="No rooms found to delete")

    owned_ids = {room["_id"] for room in owned}
    not_found = [str(room_id) for room_id in room_ids if room_id not in owned_ids]
    if not_found:
        raise HTTPException(
            status_code=403,
            detail={"detail": "You can only delete rooms that you created", "notFoundIds": not_found}
        )

    deleted = rooms.delete_owned(list(owned_ids), user["_id"])
    _delete_room_messages(list(owned_ids))
    logger.info("Faculty %s deleted %d rooms", user["_id"], deleted)

    return {
        "success": True,
        "message": f"{deleted} room{'s' if deleted != 1 else ''} and all associated messages deleted successfully",
        "deletedCount": deleted
    }


@router.delete("/{room_id}")
@general_rate_limit
async def delete_room(request: Request, room_id: str, user: dict = Depends(require_roles("faculty"))):
    room_oid = parse_object_id(room_id, "room ID")
    rooms = RoomService()
    room = rooms.get_by_id(room_oid)
    if not room:
        raise HTTPException(status_code=404, detail="Room not found")

    if room["faculty"] != user["_id"]:
        raise HTTPException(status_code=403, detail="You can only delete rooms that you created")

    _delete_room_messages([room_oid])
    rooms.delete(room_oid)
    logger.info("Faculty %s deleted room %s", user["_id"], room_oid)

    return {"success": True, "message": "Room and all associated messages deleted successfully"}
