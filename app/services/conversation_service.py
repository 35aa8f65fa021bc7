"""
Child Conversation Overview

Gives a parent one list of everyone their child talks to.

SOURCES (merged, one entry per partner):
1. Friends               -> isFriend
2. Room co-members       -> isRoomMember (+ sharedRooms)
3. Direct message history
   - messages collection -> hasDirectChat, messageCount, lastMessageAt
   - Stream channels     -> same fields, when Stream is configured

LABELS:
- conversationType: the primary label, friend > classroom > direct
- conversationTypes: every label that applies

ORDER:
- Partners with direct activity first, most recent first
- Everyone else by fullName
"""
import logging
from datetime import datetime
from typing import Dict, List

from bson import ObjectId

from app.services.mongo_service import UserService, RoomService, MessageService, to_object_id, serialize_doc
from app.services.stream_client import get_stream_client

logger = logging.getLogger(__name__)

PARTNER_FIELDS = ["fullName", "email", "profilePic", "role"]


def _new_entry() -> dict:
    return {
        "isFriend": False,
        "isRoomMember": False,
        "hasDirectChat": False,
        "sharedRooms": [],
        "messageCount": 0,
        "lastMessageAt": None,
    }


def _merge_direct_stats(entry: dict, stats: dict):
    """Local and Stream counts overlap; keep the larger one."""
    count = stats.get("messageCount") or 0
    last = stats.get("lastMessageAt")
    entry["messageCount"] = max(entry["messageCount"], count)
    if last and (entry["lastMessageAt"] is None or last > entry["lastMessageAt"]):
        entry["lastMessageAt"] = last
    if entry["messageCount"] > 0 or entry["lastMessageAt"]:
        entry["hasDirectChat"] = True


def _labels(entry: dict) -> List[str]:
    labels = []
    if entry["isFriend"]:
        labels.append("friend")
    if entry["isRoomMember"]:
        labels.append("classroom")
    if entry["hasDirectChat"]:
        labels.append("direct")
    return labels


def get_child_conversations(child: dict) -> List[dict]:
    """
    Build the labeled partner list for one child.

    Args:
        child: user document of the child (already checked to be linked)

    Returns:
        List of JSON-serializable partner entries
    """
    child_id: ObjectId = child["_id"]
    entries: Dict[ObjectId, dict] = {}

    def entry_for(partner_id) -> dict:
        return entries.setdefault(partner_id, _new_entry())

    # 1. Friends
    for friend_id in child.get("friends") or []:
        entry_for(friend_id)["isFriend"] = True

    # 2. Rooms (faculty included)
    for room in RoomService().list_by_member(child_id):
        shared = {"_id": room["_id"], "roomName": room.get("roomName")}
        for member_id in {room["faculty"], *room.get("members", [])}:
            entry = entry_for(member_id)
            entry["isRoomMember"] = True
            entry["sharedRooms"].append(shared)

    # 3a. Direct messages stored locally
    for partner_id, stats in MessageService().direct_partners(child_id).items():
        _merge_direct_stats(entry_for(partner_id), stats)

    # 3b. Direct channels in Stream
    stream = get_stream_client()
    if stream.configured:
        try:
            stream_partners = stream.direct_chat_partners(str(child_id))
        except Exception as e:
            logger.warning("Stream channel lookup failed for child %s, using local messages only: %s", child_id, e)
            stream_partners = {}
        for partner_id, stats in stream_partners.items():
            oid = to_object_id(partner_id)
            if oid is not None:
                _merge_direct_stats(entry_for(oid), stats)

    entries.pop(child_id, None)

    profiles = UserService().get_profiles_by_id(entries.keys(), PARTNER_FIELDS)
    conversations = []
    for partner_id, entry in entries.items():
        profile = profiles.get(partner_id)
        if profile is None:
            # partner account no longer exists
            continue
        labels = _labels(entry)
        conversations.append({
            **profile,
            **entry,
            "conversationType": labels[0],
            "conversationTypes": labels,
        })

    direct = sorted(
        (c for c in conversations if c["hasDirectChat"]),
        key=lambda c: c["lastMessageAt"] or datetime.min,
        reverse=True
    )
    others = sorted(
        (c for c in conversations if not c["hasDirectChat"]),
        key=lambda c: (c.get("fullName") or "").lower()
    )
    conversations = direct + others
    logger.info("Built %d conversation entries for child %s", len(conversations), child_id)
    return serialize_doc(conversations)
