"""
MongoDB Service - CRUD operations for document collections.

Collections in this database:
1. users          - Accounts, profiles, friend graph, parent/child links
2. rooms          - Classroom rooms created by faculty
3. messages       - Local mirror of chat messages (oversight + AI analysis)
4. friendrequests - Friend requests between users

Documents keep camelCase field names (fullName, roomId, createdAt, ...)
because they are the same documents the frontend reads.
"""

import secrets
import string
from datetime import datetime
from typing import Optional, List, Dict, Any, Iterable
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.collection import Collection

from app.db.mongodb import get_collection, COLLECTIONS


# ============================================================
# HELPERS: ObjectId handling and JSON serialization
# ============================================================

def is_object_id(value: Any) -> bool:
    """True for ObjectIds and 24-hex strings."""
    if isinstance(value, ObjectId):
        return True
    return isinstance(value, str) and ObjectId.is_valid(value) and len(value) == 24


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Convert to ObjectId, or None if the value is not a valid id."""
    if isinstance(value, ObjectId):
        return value
    if not is_object_id(value):
        return None
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def serialize_doc(doc: Any) -> Any:
    """
    Convert MongoDB document to JSON-serializable data.
    ObjectIds become strings (recursively) and password hashes are dropped.
    """
    if doc is None:
        return None
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, list):
        return [serialize_doc(item) for item in doc]
    if isinstance(doc, dict):
        return {k: serialize_doc(v) for k, v in doc.items() if k != "password"}
    return doc


def serialize_docs(docs: Iterable[dict]) -> list:
    """Convert list of MongoDB documents to JSON-serializable list."""
    return [serialize_doc(doc) for doc in docs]


def _now() -> datetime:
    return datetime.utcnow()


# Fields exposed when one user is embedded in another response
PUBLIC_USER_FIELDS = ["fullName", "email", "profilePic", "role", "nativeLanguage", "learningLanguage"]
INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits


# ============================================================
# USERS COLLECTION
# ============================================================

class UserService:
    """
    Handles user accounts and the relationship arrays stored on them:
    friends, parent, children, linkedAccounts.
    """

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["users"])

    def create(self, email: str, password_hash: str, full_name: str, role: str, profile_pic: str = "") -> dict:
        """Insert a new user and return the stored document."""
        now = _now()
        doc = {
            "email": email.lower(),
            "password": password_hash,
            "fullName": full_name,
            "role": role,
            "profilePic": profile_pic,
            "bio": "",
            "nativeLanguage": "",
            "learningLanguage": "",
            "location": "",
            "isOnboarded": False,
            "friends": [],
            "parent": None,
            "children": [],
            "linkedAccounts": [],
            "linkCode": None,
            "linkCodeExpires": None,
            "createdAt": now,
            "updatedAt": now
        }
        result = self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc

    def get_by_id(self, user_id: ObjectId, include_password: bool = False) -> Optional[dict]:
        projection = None if include_password else {"password": 0}
        return self.collection.find_one({"_id": user_id}, projection)

    def get_by_email(self, email: str) -> Optional[dict]:
        """Fetch user with password hash (for login)."""
        return self.collection.find_one({"email": email.lower()})

    def email_exists(self, email: str) -> bool:
        return self.collection.count_documents({"email": email.lower()}, limit=1) > 0

    def find_student_by_email(self, email: str) -> Optional[dict]:
        return self.collection.find_one({"email": email.lower(), "role": "student"}, {"password": 0})

    def get_many(self, user_ids: Iterable[ObjectId], fields: List[str] = None) -> List[dict]:
        """Fetch several users, keeping the order of user_ids."""
        ids = list(user_ids)
        if not ids:
            return []
        projection = {f: 1 for f in (fields or PUBLIC_USER_FIELDS)}
        by_id = {doc["_id"]: doc for doc in self.collection.find({"_id": {"$in": ids}}, projection)}
        return [by_id[i] for i in ids if i in by_id]

    def get_profiles_by_id(self, user_ids: Iterable[ObjectId], fields: List[str] = None) -> Dict[ObjectId, dict]:
        return {doc["_id"]: doc for doc in self.get_many(user_ids, fields)}

    def update(self, user_id: ObjectId, fields: dict) -> Optional[dict]:
        """Set fields and return the updated document (without password)."""
        fields = {**fields, "updatedAt": _now()}
        return self.collection.find_one_and_update(
            {"_id": user_id},
            {"$set": fields},
            projection={"password": 0},
            return_document=ReturnDocument.AFTER
        )

    def add_to_set(self, user_id: ObjectId, **arrays) -> bool:
        """$addToSet one value per array field, e.g. add_to_set(uid, friends=other_id)."""
        result = self.collection.update_one(
            {"_id": user_id},
            {"$addToSet": arrays, "$set": {"updatedAt": _now()}}
        )
        return result.modified_count > 0

    def pull(self, user_id: ObjectId, **arrays) -> bool:
        result = self.collection.update_one(
            {"_id": user_id},
            {"$pull": arrays, "$set": {"updatedAt": _now()}}
        )
        return result.modified_count > 0

    def recommended_for(self, user: dict) -> List[dict]:
        """Onboarded users who are neither the caller nor already friends."""
        excluded = [user["_id"]] + list(user.get("friends") or [])
        cursor = self.collection.find(
            {"_id": {"$nin": excluded}, "isOnboarded": True},
            {"password": 0}
        )
        return list(cursor)

    # Link codes

    def find_by_active_link_code(self, code: str, role: str = None) -> Optional[dict]:
        query = {"linkCode": code, "linkCodeExpires": {"$gt": _now()}}
        if role:
            query["role"] = role
        return self.collection.find_one(query, {"password": 0})

    def set_link_code(self, user_id: ObjectId, code: Optional[str], expires: Optional[datetime]):
        self.update(user_id, {"linkCode": code, "linkCodeExpires": expires})


# ============================================================
# ROOMS COLLECTION
# ============================================================

class RoomService:
    """
    Handles classroom rooms.
    The creating faculty member is always in `members`.
    """

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["rooms"])

    def create(self, room_name: str, faculty_id: ObjectId, invite_code: str) -> dict:
        now = _now()
        doc = {
            "roomName": room_name,
            "faculty": faculty_id,
            "members": [faculty_id],
            "inviteCode": invite_code,
            "createdAt": now,
            "updatedAt": now
        }
        result = self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc

    def get_by_id(self, room_id: ObjectId) -> Optional[dict]:
        return self.collection.find_one({"_id": room_id})

    def get_by_invite_code(self, invite_code: str) -> Optional[dict]:
        return self.collection.find_one({"inviteCode": invite_code})

    def invite_code_exists(self, invite_code: str) -> bool:
        return self.collection.count_documents({"inviteCode": invite_code}, limit=1) > 0

    def generate_invite_code(self, attempts: int = 10) -> Optional[str]:
        """6-char [A-Z0-9] code not used by any room, or None after `attempts` collisions."""
        for _ in range(attempts):
            code = "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(6))
            if not self.invite_code_exists(code):
                return code
        return None

    def add_member(self, room_id: ObjectId, user_id: ObjectId) -> Optional[dict]:
        return self.collection.find_one_and_update(
            {"_id": room_id},
            {"$addToSet": {"members": user_id}, "$set": {"updatedAt": _now()}},
            return_document=ReturnDocument.AFTER
        )

    def list_by_faculty(self, faculty_id: ObjectId) -> List[dict]:
        return list(self.collection.find({"faculty": faculty_id}).sort("createdAt", -1))

    def list_by_member(self, user_id: ObjectId) -> List[dict]:
        return list(self.collection.find({"members": user_id}).sort("createdAt", -1))

    def share_room(self, user_a: ObjectId, user_b: ObjectId) -> bool:
        return self.collection.count_documents({"members": {"$all": [user_a, user_b]}}, limit=1) > 0

    def find_owned(self, room_ids: List[ObjectId], faculty_id: ObjectId) -> List[dict]:
        return list(self.collection.find({"_id": {"$in": room_ids}, "faculty": faculty_id}))

    def delete(self, room_id: ObjectId) -> bool:
        return self.collection.delete_one({"_id": room_id}).deleted_count > 0

    def delete_owned(self, room_ids: List[ObjectId], faculty_id: ObjectId) -> int:
        result = self.collection.delete_many({"_id": {"$in": room_ids}, "faculty": faculty_id})
        return result.deleted_count

    def populate(self, room: dict, fields: List[str] = None) -> dict:
        """
        Replace faculty/member ids with user profiles.
        Returns a JSON-serializable room.
        """
        users = UserService()
        fields = fields or ["fullName", "email", "role", "profilePic"]
        profiles = users.get_profiles_by_id([room["faculty"], *room.get("members", [])], fields)
        populated = dict(room)
        populated["faculty"] = profiles.get(room["faculty"], room["faculty"])
        populated["members"] = [profiles[m] for m in room.get("members", []) if m in profiles]
        return serialize_doc(populated)

    def populate_many(self, rooms: List[dict]) -> List[dict]:
        return [self.populate(room) for room in rooms]


# ============================================================
# MESSAGES COLLECTION
# Local mirror of Stream Chat messages
# ============================================================

class MessageService:
    """
    Stores messages sent through Stream Chat so parents can review them
    and the AI analysis has a fallback source.
    """

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["messages"])

    def insert(
        self,
        sender: ObjectId,
        recipient: ObjectId,
        content: str,
        message_type: str = "text",
        room_id: ObjectId = None,
        stream_message_id: str = None,
        file_url: str = None,
        file_name: str = None,
        created_at: datetime = None
    ) -> str:
        """
        Insert a message.

        Returns:
            MongoDB ObjectId as string
        """
        created_at = created_at or _now()
        doc = {
            "sender": sender,
            "recipient": recipient,
            "content": content,
            "messageType": message_type,
            "roomId": room_id,
            "isRead": False,
            "readAt": None,
            "createdAt": created_at,
            "updatedAt": created_at
        }
        # Optional fields are left out rather than stored as null
        # (streamMessageId carries a sparse unique index)
        if stream_message_id:
            doc["streamMessageId"] = stream_message_id
        if file_url:
            doc["fileUrl"] = file_url
        if file_name:
            doc["fileName"] = file_name
        result = self.collection.insert_one(doc)
        return str(result.inserted_id)

    def get_by_id(self, message_id: ObjectId) -> Optional[dict]:
        return self.collection.find_one({"_id": message_id})

    def stream_message_exists(self, stream_message_id: str) -> bool:
        return self.collection.count_documents({"streamMessageId": stream_message_id}, limit=1) > 0

    def conversation(self, user_a: ObjectId, user_b: ObjectId) -> List[dict]:
        """All messages between two users, oldest first."""
        cursor = self.collection.find({
            "$or": [
                {"sender": user_a, "recipient": user_b},
                {"sender": user_b, "recipient": user_a}
            ]
        }).sort("createdAt", 1)
        return list(cursor)

    def sent_to_by(self, recipient: ObjectId, senders: List[ObjectId], limit: int = 50) -> List[dict]:
        """Latest messages to `recipient` from any of `senders`."""
        cursor = self.collection.find(
            {"recipient": recipient, "sender": {"$in": senders}}
        ).sort("createdAt", -1).limit(limit)
        return list(cursor)

    def for_room_user(self, room_id: ObjectId, user_id: ObjectId, limit: int = 100) -> List[dict]:
        """Latest room messages the user sent or received."""
        cursor = self.collection.find({
            "roomId": room_id,
            "$or": [{"recipient": user_id}, {"sender": user_id}]
        }).sort("createdAt", -1).limit(limit)
        return list(cursor)

    def mark_as_read(self, message_id: ObjectId) -> datetime:
        read_at = _now()
        self.collection.update_one(
            {"_id": message_id},
            {"$set": {"isRead": True, "readAt": read_at, "updatedAt": read_at}}
        )
        return read_at

    def file_urls_for_rooms(self, room_ids: List[ObjectId]) -> List[str]:
        urls = self.collection.distinct("fileUrl", {"roomId": {"$in": room_ids}, "fileUrl": {"$exists": True}})
        return [u for u in urls if u]

    def delete_for_rooms(self, room_ids: List[ObjectId]) -> int:
        return self.collection.delete_many({"roomId": {"$in": room_ids}}).deleted_count

    def direct_partners(self, user_id: ObjectId) -> Dict[ObjectId, dict]:
        """
        Everyone the user has exchanged messages with.

        Returns:
            {partner_id: {"messageCount": n, "lastMessageAt": datetime}}
        """
        partners: Dict[ObjectId, dict] = {}
        cursor = self.collection.find(
            {"$or": [{"sender": user_id}, {"recipient": user_id}]},
            {"sender": 1, "recipient": 1, "createdAt": 1}
        )
        for doc in cursor:
            other = doc["recipient"] if doc["sender"] == user_id else doc["sender"]
            if other is None or other == user_id:
                continue
            stats = partners.setdefault(other, {"messageCount": 0, "lastMessageAt": None})
            stats["messageCount"] += 1
            created = doc.get("createdAt")
            if created and (stats["lastMessageAt"] is None or created > stats["lastMessageAt"]):
                stats["lastMessageAt"] = created
        return partners

    def count_all(self) -> int:
        return self.collection.count_documents({})

    def populate(self, message: dict, with_room: bool = False) -> dict:
        """Embed sender/recipient names (and room name) into a message."""
        users = UserService()
        profiles = users.get_profiles_by_id(
            [i for i in (message.get("sender"), message.get("recipient")) if i],
            ["fullName", "email", "role"]
        )
        populated = dict(message)
        populated["sender"] = profiles.get(message.get("sender"), message.get("sender"))
        populated["recipient"] = profiles.get(message.get("recipient"), message.get("recipient"))
        if with_room and message.get("roomId"):
            room = RoomService().collection.find_one({"_id": message["roomId"]}, {"roomName": 1})
            if room:
                populated["roomId"] = room
        return serialize_doc(populated)


# ============================================================
# FRIEND REQUESTS COLLECTION
# ============================================================

class FriendRequestService:
    """
    Handles friend requests.
    Status is 'pending' until the recipient accepts.
    """

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["friend_requests"])

    def create(self, sender: ObjectId, recipient: ObjectId) -> dict:
        now = _now()
        doc = {
            "sender": sender,
            "recipient": recipient,
            "status": "pending",
            "createdAt": now,
            "updatedAt": now
        }
        result = self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc

    def get_by_id(self, request_id: ObjectId) -> Optional[dict]:
        return self.collection.find_one({"_id": request_id})

    def exists_between(self, user_a: ObjectId, user_b: ObjectId) -> bool:
        return self.collection.count_documents({
            "$or": [
                {"sender": user_a, "recipient": user_b},
                {"sender": user_b, "recipient": user_a}
            ]
        }, limit=1) > 0

    def mark_accepted(self, request_id: ObjectId) -> bool:
        result = self.collection.update_one(
            {"_id": request_id},
            {"$set": {"status": "accepted", "updatedAt": _now()}}
        )
        return result.modified_count > 0

    def find(self, populate_field: str, **query) -> List[dict]:
        """Find requests and embed the user referenced by populate_field."""
        requests = list(self.collection.find(query))
        users = UserService().get_profiles_by_id(
            [r[populate_field] for r in requests],
            ["fullName", "profilePic", "nativeLanguage", "learningLanguage"]
        )
        for r in requests:
            r[populate_field] = users.get(r[populate_field], r[populate_field])
        return serialize_docs(requests)

    def count_incoming(self, user_id: ObjectId) -> int:
        return self.collection.count_documents({"recipient": user_id, "status": "pending"})


# ============================================================
# CONVENIENCE FUNCTION: Get all services
# ============================================================

def get_mongo_services() -> dict:
    """
    Get all MongoDB service instances.

    Usage:
        services = get_mongo_services()
        services['users'].get_by_id(...)
    """
    return {
        "users": UserService(),
        "rooms": RoomService(),
        "messages": MessageService(),
        "friend_requests": FriendRequestService()
    }
