"""
MongoDB Connection Utility

MongoDB stores:
- Users (profiles, friend graph, parent/child links)
- Classroom rooms and their members
- Local copies of chat messages (for oversight and AI analysis)
- Friend requests

Collection and field names match the existing Streamify database,
so documents written by earlier deployments stay readable.
"""
import logging

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database
from pymongo.collection import Collection
from app.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

# Global client (connection pooling handled internally by pymongo)
_client: MongoClient = None
_db: Database = None


def get_mongo_client() -> MongoClient:
    """Get or create MongoDB client (singleton pattern)"""
    global _client
    if _client is None:
        _client = MongoClient(settings.mongodb_uri)
    return _client


def get_mongo_db() -> Database:
    """Get the application database"""
    global _db
    if _db is None:
        client = get_mongo_client()
        _db = client[settings.mongodb_db]
    return _db


def get_collection(name: str) -> Collection:
    """
    Get a specific collection.
    Collections we use:
    - users: accounts and profile data
    - rooms: classroom rooms
    - messages: mirrored chat messages
    - friendrequests: pending/accepted friend requests
    """
    db = get_mongo_db()
    return db[name]


def test_mongo_connection() -> bool:
    """
    Test if MongoDB is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        client = get_mongo_client()
        # ping command checks connection
        client.admin.command('ping')
        return True
    except Exception as e:
        logger.error("MongoDB connection failed: %s", e)
        return False


# Collection name constants (avoid typos)
COLLECTIONS = {
    "users": "users",
    "rooms": "rooms",
    "messages": "messages",
    "friend_requests": "friendrequests"
}


def init_mongo_indexes():
    """
    Create indexes for better query performance.
    Call this once during app startup.
    """
    db = get_mongo_db()

    db[COLLECTIONS["users"]].create_index("email", unique=True)
    db[COLLECTIONS["users"]].create_index("linkCode")

    db[COLLECTIONS["rooms"]].create_index("inviteCode", unique=True)
    db[COLLECTIONS["rooms"]].create_index("members")
    db[COLLECTIONS["rooms"]].create_index("faculty")

    # Conversation lookups in both directions
    messages = db[COLLECTIONS["messages"]]
    messages.create_index([("sender", ASCENDING), ("recipient", ASCENDING), ("createdAt", ASCENDING)])
    messages.create_index([("recipient", ASCENDING), ("sender", ASCENDING), ("createdAt", ASCENDING)])
    messages.create_index([("roomId", ASCENDING), ("createdAt", DESCENDING)])
    messages.create_index("streamMessageId", unique=True, sparse=True)

    db[COLLECTIONS["friend_requests"]].create_index([
        ("sender", ASCENDING),
        ("recipient", ASCENDING)
    ])

    logger.info("MongoDB indexes created successfully")
