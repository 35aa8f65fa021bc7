"""
Stream Chat Client

Stream carries the real-time chat; this backend only talks to it
server-side with the API secret:
- upserting users and minting their client tokens
- sending faculty messages into one-to-one `messaging` channels
- reading channel history (AI analysis, conversation overview, sync script)
- verifying webhook signatures

Direct channels are identified by the two user ids, sorted and
joined with "-".
"""
import logging
from datetime import datetime, timezone
from typing import Optional, List, Dict, Iterator, Tuple

from stream_chat import StreamChat

from app.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class StreamNotConfiguredError(RuntimeError):
    """Raised when STREAM_API_KEY / STREAM_API_SECRET are missing."""


def direct_channel_id(user_a: str, user_b: str) -> str:
    """Channel id shared by two users, independent of argument order."""
    return "-".join(sorted([str(user_a), str(user_b)]))


def parse_stream_time(value) -> Optional[datetime]:
    """Stream timestamps are ISO strings; store them as naive UTC."""
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def message_type_of(message: dict) -> str:
    """text, image or file, from the first attachment."""
    attachments = message.get("attachments") or []
    if not attachments:
        return "text"
    return "image" if attachments[0].get("type") == "image" else "file"


def attachment_details(message: dict) -> Tuple[Optional[str], Optional[str]]:
    """(url, name) of the first attachment, (None, None) without one."""
    attachments = message.get("attachments") or []
    if not attachments:
        return None, None
    first = attachments[0]
    return first.get("asset_url") or first.get("image_url"), first.get("title")


class StreamChatService:
    """
    Wrapper around the Stream Chat server client.
    """

    def __init__(self):
        self.configured = settings.stream_configured
        self.api_key = settings.stream_api_key
        self.client = None
        if self.configured:
            self.client = StreamChat(api_key=settings.stream_api_key, api_secret=settings.stream_api_secret)
        else:
            logger.warning("Stream API key or secret is missing; chat features are disabled")

    def _require_client(self) -> StreamChat:
        if self.client is None:
            raise StreamNotConfiguredError("Stream Chat service not configured")
        return self.client

    # ============================================================
    # USERS
    # ============================================================

    def upsert_user(self, user: dict):
        """Create or update the Stream user mirroring a Mongo user document."""
        client = self._require_client()
        client.upsert_users([{
            "id": str(user["_id"]),
            "name": user.get("fullName", ""),
            "image": user.get("profilePic") or "",
        }])

    def create_token(self, user_id: str) -> str:
        return self._require_client().create_token(str(user_id))

    # ============================================================
    # MESSAGES
    # ============================================================

    def send_direct_message(self, sender_id: str, recipient_id: str, text: str, attachments: List[dict] = None) -> str:
        """
        Send a message into the sender/recipient channel, creating it if needed.

        Returns:
            Stream message id
        """
        client = self._require_client()
        sender_id, recipient_id = str(sender_id), str(recipient_id)
        channel = client.channel(
            "messaging",
            direct_channel_id(sender_id, recipient_id),
            data={"members": [sender_id, recipient_id], "created_by_id": sender_id},
        )
        channel.create(sender_id)
        response = channel.send_message({"text": text, "attachments": attachments or []}, sender_id)
        return response["message"]["id"]

    def fetch_direct_messages(self, user_a: str, user_b: str, limit: int = 200) -> List[dict]:
        """Messages of the two-party channel, oldest first."""
        client = self._require_client()
        channel = client.channel("messaging", direct_channel_id(user_a, user_b))
        response = channel.query(messages={"limit": limit})
        return response.get("messages") or []

    def iter_channel_messages(self, channel_id: str, page_size: int = 100) -> Iterator[dict]:
        """
        Full history of one `messaging` channel, newest page first.
        Each page is requested with id_lt set to the oldest id seen so far.
        """
        channel = self._require_client().channel("messaging", channel_id)
        oldest_id = None
        while True:
            query = {"limit": page_size}
            if oldest_id:
                query["id_lt"] = oldest_id
            batch = channel.query(messages=query).get("messages") or []
            for message in batch:
                yield message
            if len(batch) < page_size:
                break
            oldest_id = batch[0]["id"]

    def iter_messaging_channels(
        self, member_id: str = None, page_size: int = 30, messages_limit: int = 100
    ) -> Iterator[dict]:
        """
        Page through `messaging` channels (optionally only those of one member).
        Yields the channel state dicts returned by query_channels, each with
        at most `messages_limit` of its latest messages.
        """
        client = self._require_client()
        filters = {"type": "messaging"}
        if member_id:
            filters["members"] = {"$in": [str(member_id)]}
        offset = 0
        while True:
            response = client.query_channels(
                filters,
                {"last_message_at": -1},
                limit=page_size,
                offset=offset,
                state=True,
                messages_limit=messages_limit,
            )
            channels = response.get("channels") or []
            for channel_state in channels:
                yield channel_state
            if len(channels) < page_size:
                break
            offset += page_size

    def direct_chat_partners(self, user_id: str) -> Dict[str, dict]:
        """
        Partners of the user's two-party messaging channels.

        Returns:
            {partner_id: {"messageCount": n, "lastMessageAt": datetime or None}}
            Channels without any message are skipped.
        """
        user_id = str(user_id)
        partners: Dict[str, dict] = {}
        preview = 100
        for channel_state in self.iter_messaging_channels(member_id=user_id, messages_limit=preview):
            members = [
                m.get("user_id") or (m.get("user") or {}).get("id")
                for m in channel_state.get("members") or []
            ]
            others = [m for m in members if m and m != user_id]
            if len(others) != 1:
                continue
            messages = channel_state.get("messages") or []
            if not messages:
                continue
            channel = channel_state.get("channel") or {}
            last = parse_stream_time(channel.get("last_message_at"))
            if last is None:
                last = parse_stream_time(messages[-1].get("created_at"))
            count = len(messages)
            if count >= preview and channel.get("id"):
                # preview is full; count the whole history
                count = sum(1 for _ in self.iter_channel_messages(channel["id"]))
            partners[others[0]] = {"messageCount": count, "lastMessageAt": last}
        return partners

    # ============================================================
    # WEBHOOKS
    # ============================================================

    def verify_webhook(self, body: bytes, signature: Optional[str]) -> bool:
        if not signature:
            return False
        return self._require_client().verify_webhook(body, signature)


# Singleton instance
_stream_client: StreamChatService = None


def get_stream_client() -> StreamChatService:
    """Get or create Stream client (singleton pattern)"""
    global _stream_client
    if _stream_client is None:
        _stream_client = StreamChatService()
    return _stream_client
