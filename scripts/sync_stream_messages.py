#!/usr/bin/env python3
"""
Stream -> MongoDB Message Sync

Copies the history of existing two-party Stream `messaging` channels
into the messages collection, so parents can review conversations
that happened before the webhook was set up.

Messages already stored (same streamMessageId) are skipped.

Usage: python scripts/sync_stream_messages.py
"""
import sys
sys.path.insert(0, '.')

from app.core.config import get_settings
from app.db.mongodb import init_mongo_indexes
from app.services.mongo_service import MessageService, to_object_id
from app.services.stream_client import (
    get_stream_client, parse_stream_time, message_type_of, attachment_details
)


def sync_channel(channel_state: dict, history, messages: MessageService) -> int:
    """Store new messages of one channel from its full history. Returns number inserted."""
    channel = channel_state.get("channel") or {}
    user_ids = (channel.get("id") or "").split("-")
    if len(user_ids) != 2:
        return 0

    inserted = 0
    for m in history:
        if not m.get("id") or messages.stream_message_exists(m["id"]):
            continue
        sender_id = (m.get("user") or {}).get("id")
        recipient_id = user_ids[1] if sender_id == user_ids[0] else user_ids[0]
        sender, recipient = to_object_id(sender_id), to_object_id(recipient_id)
        if sender is None or recipient is None:
            continue
        file_url, file_name = attachment_details(m)
        messages.insert(
            sender=sender,
            recipient=recipient,
            content=m.get("text") or "",
            message_type=message_type_of(m),
            room_id=to_object_id(channel.get("roomId")),
            stream_message_id=m["id"],
            file_url=file_url,
            file_name=file_name,
            created_at=parse_stream_time(m.get("created_at"))
        )
        inserted += 1
    return inserted


def main():
    settings = get_settings()
    print("=" * 50)
    print("STREAM -> MONGODB MESSAGE SYNC")
    print("=" * 50)

    if not settings.stream_configured:
        print("❌ STREAM_API_KEY / STREAM_API_SECRET are missing")
        sys.exit(1)

    init_mongo_indexes()
    stream = get_stream_client()
    messages = MessageService()

    total, channels = 0, 0
    for channel_state in stream.iter_messaging_channels(messages_limit=0):
        channels += 1
        cid = (channel_state.get("channel") or {}).get("id")
        try:
            count = sync_channel(channel_state, stream.iter_channel_messages(cid), messages)
        except Exception as e:
            print(f"   ❌ Error syncing channel {cid}: {e}")
            continue
        if count:
            print(f"   ✅ {cid}: {count} new messages")
        total += count

    print(f"\nChannels scanned: {channels}")
    print(f"Messages synced:  {total}")


if __name__ == "__main__":
    main()
