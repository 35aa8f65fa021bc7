"""
Chat Analysis Service

Builds the transcript of one child conversation and asks the model
for a parent-facing summary.

FLOW:
1. Read the two-party Stream channel (up to 200 messages)
2. Fall back to the messages collection if Stream has nothing or fails
3. No messages -> neutral result, the model is not called
4. Otherwise send "[timestamp] Name: text" lines to the model
"""
import logging
from datetime import datetime
from typing import List, Tuple

from app.services.mongo_service import MessageService, RoomService
from app.services.stream_client import get_stream_client, parse_stream_time
from app.services.openai_client import get_analysis_client

logger = logging.getLogger(__name__)

STREAM_MESSAGE_LIMIT = 200
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def _format_line(timestamp, name: str, text: str) -> str:
    ts = timestamp.strftime(TIMESTAMP_FORMAT) if isinstance(timestamp, datetime) else "unknown time"
    return f"[{ts}] {name}: {text}"


def _load_stream_lines(child: dict, target: dict) -> List[str]:
    stream = get_stream_client()
    if not stream.configured:
        return []
    try:
        messages = stream.fetch_direct_messages(str(child["_id"]), str(target["_id"]), limit=STREAM_MESSAGE_LIMIT)
    except Exception as e:
        logger.warning("Stream query failed, falling back to stored messages: %s", e)
        return []

    names = {str(child["_id"]): child.get("fullName"), str(target["_id"]): target.get("fullName")}
    lines = []
    for m in messages:
        sender_id = str((m.get("user") or {}).get("id") or "")
        name = names.get(sender_id) or sender_id or "Unknown"
        lines.append(_format_line(parse_stream_time(m.get("created_at")), name, m.get("text") or ""))
    return lines


def _load_mongo_lines(child: dict, target: dict) -> List[str]:
    names = {child["_id"]: child.get("fullName"), target["_id"]: target.get("fullName")}
    return [
        _format_line(m.get("createdAt"), names.get(m.get("sender"), "Unknown"), m.get("content") or "")
        for m in MessageService().conversation(child["_id"], target["_id"])
    ]


def load_transcript(child: dict, target: dict) -> Tuple[List[str], str]:
    """
    Returns:
        (transcript lines, source) where source is "stream", "mongo" or "none"
    """
    lines = _load_stream_lines(child, target)
    if lines:
        return lines, "stream"
    lines = _load_mongo_lines(child, target)
    if lines:
        return lines, "mongo"
    return [], "none"


def analyze_child_chat(child: dict, target: dict) -> dict:
    """
    Summarise the conversation between a child and one partner.

    Returns:
        {"analysis": str, "context": {...}}
    """
    lines, source = load_transcript(child, target)
    logger.info("Analyzing chat child=%s target=%s source=%s messages=%d", child["_id"], target["_id"], source, len(lines))

    if lines:
        analysis = get_analysis_client().analyze_conversation("\n".join(lines))
    else:
        analysis = (
            f"No messages were found between {child.get('fullName')} and {target.get('fullName')}, "
            "so there is nothing to analyze yet."
        )

    return {
        "analysis": analysis,
        "context": {
            "childName": child.get("fullName"),
            "targetName": target.get("fullName"),
            "targetRole": target.get("role"),
            "messageCount": len(lines),
            "source": source,
            "isFriend": target["_id"] in (child.get("friends") or []),
            "isClassroomMember": RoomService().share_room(child["_id"], target["_id"]),
        }
    }
