"""
Faculty Messaging Service

Delivers one faculty message to room members through Stream and
mirrors each delivery into the messages collection.

DELIVERY:
- target user given  -> only that user
- otherwise          -> every room member except the sender
- each recipient gets the message in their own two-party channel
- a failed recipient is reported and the rest still go out
"""
import logging
from typing import List, Optional

from app.services.mongo_service import UserService, MessageService
from app.services.stream_client import get_stream_client

logger = logging.getLogger(__name__)


class FacultyMessenger:
    """
    Fan-out for one faculty member and one of their rooms.
    """

    def __init__(self, faculty: dict, room: dict):
        self.faculty = faculty
        self.room = room
        self.stream = get_stream_client()
        self.users = UserService()
        self.messages = MessageService()

    def recipients(self, target_user: Optional[dict] = None) -> List[dict]:
        if target_user is not None:
            return [target_user]
        member_ids = [m for m in self.room.get("members", []) if m != self.faculty["_id"]]
        return self.users.get_many(member_ids, ["fullName", "email"])

    def _deliver_one(self, recipient: dict, text: str, message_type: str, attachments: List[dict],
                     file_url: str = None, file_name: str = None):
        faculty_id, recipient_id = str(self.faculty["_id"]), str(recipient["_id"])

        # Both users must exist in Stream before the channel is created
        try:
            self.stream.upsert_user(self.faculty)
            self.stream.upsert_user(recipient)
        except Exception as e:
            logger.warning("Stream user upsert failed for %s, sending anyway: %s", recipient_id, e)

        stream_message_id = self.stream.send_direct_message(faculty_id, recipient_id, text, attachments)
        self.messages.insert(
            sender=self.faculty["_id"],
            recipient=recipient["_id"],
            content=text,
            message_type=message_type,
            room_id=self.room["_id"],
            stream_message_id=stream_message_id,
            file_url=file_url,
            file_name=file_name
        )

    def send(self, text: str, message_type: str = "text", attachments: List[dict] = None,
             target_user: dict = None, file_url: str = None, file_name: str = None) -> dict:
        """
        Send to the target user or the whole room.

        Returns:
            {"results": [...], "totalSent": n, "totalFailed": n}
        """
        results = []
        for recipient in self.recipients(target_user):
            result = {
                "_id": str(recipient["_id"]),
                "fullName": recipient.get("fullName"),
                "email": recipient.get("email"),
                "status": "sent"
            }
            try:
                self._deliver_one(recipient, text, message_type, attachments or [], file_url, file_name)
            except Exception as e:
                logger.error("Failed to deliver room %s message to %s: %s", self.room["_id"], recipient["_id"], e)
                result["status"] = "failed"
                result["error"] = str(e)
            results.append(result)

        total_sent = sum(1 for r in results if r["status"] == "sent")
        logger.info(
            "Faculty %s messaged room %s: sent=%d failed=%d",
            self.faculty["_id"], self.room["_id"], total_sent, len(results) - total_sent
        )
        return {
            "results": results,
            "totalSent": total_sent,
            "totalFailed": len(results) - total_sent
        }
