"""
Streamify API - AI Chat Analysis Tests
======================================
Transcript sources, access rules and error mapping for /ai/analyze-chat.
"""

from datetime import datetime

from bson import ObjectId


def _analyze(client, parent, child, target):
    return client.post(
        "/api/ai/analyze-chat",
        json={"childUid": child["_id"], "targetUid": target["_id"]},
        headers=parent["headers"],
    )


def _store_message(mongo_db, sender, recipient, content, created):
    mongo_db.messages.insert_one({
        "sender": ObjectId(sender["_id"]),
        "recipient": ObjectId(recipient["_id"]),
        "content": content,
        "messageType": "text",
        "roomId": None,
        "isRead": False,
        "createdAt": created,
        "updatedAt": created,
    })


class TestAnalyzeChat:

    def test_uses_stream_history(self, client, linked_family, make_user, fake_stream, fake_ai):
        parent, child = linked_family
        friend = make_user("student", "Riley Friend")
        key = "-".join(sorted([child["_id"], friend["_id"]]))
        fake_stream.channel_messages[key] = [
            {"user": {"id": child["_id"]}, "text": "hi!", "created_at": "2024-05-01T08:00:00Z"},
            {"user": {"id": friend["_id"]}, "text": "hello", "created_at": "2024-05-01T08:01:30Z"},
        ]

        resp = _analyze(client, parent, child, friend)
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["analysis"] == "The child seems to be doing well."
        assert data["context"]["source"] == "stream"
        assert data["context"]["messageCount"] == 2
        assert data["context"]["childName"] == "Casey Child"
        assert data["context"]["targetName"] == "Riley Friend"
        assert data["context"]["targetRole"] == "student"

        assert fake_ai.transcripts == [
            "[2024-05-01 08:00:00] Casey Child: hi!\n[2024-05-01 08:01:30] Riley Friend: hello"
        ]

    def test_falls_back_to_stored_messages(self, client, linked_family, make_user, fake_stream, fake_ai, mongo_db):
        parent, child = linked_family
        tutor = make_user("faculty", "Tess Teacher")
        _store_message(mongo_db, tutor, child, "Please submit your essay", datetime(2024, 5, 2, 9, 0, 0))
        _store_message(mongo_db, child, tutor, "Will do", datetime(2024, 5, 2, 9, 5, 0))

        data = _analyze(client, parent, child, tutor).json()
        assert data["context"]["source"] == "mongo"
        assert data["context"]["messageCount"] == 2
        assert fake_ai.transcripts[0].splitlines() == [
            "[2024-05-02 09:00:00] Tess Teacher: Please submit your essay",
            "[2024-05-02 09:05:00] Casey Child: Will do",
        ]

    def test_stream_error_falls_back(self, client, linked_family, make_user, fake_stream, fake_ai, mongo_db):
        parent, child = linked_family
        pal = make_user("student", "Pal")
        fake_stream.query_error = RuntimeError("timeout")
        _store_message(mongo_db, pal, child, "yo", datetime(2024, 5, 3, 12, 0, 0))

        data = _analyze(client, parent, child, pal).json()
        assert data["context"]["source"] == "mongo"

    def test_no_messages_skips_model(self, client, linked_family, make_user, fake_ai):
        parent, child = linked_family
        quiet = make_user("student", "Quiet Kid")
        data = _analyze(client, parent, child, quiet).json()
        assert data["context"]["messageCount"] == 0
        assert data["context"]["source"] == "none"
        assert "No messages were found" in data["analysis"]
        assert fake_ai.transcripts == []

    def test_relationship_flags(self, client, linked_family, make_user, fake_ai, mongo_db):
        parent, child = linked_family
        classmate = make_user("student", "Class Mate")
        faculty = make_user("faculty", "Fay Faculty")
        room = client.post("/api/rooms/create", json={"roomName": "Art"}, headers=faculty["headers"]).json()["room"]
        for member in (child, classmate):
            client.post("/api/rooms/join", json={"inviteCode": room["inviteCode"]}, headers=member["headers"])
        mongo_db.users.update_one({"_id": ObjectId(child["_id"])}, {"$addToSet": {"friends": ObjectId(classmate["_id"])}})

        context = _analyze(client, parent, child, classmate).json()["context"]
        assert context["isFriend"] is True
        assert context["isClassroomMember"] is True

        stranger = make_user("student", "Stran Ger")
        context = _analyze(client, parent, child, stranger).json()["context"]
        assert context["isFriend"] is False
        assert context["isClassroomMember"] is False


class TestAnalyzeChatErrors:

    def test_requires_parent(self, client, linked_family, make_user):
        _, child = linked_family
        other = make_user("student")
        assert _analyze(client, child, child, other).status_code == 403

    def test_child_must_be_linked(self, client, make_user, fake_ai):
        parent, stranger, target = make_user("parent"), make_user("student"), make_user("student")
        resp = _analyze(client, parent, stranger, target)
        assert resp.status_code == 403
        assert fake_ai.transcripts == []

    def test_unknown_child_or_target(self, client, linked_family, mongo_db):
        parent, child = linked_family
        ghost = {"_id": str(ObjectId())}
        # an id that is not one of the caller's children is refused before any lookup
        assert _analyze(client, parent, ghost, child).status_code == 403
        assert _analyze(client, parent, child, ghost).status_code == 404

        mongo_db.users.delete_one({"_id": ObjectId(child["_id"])})
        resp = _analyze(client, parent, child, ghost)
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Child not found"

    def test_malformed_ids(self, client, linked_family):
        parent, child = linked_family
        resp = _analyze(client, parent, child, {"_id": "not-an-id"})
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "targetUid"

    def test_missing_api_key(self, client, linked_family, make_user, fake_stream, unconfigured_ai):
        parent, child = linked_family
        friend = make_user("student")
        key = "-".join(sorted([child["_id"], friend["_id"]]))
        fake_stream.channel_messages[key] = [{"user": {"id": friend["_id"]}, "text": "sup"}]

        resp = _analyze(client, parent, child, friend)
        assert resp.status_code == 500
        assert "OpenAI API key" in resp.json()["detail"]
