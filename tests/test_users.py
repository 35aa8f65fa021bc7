"""
Streamify API - User Tests
==========================
Recommended users, friend requests, friends, parent/child linking.
"""

from datetime import datetime, timedelta

from bson import ObjectId


def _onboard(client, user):
    resp = client.post("/api/auth/onboarding", headers=user["headers"], json={"fullName": user["fullName"]})
    assert resp.status_code == 200


def _befriend(client, a, b):
    sent = client.post(f"/api/users/friend-request/{b['_id']}", headers=a["headers"])
    assert sent.status_code == 201, sent.text
    accepted = client.put(f"/api/users/friend-request/{sent.json()['_id']}/accept", headers=b["headers"])
    assert accepted.status_code == 200, accepted.text


class TestRecommended:

    def test_recommended_excludes_self_friends_and_not_onboarded(self, client, make_user):
        me, friend, stranger, newbie = (make_user(full_name=n) for n in ("Me Me", "Fri End", "Str Anger", "New Bie"))
        for user in (me, friend, stranger):
            _onboard(client, user)
        _befriend(client, me, friend)

        resp = client.get("/api/users", headers=me["headers"])
        assert resp.status_code == 200
        ids = {u["_id"] for u in resp.json()}
        assert ids == {stranger["_id"]}


class TestFriendRequests:

    def test_request_accept_and_list_friends(self, client, make_user):
        a, b = make_user(full_name="Ann Able"), make_user(full_name="Bob Baker")
        sent = client.post(f"/api/users/friend-request/{b['_id']}", headers=a["headers"])
        assert sent.status_code == 201
        assert sent.json()["status"] == "pending"

        count = client.get("/api/users/friend-requests/count", headers=b["headers"])
        assert count.json() == {"count": 1}

        outgoing = client.get("/api/users/outgoing-friend-requests", headers=a["headers"]).json()
        assert [r["recipient"]["fullName"] for r in outgoing] == ["Bob Baker"]

        incoming = client.get("/api/users/friend-requests", headers=b["headers"]).json()
        assert [r["sender"]["fullName"] for r in incoming["incomingReqs"]] == ["Ann Able"]

        accepted = client.put(f"/api/users/friend-request/{sent.json()['_id']}/accept", headers=b["headers"])
        assert accepted.status_code == 200

        friends_a = client.get("/api/users/friends", headers=a["headers"]).json()
        friends_b = client.get("/api/users/friends", headers=b["headers"]).json()
        assert [f["_id"] for f in friends_a] == [b["_id"]]
        assert [f["_id"] for f in friends_b] == [a["_id"]]

        accepted_reqs = client.get("/api/users/friend-requests", headers=a["headers"]).json()["acceptedReqs"]
        assert accepted_reqs[0]["recipient"]["fullName"] == "Bob Baker"

    def test_request_to_self(self, client, make_user):
        a = make_user()
        resp = client.post(f"/api/users/friend-request/{a['_id']}", headers=a["headers"])
        assert resp.status_code == 400

    def test_request_to_unknown_user(self, client, make_user):
        a = make_user()
        resp = client.post(f"/api/users/friend-request/{ObjectId()}", headers=a["headers"])
        assert resp.status_code == 404

    def test_request_with_malformed_id(self, client, make_user):
        a = make_user()
        resp = client.post("/api/users/friend-request/not-an-id", headers=a["headers"])
        assert resp.status_code == 400

    def test_duplicate_request_either_direction(self, client, make_user):
        a, b = make_user(), make_user()
        assert client.post(f"/api/users/friend-request/{b['_id']}", headers=a["headers"]).status_code == 201
        assert client.post(f"/api/users/friend-request/{b['_id']}", headers=a["headers"]).status_code == 400
        assert client.post(f"/api/users/friend-request/{a['_id']}", headers=b["headers"]).status_code == 400

    def test_request_when_already_friends(self, client, make_user, mongo_db):
        a, b = make_user(), make_user()
        _befriend(client, a, b)
        mongo_db.friendrequests.delete_many({})
        resp = client.post(f"/api/users/friend-request/{b['_id']}", headers=a["headers"])
        assert resp.status_code == 400
        assert "already friends" in resp.json()["detail"]

    def test_only_recipient_can_accept(self, client, make_user):
        a, b, c = make_user(), make_user(), make_user()
        sent = client.post(f"/api/users/friend-request/{b['_id']}", headers=a["headers"]).json()
        resp = client.put(f"/api/users/friend-request/{sent['_id']}/accept", headers=c["headers"])
        assert resp.status_code == 403

    def test_accept_unknown_request(self, client, make_user):
        a = make_user()
        resp = client.put(f"/api/users/friend-request/{ObjectId()}/accept", headers=a["headers"])
        assert resp.status_code == 404


class TestRemoveFriend:

    def test_remove_friend_both_directions(self, client, make_user):
        a, b = make_user(), make_user()
        _befriend(client, a, b)
        resp = client.delete(f"/api/users/friends/{b['_id']}", headers=a["headers"])
        assert resp.status_code == 200
        assert client.get("/api/users/friends", headers=a["headers"]).json() == []
        assert client.get("/api/users/friends", headers=b["headers"]).json() == []

    def test_remove_non_friend(self, client, make_user):
        a, b = make_user(), make_user()
        resp = client.delete(f"/api/users/friends/{b['_id']}", headers=a["headers"])
        assert resp.status_code == 400

    def test_remove_unknown_user(self, client, make_user):
        a = make_user()
        resp = client.delete(f"/api/users/friends/{ObjectId()}", headers=a["headers"])
        assert resp.status_code == 404


class TestParentLinks:

    def test_link_child_by_email(self, client, linked_family):
        parent, child = linked_family
        children = client.get("/api/users/children", headers=parent["headers"]).json()
        assert [c["_id"] for c in children] == [child["_id"]]

    def test_link_child_unknown_email(self, client, make_user):
        parent = make_user("parent")
        resp = client.post("/api/users/link-child", json={"childEmail": "nobody@example.com"}, headers=parent["headers"])
        assert resp.status_code == 404

    def test_link_child_already_linked(self, client, linked_family, make_user):
        _, child = linked_family
        other_parent = make_user("parent")
        resp = client.post("/api/users/link-child", json={"childEmail": child["email"]}, headers=other_parent["headers"])
        assert resp.status_code == 400

    def test_children_requires_parent(self, client, make_user):
        student = make_user("student")
        assert client.get("/api/users/children", headers=student["headers"]).status_code == 403

    def test_link_code_flow(self, client, make_user):
        parent, student = make_user("parent"), make_user("student")
        gen = client.post("/api/users/generate-link-code", headers=parent["headers"])
        assert gen.status_code == 200
        code = gen.json()["linkCode"]
        assert len(code) == 6 and code.isdigit()

        used = client.post("/api/users/use-link-code", json={"code": code}, headers=student["headers"])
        assert used.status_code == 200
        assert used.json()["parent"]["_id"] == parent["_id"]

        parent_links = client.get("/api/users/linked-accounts", headers=parent["headers"]).json()
        student_links = client.get("/api/users/linked-accounts", headers=student["headers"]).json()
        assert [u["_id"] for u in parent_links] == [student["_id"]]
        assert [u["_id"] for u in student_links] == [parent["_id"]]

        children = client.get("/api/users/children", headers=parent["headers"]).json()
        assert [c["_id"] for c in children] == [student["_id"]]

        # the code is single-use
        another = make_user("student")
        again = client.post("/api/users/use-link-code", json={"code": code}, headers=another["headers"])
        assert again.status_code == 404

    def test_expired_link_code(self, client, make_user, mongo_db):
        parent, student = make_user("parent"), make_user("student")
        mongo_db.users.update_one(
            {"_id": ObjectId(parent["_id"])},
            {"$set": {"linkCode": "123456", "linkCodeExpires": datetime.utcnow() - timedelta(minutes=1)}}
        )
        resp = client.post("/api/users/use-link-code", json={"code": "123456"}, headers=student["headers"])
        assert resp.status_code == 404

    def test_use_link_code_when_already_linked(self, client, linked_family, make_user):
        _, child = linked_family
        parent2 = make_user("parent")
        code = client.post("/api/users/generate-link-code", headers=parent2["headers"]).json()["linkCode"]
        resp = client.post("/api/users/use-link-code", json={"code": code}, headers=child["headers"])
        assert resp.status_code == 400

    def test_link_code_roles(self, client, make_user):
        parent, student = make_user("parent"), make_user("student")
        assert client.post("/api/users/generate-link-code", headers=student["headers"]).status_code == 403
        resp = client.post("/api/users/use-link-code", json={"code": "123456"}, headers=parent["headers"])
        assert resp.status_code == 403

    def test_use_link_code_format(self, client, make_user):
        student = make_user("student")
        resp = client.post("/api/users/use-link-code", json={"code": "12ab"}, headers=student["headers"])
        assert resp.status_code == 400
