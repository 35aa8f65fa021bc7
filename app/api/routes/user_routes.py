"""
User Routes - friends, friend requests and parent/child links

GET    /users                              - Recommended users
GET    /users/friends                      - My friends
POST   /users/friend-request/{id}          - Send friend request
PUT    /users/friend-request/{id}/accept   - Accept friend request
DELETE /users/friends/{id}                 - Remove friend
GET    /users/friend-requests              - Incoming + accepted requests
GET    /users/outgoing-friend-requests     - Pending requests I sent
GET    /users/friend-requests/count        - Pending incoming count
GET    /users/children                     - My children (parent)
POST   /users/link-child                   - Link child by email (parent)
POST   /users/generate-link-code           - New 6-digit link code (parent)
POST   /users/use-link-code                - Link to parent by code (student)
GET    /users/linked-accounts              - Linked accounts
GET    /users/child-conversations/{id}     - Child's conversation partners (parent)
GET    /users/children/{id}/conversations  - Same as above
"""

import logging
import secrets
from datetime import datetime, timedelta
from fastapi import APIRouter, HTTPException, Depends, Request

from app.core.auth import get_current_user, require_roles
from app.core.rate_limit import general_rate_limit, link_code_rate_limit
from app.services.mongo_service import UserService, FriendRequestService, serialize_doc, serialize_docs
from app.services.conversation_service import get_child_conversations
from app.utils.object_ids import parse_object_id
from app.schemas.schemas import LinkChildRequest, UseLinkCodeRequest

router = APIRouter(prefix="/users", tags=["Users"])
logger = logging.getLogger(__name__)

LINK_CODE_TTL = timedelta(minutes=10)
LINK_CODE_ATTEMPTS = 10


# ============================================================
# FRIENDS
# ============================================================

@router.get("")
@general_rate_limit
async def get_recommended_users(request: Request, user: dict = Depends(get_current_user)):
    """Onboarded users who are not me and not already my friends."""
    return serialize_docs(UserService().recommended_for(user))


@router.get("/friends")
@general_rate_limit
async def get_my_friends(request: Request, user: dict = Depends(get_current_user)):
    friends = UserService().get_many(
        user.get("friends") or [],
        ["fullName", "profilePic", "nativeLanguage", "learningLanguage", "role", "email"]
    )
    return serialize_docs(friends)


@router.post("/friend-request/{recipient_id}", status_code=201)
@general_rate_limit
async def send_friend_request(request: Request, recipient_id: str, user: dict = Depends(get_current_user)):
    recipient_oid = parse_object_id(recipient_id, "user ID")
    if recipient_oid == user["_id"]:
        raise HTTPException(status_code=400, detail="You can't send friend request to yourself")

    recipient = UserService().get_by_id(recipient_oid)
    if not recipient:
        raise HTTPException(status_code=404, detail="Recipient not found")

    if user["_id"] in (recipient.get("friends") or []):
        raise HTTPException(status_code=400, detail="You are already friends with this user")

    requests = FriendRequestService()
    if requests.exists_between(user["_id"], recipient_oid):
        raise HTTPException(status_code=400, detail="A friend request already exists between you and this user")

    return serialize_doc(requests.create(user["_id"], recipient_oid))


@router.put("/friend-request/{request_id}/accept")
@general_rate_limit
async def accept_friend_request(request: Request, request_id: str, user: dict = Depends(get_current_user)):
    request_oid = parse_object_id(request_id, "request ID")
    requests = FriendRequestService()
    friend_request = requests.get_by_id(request_oid)
    if not friend_request:
        raise HTTPException(status_code=404, detail="Friend request not found")

    if friend_request["recipient"] != user["_id"]:
        raise HTTPException(status_code=403, detail="You are not authorized to accept this request")

    requests.mark_accepted(request_oid)
    users = UserService()
    users.add_to_set(friend_request["sender"], friends=friend_request["recipient"])
    users.add_to_set(friend_request["recipient"], friends=friend_request["sender"])

    return {"success": True, "message": "Friend request accepted"}


@router.delete("/friends/{friend_id}")
@general_rate_limit
async def remove_friend(request: Request, friend_id: str, user: dict = Depends(get_current_user)):
    friend_oid = parse_object_id(friend_id, "user ID")
    users = UserService()
    if not users.get_by_id(friend_oid):
        raise HTTPException(status_code=404, detail="User not found")

    if friend_oid not in (user.get("friends") or []):
        raise HTTPException(status_code=400, detail="This user is not in your friends list")

    users.pull(user["_id"], friends=friend_oid)
    users.pull(friend_oid, friends=user["_id"])

    return {"success": True, "message": "Friend removed successfully"}


@router.get("/friend-requests")
@general_rate_limit
async def get_friend_requests(request: Request, user: dict = Depends(get_current_user)):
    requests = FriendRequestService()
    return {
        "incomingReqs": requests.find("sender", recipient=user["_id"], status="pending"),
        "acceptedReqs": requests.find("recipient", sender=user["_id"], status="accepted"),
    }


@router.get("/outgoing-friend-requests")
@general_rate_limit
async def get_outgoing_friend_requests(request: Request, user: dict = Depends(get_current_user)):
    return FriendRequestService().find("recipient", sender=user["_id"], status="pending")


@router.get("/friend-requests/count")
@general_rate_limit
async def get_friend_requests_count(request: Request, user: dict = Depends(get_current_user)):
    return {"count": FriendRequestService().count_incoming(user["_id"])}


# ============================================================
# PARENT / CHILD LINKS
# ============================================================

@router.get("/children")
@general_rate_limit
async def get_my_children(request: Request, user: dict = Depends(require_roles("parent"))):
    children = UserService().get_many(user.get("children") or [], ["fullName", "profilePic", "role", "email"])
    return serialize_docs(children)


@router.post("/link-child")
@general_rate_limit
async def link_child(request: Request, data: LinkChildRequest, user: dict = Depends(require_roles("parent"))):
    """Link a student account to the calling parent by email."""
    users = UserService()
    child = users.find_student_by_email(data.child_email)
    if not child:
        raise HTTPException(status_code=404, detail="Student not found with this email")

    if child.get("parent"):
        raise HTTPException(status_code=400, detail="This child is already linked to a parent")

    child = users.update(child["_id"], {"parent": user["_id"]})
    users.add_to_set(user["_id"], children=child["_id"])
    logger.info("Parent %s linked child %s by email", user["_id"], child["_id"])

    return {"success": True, "message": "Child linked successfully", "child": serialize_doc(child)}


@router.post("/generate-link-code")
@link_code_rate_limit
async def generate_link_code(request: Request, user: dict = Depends(require_roles("parent"))):
    """
    Generate a 6-digit code a student can use to link to this parent.
    Codes expire after 10 minutes and are unique among active codes.
    """
    users = UserService()
    link_code = None
    for _ in range(LINK_CODE_ATTEMPTS):
        candidate = f"{secrets.randbelow(900000) + 100000}"
        if not users.find_by_active_link_code(candidate):
            link_code = candidate
            break

    if link_code is None:
        raise HTTPException(status_code=500, detail="Failed to generate unique link code")

    expires_at = datetime.utcnow() + LINK_CODE_TTL
    users.set_link_code(user["_id"], link_code, expires_at)

    return {
        "success": True,
        "message": "Link code generated successfully",
        "linkCode": link_code,
        "expiresAt": expires_at
    }


@router.post("/use-link-code")
@link_code_rate_limit
async def use_link_code(request: Request, data: UseLinkCodeRequest, user: dict = Depends(require_roles("student"))):
    """Link the calling student to the parent who issued the code."""
    users = UserService()
    parent = users.find_by_active_link_code(data.code, role="parent")
    if not parent:
        raise HTTPException(status_code=404, detail="Invalid or expired link code")

    if user.get("parent"):
        raise HTTPException(status_code=400, detail="You are already linked to a parent")

    if user["_id"] in (parent.get("children") or []):
        raise HTTPException(status_code=400, detail="You are already linked to this parent")

    users.update(user["_id"], {"parent": parent["_id"]})
    users.add_to_set(user["_id"], linkedAccounts=parent["_id"])
    users.add_to_set(parent["_id"], children=user["_id"], linkedAccounts=user["_id"])
    users.set_link_code(parent["_id"], None, None)
    logger.info("Student %s linked to parent %s by code", user["_id"], parent["_id"])

    return {
        "success": True,
        "message": "Successfully linked to parent",
        "parent": serialize_doc({"_id": parent["_id"], "fullName": parent.get("fullName"), "email": parent.get("email")})
    }


@router.get("/linked-accounts")
@general_rate_limit
async def get_linked_accounts(request: Request, user: dict = Depends(get_current_user)):
    linked = UserService().get_many(user.get("linkedAccounts") or [], ["fullName", "email", "role", "profilePic"])
    return serialize_docs(linked)


# ============================================================
# CHILD CONVERSATIONS
# ============================================================

@router.get("/child-conversations/{child_id}")
@router.get("/children/{child_id}/conversations")
@general_rate_limit
async def child_conversations(request: Request, child_id: str, user: dict = Depends(require_roles("parent"))):
    """Everyone the child talks to: friends, classmates and direct chats."""
    child_oid = parse_object_id(child_id, "child ID")
    if child_oid not in (user.get("children") or []):
        raise HTTPException(status_code=403, detail="You can only view conversations of your linked children")

    child = UserService().get_by_id(child_oid)
    if not child:
        raise HTTPException(status_code=404, detail="Child not found")

    return get_child_conversations(child)
