"""
Direct messages between customers and admins.

Customer messages live in `chat`, admin replies in `adminchat`; a
conversation is the union of both, ordered by timestamp. Participant ids
are stored as strings.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from database import create_document, get_db, get_or_404, is_valid_object_id, now_utc, parse_object_id, to_str_id
from schemas import AdminChat, AdminChatSendRequest, Chat, UserChatSendRequest
from security import require_admin, require_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin-chat", tags=["admin-chat"])
user_router = APIRouter(prefix="/api/user-chat", tags=["admin-chat"])


def conversation(admin_id: str, user_id: str) -> list:
    db = get_db()
    outgoing = db["adminchat"].find({"sender_id": admin_id, "receiver_id": user_id})
    incoming = db["chat"].find({"sender_id": user_id, "receiver_id": admin_id})
    messages = [to_str_id(m) for m in list(outgoing) + list(incoming)]
    return sorted(messages, key=lambda m: m["timestamp"])


# Admin side

@router.post("/send", status_code=201)
def admin_send(payload: AdminChatSendRequest, admin=Depends(require_admin)):
    get_or_404("user", payload.receiver_id, "User")
    message = AdminChat(
        sender_id=str(admin["_id"]),
        receiver_id=payload.receiver_id,
        message=payload.message,
        timestamp=now_utc(),
    )
    message_id = create_document("adminchat", message)
    return to_str_id(get_or_404("adminchat", message_id, "Message"))


@router.get("/history/{user_id}")
def admin_history(user_id: str, admin=Depends(require_admin)):
    return conversation(str(admin["_id"]), user_id)


@router.get("/conversations")
def admin_conversations(admin=Depends(require_admin)):
    db = get_db()
    admin_id = str(admin["_id"])
    threads = {}

    for m in db["adminchat"].find({"sender_id": admin_id}):
        threads.setdefault(m["receiver_id"], []).append(m)
    for m in db["chat"].find({"receiver_id": admin_id}):
        threads.setdefault(m["sender_id"], []).append(m)

    out = []
    for user_id, messages in threads.items():
        if not is_valid_object_id(user_id):
            continue
        user = db["user"].find_one({"_id": parse_object_id(user_id)})
        if not user:
            continue
        last = max(messages, key=lambda m: m["timestamp"])
        unread = sum(1 for m in messages if m["sender_id"] == user_id and m.get("status") == "sent")
        out.append({
            "user_id": user_id,
            "user_name": user.get("display_name"),
            "user_email": user.get("email"),
            "last_message": to_str_id(last),
            "unread_count": unread,
            "timestamp": last["timestamp"],
        })
    return sorted(out, key=lambda c: c["timestamp"], reverse=True)


@router.put("/read/{user_id}")
def admin_mark_read(user_id: str, admin=Depends(require_admin)):
    result = get_db()["chat"].update_many(
        {"sender_id": user_id, "receiver_id": str(admin["_id"]), "status": "sent"},
        {"$set": {"status": "read"}},
    )
    return {"message": "Messages marked as read", "updated": result.modified_count}


@router.delete("/message/{message_id}")
def admin_delete_chat_message(message_id: str, admin=Depends(require_admin)):
    _id = parse_object_id(message_id, "Message ID")
    db = get_db()
    for collection in ("adminchat", "chat"):
        message = db[collection].find_one({"_id": _id})
        if message:
            break
    else:
        raise HTTPException(status_code=404, detail="Message not found")

    admin_id = str(admin["_id"])
    if admin_id not in (message["sender_id"], message["receiver_id"]):
        raise HTTPException(status_code=403, detail="Not authorized to delete this message")
    db[collection].delete_one({"_id": _id})
    return {"message": "Message deleted successfully"}


@router.delete("/conversation/{user_id}")
def admin_delete_conversation(user_id: str, admin=Depends(require_admin)):
    db = get_db()
    admin_id = str(admin["_id"])
    deleted = db["adminchat"].delete_many({"sender_id": admin_id, "receiver_id": user_id}).deleted_count
    deleted += db["chat"].delete_many({"sender_id": user_id, "receiver_id": admin_id}).deleted_count
    logger.info(f"Admin {admin_id} deleted {deleted} messages with {user_id}")
    return {"message": "Conversation deleted successfully", "deleted_count": deleted}


@router.delete("/delete-message/{message_id}")
def admin_delete_contact_message(message_id: str, admin=Depends(require_admin)):
    message = get_db()["message"].find_one_and_delete({"_id": parse_object_id(message_id, "Message ID")})
    if not message:
        raise HTTPException(status_code=404, detail="Message not found")
    return {"message": "Message deleted successfully", "deleted_message": to_str_id(message)}


# Customer side

@user_router.post("/send", status_code=201)
def user_send(payload: UserChatSendRequest, user=Depends(require_user)):
    users = get_db()["user"]
    if payload.receiver_id:
        admin = users.find_one({"_id": parse_object_id(payload.receiver_id, "receiver ID"), "role": "admin"})
    else:
        admin = users.find_one({"role": "admin"})
    if not admin:
        raise HTTPException(status_code=404, detail="No admin available")

    message = Chat(
        sender_id=str(user["_id"]),
        receiver_id=str(admin["_id"]),
        message=payload.message,
        timestamp=now_utc(),
    )
    message_id = create_document("chat", message)
    return to_str_id(get_or_404("chat", message_id, "Message"))


@user_router.get("/history")
def user_history(user=Depends(require_user)):
    db = get_db()
    user_id = str(user["_id"])
    messages = list(db["chat"].find({"sender_id": user_id})) + list(db["adminchat"].find({"receiver_id": user_id}))
    return sorted((to_str_id(m) for m in messages), key=lambda m: m["timestamp"])
