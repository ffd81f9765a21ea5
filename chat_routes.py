import logging

from fastapi import APIRouter, Depends, HTTPException
from pymongo.errors import PyMongoError

from chatbot import reply_to
from database import create_document, get_db, get_documents, now_utc, parse_object_id, to_str_id
from schemas import ChatLog, ChatRequest
from security import get_current_user, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chatbot"])


@router.post("/chat")
def chat(payload: ChatRequest, user=Depends(get_current_user)):
    if not payload.message or not payload.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")

    reply = reply_to(payload.message)

    log = ChatLog(
        user=user["email"] if user else "anonymous",
        message=payload.message,
        response=reply,
        timestamp=now_utc(),
    )
    try:
        create_document("chatlog", log)
    except PyMongoError as e:
        # The visitor still gets the reply
        logger.error(f"Error saving chat log: {e}")

    return {"reply": reply}


@router.get("/chat/logs")
def list_chat_logs(admin=Depends(require_admin)):
    return [to_str_id(log) for log in get_documents("chatlog", sort=[("timestamp", -1)])]


@router.delete("/chat/logs")
def clear_chat_logs(admin=Depends(require_admin)):
    result = get_db()["chatlog"].delete_many({})
    return {"message": "Chat logs cleared", "deleted_count": result.deleted_count}


@router.delete("/chat/logs/{log_id}")
def delete_chat_log(log_id: str, admin=Depends(require_admin)):
    result = get_db()["chatlog"].delete_one({"_id": parse_object_id(log_id, "Log ID")})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Chat log not found")
    return {"message": "Chat log deleted"}
