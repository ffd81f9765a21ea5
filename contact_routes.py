import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from database import create_document, get_db, get_documents, parse_object_id, to_str_id
from schemas import Message, parse_or_400
from security import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["contact"])

REQUIRED_FIELDS = ("full_name", "email", "topic", "message")


class ContactForm(BaseModel):
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    car_model: Optional[str] = None
    preferred_date: Optional[str] = None
    topic: Optional[str] = None
    message: Optional[str] = None


@router.post("/submit", status_code=201)
def submit_message(form: ContactForm):
    data = form.model_dump(exclude_none=True)
    if any(not str(data.get(f, "")).strip() for f in REQUIRED_FIELDS):
        raise HTTPException(status_code=400, detail="All fields are required.")
    message = parse_or_400(Message, data)
    message_id = create_document("message", message)
    logger.info(f"Contact message {message_id} from {message.email}")
    return {"message": "Message sent successfully!", "id": message_id}


@router.get("/messages")
def list_messages(admin=Depends(require_admin)):
    return [to_str_id(m) for m in get_documents("message", sort=[("created_at", -1)])]


@router.delete("/delete/{message_id}")
def delete_message(message_id: str, admin=Depends(require_admin)):
    result = get_db()["message"].delete_one({"_id": parse_object_id(message_id, "Message ID")})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Message not found")
    return {"message": "Message deleted successfully!"}
