from fastapi import APIRouter, Depends
from pymongo import ReturnDocument

from database import create_document, get_db, now_utc, to_str_id
from schemas import Footer
from security import require_admin

router = APIRouter(prefix="/api/footer", tags=["footer"])


def latest_footer():
    return get_db()["footer"].find_one(sort=[("updated_at", -1)])


@router.get("")
def get_footer():
    footer = latest_footer()
    if not footer:
        create_document("footer", Footer())
        footer = latest_footer()
    return to_str_id(footer)


@router.put("")
def update_footer(payload: Footer, admin=Depends(require_admin)):
    footer = latest_footer()
    if not footer:
        create_document("footer", payload)
        return to_str_id(latest_footer())
    doc = get_db()["footer"].find_one_and_update(
        {"_id": footer["_id"]},
        {"$set": {**payload.model_dump(), "updated_at": now_utc()}},
        return_document=ReturnDocument.AFTER,
    )
    return to_str_id(doc)
