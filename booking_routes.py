import logging

from fastapi import APIRouter, Depends, HTTPException
from pymongo import ReturnDocument

from database import create_document, get_db, get_documents, get_or_404, now_utc, parse_object_id, to_str_id
from schemas import Booking, BookingUpdate
from security import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["test-drives"])

# Bookings in these states hold their slot
ACTIVE_STATUSES = ["pending", "approved"]


@router.post("/test-drive", status_code=201)
def book_test_drive(payload: Booking):
    clash = get_db()["booking"].find_one({
        "car_model": payload.car_model,
        "date": payload.date,
        "time": payload.time,
        "status": {"$in": ACTIVE_STATUSES},
    })
    if clash:
        raise HTTPException(status_code=400, detail="This time slot is already booked for this car")

    booking = payload.model_copy(update={"status": "pending"})
    booking_id = create_document("booking", booking)
    logger.info(f"Test drive {booking_id} booked: {payload.car_model} {payload.date} {payload.time}")
    return {"message": "Test drive booked successfully", "booking": to_str_id(get_or_404("booking", booking_id, "Booking"))}


@router.get("/test-drives")
def list_test_drives(admin=Depends(require_admin)):
    return [to_str_id(b) for b in get_documents("booking", sort=[("created_at", -1)])]


@router.put("/test-drives/{booking_id}")
def update_test_drive(booking_id: str, payload: BookingUpdate, admin=Depends(require_admin)):
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    changes["updated_at"] = now_utc()
    doc = get_db()["booking"].find_one_and_update(
        {"_id": parse_object_id(booking_id, "Booking ID")},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise HTTPException(status_code=404, detail="Booking not found")
    return to_str_id(doc)


@router.delete("/test-drives/{booking_id}")
def delete_test_drive(booking_id: str, admin=Depends(require_admin)):
    result = get_db()["booking"].delete_one({"_id": parse_object_id(booking_id, "Booking ID")})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Booking not found")
    return {"message": "Booking deleted successfully"}
