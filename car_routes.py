import json
import logging
import re
from typing import List, Optional, Tuple

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pymongo import ReturnDocument
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

import llm
from database import create_document, get_db, get_or_404, is_valid_object_id, now_utc, parse_object_id, to_str_id
from schemas import BulkDeleteRequest, Car, CarImage, CarUpdate, PredictRequest, SearchFilters, SmartSearchRequest, parse_or_400
from security import require_admin
from storage import upload_image

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["cars"])

MAX_UPLOADS = 3
SORT_FIELDS = {"price", "year", "mileage", "created_at"}
DEFAULT_IMAGES = [
    {"url": "url_to_exterior2.jpg", "exists": False},
    {"url": "url_to_interior2.jpg", "exists": False},
]


# Payload helpers

async def read_car_payload(request: Request) -> Tuple[dict, List[UploadFile]]:
    """Accept either a JSON body or a multipart form carrying up to three `images` files."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form()
        files = [f for f in form.getlist("images") if isinstance(f, UploadFile)]
        data = {}
        for key in form.keys():
            values = [v for v in form.getlist(key) if not isinstance(v, UploadFile)]
            if not values:
                continue
            data[key] = values if len(values) > 1 else values[0]
        if len(files) > MAX_UPLOADS:
            raise HTTPException(status_code=400, detail=f"At most {MAX_UPLOADS} images can be uploaded")
        return data, files

    try:
        data = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be JSON or multipart form data")
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    return data, []


def parse_list_field(value, name: str) -> list:
    """Lists may arrive as real lists, JSON strings or comma-separated text."""
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return [part.strip() for part in value.split(",") if part.strip()]
        if isinstance(parsed, list):
            return parsed
    raise HTTPException(status_code=400, detail=f"{name} must be a list")


def normalize_images(images) -> List[dict]:
    return [{"url": img, "exists": True} if isinstance(img, str) else img for img in images]


def clean_car_data(data: dict) -> dict:
    data = {k: v for k, v in data.items() if v != ""}
    if "features" in data:
        data["features"] = parse_list_field(data["features"], "features")
    if "images" in data:
        data["images"] = normalize_images(parse_list_field(data["images"], "images"))
    return data


async def upload_files(files: List[UploadFile]) -> List[dict]:
    images = []
    for f in files:
        content = await f.read()
        url = await run_in_threadpool(upload_image, f.filename or "image", f.content_type, content)
        logger.info(f"Uploaded {f.filename} to {url}")
        images.append({"url": url, "exists": True})
    return images


# Blocking persistence for the async write handlers, run via run_in_threadpool

def insert_car(car: Car) -> dict:
    car_id = create_document("car", car)
    logger.info(f"Car {car_id} created: {car.brand} {car.model}")
    return to_str_id(get_db()["car"].find_one({"_id": ObjectId(car_id)}))


def apply_car_update(_id: ObjectId, update: dict) -> dict:
    update["updated_at"] = now_utc()
    doc = get_db()["car"].find_one_and_update(
        {"_id": _id},
        {"$set": update},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise HTTPException(status_code=404, detail="Car not found")
    logger.info(f"Car {_id} updated")
    return to_str_id(doc)


def build_search_query(filters: SearchFilters) -> dict:
    query = {}
    for field in ("brand", "model", "type", "fuel", "condition"):
        value = getattr(filters, field)
        if value:
            query[field] = {"$regex": re.escape(value), "$options": "i"}
    for field in ("year", "price", "mileage"):
        bounds = getattr(filters, field)
        if bounds is None:
            continue
        cond = {}
        # Mileage only has an upper bound in the search contract
        if bounds.min is not None and field != "mileage":
            cond["$gte"] = bounds.min
        if bounds.max is not None:
            cond["$lte"] = bounds.max
        if cond:
            query[field] = cond
    query["status"] = "available"
    return query


# Static routes first so they are not captured by /cars/{car_id}

@router.get("/cars")
def list_cars(
    drive_train: Optional[str] = None,
    min_mileage: Optional[int] = Query(None, ge=0),
    max_mileage: Optional[int] = Query(None, ge=0),
    sort_by: Optional[str] = None,
    sort_order: str = "asc",
):
    query = {}
    if drive_train:
        query["drive_train"] = drive_train.upper()
    if min_mileage is not None or max_mileage is not None:
        query["mileage"] = {}
        if min_mileage is not None:
            query["mileage"]["$gte"] = min_mileage
        if max_mileage is not None:
            query["mileage"]["$lte"] = max_mileage

    cursor = get_db()["car"].find(query)
    if sort_by in SORT_FIELDS:
        cursor = cursor.sort(sort_by, 1 if sort_order == "asc" else -1)
    cars = [to_str_id(c) for c in cursor]
    logger.info(f"Found {len(cars)} cars for {query}")
    return cars


@router.get("/cars/sold")
def list_sold_cars():
    return [to_str_id(c) for c in get_db()["car"].find({"status": "sold"})]


@router.get("/cars/sales/monthly")
def monthly_sales():
    pipeline = [
        {"$match": {"status": "sold"}},
        {
            "$group": {
                "_id": {"year": {"$year": "$updated_at"}, "month": {"$month": "$updated_at"}},
                "total_sales": {"$sum": "$price"},
                "count": {"$sum": 1},
            }
        },
        {"$sort": {"_id.year": -1, "_id.month": -1}},
        {"$limit": 12},
    ]
    return [
        {
            "year": row["_id"]["year"],
            "month": row["_id"]["month"],
            "total_sales": row["total_sales"],
            "count": row["count"],
        }
        for row in get_db()["car"].aggregate(pipeline)
    ]


@router.post("/cars", status_code=201)
async def create_car(request: Request, user=Depends(require_admin)):
    data, files = await read_car_payload(request)
    data = clean_car_data(data)
    car = parse_or_400(Car, data)

    if files:
        logger.info(f"Received {len(files)} files to upload")
        car.images = [CarImage(**img) for img in await upload_files(files)]
    elif not car.images:
        car.images = [CarImage(**img) for img in DEFAULT_IMAGES]

    return await run_in_threadpool(insert_car, car)


@router.delete("/cars/bulk-delete")
def bulk_delete_cars(payload: BulkDeleteRequest, user=Depends(require_admin)):
    if not payload.car_ids:
        raise HTTPException(status_code=400, detail="No car IDs provided")
    invalid = [i for i in payload.car_ids if not is_valid_object_id(i)]
    if invalid:
        return JSONResponse(status_code=400, content={"detail": "Invalid car IDs provided", "invalid_ids": invalid})

    result = get_db()["car"].delete_many({"_id": {"$in": [ObjectId(i) for i in payload.car_ids]}})
    logger.info(f"Bulk delete removed {result.deleted_count} of {len(payload.car_ids)} cars")
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="No cars found to delete")
    return {
        "success": True,
        "message": f"Successfully deleted {result.deleted_count} cars",
        "deleted_count": result.deleted_count,
    }


@router.post("/smart-search")
def smart_search(payload: SmartSearchRequest):
    filters = llm.extract_search_filters(payload.query)
    query = build_search_query(filters)
    cars = [to_str_id(c) for c in get_db()["car"].find(query)]
    return {
        "success": True,
        "count": len(cars),
        "filters": filters.model_dump(exclude_none=True),
        "cars": cars,
    }


@router.post("/cars/predict")
def predict_car(payload: PredictRequest):
    return llm.predict_value(payload)


# Dynamic routes

@router.get("/cars/{car_id}")
def get_car(car_id: str):
    return to_str_id(get_or_404("car", car_id, "Car"))


@router.put("/cars/{car_id}")
async def update_car(car_id: str, request: Request, user=Depends(require_admin)):
    existing = await run_in_threadpool(get_or_404, "car", car_id, "Car")
    data, files = await read_car_payload(request)
    data = clean_car_data(data)
    retained = data.pop("retained_images", None)

    update = parse_or_400(CarUpdate, data).model_dump(exclude_unset=True)
    if retained is not None:
        current = {img["url"]: img for img in existing.get("images", [])}
        images = [current.get(url, {"url": url, "exists": True}) for url in parse_list_field(retained, "retained_images")]
    else:
        images = update.get("images", existing.get("images", []))
    if files:
        images = images + await upload_files(files)
    update["images"] = images
    return await run_in_threadpool(apply_car_update, existing["_id"], update)


@router.delete("/cars/{car_id}")
def delete_car(car_id: str, user=Depends(require_admin)):
    car = get_db()["car"].find_one_and_delete({"_id": parse_object_id(car_id, "Car ID")})
    if not car:
        raise HTTPException(status_code=404, detail="Car not found")
    return {"message": "Car deleted successfully"}
