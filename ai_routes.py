import logging
from datetime import timezone

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from pymongo import ReturnDocument

import llm
from database import create_document, get_db, get_or_404, now_utc, parse_object_id, to_str_id
from schemas import AIPrediction, AnalyzeImageRequest, PredictionStatusRequest
from security import require_admin, require_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["ai"])

CONDITION_FACTORS = {"New": 1.0, "Used": 0.8}
SEVERITY_FACTORS = {"None": 0, "Minor": 0.1, "Moderate": 0.3, "Major": 0.5}


def days_since(moment) -> int:
    if moment is None:
        return 0
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return max((now_utc() - moment).days, 0)


def demand_analysis(cars) -> list:
    """Per brand+model: sales, stock, days on market and a demand score (higher is hotter)."""
    models = {}
    for car in cars:
        key = f"{car['brand']} {car['model']}"
        entry = models.setdefault(key, {"model": key, "total": 0, "sold": 0, "available": 0, "days_on_market": 0})
        entry["total"] += 1
        if car.get("status") == "sold":
            entry["sold"] += 1
        elif car.get("status") == "available":
            entry["available"] += 1
            entry["days_on_market"] += days_since(car.get("created_at"))

    out = []
    for entry in models.values():
        score = entry["sold"] / entry["total"] * 100
        if entry["available"] > 0:
            score -= entry["days_on_market"] / (entry["available"] * 30) * 20
        out.append({
            "model": entry["model"],
            "value": score,
            "confidence": score,
            "sales": entry["sold"],
            "available": entry["available"],
            "days_on_market": entry["days_on_market"],
        })
    return out


def damage_score(defects: list) -> float:
    return sum(SEVERITY_FACTORS.get(d["severity"], 0) * d["confidence"] / 100 for d in defects)


@router.get("/predictions")
def predictions(user=Depends(require_user)):
    fields = {"brand": 1, "model": 1, "year": 1, "price": 1, "status": 1, "created_at": 1}
    return demand_analysis(get_db()["car"].find({}, fields))


@router.get("/image-analysis")
def image_analysis(user=Depends(require_user)):
    db = get_db()
    out = []
    for item in db["aiprediction"].find().sort("created_at", -1):
        car = db["car"].find_one({"_id": ObjectId(item["car_id"])}) if ObjectId.is_valid(item["car_id"]) else None
        entry = to_str_id(item)
        entry["car"] = None
        entry["predicted_value"] = None
        if car:
            entry["car"] = {k: car.get(k) for k in ("brand", "model", "year", "price", "images", "condition")}
            entry["predicted_value"] = car["price"] * CONDITION_FACTORS.get(car.get("condition"), 0.8)
        entry["damage_score"] = damage_score(item.get("defects", []))
        out.append(entry)
    return out


@router.post("/cars/analyze-image", status_code=201)
def analyze_image(payload: AnalyzeImageRequest, admin=Depends(require_admin)):
    car = get_or_404("car", payload.car_id, "Car")
    assessment = llm.assess_image(payload.image_url)
    prediction = AIPrediction(
        car_id=payload.car_id,
        model=f"{car['brand']} {car['model']}",
        confidence=assessment["confidence"],
        status="pending",
        image_url=payload.image_url,
        defects=assessment["defects"],
    )
    prediction_id = create_document("aiprediction", prediction)
    logger.info(f"Image analysis {prediction_id} stored for car {payload.car_id}")
    return to_str_id(get_or_404("aiprediction", prediction_id, "Prediction"))


@router.patch("/predictions/{prediction_id}/status")
def update_prediction_status(prediction_id: str, payload: PredictionStatusRequest, admin=Depends(require_admin)):
    doc = get_db()["aiprediction"].find_one_and_update(
        {"_id": parse_object_id(prediction_id, "Prediction ID")},
        {"$set": {"status": payload.status, "updated_at": now_utc()}},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise HTTPException(status_code=404, detail="Prediction not found")
    return to_str_id(doc)
