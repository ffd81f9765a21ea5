import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from pymongo.errors import PyMongoError

from database import create_document, get_db
from schemas import Car
from security import require_admin
from storage import catalogue_image_urls, image_exists, in_catalogue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])

DEMO_CARS = [
    {
        "brand": "Bentley",
        "model": "continental",
        "year": 2023,
        "price": 202500,
        "type": "Coupe",
        "color": "Beluga Black",
        "engine_size": "6.0L",
        "engine_cylinders": 12,
        "engine_horsepower": 626,
        "drive_train": "AWD",
        "description": "The Bentley Continental GT represents the pinnacle of British luxury grand touring.",
        "features": ["Diamond Quilted Leather", "Naim Audio System", "Rotating Display", "Air Suspension"],
    },
    {
        "brand": "Ferrari",
        "model": "812",
        "year": 2023,
        "price": 398500,
        "type": "Coupe",
        "color": "Rosso Corsa",
        "engine_size": "6.5L",
        "engine_cylinders": 12,
        "engine_horsepower": 789,
        "drive_train": "RWD",
        "description": "The Ferrari 812 Superfast is the most powerful and fastest road-going Ferrari ever built.",
        "features": ["Carbon Ceramic Brakes", "JBL Premium Sound", "Carbon Fiber Racing Seats", "Telemetry System"],
    },
    {
        "brand": "Lamborghini",
        "model": "aventador",
        "year": 2023,
        "price": 507353,
        "type": "Coupe",
        "color": "Verde Mantis",
        "engine_size": "6.5L",
        "engine_cylinders": 12,
        "engine_horsepower": 769,
        "drive_train": "AWD",
        "description": "The Lamborghini Aventador represents the pinnacle of Lamborghini design and engineering.",
        "features": ["Scissor Doors", "Carbon Fiber Monocoque", "Dynamic Steering", "Adaptive Magneto Suspension"],
    },
    {
        "brand": "Lamborghini",
        "model": "urus",
        "year": 2023,
        "price": 229495,
        "type": "SUV",
        "color": "Giallo Auge",
        "engine_size": "4.0L",
        "engine_cylinders": 8,
        "engine_horsepower": 641,
        "drive_train": "AWD",
        "description": "The Lamborghini Urus is the world's first Super Sport Utility Vehicle.",
        "features": ["ANIMA Selector", "Bang & Olufsen Sound", "Panoramic Roof", "Carbon Ceramic Brakes"],
    },
    {
        "brand": "McLaren",
        "model": "720s",
        "year": 2023,
        "price": 299000,
        "type": "Coupe",
        "color": "Papaya Spark",
        "engine_size": "4.0L",
        "engine_cylinders": 8,
        "engine_horsepower": 710,
        "drive_train": "RWD",
        "description": "The McLaren 720S delivers an unrivaled combination of performance, craftsmanship and technology.",
        "features": ["Dihedral Doors", "Variable Drift Control", "Track Telemetry", "Carbon Fiber Chassis"],
    },
    {
        "brand": "Porsche",
        "model": "911",
        "year": 2023,
        "price": 182900,
        "type": "Coupe",
        "color": "Guards Red",
        "engine_size": "3.8L",
        "engine_cylinders": 6,
        "engine_horsepower": 640,
        "drive_train": "RWD",
        "description": "The Porsche 911 continues to set the standard as the everyday supercar.",
        "features": ["Sport Chrono Package", "PASM Sport Suspension", "Rear Axle Steering", "Burmester Sound System"],
    },
    {
        "brand": "Porsche",
        "model": "taycan",
        "year": 2022,
        "price": 185000,
        "mileage": 8400,
        "type": "Sedan",
        "fuel": "Electric",
        "condition": "Used",
        "color": "Frozen Blue",
        "engine_horsepower": 750,
        "drive_train": "AWD",
        "description": "The Porsche Taycan Turbo S pairs two electric motors with 800-volt charging.",
        "features": ["Launch Control", "Adaptive Air Suspension", "Panoramic Roof", "Burmester Sound System"],
    },
]

SEED_DEFAULTS = {
    "mileage": 0,
    "fuel": "Gasoline",
    "transmission": "Automatic",
    "condition": "New",
    "status": "available",
    "rating": 5,
}


class SeedRequest(BaseModel):
    force: bool = False


@router.post("/seed")
def seed_demo(payload: SeedRequest = SeedRequest(), user=Depends(require_admin)):
    cars = get_db()["car"]
    if cars.count_documents({}) > 0 and not payload.force:
        return {"status": "already-seeded"}
    if payload.force:
        cars.delete_many({})

    for d in DEMO_CARS:
        car = Car(**{**SEED_DEFAULTS, **d, "images": catalogue_image_urls(d["brand"], d["model"])})
        create_document("car", car)
    logger.info(f"Seeded {len(DEMO_CARS)} demo cars")
    return {"status": "seeded", "count": len(DEMO_CARS)}


def refresh_catalogue_images() -> dict:
    """Re-derive catalogue image URLs for every car and record whether each one resolves."""
    updated = skipped = failed = 0
    for car in list(get_db()["car"].find({}, {"brand": 1, "model": 1})):
        if not in_catalogue(car["brand"], car["model"]):
            logger.info(f"Skipping {car['brand']} {car['model']}: no catalogue images")
            skipped += 1
            continue
        images = catalogue_image_urls(car["brand"], car["model"])
        for image in images:
            image["exists"] = image_exists(image["url"])
        try:
            result = get_db()["car"].update_one(
                {"_id": car["_id"]},
                {"$set": {"images": images}},
            )
        except PyMongoError as e:
            logger.error(f"Error updating images for car {car['_id']}: {e}")
            failed += 1
            continue
        # The car may have been deleted since it was listed
        if result.matched_count:
            updated += 1
        else:
            failed += 1
    logger.info(f"Image refresh: {updated} updated, {skipped} skipped, {failed} failed")
    return {"updated": updated, "skipped": skipped, "failed": failed}


@router.post("/refresh-images")
def refresh_images(user=Depends(require_admin)):
    return refresh_catalogue_images()
