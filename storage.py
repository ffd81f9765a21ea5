"""
Google Cloud Storage glue.

Uploads go straight to the JSON API as a single multipart/related request;
the object name is the SHA-256 of the content plus the original filename, so
re-uploading the same file is a no-op that returns the existing URL.
"""

import hashlib
import json
import logging
import secrets
from typing import List, Optional
from urllib.parse import quote

import requests

from settings import CATALOGUE_BUCKET, STORAGE_ACCESS_TOKEN, STORAGE_BUCKET

logger = logging.getLogger(__name__)

STORAGE_HOST = "https://storage.googleapis.com"
REQUEST_TIMEOUT = 30

# Brand -> model slugs that have pictures in the catalogue bucket
CATALOGUE = {
    "audi": ["etron-gt", "r8", "rs3", "rs5", "rs6", "rs7", "s8", "sq5", "ttrs", "q8"],
    "bentley": ["bacalar", "bentayga", "continental", "flying-spur", "mulsanne"],
    "bmw": ["i8", "m2", "m3", "m4", "m5", "m8"],
    "ferrari": ["812", "f8", "portofino", "roma", "sf90"],
    "lamborghini": ["aventador", "huracan", "sian", "svj", "urus"],
    "mclaren": ["720s", "765lt", "artura", "gt", "senna"],
    "mercedes-benz": ["amg-c63", "amg-gt", "cla", "eqs", "g63", "gt63s", "s-class"],
    "porsche": ["911", "918", "cayenne", "cayman", "gt2rs", "gt3", "macan", "panamera", "taycan"],
    "rolls-royce": ["cullinan", "dawn", "ghost", "phantom", "wraith"],
}


class StorageError(Exception):
    pass


def _auth_headers() -> dict:
    if STORAGE_ACCESS_TOKEN:
        return {"Authorization": f"Bearer {STORAGE_ACCESS_TOKEN}"}
    return {}


def public_url(bucket: str, object_name: str) -> str:
    return f"{STORAGE_HOST}/{bucket}/{object_name}"


def object_name_for(filename: str, data: bytes) -> str:
    digest = hashlib.sha256(data).hexdigest()
    return f"{digest}-{filename}"


def object_exists(bucket: str, object_name: str) -> bool:
    url = f"{STORAGE_HOST}/storage/v1/b/{bucket}/o/{quote(object_name, safe='')}"
    try:
        response = requests.get(url, headers=_auth_headers(), timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        raise StorageError(f"Could not reach object store: {e}") from e
    if response.status_code == 200:
        return True
    if response.status_code == 404:
        return False
    raise StorageError(f"Existence check for {object_name} failed: {response.status_code} {response.reason}")


def build_multipart_body(object_name: str, content_type: str, data: bytes, boundary: str) -> bytes:
    delimiter = f"--{boundary}\r\n"
    metadata = json.dumps({"name": object_name})
    meta_part = f"{delimiter}Content-Type: application/json; charset=UTF-8\r\n\r\n{metadata}\r\n"
    file_header = f"{delimiter}Content-Type: {content_type}\r\n\r\n"
    close_delimiter = f"\r\n--{boundary}--"
    return meta_part.encode("utf-8") + file_header.encode("utf-8") + data + close_delimiter.encode("utf-8")


def upload_image(filename: str, content_type: Optional[str], data: bytes, bucket: str = STORAGE_BUCKET) -> str:
    """Upload an image buffer unless an identical one is already stored. Returns its public URL."""
    object_name = object_name_for(filename, data)
    if object_exists(bucket, object_name):
        logger.info(f"Image {object_name} already in bucket {bucket}")
        return public_url(bucket, object_name)

    # Fresh per request so image bytes cannot collide with the delimiter
    boundary = secrets.token_hex(16)
    body = build_multipart_body(object_name, content_type or "application/octet-stream", data, boundary)
    upload_url = f"{STORAGE_HOST}/upload/storage/v1/b/{bucket}/o?uploadType=multipart"
    headers = {"Content-Type": f"multipart/related; boundary={boundary}", **_auth_headers()}
    try:
        response = requests.post(upload_url, data=body, headers=headers, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        raise StorageError(f"Upload of {filename} failed: {e}") from e
    if not response.ok:
        raise StorageError(f"Upload of {filename} failed: {response.status_code} {response.reason}")

    url = public_url(bucket, object_name)
    logger.info(f"Uploaded {filename} ({len(data)} bytes) to {url}")
    return url


# Catalogue images

def slugify(value: str) -> str:
    return "-".join(value.strip().lower().split())


def in_catalogue(brand: str, model: str) -> bool:
    return slugify(model) in CATALOGUE.get(slugify(brand), [])


def catalogue_image_urls(brand: str, model: str, count: int = 2) -> List[dict]:
    """Derive the catalogue picture URLs for a brand/model, numbered from 1."""
    brand_slug = slugify(brand)
    model_slug = slugify(model)
    return [
        {
            "url": public_url(CATALOGUE_BUCKET, f"car-images/{brand_slug}/{brand_slug}-{model_slug}-{i}.jpg"),
            "exists": True,
        }
        for i in range(1, count + 1)
    ]


def image_exists(url: str) -> bool:
    try:
        response = requests.head(url, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        logger.warning(f"Error checking image {url}: {e}")
        return False
    return response.ok
