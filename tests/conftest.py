import os
from unittest.mock import patch

import mongomock
import pytest

os.environ["DATABASE_URL"] = "mongodb://localhost:27017"
os.environ["DATABASE_NAME"] = "dealership_test"
os.environ["OPENAI_API_KEY"] = ""
os.environ["GOOGLE_CLIENT_ID"] = "test-client-id"

# database.py builds its client at import time, so the patch must be in place first
with patch("pymongo.MongoClient", mongomock.MongoClient):
    import database
    from main import app

from fastapi.testclient import TestClient

from schemas import User
from security import create_token, hash_password, user_document

PASSWORD = "secret123"


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c
    for name in database.db.list_collection_names():
        database.db.drop_collection(name)


@pytest.fixture
def make_user(client):
    def _make_user(email, role="user", first_name="Test", last_name="User"):
        user = User(
            email=email,
            password_hash=hash_password(PASSWORD),
            first_name=first_name,
            last_name=last_name,
            display_name=f"{first_name} {last_name}",
            role=role,
        )
        user_id = database.create_document("user", user_document(user))
        token = create_token({"_id": user_id, "email": email, "role": role})
        return {"id": user_id, "email": email, "headers": {"Authorization": f"Bearer {token}"}}
    return _make_user


@pytest.fixture
def admin(make_user):
    return make_user("admin@example.com", role="admin", first_name="Ada", last_name="Admin")


@pytest.fixture
def customer(make_user):
    return make_user("jane@example.com", first_name="Jane", last_name="Doe")


@pytest.fixture
def car_payload():
    return {
        "brand": "Porsche",
        "model": "Macan",
        "year": 2021,
        "price": 54000,
        "mileage": 22000,
        "type": "SUV",
        "fuel": "Petrol",
        "transmission": "Automatic",
        "drive_train": "AWD",
        "description": "Compact performance SUV",
        "features": ["Sport Chrono", "Panoramic Roof"],
        "color": "Chalk",
        "condition": "Used",
    }


@pytest.fixture
def add_car(client, admin, car_payload):
    def _add_car(**overrides):
        response = client.post("/api/cars", json={**car_payload, **overrides}, headers=admin["headers"])
        assert response.status_code == 201, response.text
        return response.json()
    return _add_car
