from datetime import datetime, timedelta, timezone

import pytest

import ai_routes
import llm

ASSESSMENT = {
    "confidence": 90,
    "defects": [
        {"type": "Paint", "severity": "Minor", "description": "Scratch on the rear bumper", "confidence": 70},
    ],
}


def test_demand_analysis():
    listed = datetime.now(timezone.utc) - timedelta(days=30, hours=1)
    cars = [
        {"brand": "BMW", "model": "M3", "status": "sold"},
        {"brand": "BMW", "model": "M3", "status": "available", "created_at": listed},
        {"brand": "Audi", "model": "R8", "status": "sold"},
    ]
    result = {row["model"]: row for row in ai_routes.demand_analysis(cars)}
    assert result["BMW M3"]["value"] == pytest.approx(30)
    assert result["BMW M3"]["sales"] == 1
    assert result["BMW M3"]["available"] == 1
    assert result["BMW M3"]["days_on_market"] == 30
    assert result["Audi R8"]["value"] == pytest.approx(100)


def test_days_since_handles_naive_datetimes():
    assert ai_routes.days_since(None) == 0
    naive = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(days=3, hours=1)
    assert ai_routes.days_since(naive) == 3


def test_damage_score():
    defects = [
        {"severity": "Major", "confidence": 80},
        {"severity": "Minor", "confidence": 50},
        {"severity": "None", "confidence": 99},
    ]
    assert ai_routes.damage_score(defects) == pytest.approx(0.45)
    assert ai_routes.damage_score([]) == 0


def test_predictions_endpoint(client, customer, add_car):
    add_car(status="sold")
    add_car()
    assert client.get("/api/predictions").status_code == 401
    rows = client.get("/api/predictions", headers=customer["headers"]).json()
    assert len(rows) == 1
    assert rows[0]["model"] == "Porsche Macan"
    assert rows[0]["value"] == pytest.approx(50)


def test_analyze_image_and_review(client, admin, customer, add_car, monkeypatch):
    car = add_car()
    monkeypatch.setattr(llm, "assess_image", lambda url: ASSESSMENT)

    response = client.post(
        "/api/cars/analyze-image",
        json={"car_id": car["id"], "image_url": "https://img/macan.jpg"},
        headers=admin["headers"],
    )
    assert response.status_code == 201
    prediction = response.json()
    assert prediction["model"] == "Porsche Macan"
    assert prediction["status"] == "pending"
    assert prediction["defects"][0]["type"] == "Paint"

    analysis = client.get("/api/image-analysis", headers=customer["headers"]).json()
    assert len(analysis) == 1
    assert analysis[0]["predicted_value"] == pytest.approx(54000 * 0.8)
    assert analysis[0]["damage_score"] == pytest.approx(0.07)
    assert analysis[0]["car"]["brand"] == "Porsche"

    response = client.patch(f"/api/predictions/{prediction['id']}/status", json={"status": "verified"},
                            headers=admin["headers"])
    assert response.json()["status"] == "verified"
    response = client.patch("/api/predictions/507f1f77bcf86cd799439011/status", json={"status": "verified"},
                            headers=admin["headers"])
    assert response.status_code == 404


def test_analyze_image_for_missing_car(client, admin, monkeypatch):
    monkeypatch.setattr(llm, "assess_image", lambda url: ASSESSMENT)
    response = client.post(
        "/api/cars/analyze-image",
        json={"car_id": "507f1f77bcf86cd799439011", "image_url": "https://img/x.jpg"},
        headers=admin["headers"],
    )
    assert response.status_code == 404


def test_assess_image_parses_llm_json(monkeypatch):
    content = '{"confidence": 140, "defects": [{"type": "Tire", "severity": "Moderate", ' \
              '"description": "Worn tread", "confidence": 60}]}'
    monkeypatch.setattr(llm, "chat_completion", lambda messages, **kwargs: {"content": content})
    result = llm.assess_image("https://img/tire.jpg")
    assert result["confidence"] == 100.0
    assert result["defects"][0]["severity"] == "Moderate"


def test_chat_completion_requires_key(monkeypatch):
    monkeypatch.setattr(llm, "OPENAI_API_KEY", "")
    with pytest.raises(llm.LLMError):
        llm.chat_completion([{"role": "user", "content": "hi"}])
