import database

FORM = {
    "full_name": "Jane Doe",
    "email": "jane@example.com",
    "phone": "555-0101",
    "car_model": "Audi R8",
    "preferred_date": "2025-06-01",
    "topic": "Financing",
    "message": "Do you offer leasing?",
}


def test_submit_message(client):
    response = client.post("/api/submit", json=FORM)
    assert response.status_code == 201
    assert response.json()["message"] == "Message sent successfully!"
    stored = database.db["message"].find_one({"email": "jane@example.com"})
    assert stored["topic"] == "Financing"
    assert stored["preferred_date"].year == 2025


def test_submit_requires_core_fields(client):
    for field in ("full_name", "email", "topic", "message"):
        response = client.post("/api/submit", json={**FORM, field: ""})
        assert response.status_code == 400
        assert response.json()["detail"] == "All fields are required."
    assert database.db["message"].count_documents({}) == 0


def test_submit_rejects_bad_email(client):
    response = client.post("/api/submit", json={**FORM, "email": "nope"})
    assert response.status_code == 400
    assert response.json()["detail"]["message"] == "Validation failed"


def test_admin_lists_and_deletes_messages(client, admin, customer):
    message_id = client.post("/api/submit", json=FORM).json()["id"]

    assert client.get("/api/messages", headers=customer["headers"]).status_code == 403
    messages = client.get("/api/messages", headers=admin["headers"]).json()
    assert [m["id"] for m in messages] == [message_id]

    assert client.delete(f"/api/delete/{message_id}", headers=admin["headers"]).status_code == 200
    assert client.delete(f"/api/delete/{message_id}", headers=admin["headers"]).status_code == 404
    assert client.delete("/api/delete/bad-id", headers=admin["headers"]).status_code == 400
