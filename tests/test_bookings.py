import database

BOOKING = {
    "name": "Jane Doe",
    "email": "jane@example.com",
    "phone": "555-0101",
    "date": "2025-05-01",
    "time": "10:00",
    "car_model": "Porsche 911",
}


def test_book_test_drive(client):
    response = client.post("/api/test-drive", json={**BOOKING, "status": "approved"})
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Test drive booked successfully"
    assert body["booking"]["status"] == "pending"
    assert body["booking"]["car_model"] == "Porsche 911"


def test_same_slot_cannot_be_booked_twice(client):
    assert client.post("/api/test-drive", json=BOOKING).status_code == 201
    response = client.post("/api/test-drive", json={**BOOKING, "name": "Someone Else", "email": "else@example.com"})
    assert response.status_code == 400
    assert response.json()["detail"] == "This time slot is already booked for this car"
    assert database.db["booking"].count_documents({}) == 1


def test_other_slots_are_free(client):
    assert client.post("/api/test-drive", json=BOOKING).status_code == 201
    assert client.post("/api/test-drive", json={**BOOKING, "time": "11:00"}).status_code == 201
    assert client.post("/api/test-drive", json={**BOOKING, "car_model": "Audi R8"}).status_code == 201


def test_rejected_booking_frees_the_slot(client, admin):
    booking = client.post("/api/test-drive", json=BOOKING).json()["booking"]
    response = client.put(f"/api/test-drives/{booking['id']}", json={"status": "rejected"}, headers=admin["headers"])
    assert response.status_code == 200
    assert response.json()["status"] == "rejected"
    assert client.post("/api/test-drive", json=BOOKING).status_code == 201


def test_booking_validation(client):
    response = client.post("/api/test-drive", json={**BOOKING, "email": "not-an-email"})
    assert response.status_code == 400
    response = client.post("/api/test-drive", json={k: v for k, v in BOOKING.items() if k != "time"})
    assert response.status_code == 400


def test_admin_manages_bookings(client, admin, customer):
    booking = client.post("/api/test-drive", json=BOOKING).json()["booking"]

    assert client.get("/api/test-drives", headers=customer["headers"]).status_code == 403
    bookings = client.get("/api/test-drives", headers=admin["headers"]).json()
    assert [b["id"] for b in bookings] == [booking["id"]]

    assert client.delete(f"/api/test-drives/{booking['id']}", headers=admin["headers"]).status_code == 200
    assert client.delete(f"/api/test-drives/{booking['id']}", headers=admin["headers"]).status_code == 404
    assert client.put(f"/api/test-drives/{booking['id']}", json={"status": "approved"},
                      headers=admin["headers"]).status_code == 404
