import itertools
from datetime import datetime, timedelta, timezone

import pytest

import admin_chat_routes
import database


@pytest.fixture
def clock(monkeypatch):
    start = datetime(2025, 1, 1, tzinfo=timezone.utc)
    moments = (start + timedelta(minutes=i) for i in itertools.count())
    monkeypatch.setattr(admin_chat_routes, "now_utc", lambda: next(moments))


def test_user_message_reaches_admin(client, admin, customer):
    response = client.post("/api/user-chat/send", json={"message": "Is the R8 still available?"},
                           headers=customer["headers"])
    assert response.status_code == 201
    message = response.json()
    assert message["sender"] == "user"
    assert message["sender_id"] == customer["id"]
    assert message["receiver_id"] == admin["id"]
    assert message["status"] == "sent"

    conversations = client.get("/api/admin-chat/conversations", headers=admin["headers"]).json()
    assert len(conversations) == 1
    assert conversations[0]["user_id"] == customer["id"]
    assert conversations[0]["user_email"] == customer["email"]
    assert conversations[0]["unread_count"] == 1
    assert conversations[0]["last_message"]["message"] == "Is the R8 still available?"


def test_user_send_without_admin(client, customer):
    response = client.post("/api/user-chat/send", json={"message": "anyone?"}, headers=customer["headers"])
    assert response.status_code == 404
    assert response.json()["detail"] == "No admin available"


def test_conversation_history_is_merged_in_order(client, admin, customer, clock):
    client.post("/api/user-chat/send", json={"message": "first"}, headers=customer["headers"])
    client.post("/api/admin-chat/send", json={"receiver_id": customer["id"], "message": "second"},
                headers=admin["headers"])
    client.post("/api/user-chat/send", json={"message": "third"}, headers=customer["headers"])

    history = client.get(f"/api/admin-chat/history/{customer['id']}", headers=admin["headers"]).json()
    assert [m["message"] for m in history] == ["first", "second", "third"]
    assert [m["sender"] for m in history] == ["user", "admin", "user"]

    mine = client.get("/api/user-chat/history", headers=customer["headers"]).json()
    assert [m["message"] for m in mine] == ["first", "second", "third"]


def test_admin_send_to_unknown_user(client, admin):
    response = client.post("/api/admin-chat/send", json={"receiver_id": "507f1f77bcf86cd799439011", "message": "hi"},
                           headers=admin["headers"])
    assert response.status_code == 404


def test_mark_read(client, admin, customer):
    client.post("/api/user-chat/send", json={"message": "one"}, headers=customer["headers"])
    client.post("/api/user-chat/send", json={"message": "two"}, headers=customer["headers"])

    response = client.put(f"/api/admin-chat/read/{customer['id']}", headers=admin["headers"])
    assert response.json()["updated"] == 2
    conversations = client.get("/api/admin-chat/conversations", headers=admin["headers"]).json()
    assert conversations[0]["unread_count"] == 0


def test_delete_message_and_conversation(client, admin, customer, make_user):
    other_admin = make_user("boss@example.com", role="admin")
    sent = client.post("/api/admin-chat/send", json={"receiver_id": customer["id"], "message": "hello"},
                       headers=admin["headers"]).json()

    response = client.delete(f"/api/admin-chat/message/{sent['id']}", headers=other_admin["headers"])
    assert response.status_code == 403
    assert client.delete(f"/api/admin-chat/message/{sent['id']}", headers=admin["headers"]).status_code == 200
    assert client.delete(f"/api/admin-chat/message/{sent['id']}", headers=admin["headers"]).status_code == 404

    client.post("/api/user-chat/send", json={"message": "a", "receiver_id": admin["id"]}, headers=customer["headers"])
    client.post("/api/admin-chat/send", json={"receiver_id": customer["id"], "message": "b"}, headers=admin["headers"])
    response = client.delete(f"/api/admin-chat/conversation/{customer['id']}", headers=admin["headers"])
    assert response.json()["deleted_count"] == 2
    assert database.db["chat"].count_documents({}) == 0
    assert database.db["adminchat"].count_documents({}) == 0


def test_admin_chat_requires_admin(client, customer):
    assert client.get("/api/admin-chat/conversations", headers=customer["headers"]).status_code == 403
    assert client.get("/api/user-chat/history").status_code == 401


def test_admin_deletes_contact_message(client, admin):
    message_id = client.post("/api/submit", json={
        "full_name": "Jane Doe",
        "email": "jane@example.com",
        "topic": "Trade-in",
        "message": "What is my car worth?",
    }).json()["id"]
    response = client.delete(f"/api/admin-chat/delete-message/{message_id}", headers=admin["headers"])
    assert response.status_code == 200
    assert response.json()["deleted_message"]["topic"] == "Trade-in"
    assert client.delete(f"/api/admin-chat/delete-message/{message_id}", headers=admin["headers"]).status_code == 404
