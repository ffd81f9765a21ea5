from datetime import datetime, timedelta, timezone

import database

PASSWORD = "secret123"


def signup(client, email="sam@example.com", password="pa55word"):
    return client.post(
        "/users/signup",
        json={"email": email, "password": password, "first_name": "Sam", "last_name": "Lee"},
    )


def test_signup_creates_user_without_exposing_hash(client):
    response = signup(client)
    assert response.status_code == 201
    user = response.json()["user"]
    assert user["email"] == "sam@example.com"
    assert user["display_name"] == "Sam Lee"
    assert user["role"] == "user"
    assert "password_hash" not in user

    stored = database.db["user"].find_one({"email": "sam@example.com"})
    assert stored["password_hash"] != "pa55word"
    assert "google_id" not in stored


def test_duplicate_signup_is_rejected(client):
    assert signup(client).status_code == 201
    response = signup(client)
    assert response.status_code == 400
    assert response.json()["detail"] == "Email already registered"
    assert database.db["user"].count_documents({"email": "sam@example.com"}) == 1


def test_signup_requires_all_fields(client):
    response = client.post("/users/signup", json={"email": "x@example.com", "password": "p"})
    assert response.status_code == 400
    assert response.json()["detail"]["message"] == "Validation failed"


def test_login_opens_session(client):
    signup(client)
    response = client.post("/users/login", json={"email": "sam@example.com", "password": "pa55word"})
    assert response.status_code == 200
    body = response.json()
    assert body["token"]
    assert body["user"]["email"] == "sam@example.com"
    assert "session_id" in response.cookies
    assert database.db["session"].count_documents({}) == 1

    me = client.get("/users/current-user")
    assert me.status_code == 200
    assert me.json()["email"] == "sam@example.com"


def test_login_with_bearer_token(client):
    signup(client)
    token = client.post("/users/login", json={"email": "sam@example.com", "password": "pa55word"}).json()["token"]
    client.cookies.clear()
    response = client.get("/users/current-user", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    assert client.get("/users/current-user", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_login_rejects_bad_credentials(client):
    signup(client)
    wrong = client.post("/users/login", json={"email": "sam@example.com", "password": "nope"})
    unknown = client.post("/users/login", json={"email": "who@example.com", "password": "nope"})
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json()["detail"] == "Invalid email or password"


def test_logout_ends_session(client):
    signup(client)
    client.post("/users/login", json={"email": "sam@example.com", "password": "pa55word"})
    assert client.get("/users/logout").json() == {"message": "Logged out successfully"}
    assert database.db["session"].count_documents({}) == 0
    assert client.get("/users/current-user").status_code == 401


def test_list_users_is_admin_only(client, admin, customer):
    assert client.get("/users", headers=customer["headers"]).status_code == 403
    users = client.get("/users", headers=admin["headers"]).json()
    assert {u["email"] for u in users} == {"admin@example.com", "jane@example.com"}
    assert all("password_hash" not in u for u in users)


def test_update_role(client, admin, customer):
    response = client.put("/users/update", json={"email": customer["email"], "role": "admin"}, headers=admin["headers"])
    assert response.status_code == 200
    assert database.db["user"].find_one({"email": customer["email"]})["role"] == "admin"

    response = client.put("/users/update", json={"email": "ghost@example.com", "role": "admin"}, headers=admin["headers"])
    assert response.status_code == 404


def test_update_password_of_someone_else_is_forbidden(client, admin, customer):
    response = client.put(
        "/users/update-password", json={"email": admin["email"], "password": "hijack"}, headers=customer["headers"]
    )
    assert response.status_code == 403

    response = client.put(
        "/users/update-password", json={"email": customer["email"], "password": "newpass"}, headers=customer["headers"]
    )
    assert response.status_code == 200
    login = client.post("/users/login", json={"email": customer["email"], "password": "newpass"})
    assert login.status_code == 200
    old = client.post("/users/login", json={"email": customer["email"], "password": PASSWORD})
    assert old.status_code == 401


def test_delete_user_removes_sessions(client, admin, customer):
    client.post("/users/login", json={"email": customer["email"], "password": PASSWORD})
    client.cookies.clear()
    response = client.request("DELETE", "/users/delete", json={"email": customer["email"]}, headers=admin["headers"])
    assert response.status_code == 200
    assert database.db["user"].count_documents({"email": customer["email"]}) == 0
    assert database.db["session"].count_documents({"user_id": customer["id"]}) == 0


def test_profile_update_merges_preferences(client, customer):
    client.put("/users/profile", json={"car_preferences": {"make": "Audi"}}, headers=customer["headers"])
    response = client.put(
        "/users/profile",
        json={"phone_number": "555-0100", "car_preferences": {"type": "SUV"}},
        headers=customer["headers"],
    )
    assert response.status_code == 200
    profile = response.json()
    assert profile["phone_number"] == "555-0100"
    assert profile["car_preferences"]["make"] == "Audi"
    assert profile["car_preferences"]["type"] == "SUV"


def test_profile_and_admin_panel(client, admin, customer):
    assert client.get("/api/profile").status_code == 401
    assert client.get("/api/profile", headers=customer["headers"]).json()["email"] == customer["email"]
    assert client.get("/api/admin", headers=customer["headers"]).status_code == 403
    assert client.get("/api/admin", headers=admin["headers"]).json() == {"message": "Welcome to admin panel"}


def test_expired_session_is_rejected_and_removed(client, customer):
    database.db["session"].insert_one({
        "token": "stale-token",
        "user_id": customer["id"],
        "expires_at": datetime.now(timezone.utc) - timedelta(hours=1),
    })
    client.cookies.set("session_id", "stale-token")
    assert client.get("/users/current-user").status_code == 401
    assert database.db["session"].count_documents({"token": "stale-token"}) == 0
