import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from database import create_document, get_db, now_utc
from oauth_routes import google_callback, google_login
from schemas import (
    EmailRequest,
    LoginRequest,
    PasswordUpdateRequest,
    ProfileUpdateRequest,
    RoleUpdateRequest,
    SignupRequest,
    User,
)
from security import (
    create_session,
    create_token,
    destroy_session,
    hash_password,
    public_user,
    require_admin,
    require_user,
    set_session_cookie,
    user_document,
    verify_password,
)
from settings import SESSION_COOKIE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def find_user_by_email(email: str) -> Optional[dict]:
    return get_db()["user"].find_one({"email": str(email)})


def find_user_or_404(email: str) -> dict:
    user = find_user_by_email(email)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("")
def list_users(admin=Depends(require_admin)):
    return [public_user(u) for u in get_db()["user"].find()]


# Google sign-in mounted under /users; Google redirects back to this router's own callback

@router.get("/google")
def users_google(request: Request):
    return google_login(str(request.url_for("users_google_callback")))


@router.get("/google/callback")
def users_google_callback(request: Request, code: Optional[str] = None, state: Optional[str] = None):
    return google_callback(request, code, state, str(request.url_for("users_google_callback")))


@router.post("/signup", status_code=201)
def signup(payload: SignupRequest):
    if find_user_by_email(payload.email):
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        email=payload.email,
        password_hash=hash_password(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        display_name=f"{payload.first_name} {payload.last_name}",
        role="user",
    )
    try:
        create_document("user", user_document(user))
    except DuplicateKeyError:
        # Lost a race with a concurrent signup for the same address
        raise HTTPException(status_code=400, detail="Email already registered")

    user_doc = find_user_by_email(payload.email)
    logger.info(f"User {payload.email} signed up")
    return {"message": "User created successfully", "user": public_user(user_doc)}


@router.post("/login")
def login(payload: LoginRequest, response: Response):
    user = find_user_by_email(payload.email)
    if not user or not verify_password(payload.password, user.get("password_hash")):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    set_session_cookie(response, create_session(str(user["_id"])))
    return {
        "message": "Login successful",
        "token": create_token(user),
        "user": public_user(user),
    }


@router.get("/logout")
def logout(request: Request, response: Response):
    destroy_session(request.cookies.get(SESSION_COOKIE))
    response.delete_cookie(SESSION_COOKIE)
    return {"message": "Logged out successfully"}


@router.get("/current-user")
def current_user(user=Depends(require_user)):
    return public_user(user)


@router.put("/update")
def update_role(payload: RoleUpdateRequest, admin=Depends(require_admin)):
    user = find_user_or_404(payload.email)
    get_db()["user"].update_one(
        {"_id": user["_id"]},
        {"$set": {"role": payload.role, "updated_at": now_utc()}},
    )
    return {"message": f"User role updated to {payload.role}"}


@router.put("/update-password")
def update_password(payload: PasswordUpdateRequest, user=Depends(require_user)):
    if user.get("role") != "admin" and user["email"] != str(payload.email):
        raise HTTPException(status_code=403, detail="Cannot change another user's password")
    target = find_user_or_404(payload.email)
    get_db()["user"].update_one(
        {"_id": target["_id"]},
        {"$set": {"password_hash": hash_password(payload.password), "updated_at": now_utc()}},
    )
    return {"message": "Password updated successfully"}


@router.delete("/delete")
def delete_user(payload: EmailRequest, admin=Depends(require_admin)):
    user = find_user_or_404(payload.email)
    get_db()["user"].delete_one({"_id": user["_id"]})
    get_db()["session"].delete_many({"user_id": str(user["_id"])})
    return {"message": "User deleted successfully"}


@router.put("/profile")
def update_profile(payload: ProfileUpdateRequest, user=Depends(require_user)):
    changes = payload.model_dump(exclude_unset=True)
    # Merge preferences key by key so that sending one does not wipe the others
    prefs = changes.pop("car_preferences", None) or {}
    for key, value in prefs.items():
        changes[f"car_preferences.{key}"] = value
    changes["updated_at"] = now_utc()
    doc = get_db()["user"].find_one_and_update(
        {"_id": user["_id"]},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    return public_user(doc)
