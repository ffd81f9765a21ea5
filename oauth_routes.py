"""
Google sign-in (OAuth 2.0 authorization-code flow).

A successful callback finds or creates the local user, opens a server-side
session and redirects to the frontend. Every failure redirects to /login.
"""

import logging
import secrets
from typing import Optional
from urllib.parse import urlencode

import requests
from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse
from pymongo.errors import PyMongoError

from database import create_document, get_db
from schemas import User
from security import create_session, set_session_cookie, user_document
from settings import FRONTEND_URL, GOOGLE_CALLBACK_URL, GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, IS_PRODUCTION

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
STATE_COOKIE = "oauth_state"
FAILURE_REDIRECT = "/login"
REQUEST_TIMEOUT = 15


class OAuthError(Exception):
    pass


def google_login(callback_url: str = GOOGLE_CALLBACK_URL) -> RedirectResponse:
    if not GOOGLE_CLIENT_ID:
        logger.error("GOOGLE_CLIENT_ID is not set")
        return RedirectResponse(FAILURE_REDIRECT)
    state = secrets.token_urlsafe(16)
    params = {
        "client_id": GOOGLE_CLIENT_ID,
        "redirect_uri": callback_url,
        "response_type": "code",
        "scope": "openid email profile",
        "state": state,
    }
    response = RedirectResponse(f"{AUTH_URL}?{urlencode(params)}")
    response.set_cookie(STATE_COOKIE, state, max_age=600, httponly=True, secure=IS_PRODUCTION, samesite="lax")
    return response


def fetch_google_profile(code: str, callback_url: str) -> dict:
    try:
        token_response = requests.post(
            TOKEN_URL,
            data={
                "code": code,
                "client_id": GOOGLE_CLIENT_ID,
                "client_secret": GOOGLE_CLIENT_SECRET,
                "redirect_uri": callback_url,
                "grant_type": "authorization_code",
            },
            timeout=REQUEST_TIMEOUT,
        )
        if token_response.status_code != 200:
            raise OAuthError(f"token exchange failed: {token_response.status_code}")
        access_token = token_response.json()["access_token"]

        profile_response = requests.get(
            USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=REQUEST_TIMEOUT,
        )
        if profile_response.status_code != 200:
            raise OAuthError(f"userinfo request failed: {profile_response.status_code}")
        profile = profile_response.json()
    except (requests.RequestException, ValueError, KeyError) as e:
        raise OAuthError(str(e)) from e

    if not profile.get("sub") or not profile.get("email"):
        raise OAuthError("profile is missing sub or email")
    return profile


def find_or_create_google_user(profile: dict) -> dict:
    users = get_db()["user"]
    user = users.find_one({"google_id": profile["sub"]})
    if user:
        return user

    user = users.find_one({"email": profile["email"]})
    if user:
        users.update_one({"_id": user["_id"]}, {"$set": {"google_id": profile["sub"]}})
        return users.find_one({"_id": user["_id"]})

    first_name = profile.get("given_name") or profile["email"].split("@")[0]
    last_name = profile.get("family_name") or "-"
    new_user = User(
        email=profile["email"],
        google_id=profile["sub"],
        display_name=profile.get("name") or f"{first_name} {last_name}",
        first_name=first_name,
        last_name=last_name,
        profile_photo=profile.get("picture"),
    )
    create_document("user", user_document(new_user))
    logger.info(f"Created Google user {profile['email']}")
    return users.find_one({"google_id": profile["sub"]})


def google_callback(request: Request, code: Optional[str], state: Optional[str],
                    callback_url: str = GOOGLE_CALLBACK_URL) -> RedirectResponse:
    """Finish sign-in. `callback_url` must be the redirect_uri the flow was started with."""
    expected_state = request.cookies.get(STATE_COOKIE)
    if not code or not state or state != expected_state:
        logger.warning("Google callback rejected: missing code or state mismatch")
        return RedirectResponse(FAILURE_REDIRECT)
    try:
        profile = fetch_google_profile(code, callback_url)
        user = find_or_create_google_user(profile)
        token = create_session(str(user["_id"]))
    except (OAuthError, PyMongoError) as e:
        logger.error(f"Google sign-in failed: {e}")
        return RedirectResponse(FAILURE_REDIRECT)

    response = RedirectResponse(FRONTEND_URL)
    set_session_cookie(response, token)
    response.delete_cookie(STATE_COOKIE)
    return response


@router.get("/google")
def auth_google():
    return google_login()


@router.get("/google/callback")
def auth_google_callback(request: Request, code: Optional[str] = None, state: Optional[str] = None):
    return google_callback(request, code, state)
