import json
import logging
from datetime import datetime, timedelta
from urllib.parse import urlencode

import requests
from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, RedirectResponse
from pymongo.errors import PyMongoError

from buzzsmile.core.config import settings
from buzzsmile.core.security import InvalidToken, create_access_token, decode_access_token
from buzzsmile.database.collections import get_users_collection
from buzzsmile.database.schemas.user import UserDocument

logger = logging.getLogger(__name__)
router = APIRouter()

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"
PLACEHOLDER_CLIENT_ID = "placeholder-google-client-id"
STATE_TTL = timedelta(minutes=10)


class OAuthError(Exception):
    pass


def google_configured() -> bool:
    return bool(
        settings.GOOGLE_CLIENT_ID
        and settings.GOOGLE_CLIENT_ID != PLACEHOLDER_CLIENT_ID
        and settings.GOOGLE_CLIENT_SECRET
    )


def callback_url(request: Request) -> str:
    url = settings.GOOGLE_CALLBACK_URL
    if url.startswith("http"):
        return url
    return str(request.base_url).rstrip("/") + url


def js_string(value: str) -> str:
    """Quote a value for inline <script> use."""
    return json.dumps(value).replace("</", "<\\/")


def popup_page(title: str, body: str, script: str) -> HTMLResponse:
    return HTMLResponse(f"""<!DOCTYPE html>
<html>
<head>
  <title>{title}</title>
  <style>
    body {{ font-family: Arial, sans-serif; padding: 20px; text-align: center; }}
    .error {{ color: #d32f2f; margin: 20px 0; }}
    .message {{ color: #666; margin: 20px 0; }}
  </style>
</head>
<body>
  {body}
  <script>
{script}
  </script>
</body>
</html>
""")


def oauth_error_page(message: str) -> HTMLResponse:
    return popup_page(
        "OAuth Not Available",
        '<h2>Google OAuth Not Available</h2>'
        f'<div class="error">{message}</div>'
        '<div class="message">Please contact the administrator to set up Google authentication.</div>',
        "    setTimeout(() => {\n"
        "      if (window.opener) {\n"
        f"        window.opener.postMessage({{ type: 'OAUTH_ERROR', message: {js_string(message)} }}, '*');\n"
        "        window.close();\n"
        "      }\n"
        "    }, 2000);",
    )


def oauth_success_page(token: str) -> HTMLResponse:
    return popup_page(
        "Authentication Success",
        "<p>Authentication successful! Redirecting...</p>",
        f"    localStorage.setItem('token', {js_string(token)});\n"
        "    if (window.opener) {\n"
        f"      window.opener.postMessage({{ type: 'OAUTH_SUCCESS', token: {js_string(token)} }}, '*');\n"
        "      window.close();\n"
        "    } else {\n"
        "      window.location.href = '/dashboard';\n"
        "    }",
    )


def exchange_code(code: str, redirect_uri: str) -> dict:
    """Trade an authorization code for Google's profile of the user."""
    token_response = requests.post(
        GOOGLE_TOKEN_URL,
        data={
            "code": code,
            "client_id": settings.GOOGLE_CLIENT_ID,
            "client_secret": settings.GOOGLE_CLIENT_SECRET,
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
        },
        timeout=10,
    )
    if token_response.status_code != 200:
        raise OAuthError(f"Token exchange failed: {token_response.status_code}")
    access_token = token_response.json().get("access_token")

    profile_response = requests.get(
        GOOGLE_USERINFO_URL,
        headers={"Authorization": f"Bearer {access_token}"},
        timeout=10,
    )
    if profile_response.status_code != 200:
        raise OAuthError(f"Profile fetch failed: {profile_response.status_code}")
    profile = profile_response.json()
    if not profile.get("sub") or not profile.get("email"):
        raise OAuthError("Google profile is missing id or email")
    return profile


async def find_or_create_google_user(profile: dict) -> dict:
    users_collection = get_users_collection()
    email = profile["email"].strip().lower()

    user = await users_collection.find_one({"googleId": profile["sub"]})
    if user is None:
        user = await users_collection.find_one({"email": email})
        if user is not None:
            # link the existing local account
            await users_collection.update_one(
                {"_id": user["_id"]}, {"$set": {"googleId": profile["sub"], "provider": "google"}}
            )
            user.update(googleId=profile["sub"], provider="google")

    if user is None:
        user = UserDocument(
            email=email,
            name=(profile.get("name") or email.split("@")[0])[:50],
            provider="google",
            googleId=profile["sub"],
            profilePicture=profile.get("picture"),
        ).to_mongo()
        result = await users_collection.insert_one(user)
        user["_id"] = result.inserted_id
        logger.info("Created user %s from Google sign-in", email)
    return user


@router.get("/status")
async def oauth_status():
    return {
        "providers": {"google": google_configured()},
        "config": {
            "environment": settings.ENVIRONMENT,
            "clientUrl": settings.CLIENT_URL or None,
            "clientUrls": settings.CLIENT_URLS,
            "google": {
                "clientIdSet": bool(settings.GOOGLE_CLIENT_ID and settings.GOOGLE_CLIENT_ID != PLACEHOLDER_CLIENT_ID),
                "clientSecretSet": bool(settings.GOOGLE_CLIENT_SECRET),
            },
        },
    }


@router.get("/google")
async def google_login(request: Request):
    if not google_configured():
        return oauth_error_page("Google OAuth is not configured")

    state = create_access_token("oauth", expires_in=STATE_TTL, purpose="oauth_state")
    params = {
        "client_id": settings.GOOGLE_CLIENT_ID,
        "redirect_uri": callback_url(request),
        "response_type": "code",
        "scope": "openid profile email",
        "state": state,
        "prompt": "select_account",
    }
    return RedirectResponse(f"{GOOGLE_AUTH_URL}?{urlencode(params)}")


@router.get("/google/callback")
async def google_callback(request: Request, code: str = None, state: str = None):
    failure = RedirectResponse(f"{settings.client_base_url}/login?error=oauth_failed")
    if not code or not state:
        return failure

    try:
        if decode_access_token(state).get("purpose") != "oauth_state":
            return failure
    except InvalidToken:
        logger.warning("Rejected OAuth callback with an invalid state")
        return failure

    try:
        profile = await run_in_threadpool(exchange_code, code, callback_url(request))
        user = await find_or_create_google_user(profile)
        await get_users_collection().update_one(
            {"_id": user["_id"]}, {"$set": {"lastLogin": datetime.utcnow()}}
        )
    except (OAuthError, requests.RequestException, PyMongoError):
        logger.exception("OAuth callback error")
        return failure

    token = create_access_token(user["_id"])
    return RedirectResponse(f"{settings.client_base_url}/auth/success?token={token}")


@router.get("/success")
async def oauth_success(token: str = None):
    if not token:
        return RedirectResponse("/login?error=no_token")
    return oauth_success_page(token)
