# Overview: Session cookie names and how they are written/cleared on responses.

import json
from urllib.parse import quote

from flask import current_app


PRE_AUTH_COOKIE = "PreAuth"
AUTH_COOKIE = "Auth"
USER_DATA_COOKIE = "UserData"


def _options(http_only: bool = True) -> dict:
    config = current_app.config
    return {
        "httponly": http_only,
        "secure": bool(config["COOKIE_SECURE"]),
        "samesite": config["COOKIE_SAMESITE"],
        "path": "/",
    }


def set_pre_auth_cookie(response, token: str) -> None:
    response.set_cookie(
        PRE_AUTH_COOKIE, token,
        max_age=current_app.config["PRE_AUTH_TTL_SECONDS"],
        **_options(),
    )


def set_session_cookies(response, token: str, display: dict) -> None:
    """Full session: HTTP-only Auth plus the script-readable UserData mirror."""
    max_age = current_app.config["AUTH_TTL_SECONDS"]
    response.set_cookie(AUTH_COOKIE, token, max_age=max_age, **_options())
    # Display only; the server never trusts this cookie
    response.set_cookie(
        USER_DATA_COOKIE,
        quote(json.dumps(display, ensure_ascii=False)),
        max_age=max_age,
        **_options(http_only=False),
    )


def clear_pre_auth_cookie(response) -> None:
    response.delete_cookie(PRE_AUTH_COOKIE, **_options())


def clear_all_cookies(response) -> None:
    response.delete_cookie(PRE_AUTH_COOKIE, **_options())
    response.delete_cookie(AUTH_COOKIE, **_options())
    response.delete_cookie(USER_DATA_COOKIE, **_options(http_only=False))
