# Overview: Flask API routes for login, session status and logout.

# backend/viba/routes/auth.py
"""
Authentication API routes

Login only ever issues the PreAuth cookie; the Auth cookie is set by the
2FA verification route (see two_factor.py).

SECURITY FEATURES:
- Login throttling with temporary lockout
- Generic wording for unknown email and wrong password
- Session state lives in signed HTTP-only cookies
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..cookies import AUTH_COOKIE, PRE_AUTH_COOKIE, clear_all_cookies, set_pre_auth_cookie
from ..decorators import client_info, json_body, require_auth
from ..services import providers
from ..services.errors import ServiceError


auth_bp = Blueprint("auth", __name__, url_prefix="/api")


@auth_bp.post("/login")
def login_route():
    """
    Check email/password and start the pre-auth stage.

    Returns {"twoFAEnabled": bool}; the client decides whether to prompt
    for a code or start enrollment.
    """
    try:
        data = json_body()
        result = providers.auth_flow().login(
            data.get("email"),
            data.get("password"),
            client=client_info(),
        )

        response = jsonify({
            "message": "Credenciales válidas, esperando verificación 2FA",
            "twoFAEnabled": result.two_fa_enabled,
        })
        set_pre_auth_cookie(response, result.pre_auth_token)
        return response, 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/check-auth")
def check_auth_route():
    """Report authenticated | pre-2fa | none from the cookies alone."""
    status = providers.auth_flow().check_status(
        request.cookies.get(PRE_AUTH_COOKIE),
        request.cookies.get(AUTH_COOKIE),
    )
    return jsonify({"authStatus": status}), 200


@auth_bp.get("/user-info")
@require_auth()
def user_info_route():
    claims = g.current_claims
    return jsonify({
        "id": claims.get("userId"),
        "nombre": claims.get("nombre"),
        "email": claims.get("email"),
        "role": claims.get("role"),
    }), 200


@auth_bp.post("/logout")
def logout_route():
    """
    Clear every session cookie. Idempotent.

    NOTE: tokens are stateless, a copied token stays valid until it expires.
    """
    response = jsonify({"message": "Sesión cerrada"})
    clear_all_cookies(response)
    return response, 200
