# Overview: Flask API routes for TOTP enrollment, verification and reset.

from flask import Blueprint, jsonify, current_app, g

from ..cookies import clear_pre_auth_cookie, set_session_cookies
from ..decorators import client_info, json_body, require_auth, require_pre_auth
from ..models.auth import ADMIN_ROLES
from ..services import providers
from ..services.errors import ServiceError


two_factor_bp = Blueprint("two_factor", __name__, url_prefix="/api/auth/2fa")


@two_factor_bp.post("/generate")
@require_pre_auth
def generate_route():
    """
    Enroll the pre-authenticated user in TOTP.

    Returns the QR (SVG data URL) and the otpauth:// provisioning URL.
    Does not promote the session.
    """
    try:
        enrollment = providers.auth_flow().enroll_totp(g.pre_auth_token, client=client_info())
        return jsonify({"qr": enrollment.qr, "otpauth_url": enrollment.otpauth_url}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to generate 2FA secret")
        return jsonify({"error": "Internal server error"}), 500


@two_factor_bp.post("/verify")
@require_pre_auth
def verify_route():
    """
    Verify a TOTP code and promote to the full session.

    The token only travels in cookies; the body is {"success": true}.
    """
    try:
        data = json_body()
        session = providers.auth_flow().verify_totp(
            g.pre_auth_token,
            data.get("token"),
            client=client_info(),
        )

        response = jsonify({"success": True})
        clear_pre_auth_cookie(response)
        set_session_cookies(response, session.auth_token, session.display)
        return response, 200

    except ServiceError as e:
        body = e.to_dict()
        body["success"] = False
        return jsonify(body), e.status_code
    except Exception:
        current_app.logger.exception("Failed to verify 2FA code")
        return jsonify({"error": "Internal server error"}), 500


@two_factor_bp.post("/status")
@require_pre_auth
def status_route():
    try:
        enabled = providers.auth_flow().two_fa_status(g.pre_auth_token)
        return jsonify({"twoFAEnabled": enabled}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to read 2FA status")
        return jsonify({"error": "Internal server error"}), 500


@two_factor_bp.post("/reset")
@require_auth(*ADMIN_ROLES)
def reset_route():
    """Clear a user's TOTP secret. Admin/developer only."""
    try:
        data = json_body()
        providers.auth_flow().reset_totp(data.get("email"), g.current_claims, client=client_info())
        return jsonify({"message": "2FA restablecido"}), 200

    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to reset 2FA")
        return jsonify({"error": "Internal server error"}), 500
