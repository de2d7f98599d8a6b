# Overview: Request decorators guarding routes by session stage and role.

from functools import wraps
from flask import request, jsonify, g

from .cookies import AUTH_COOKIE, PRE_AUTH_COOKIE
from .services import providers
from .services.errors import Unauthenticated, ValidationError
from .services.login_throttle_service import ClientInfo


def require_auth(*allowed_roles):
    """
    Require a valid full-auth (Auth cookie) session.

    Sets g.current_claims to the verified claims. With `allowed_roles`, the
    claim `role` must be one of them (403 otherwise).

    SECURITY: Returns 401 if the cookie is missing, tampered, expired, or
    carries the pre-auth stage.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                claims = providers.auth_flow().authenticate(request.cookies.get(AUTH_COOKIE))
            except Unauthenticated as e:
                return jsonify(e.to_dict()), e.status_code

            if allowed_roles and claims.get("role") not in allowed_roles:
                return jsonify({"error": "No tienes permisos suficientes"}), 403

            g.current_claims = claims
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_pre_auth(f):
    """
    Require the PreAuth cookie to be present.

    Signature, expiry and stage are checked by the flow operation itself so
    each one can answer with its own error (e.g. InvalidStage on verify).
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = request.cookies.get(PRE_AUTH_COOKIE)
        if not token:
            return jsonify({"error": "Falta token PreAuth"}), 401
        g.pre_auth_token = token
        return f(*args, **kwargs)

    return decorated_function


def client_info():
    """Caller context recorded on security events."""
    return ClientInfo(
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )


def json_body() -> dict:
    """Request JSON as a dict; an absent body reads as {}."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Cuerpo JSON inválido")
    return data
