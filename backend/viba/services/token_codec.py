# Overview: Signed, time-bounded session tokens for the PreAuth/Auth cookies.

"""
Session Token Codec

Tokens are stateless: the claim set plus an absolute expiry, signed with the
application SECRET_KEY through itsdangerous (the same signer Flask uses for
its own session cookie). Nothing is stored server-side, so a token stays
valid until it expires even after logout clears the browser cookie.
"""

import time
from typing import Callable

from itsdangerous import BadSignature, URLSafeSerializer


STAGE_PRE_AUTH = "pre-2fa"
STAGE_FULL_AUTH = "full-auth"

_EXPIRY_CLAIM = "exp"
_SALT = "viba.session"


class TokenError(Exception):
    """Raised when a token cannot be trusted."""


class TokenExpired(TokenError):
    pass


class SessionTokenCodec:
    def __init__(self, secret_key: str, clock: Callable[[], float] = time.time):
        if not secret_key:
            raise ValueError("secret_key is required")
        self._serializer = URLSafeSerializer(secret_key, salt=_SALT)
        self._clock = clock

    def sign(self, claims: dict, expires_in: int) -> str:
        """Sign `claims` so the token expires `expires_in` seconds from now."""
        if _EXPIRY_CLAIM in claims:
            raise ValueError(f"'{_EXPIRY_CLAIM}' is a reserved claim")
        payload = dict(claims)
        payload[_EXPIRY_CLAIM] = int(self._clock()) + int(expires_in)
        return self._serializer.dumps(payload)

    def verify(self, token: str) -> dict:
        """
        Return the claims of a valid token, without the expiry claim.

        Raises TokenError for a missing, tampered or malformed token and
        TokenExpired once the absolute expiry has passed.
        """
        if not token:
            raise TokenError("Token missing")
        try:
            payload = self._serializer.loads(token)
        except BadSignature as exc:
            raise TokenError("Invalid token signature") from exc

        if not isinstance(payload, dict) or not isinstance(payload.get(_EXPIRY_CLAIM), int):
            raise TokenError("Malformed token")

        if payload[_EXPIRY_CLAIM] <= self._clock():
            raise TokenExpired("Token expired")

        claims = dict(payload)
        claims.pop(_EXPIRY_CLAIM)
        return claims
