# Overview: Login state machine: credentials -> pre-auth -> TOTP -> full session.

"""
Session Flow

States: anonymous -> pre-2fa (valid credentials) -> authenticated (valid TOTP).
check_status() reports "none" when neither stage holds a valid token.

The two stages use disjoint claim shapes and a `stage` claim:
- pre-auth  {userId, email, role, twoFAEnabled, stage="pre-2fa"}   15 min
- full-auth {userId, email, role, nombre, stage="full-auth"}        4 h

A pre-auth token never reaches protected resources, and a full-auth token
cannot be replayed into the enrollment endpoints, which accept the pre-auth
stage only.

Tokens are stateless. Logout clears the browser's cookies but a copied token
remains valid until it expires.

Accounts without a TOTP secret are never promoted directly: they must enroll
(generate) and then verify a first code.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from ..models import User
from ..repositories import UserRepository
from .auth_service import check_credentials, normalize_email
from .errors import (
    AlreadyEnrolled,
    InvalidCode,
    InvalidCredentials,
    InvalidStage,
    NotFound,
    TooManyAttempts,
    TwoFactorNotEnrolled,
    Unauthenticated,
    ValidationError,
)
from .login_throttle_service import (
    ClientInfo,
    LoginThrottle,
    LOGIN_FAILED,
    LOGIN_SUCCESS,
    TOTP_ENROLLED,
    TOTP_FAILED,
    TOTP_RESET,
    TOTP_SUCCESS,
    record_event,
)
from .token_codec import STAGE_FULL_AUTH, STAGE_PRE_AUTH, SessionTokenCodec, TokenError
from .totp_service import TOTPEngine, render_qr_data_url


logger = logging.getLogger(__name__)

STATUS_AUTHENTICATED = "authenticated"
STATUS_PRE_2FA = "pre-2fa"
STATUS_NONE = "none"

INVALID_CREDENTIALS_MESSAGE = "Credenciales incorrectas"
INVALID_CODE_MESSAGE = "Código incorrecto"


@dataclass
class SessionSettings:
    pre_auth_ttl: int = 15 * 60
    auth_ttl: int = 4 * 60 * 60
    login_max_failed_attempts: int = 10
    totp_max_failed_attempts: int = 5
    lockout_minutes: int = 15


@dataclass
class LoginResult:
    pre_auth_token: str
    two_fa_enabled: bool
    user: User


@dataclass
class Enrollment:
    secret: str
    otpauth_url: str
    qr: str


@dataclass
class VerifiedSession:
    auth_token: str
    display: dict


class AuthFlow:
    def __init__(
        self,
        db: Session,
        users: UserRepository,
        codec: SessionTokenCodec,
        totp: TOTPEngine,
        settings: SessionSettings | None = None,
        qr_renderer=render_qr_data_url,
    ):
        self.db = db
        self.users = users
        self.codec = codec
        self.totp = totp
        self.settings = settings or SessionSettings()
        self.qr_renderer = qr_renderer
        self.login_throttle = LoginThrottle(
            db,
            failed_event=LOGIN_FAILED,
            max_attempts=self.settings.login_max_failed_attempts,
            minutes=self.settings.lockout_minutes,
        )
        self.totp_throttle = LoginThrottle(
            db,
            failed_event=TOTP_FAILED,
            max_attempts=self.settings.totp_max_failed_attempts,
            minutes=self.settings.lockout_minutes,
        )

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------

    def _decode(self, token: str | None) -> dict | None:
        try:
            return self.codec.verify(token)
        except TokenError:
            return None

    def _pre_auth_claims(self, token: str | None) -> dict:
        claims = self._decode(token)
        if claims is None or claims.get("stage") != STAGE_PRE_AUTH:
            raise Unauthenticated("Token PreAuth inválido o expirado")
        return claims

    def authenticate(self, auth_token: str | None) -> dict:
        """Claims of a valid full-auth token; Unauthenticated otherwise."""
        if not auth_token:
            raise Unauthenticated("No autenticado")
        claims = self._decode(auth_token)
        if claims is None or claims.get("stage") != STAGE_FULL_AUTH:
            raise Unauthenticated("Token inválido o expirado")
        return claims

    @staticmethod
    def _check_lock(throttle: LoginThrottle, identifier: str) -> None:
        locked, seconds_remaining = throttle.lock_status(identifier)
        if locked:
            raise TooManyAttempts(
                "Demasiados intentos fallidos, intente más tarde",
                details={"retry_after_seconds": seconds_remaining},
            )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def login(self, email, password, client: ClientInfo | None = None) -> LoginResult:
        if not isinstance(email, str) or not isinstance(password, str) or not email or not password:
            raise ValidationError("Email y contraseña son obligatorios")

        identifier = normalize_email(email)
        self._check_lock(self.login_throttle, identifier)

        user = check_credentials(self.users, identifier, password)
        if user is None:
            failures = self.login_throttle.record_failure(identifier, client=client, reason="Invalid credentials")
            self.db.commit()
            if failures >= self.login_throttle.max_attempts:
                logger.warning("Login locked for %s after %d failures", identifier, failures)
            raise InvalidCredentials(INVALID_CREDENTIALS_MESSAGE)

        self.users.touch_login(user)
        record_event(self.db, LOGIN_SUCCESS, identifier, success=True, user_id=user.id, client=client)
        self.db.commit()

        token = self.codec.sign(
            {
                "userId": user.id,
                "email": user.email,
                "role": user.rol,
                "twoFAEnabled": user.two_fa_enabled,
                "stage": STAGE_PRE_AUTH,
            },
            self.settings.pre_auth_ttl,
        )
        return LoginResult(pre_auth_token=token, two_fa_enabled=user.two_fa_enabled, user=user)

    def enroll_totp(self, pre_auth_token: str | None, client: ClientInfo | None = None) -> Enrollment:
        claims = self._pre_auth_claims(pre_auth_token)
        user = self.users.find_by_email(claims["email"])
        if user is None:
            raise NotFound("Usuario no encontrado")
        if user.two_fa_enabled:
            raise AlreadyEnrolled("2FA ya está activado para este usuario")

        generated = self.totp.generate_secret(user.email)
        self.users.update_totp_secret(user.email, generated.secret)
        record_event(self.db, TOTP_ENROLLED, user.email, success=True, user_id=user.id, client=client)
        self.db.commit()
        logger.info("TOTP secret enrolled for user %s", user.id)

        return Enrollment(
            secret=generated.secret,
            otpauth_url=generated.provisioning_uri,
            qr=self.qr_renderer(generated.provisioning_uri),
        )

    def verify_totp(self, pre_auth_token: str | None, code, client: ClientInfo | None = None,
                    for_time=None) -> VerifiedSession:
        claims = self._decode(pre_auth_token)
        if claims is None:
            raise Unauthenticated("Token PreAuth inválido o expirado")
        if claims.get("stage") != STAGE_PRE_AUTH:
            raise InvalidStage("Etapa de autenticación inválida")
        if code is None or str(code).strip() == "":
            raise ValidationError("Código 2FA requerido")

        identifier = normalize_email(claims.get("email"))
        self._check_lock(self.totp_throttle, identifier)

        user = self.users.find_by_email(identifier)
        if user is None:
            raise NotFound("Usuario no encontrado")
        if not user.two_fa_enabled:
            raise TwoFactorNotEnrolled("2FA no activado")

        step = self.totp.match_step(user.totp_secret, code, for_time=for_time)
        replayed = step is not None and user.totp_last_step is not None and step <= user.totp_last_step
        if step is None or replayed:
            failures = self.totp_throttle.record_failure(
                identifier, user_id=user.id, client=client,
                reason="Replayed code" if replayed else "Invalid code",
            )
            self.db.commit()
            if failures >= self.totp_throttle.max_attempts:
                logger.warning("TOTP locked for %s after %d failures", identifier, failures)
            raise InvalidCode(INVALID_CODE_MESSAGE)

        self.users.record_totp_step(user, step)
        record_event(self.db, TOTP_SUCCESS, identifier, success=True, user_id=user.id, client=client)
        self.db.commit()

        token = self.codec.sign(
            {
                "userId": user.id,
                "email": user.email,
                "role": user.rol,
                "nombre": user.nombre,
                "stage": STAGE_FULL_AUTH,
            },
            self.settings.auth_ttl,
        )
        return VerifiedSession(
            auth_token=token,
            display={"nombre": user.nombre, "email": user.email, "role": user.rol},
        )

    def two_fa_status(self, pre_auth_token: str | None) -> bool:
        claims = self._pre_auth_claims(pre_auth_token)
        user = self.users.find_by_email(claims["email"])
        if user is None:
            raise NotFound("Usuario no encontrado")
        return user.two_fa_enabled

    def check_status(self, pre_auth_token: str | None, auth_token: str | None) -> str:
        """Never raises: anything unverifiable degrades to "none"."""
        auth_claims = self._decode(auth_token) if auth_token else None
        if auth_claims and auth_claims.get("stage") == STAGE_FULL_AUTH:
            return STATUS_AUTHENTICATED
        pre_claims = self._decode(pre_auth_token) if pre_auth_token else None
        if pre_claims and pre_claims.get("stage") == STAGE_PRE_AUTH:
            return STATUS_PRE_2FA
        return STATUS_NONE

    def reset_totp(self, email, actor: dict, client: ClientInfo | None = None) -> None:
        """Privileged: clear a user's TOTP secret so they can enroll again."""
        identifier = normalize_email(email)
        if not identifier:
            raise ValidationError("Email requerido")
        user = self.users.find_by_email(identifier)
        if user is None:
            raise NotFound("Usuario no encontrado")

        self.users.update_totp_secret(identifier, None)
        record_event(
            self.db, TOTP_RESET, identifier, success=True, user_id=user.id, client=client,
            reason=f"Reset by user {actor.get('userId')}",
        )
        self.db.commit()
        logger.info("TOTP reset for user %s by user %s", user.id, actor.get("userId"))
