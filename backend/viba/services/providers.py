# Overview: Builds services for the current request from app config and db.session.

from flask import current_app

from ..extensions import db
from ..repositories import InventoryRepository, SaleRepository, UserRepository
from .order_service import OrderService
from .sales_service import SaleProcessor
from .session_service import AuthFlow, SessionSettings
from .token_codec import SessionTokenCodec
from .totp_service import TOTPEngine


def token_codec() -> SessionTokenCodec:
    return SessionTokenCodec(current_app.config["SECRET_KEY"])


def session_settings() -> SessionSettings:
    config = current_app.config
    return SessionSettings(
        pre_auth_ttl=config["PRE_AUTH_TTL_SECONDS"],
        auth_ttl=config["AUTH_TTL_SECONDS"],
        login_max_failed_attempts=config["LOGIN_MAX_FAILED_ATTEMPTS"],
        totp_max_failed_attempts=config["TOTP_MAX_FAILED_ATTEMPTS"],
        lockout_minutes=config["LOCKOUT_MINUTES"],
    )


def auth_flow() -> AuthFlow:
    return AuthFlow(
        db.session,
        UserRepository(db.session),
        token_codec(),
        TOTPEngine(current_app.config["TOTP_ISSUER"]),
        session_settings(),
    )


def sale_processor() -> SaleProcessor:
    return SaleProcessor(
        db.session,
        InventoryRepository(db.session),
        SaleRepository(db.session),
        timeout_seconds=current_app.config["SALE_TIMEOUT_SECONDS"],
    )


def order_service() -> OrderService:
    return OrderService(db.session, UserRepository(db.session), InventoryRepository(db.session))
