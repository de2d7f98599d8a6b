from __future__ import annotations

from ..extensions import db
from viba.time_utils import to_utc_z


ROLES = ("admin", "developer", "owner", "detallista", "proveedor")
ADMIN_ROLES = ("admin", "developer")


class User(db.Model):
    """
    User accounts for authentication and attribution.

    Email is the login identifier and is matched case-insensitively, so it is
    stored lower-cased. A NULL totp_secret means two-factor is not enrolled.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    nombre = db.Column(db.String(120), nullable=False)
    rol = db.Column(db.String(32), nullable=False, default="detallista")

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    # Base32 TOTP secret and the last time-step accepted for it
    totp_secret = db.Column(db.String(64), nullable=True)
    totp_last_step = db.Column(db.BigInteger, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def two_fa_enabled(self) -> bool:
        return bool(self.totp_secret)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "nombre": self.nombre,
            "rol": self.rol,
            "twoFAEnabled": self.two_fa_enabled,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }
