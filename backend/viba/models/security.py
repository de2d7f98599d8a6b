from __future__ import annotations

from ..extensions import db
from viba.time_utils import to_utc_z


class SecurityEvent(db.Model):
    """
    Security event audit log.

    Tracks login and two-factor attempts (used for throttling), enrollments
    and privileged resets.

    IMMUTABLE: Never update. Rows are only removed by the retention cleanup.
    """
    __tablename__ = "security_events"
    __table_args__ = (
        db.Index("ix_security_events_type_identifier", "event_type", "identifier"),
        db.Index("ix_security_events_occurred", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    # LOGIN_FAILED, LOGIN_SUCCESS, TOTP_FAILED, TOTP_SUCCESS, TOTP_ENROLLED, TOTP_RESET
    event_type = db.Column(db.String(64), nullable=False)
    # Lower-cased email the attempt was made for
    identifier = db.Column(db.String(255), nullable=True)

    success = db.Column(db.Boolean, nullable=False)
    reason = db.Column(db.Text, nullable=True)

    # Client context
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "event_type": self.event_type,
            "identifier": self.identifier,
            "success": self.success,
            "reason": self.reason,
            "ip_address": self.ip_address,
            "occurred_at": to_utc_z(self.occurred_at),
        }
