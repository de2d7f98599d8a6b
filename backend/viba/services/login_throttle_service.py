"""
Login Throttling Service

WHY: Prevent brute-force attacks against passwords and TOTP codes by
limiting failed attempts. After too many failures the identifier is
temporarily locked.

- Tracks failed attempts per (event type, email) in security_events
- Lockout after `max_attempts` failures within `window`
- Lockout lasts `duration` from the most recent failure
- A successful attempt records an event but does not erase history
"""

from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.orm import Session

from ..models import SecurityEvent
from viba.time_utils import utcnow


LOGIN_FAILED = "LOGIN_FAILED"
LOGIN_SUCCESS = "LOGIN_SUCCESS"
TOTP_FAILED = "TOTP_FAILED"
TOTP_SUCCESS = "TOTP_SUCCESS"
TOTP_ENROLLED = "TOTP_ENROLLED"
TOTP_RESET = "TOTP_RESET"


@dataclass
class ClientInfo:
    ip_address: str | None = None
    user_agent: str | None = None


class LoginThrottle:
    def __init__(self, db: Session, *, failed_event: str, max_attempts: int, minutes: int):
        self.db = db
        self.failed_event = failed_event
        self.max_attempts = max_attempts
        self.window = timedelta(minutes=minutes)
        self.duration = timedelta(minutes=minutes)

    def recent_failures(self, identifier: str) -> int:
        """Count failed attempts for `identifier` within the window."""
        cutoff = utcnow() - self.window
        return self.db.query(SecurityEvent).filter(
            SecurityEvent.event_type == self.failed_event,
            SecurityEvent.identifier == identifier,
            SecurityEvent.occurred_at >= cutoff,
        ).count()

    def lock_status(self, identifier: str) -> tuple[bool, int | None]:
        """
        Returns:
        - (True, seconds_remaining) if locked
        - (False, None) if not locked
        """
        if self.recent_failures(identifier) < self.max_attempts:
            return False, None

        most_recent = self.db.query(SecurityEvent).filter(
            SecurityEvent.event_type == self.failed_event,
            SecurityEvent.identifier == identifier,
        ).order_by(SecurityEvent.occurred_at.desc()).first()

        if most_recent:
            lockout_end = most_recent.occurred_at + self.duration
            now = utcnow()
            if now < lockout_end:
                return True, int((lockout_end - now).total_seconds())

        return False, None

    def record_failure(self, identifier: str, user_id: int | None = None,
                       client: ClientInfo | None = None, reason: str | None = None) -> int:
        """Record a failed attempt and return the number of recent failures."""
        record_event(self.db, self.failed_event, identifier, success=False,
                     user_id=user_id, client=client, reason=reason)
        self.db.flush()
        return self.recent_failures(identifier)


def record_event(db: Session, event_type: str, identifier: str | None, *, success: bool,
                 user_id: int | None = None, client: ClientInfo | None = None,
                 reason: str | None = None) -> SecurityEvent:
    client = client or ClientInfo()
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        identifier=identifier,
        success=success,
        reason=reason,
        ip_address=client.ip_address,
        user_agent=(client.user_agent or "")[:512] or None,
        occurred_at=utcnow(),
    )
    db.add(event)
    return event


def cleanup_security_events(db: Session, retention_days: int) -> int:
    """Delete security events older than the retention window."""
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.query(SecurityEvent).filter(SecurityEvent.occurred_at < cutoff).delete()
    db.commit()
    return deleted
