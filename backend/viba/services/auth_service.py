# Overview: Credential verification and password hashing.

"""
Credential Verifier

Uses bcrypt for password hashing. Emails are normalized (stripped,
lower-cased) before every lookup so matching is case-insensitive.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, with upper, lower and digit
- When the email is unknown a dummy hash is still checked so response time
  does not reveal which emails are registered
"""

import re

import bcrypt

from ..models import User
from ..models.auth import ROLES
from .errors import ValidationError


BCRYPT_ROUNDS = 12

# Hash of a random string, checked when no user matches
_DUMMY_HASH = bcrypt.hashpw(b"viba-dummy-password", bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def normalize_email(email) -> str:
    if not isinstance(email, str):
        return ""
    return email.strip().lower()


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Validate strength, then hash with bcrypt."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() compares in constant time. Malformed hashes count as
    a mismatch.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def check_credentials(users, email: str, password: str) -> User | None:
    """
    Return the user when email and password match, None otherwise.

    `users` is a UserRepository.
    """
    user = users.find_by_email(normalize_email(email))
    if user is None:
        verify_password(password or "", _DUMMY_HASH)
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def create_user(users, email: str, nombre: str, password: str, rol: str = "detallista",
                rounds: int = BCRYPT_ROUNDS) -> User:
    """
    Create a user with a bcrypt-hashed password.

    Raises ValidationError for a bad role, duplicate email or weak password.
    """
    email = normalize_email(email)
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")
    if not nombre:
        raise ValidationError("nombre is required")
    if rol not in ROLES:
        raise ValidationError(f"Unknown role: {rol}", details={"roles": list(ROLES)})
    if users.find_by_email(email) is not None:
        raise ValidationError("Email already registered")

    return users.add(User(
        email=email,
        nombre=nombre,
        rol=rol,
        password_hash=hash_password(password, rounds=rounds),
    ))
