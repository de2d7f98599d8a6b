# Overview: Time-based one-time passwords (RFC 6238) and enrollment QR codes.

import base64
import io
import time
from dataclasses import dataclass
from datetime import datetime

import pyotp
import qrcode
import qrcode.image.svg
from pyotp.utils import strings_equal


STEP_SECONDS = 30
DIGITS = 6
WINDOW = 1


@dataclass
class GeneratedSecret:
    secret: str
    provisioning_uri: str


def _timestamp(for_time) -> float:
    if for_time is None:
        return time.time()
    if isinstance(for_time, datetime):
        return for_time.timestamp()
    return float(for_time)


class TOTPEngine:
    """
    Thin wrapper over pyotp: 30-second step, base32 secret, 6-digit codes,
    accepting one step of clock skew either way.

    Consumed codes are not tracked here; callers that need replay protection
    compare the step returned by match_step() with the last one they stored.
    """

    def __init__(self, issuer: str, window: int = WINDOW):
        self.issuer = issuer
        self.window = window

    def _totp(self, secret: str) -> pyotp.TOTP:
        return pyotp.TOTP(secret, digits=DIGITS, interval=STEP_SECONDS)

    def generate_secret(self, label: str) -> GeneratedSecret:
        secret = pyotp.random_base32()
        uri = self._totp(secret).provisioning_uri(name=label, issuer_name=self.issuer)
        return GeneratedSecret(secret=secret, provisioning_uri=uri)

    def step_for(self, for_time=None) -> int:
        return int(_timestamp(for_time) // STEP_SECONDS)

    def code_at(self, secret: str, for_time=None) -> str:
        return self._totp(secret).generate_otp(self.step_for(for_time))

    def match_step(self, secret: str, code, for_time=None) -> int | None:
        """Return the time-step the code is valid for, or None."""
        if not secret or code is None:
            return None
        code = str(code).strip()
        if len(code) != DIGITS or not code.isdigit():
            return None

        totp = self._totp(secret)
        current_step = self.step_for(for_time)
        for offset in range(-self.window, self.window + 1):
            step = current_step + offset
            if strings_equal(totp.generate_otp(step), code):
                return step
        return None

    def verify(self, secret: str, code, for_time=None) -> bool:
        return self.match_step(secret, code, for_time=for_time) is not None


def render_qr_data_url(data: str) -> str:
    """Render `data` as an SVG QR code and return it as a data: URL."""
    image = qrcode.make(data, image_factory=qrcode.image.svg.SvgPathImage)
    buffer = io.BytesIO()
    image.save(buffer)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"
