from __future__ import annotations

import base64
import hashlib
import hmac
import json
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional, Tuple

from barberflow.utils import Clock, utcnow

SESSION_COOKIE_NAME = "session"
TOKEN_BYTES = 32
TOKEN_EXPIRY_MINUTES = 15


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64url_decode(value: str) -> bytes:
    padding = "=" * ((4 - len(value) % 4) % 4)
    return base64.urlsafe_b64decode(value + padding)


def generate_token() -> Tuple[str, str]:
    """Return `(plaintext, hash)` for a new opaque booking token.

    The plaintext is 32 random bytes as unpadded URL-safe base64 (43 chars). It
    is handed to the customer once; only the hash is ever stored.
    """
    plaintext = _b64url_encode(secrets.token_bytes(TOKEN_BYTES))
    return plaintext, hash_token(plaintext)


def hash_token(plaintext: str) -> str:
    return hashlib.sha256(plaintext.encode("utf-8")).hexdigest()


def calculate_expiry(minutes: int = TOKEN_EXPIRY_MINUTES, *, clock: Clock = utcnow) -> datetime:
    return clock() + timedelta(minutes=minutes)


def token_fingerprint(token_hash: str) -> str:
    """Short, log-safe prefix of a token hash."""
    return token_hash[:12]


@dataclass(frozen=True)
class BookingSession:
    barbershop_id: str
    barber_id: Optional[str]
    customer_phone: str
    token_id: str


def _sign(payload_b64: str, secret_key: str) -> bytes:
    return hmac.new(
        secret_key.encode("utf-8"), payload_b64.encode("ascii"), hashlib.sha256
    ).digest()


def create_booking_session_token(
    booking_session: BookingSession,
    secret_key: str,
    *,
    ttl_seconds: int,
    now: Optional[int] = None,
) -> str:
    issued_at = now if now is not None else int(time.time())
    payload = {
        "shop": booking_session.barbershop_id,
        "barber": booking_session.barber_id,
        "phone": booking_session.customer_phone,
        "tid": booking_session.token_id,
        "iat": issued_at,
        "exp": issued_at + ttl_seconds,
    }
    payload_json = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
    payload_b64 = _b64url_encode(payload_json)
    return f"{payload_b64}.{_b64url_encode(_sign(payload_b64, secret_key))}"


def decode_booking_session_token(
    token: str, secret_key: str, *, now: Optional[int] = None
) -> Optional[BookingSession]:
    try:
        payload_b64, signature_b64 = token.split(".", 1)
        actual_signature = _b64url_decode(signature_b64)
        expected_signature = _sign(payload_b64, secret_key)
    except (ValueError, TypeError, UnicodeEncodeError):
        return None

    if not hmac.compare_digest(actual_signature, expected_signature):
        return None

    try:
        payload: Any = json.loads(_b64url_decode(payload_b64))
        barbershop_id = payload["shop"]
        barber_id = payload.get("barber")
        customer_phone = payload["phone"]
        token_id = payload["tid"]
        expires_at = int(payload["exp"])
    except (KeyError, ValueError, TypeError, AttributeError):
        return None

    for value in (barbershop_id, customer_phone, token_id):
        if not isinstance(value, str) or not value:
            return None
    if barber_id is not None and not isinstance(barber_id, str):
        return None

    current = now if now is not None else int(time.time())
    if expires_at < current:
        return None

    return BookingSession(
        barbershop_id=barbershop_id,
        barber_id=barber_id,
        customer_phone=customer_phone,
        token_id=token_id,
    )
