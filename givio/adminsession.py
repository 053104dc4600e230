"""
Stateless admin session tokens.

A token is ``<payload>.<signature>`` where ``payload`` is the unpadded base64url
encoding of ``{"exp": <unix seconds>}`` and ``signature`` is HMAC-SHA256 over the
*encoded* payload string, keyed by the server secret.

New tokens are signed with unpadded base64url. Tokens signed by older code paths
carry a 64 character lowercase hex signature; the verifier picks the encoding by
length, so only one form is ever computed for a given token.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
import math
from typing import Optional

from .helpers import now_ts, ct_equal

logger = logging.getLogger("givio.adminsession")

COOKIE_NAME = "gl_admin_session"
SESSION_TTL_SECONDS = 60 * 60 * 12
ADMIN_PATH_PREFIX = "/admin"

_HEX_SIG_LEN = 64
_HEX_DIGITS = frozenset("0123456789abcdef")


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64url_decode(s: str) -> bytes:
    pad = "=" * (-len(s) % 4)
    return base64.b64decode(s + pad, altchars=b"-_", validate=True)


def _hmac_sha256(secret: str, message: str) -> bytes:
    return hmac.new(
        secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256
    ).digest()


def sign(secret: str, payload_part: str) -> str:
    return _b64url_encode(_hmac_sha256(secret, payload_part))


def create_token(secret: str, now: Optional[float] = None) -> str:
    if not secret:
        raise ValueError("secret must not be empty")
    if now is None:
        now = now_ts()
    payload = {"exp": int(now) + SESSION_TTL_SECONDS}
    payload_part = _b64url_encode(
        json.dumps(payload, separators=(",", ":")).encode("utf-8")
    )
    return f"{payload_part}.{sign(secret, payload_part)}"


def _expected_signature(secret: str, payload_part: str, sig: str) -> str:
    mac = _hmac_sha256(secret, payload_part)
    if len(sig) == _HEX_SIG_LEN and set(sig) <= _HEX_DIGITS:
        return mac.hex()
    return _b64url_encode(mac)


def verify_token(token: str, secret: str, now: Optional[float] = None) -> bool:
    """True only for a correctly signed, unexpired token. Never raises."""
    if not token or not secret:
        logger.debug("session rejected: missing token or secret")
        return False

    parts = token.split(".")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        logger.debug("session rejected: malformed token")
        return False
    payload_part, sig = parts

    # unsigned payloads are never parsed
    expected = _expected_signature(secret, payload_part, sig)
    if not hmac.compare_digest(expected.encode("ascii"), sig.encode("utf-8")):
        logger.debug("session rejected: bad signature")
        return False

    try:
        payload = json.loads(_b64url_decode(payload_part).decode("utf-8"))
    except (binascii.Error, ValueError, UnicodeDecodeError, RecursionError):
        logger.debug("session rejected: undecodable payload")
        return False
    if not isinstance(payload, dict):
        logger.debug("session rejected: payload is not an object")
        return False

    exp = payload.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        logger.debug("session rejected: exp missing or not numeric")
        return False
    if not math.isfinite(exp):
        logger.debug("session rejected: exp not finite")
        return False

    if now is None:
        now = now_ts()
    if exp <= int(now):
        logger.debug("session rejected: expired")
        return False
    return True


def check_password(submitted: str, expected: str) -> bool:
    if not expected:
        return False
    return ct_equal(submitted or "", expected)


def is_safe_next(next_path: Optional[str]) -> bool:
    # only same-site admin paths; "//host" style values are rejected too
    if not next_path:
        return False
    return next_path.startswith(ADMIN_PATH_PREFIX) and not next_path.startswith("//")
