"""Signed link tokens for the confirmation and cancellation handshakes.

Both tokens are hex SHA-256 digests over the reservation data followed by
the deployment secret, so a link can be verified without any server-side
session state and matches links issued by earlier deployments:

* confirmation: sha256(reservation_id + email + secret)
* cancellation: sha256(reservation_id + secret)
"""

import hashlib
import hmac
from urllib.parse import urlencode


def _digest(*parts: str) -> str:
    return hashlib.sha256("".join(parts).encode("utf-8")).hexdigest()


def confirmation_token(reservation_id: str, email: str, secret: str) -> str:
    return _digest(reservation_id, email, secret)


def cancellation_token(reservation_id: str, secret: str) -> str:
    return _digest(reservation_id, secret)


def verify_confirmation_token(token: str, reservation_id: str, email: str, secret: str) -> bool:
    expected = confirmation_token(reservation_id, email, secret)
    return hmac.compare_digest(expected.encode("utf-8"), (token or "").encode("utf-8"))


def verify_cancellation_token(token: str, reservation_id: str, secret: str) -> bool:
    expected = cancellation_token(reservation_id, secret)
    return hmac.compare_digest(expected.encode("utf-8"), (token or "").encode("utf-8"))


def build_link(base_url: str, reservation_id: str, token: str) -> str:
    """Return ``<base>?id=<reservationId>&token=<token>``."""
    return f"{base_url}?{urlencode({'id': reservation_id, 'token': token})}"
