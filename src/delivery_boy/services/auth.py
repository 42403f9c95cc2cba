"""
Shared-secret bearer authentication.
"""
import hmac
import logging
from typing import Optional

from delivery_boy.core.errors import Unauthorized

logger = logging.getLogger(__name__)


def bearer_token(header: Optional[str]) -> Optional[str]:
    """Extract the token from an `Authorization: Bearer <token>` header value."""
    if not header:
        return None
    scheme, _, token = header.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class AuthGate:
    """
    Allows a call iff the presented credential equals the configured secret.
    """

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("AuthGate requires a non-empty secret")
        self._secret = secret.encode("utf-8")

    def is_authorized(self, credential: Optional[str]) -> bool:
        if not credential:
            return False
        return hmac.compare_digest(credential.encode("utf-8"), self._secret)

    def check(self, credential: Optional[str]) -> None:
        """Raise Unauthorized unless `credential` matches."""
        if not self.is_authorized(credential):
            reason = "missing" if not credential else "wrong"
            logger.warning(f"Rejected request with {reason} credential")
            raise Unauthorized("Missing or wrong bearer credential")
