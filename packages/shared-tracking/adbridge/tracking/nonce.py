"""Nonces protecting the asynchronous tracking endpoint."""

from __future__ import annotations

import hashlib
import hmac
import time
from collections.abc import Callable

from adbridge.tracking.exceptions import InvalidNonceError

NONCE_ACTION = "capi_nonce"
NONCE_FIELD = "security"
NONCE_LIFETIME = 24 * 60 * 60  # seconds; a nonce lives one to two ticks
NONCE_LENGTH = 10


class NonceManager:
    """Issues and verifies short-lived request nonces.

    A nonce is the first 10 hex characters of
    HMAC-SHA256(secret, tick | action | session token), where a tick is half
    the lifetime. Nonces from the current and the previous tick are accepted.

    Example:
        nonces = NonceManager(secret="s3cret")
        token = nonces.create(session_token="abc")
        nonces.verify(token, session_token="abc")  # True
    """

    def __init__(
        self,
        secret: str,
        lifetime: int = NONCE_LIFETIME,
        clock: Callable[[], float] = time.time,
    ):
        if not secret:
            raise ValueError("A nonce secret is required")
        self.secret = secret.encode("utf-8")
        self.lifetime = lifetime
        self.clock = clock

    def tick(self) -> int:
        return int(self.clock() // (self.lifetime / 2))

    def _digest(self, tick: int, action: str, session_token: str) -> str:
        message = f"{tick}|{action}|{session_token}".encode()
        return hmac.new(self.secret, message, hashlib.sha256).hexdigest()[:NONCE_LENGTH]

    def create(self, action: str = NONCE_ACTION, session_token: str = "") -> str:
        return self._digest(self.tick(), action, session_token)

    def verify(self, nonce: str | None, action: str = NONCE_ACTION, session_token: str = "") -> bool:
        if not nonce:
            return False
        tick = self.tick()
        for candidate in (tick, tick - 1):
            if hmac.compare_digest(nonce, self._digest(candidate, action, session_token)):
                return True
        return False

    def check(self, nonce: str | None, action: str = NONCE_ACTION, session_token: str = "") -> None:
        """Verify a nonce.

        Raises:
            InvalidNonceError: If the nonce is missing, forged or expired.
        """
        if not self.verify(nonce, action, session_token):
            raise InvalidNonceError(f"Invalid nonce for action '{action}'")
