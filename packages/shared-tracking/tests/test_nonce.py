"""Tests for NonceManager."""

import pytest

from adbridge.tracking.exceptions import InvalidNonceError
from adbridge.tracking.nonce import NONCE_LIFETIME, NonceManager


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestNonceManager:
    """Test NonceManager."""

    def test_round_trip(self):
        """Test a nonce verifies for the same session and action."""
        nonces = NonceManager("secret")
        nonce = nonces.create(session_token="session-abc")

        assert len(nonce) == 10
        assert nonces.verify(nonce, session_token="session-abc")

    def test_bound_to_session_and_action(self):
        """Test nonces do not transfer between sessions or actions."""
        nonces = NonceManager("secret")
        nonce = nonces.create(session_token="session-abc")

        assert not nonces.verify(nonce, session_token="session-xyz")
        assert not nonces.verify(nonce, action="other_action", session_token="session-abc")

    def test_bound_to_secret(self):
        """Test another secret does not accept the nonce."""
        nonce = NonceManager("secret").create(session_token="s")

        assert not NonceManager("other").verify(nonce, session_token="s")

    def test_previous_tick_accepted(self):
        """Test a nonce stays valid for one more tick, then expires."""
        clock = FakeClock()
        nonces = NonceManager("secret", clock=clock)
        nonce = nonces.create(session_token="s")

        clock.now += NONCE_LIFETIME / 2
        assert nonces.verify(nonce, session_token="s")

        clock.now += NONCE_LIFETIME / 2
        assert not nonces.verify(nonce, session_token="s")

    def test_check_raises(self):
        """Test check raises for missing or invalid nonces."""
        nonces = NonceManager("secret")

        with pytest.raises(InvalidNonceError):
            nonces.check(None)
        with pytest.raises(InvalidNonceError):
            nonces.check("0123456789")

    def test_secret_required(self):
        """Test a secret is mandatory."""
        with pytest.raises(ValueError):
            NonceManager("")
