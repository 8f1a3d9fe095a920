"""Tests for ConsentGate."""

from unittest.mock import MagicMock

from adbridge.tracking.consent import ConsentGate


class TestConsentGate:
    """Test ConsentGate."""

    def test_fails_open_without_provider(self):
        """Test consent is assumed when no consent manager is installed."""
        assert ConsentGate().has_marketing_consent() is True

    def test_delegates_to_provider(self):
        """Test the provider's answer is used."""
        provider = MagicMock(return_value=False)

        assert ConsentGate(provider).has_marketing_consent() is False
        provider.assert_called_once_with()

    def test_failing_provider_denies(self):
        """Test a raising provider counts as no consent."""
        provider = MagicMock(side_effect=RuntimeError("cmp unavailable"))

        assert ConsentGate(provider).has_marketing_consent() is False
