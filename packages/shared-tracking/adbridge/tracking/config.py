"""Tracking configuration."""

from __future__ import annotations

import os

from pydantic import BaseModel

from adbridge.connectors.config import (
    DEFAULT_CONNECT_SERVER_URL,
    ConnectorConfig,
    PartnerType,
)

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


class TrackingConfig(BaseModel):
    """Configuration for conversion tracking.

    Passed explicitly into every tracking component so nothing reads
    process-wide settings on its own.

    Example:
        config = TrackingConfig(
            partner=PartnerType.REDDIT,
            plugin_slug="reddit_for_woocommerce",
            pixel_id="t2_abc123",
        )
        config.conversion_meta_key  # "_reddit_for_woocommerce_conversion_tracked"
    """

    partner: PartnerType = PartnerType.REDDIT
    plugin_slug: str = "adbridge"

    conversions_enabled: bool = True
    pixel_enabled: bool = True
    pixel_id: str = ""
    conversion_access_token: str = ""
    collect_pii: bool = False
    logging_enabled: bool = True

    # Connect Server proxy
    connect_server_url: str = DEFAULT_CONNECT_SERVER_URL
    site_id: str = ""
    service_name: str | None = None
    request_timeout: float = 15.0

    pixel_script_ttl: int = 3600  # seconds
    nonce_secret: str = ""
    currency: str = "USD"

    @classmethod
    def from_env(cls) -> TrackingConfig:
        """Load configuration from ADBRIDGE_* environment variables."""
        return cls(
            partner=PartnerType(os.getenv("ADBRIDGE_PARTNER", "reddit").lower()),
            plugin_slug=os.getenv("ADBRIDGE_PLUGIN_SLUG", "adbridge"),
            conversions_enabled=_env_flag("ADBRIDGE_CONVERSIONS_ENABLED", True),
            pixel_enabled=_env_flag("ADBRIDGE_PIXEL_ENABLED", True),
            pixel_id=os.getenv("ADBRIDGE_PIXEL_ID", ""),
            conversion_access_token=os.getenv("ADBRIDGE_CONVERSION_ACCESS_TOKEN", ""),
            collect_pii=_env_flag("ADBRIDGE_COLLECT_PII", False),
            logging_enabled=_env_flag("ADBRIDGE_LOGGING_ENABLED", True),
            connect_server_url=os.getenv(
                "ADBRIDGE_CONNECT_SERVER_URL", DEFAULT_CONNECT_SERVER_URL
            ),
            site_id=os.getenv("ADBRIDGE_SITE_ID", ""),
            service_name=os.getenv("ADBRIDGE_SERVICE_NAME") or None,
            request_timeout=float(os.getenv("ADBRIDGE_REQUEST_TIMEOUT", "15")),
            pixel_script_ttl=int(os.getenv("ADBRIDGE_PIXEL_SCRIPT_TTL", "3600")),
            nonce_secret=os.getenv("ADBRIDGE_NONCE_SECRET", ""),
            currency=os.getenv("ADBRIDGE_CURRENCY", "USD"),
        )

    def with_prefix(self, suffix: str) -> str:
        """Prefix a hook, option or field name with the plugin slug."""
        return f"{self.plugin_slug}_{suffix}"

    @property
    def conversion_meta_key(self) -> str:
        """Order meta key of the server-side tracking state."""
        return f"_{self.with_prefix('conversion_tracked')}"

    @property
    def pixel_meta_key(self) -> str:
        """Order meta key of the pixel purchase flag."""
        return f"_{self.with_prefix('pixel_tracked')}"

    @property
    def event_id_field(self) -> str:
        """Name of the hidden form field carrying the add-to-cart event id."""
        return self.with_prefix("event_id")

    @property
    def send_job_type(self) -> str:
        return self.with_prefix("send_conversion_event")

    @property
    def conversion_sent_event(self) -> str:
        return self.with_prefix("conversion_sent")

    def is_conversions_enabled(self) -> bool:
        return self.conversions_enabled

    def is_pixel_enabled(self) -> bool:
        return self.pixel_enabled

    def connector_config(self) -> ConnectorConfig:
        """Connector settings derived from this configuration."""
        return ConnectorConfig(
            partner_type=self.partner,
            pixel_id=self.pixel_id,
            conversion_access_token=self.conversion_access_token,
            connect_server_url=self.connect_server_url,
            site_id=self.site_id,
            service_name=self.service_name,
            request_timeout=self.request_timeout,
            pixel_script_ttl=self.pixel_script_ttl,
        )
