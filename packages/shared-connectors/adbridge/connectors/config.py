"""Configuration models for ad partner connectors."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx

DEFAULT_CONNECT_SERVER_URL = "https://public-api.wordpress.com/wpcom/v2"


class PartnerType(str, Enum):
    """Supported ad partners."""

    REDDIT = "reddit"
    SNAPCHAT = "snapchat"


@dataclass
class ConnectorConfig:
    """Settings a partner connector needs to talk to the Connect Server."""

    partner_type: PartnerType
    pixel_id: str = ""

    # Authentication (repr=False to prevent credential exposure in logs)
    conversion_access_token: str = field(default="", repr=False)

    # Connect Server proxy
    connect_server_url: str = DEFAULT_CONNECT_SERVER_URL
    site_id: str = ""
    service_name: str | None = None  # defaults to the partner name
    request_timeout: float = 15.0

    # Pixel script caching
    pixel_script_ttl: int = 3600  # seconds

    @property
    def proxy_base_url(self) -> str:
        """Base URL of the partner service on the Connect Server."""
        service = self.service_name or self.partner_type.value
        return f"{self.connect_server_url.rstrip('/')}/sites/{self.site_id}/wc/{service}"

    @property
    def timeout(self) -> httpx.Timeout:
        """HTTP timeout for proxy calls."""
        return httpx.Timeout(self.request_timeout, connect=5.0)


@dataclass
class ConversionsRequest:
    """A Conversions API call ready to go through the proxy."""

    path: str
    body: dict[str, Any]
    params: dict[str, str] = field(default_factory=dict)
