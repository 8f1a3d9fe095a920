"""AdBridge ad partner connectors.

This package knows the wire format of each supported ad partner:
- Conversions API payloads (sent through the Connect Server proxy)
- Browser pixel snippets and the inline purchase call

Example:
    from adbridge.connectors import ConnectorConfig, PartnerType, get_registry
    import adbridge.connectors.adapters  # noqa: F401

    config = ConnectorConfig(
        partner_type=PartnerType.SNAPCHAT,
        pixel_id="abc-123",
        conversion_access_token="token",
        site_id="12345",
    )

    connector = get_registry().create(config)
    request = connector.conversions_request(event)

    with ConnectProxyClient(config, token_provider=lambda: "X_JP_Auth ...") as proxy:
        proxy.proxy_post(request.path, request.body, params=request.params)
"""

from adbridge.connectors.base import BasePartnerConnector
from adbridge.connectors.config import (
    DEFAULT_CONNECT_SERVER_URL,
    ConnectorConfig,
    ConversionsRequest,
    PartnerType,
)
from adbridge.connectors.exceptions import (
    ConfigurationMissingError,
    ConnectorError,
    ProxyAuthenticationError,
    ProxyRequestError,
)
from adbridge.connectors.proxy import ConnectProxyClient, ProxyResponse
from adbridge.connectors.registry import ConnectorRegistry, get_registry

__all__ = [
    # Base
    "BasePartnerConnector",
    # Config
    "DEFAULT_CONNECT_SERVER_URL",
    "ConnectorConfig",
    "ConversionsRequest",
    "PartnerType",
    # Exceptions
    "ConfigurationMissingError",
    "ConnectorError",
    "ProxyAuthenticationError",
    "ProxyRequestError",
    # Proxy
    "ConnectProxyClient",
    "ProxyResponse",
    # Registry
    "ConnectorRegistry",
    "get_registry",
]
