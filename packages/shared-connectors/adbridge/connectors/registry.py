"""Connector registry for managing available ad partners."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from adbridge.connectors.config import ConnectorConfig, PartnerType

if TYPE_CHECKING:
    from adbridge.connectors.base import BasePartnerConnector

logger = logging.getLogger(__name__)


class ConnectorRegistry:
    """Registry of available partner connector implementations.

    Singleton pattern for global connector registration. Exactly one partner
    is active per deployment; the registry only maps the configured partner
    type to its implementation.

    Example:
        registry = ConnectorRegistry()
        registry.register(PartnerType.REDDIT, RedditConnector)

        config = ConnectorConfig(partner_type=PartnerType.REDDIT, pixel_id="t2_abc")
        connector = registry.create(config)
    """

    _instance: ConnectorRegistry | None = None
    _connectors: dict[PartnerType, type[BasePartnerConnector]]

    def __new__(cls) -> ConnectorRegistry:
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._connectors = {}
        return cls._instance

    def register(
        self,
        partner_type: PartnerType,
        connector_class: type[BasePartnerConnector],
    ) -> None:
        """Register a connector implementation."""
        self._connectors[partner_type] = connector_class
        logger.debug(f"Registered connector: {partner_type.value}")

    def get(self, partner_type: PartnerType) -> type[BasePartnerConnector] | None:
        """Get a connector class by partner type, or None if not registered."""
        return self._connectors.get(partner_type)

    def create(self, config: ConnectorConfig) -> BasePartnerConnector:
        """Create a connector instance from configuration.

        Raises:
            ValueError: If the partner type is not registered.
        """
        connector_class = self.get(config.partner_type)
        if connector_class is None:
            raise ValueError(
                f"No connector registered for partner: {config.partner_type.value}"
            )
        return connector_class(config)


# Global registry instance
_registry = ConnectorRegistry()


def get_registry() -> ConnectorRegistry:
    """Get the global connector registry."""
    return _registry
