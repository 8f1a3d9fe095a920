"""Base partner connector abstract class."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from adbridge.connectors.config import ConnectorConfig, ConversionsRequest, PartnerType
from adbridge.connectors.exceptions import ConfigurationMissingError
from adbridge.conversions.schema import ConversionEvent, EventKind

if TYPE_CHECKING:
    from adbridge.connectors.proxy import ConnectProxyClient
    from adbridge.conversions.commerce import Order
    from adbridge.conversions.schema import UserContext

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"

# Placeholder some partner snippets carry for the visitor's email
EMAIL_PLACEHOLDER = "'user_email': '__INSERT_USER_EMAIL__'"


class BasePartnerConnector(ABC):
    """Abstract base class for ad partner connectors.

    A connector knows one partner's wire format: how a ConversionEvent is
    encoded for its Conversions API, how its pixel snippet is obtained and
    how the browser-side purchase call looks.

    Subclasses must set the class attributes:
    - partner_type: The PartnerType enum value for this connector
    - event_names: Partner event name for each supported EventKind
    - pixel_function: Global JS function of the pixel (``rdt``, ``snaptr``)
    - pixel_loader_url: Vendor script URL every valid snippet references

    Subclasses must implement:
    - conversions_request(): Encode an event for the Conversions API
    - fetch_pixel_script(): Obtain the raw pixel snippet
    - purchase_pixel_payload(): Browser-side purchase event data

    Example:
        class ExampleConnector(BasePartnerConnector):
            partner_type = PartnerType.REDDIT
            event_names = {EventKind.PURCHASE: "Purchase"}
            pixel_function = "rdt"
            pixel_loader_url = "https://example.com/pixel.js"
    """

    partner_type: PartnerType
    event_names: dict[EventKind, str]
    pixel_function: str
    pixel_loader_url: str

    # Cookie name -> UserContext.partner_ids field
    user_cookies: dict[str, str] = {}

    # Whether the Conversions API call needs an access token
    requires_access_token: bool = False

    # Whether fetched pixel snippets should be cached
    caches_pixel_script: bool = False

    def __init_subclass__(cls, **kwargs: Any) -> None:
        """Validate that subclasses define partner_type."""
        super().__init_subclass__(**kwargs)
        # Skip validation for abstract subclasses
        if ABC in cls.__bases__:
            return
        if getattr(cls, "partner_type", None) is None:
            raise TypeError(
                f"{cls.__name__} must define a 'partner_type' class attribute"
            )

    def __init__(self, config: ConnectorConfig):
        """Initialize connector with configuration.

        Args:
            config: Connector configuration including pixel id and credentials.
        """
        self.config = config
        self._env: Environment | None = None

    @property
    def env(self) -> Environment:
        """Lazy initialization of the Jinja2 environment for pixel snippets."""
        if self._env is None:
            self._env = Environment(
                loader=FileSystemLoader(str(TEMPLATES_DIR)),
                autoescape=select_autoescape(["html.j2"]),
            )
        return self._env

    @property
    def tracking_data_name(self) -> str:
        """Name of the page-level JS object holding tracking data."""
        return f"{self.partner_type.value}AdsTrackingData"

    def supports(self, kind: EventKind) -> bool:
        """Return True if the partner accepts this event kind."""
        return kind in self.event_names

    def event_name(self, kind: EventKind) -> str:
        """Partner name of an event kind.

        Raises:
            KeyError: If the kind is not supported.
        """
        return self.event_names[kind]

    def is_configured(self) -> bool:
        """Return True if server-side events can be sent."""
        if not self.config.pixel_id:
            return False
        if self.requires_access_token and not self.config.conversion_access_token:
            return False
        return True

    def ensure_configured(self) -> None:
        """Raise ConfigurationMissingError unless the connector is configured."""
        if not self.is_configured():
            raise ConfigurationMissingError(
                f"{self.partner_type.value} conversion tracking is not configured"
            )

    def is_valid_pixel_script(self, script: str) -> bool:
        """A snippet is valid only if it loads the vendor-controlled script."""
        return bool(script) and self.pixel_loader_url in script

    def personalize_script(self, script: str) -> str:
        """Prepare a raw snippet for the page.

        The initial page-view call is removed (it is fired from the tracking
        data instead, with a correlation id) and the email placeholder is
        dropped since no visitor email is shared with the pixel.
        """
        script = script.replace(f"{self.pixel_function}('track', 'PAGE_VIEW');", "")
        return script.replace(EMAIL_PLACEHOLDER, "")

    @abstractmethod
    def conversions_request(self, event: ConversionEvent) -> ConversionsRequest:
        """Encode an event for the partner's Conversions API.

        Raises:
            ConfigurationMissingError: If the connector is not configured.
            KeyError: If the event kind is not supported.
        """
        pass  # pragma: no cover

    @abstractmethod
    def fetch_pixel_script(self, proxy: ConnectProxyClient | None) -> str:
        """Return the raw pixel snippet, or an empty string if unavailable."""
        pass  # pragma: no cover

    @abstractmethod
    def purchase_pixel_payload(
        self,
        order: Order,
        correlation_id: str,
        user: UserContext | None,
        collect_pii: bool,
    ) -> dict[str, Any]:
        """Data passed to the browser-side purchase call."""
        pass  # pragma: no cover
