"""Connect Server proxy client.

All calls to an ad partner go through the Connect Server, which holds the
partner credentials and forwards the request. The client only knows the
site's proxy base URL and, for authenticated calls, a site token.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from adbridge.connectors.config import ConnectorConfig
from adbridge.connectors.exceptions import ProxyAuthenticationError, ProxyRequestError

logger = logging.getLogger(__name__)

# Methods that carry a JSON body
_BODY_METHODS = {"POST", "PUT", "PATCH"}


@dataclass
class ProxyResponse:
    """Successful (2xx) proxy response."""

    status_code: int
    data: Any = None


def _parse_body(response: httpx.Response) -> Any:
    """Decode a JSON body, falling back to text."""
    try:
        return response.json()
    except ValueError:
        return response.text or None


class ConnectProxyClient:
    """HTTP client for the Connect Server proxy.

    Example:
        >>> with ConnectProxyClient(config) as proxy:
        ...     response = proxy.proxy_post("/ads/pixels/t2_abc/conversion_events", body)
        ...     print(response.status_code)
    """

    def __init__(
        self,
        config: ConnectorConfig,
        token_provider: Callable[[], str | None] | None = None,
        client: httpx.Client | None = None,
    ):
        """Initialize the proxy client.

        Args:
            config: Connector configuration with the proxy location.
            token_provider: Returns the site authorization header value for
                authenticated calls.
            client: Optional preconfigured httpx client.
        """
        self.config = config
        self._token_provider = token_provider
        self._client = client

    def __enter__(self) -> ConnectProxyClient:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    @property
    def client(self) -> httpx.Client:
        """Lazy-initialize the HTTP client."""
        if self._client is None:
            self._client = httpx.Client(timeout=self.config.timeout)
        return self._client

    def url_for(self, path: str) -> str:
        """Full proxy URL for a partner API path."""
        return f"{self.config.proxy_base_url}/{path.lstrip('/')}"

    def proxy_get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        requires_auth: bool = True,
    ) -> ProxyResponse:
        """Send a GET request through the proxy."""
        return self.proxy_request("GET", path, params=params, requires_auth=requires_auth)

    def proxy_post(
        self,
        path: str,
        body: Any,
        requires_auth: bool = True,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> ProxyResponse:
        """Send a POST request with a JSON body through the proxy."""
        return self.proxy_request(
            "POST",
            path,
            body=body,
            params=params,
            requires_auth=requires_auth,
            headers=headers,
        )

    def proxy_request(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: dict[str, Any] | None = None,
        requires_auth: bool = True,
        headers: dict[str, str] | None = None,
    ) -> ProxyResponse:
        """Send a request through the proxy.

        Raises:
            ProxyAuthenticationError: If auth is required but no token is available.
            ProxyRequestError: On transport failure or a non-2xx response.
        """
        method = method.upper()
        request_headers: dict[str, str] = {}

        if requires_auth:
            token = self._token_provider() if self._token_provider else None
            if not token:
                raise ProxyAuthenticationError("Connect Server token missing")
            request_headers["Authorization"] = token

        if method in _BODY_METHODS and body:
            request_headers["Content-Type"] = "application/json"

        request_headers.update(headers or {})

        try:
            response = self.client.request(
                method,
                self.url_for(path),
                params=params or None,
                json=body if method in _BODY_METHODS and body else None,
                headers=request_headers,
            )
        except httpx.HTTPError as e:
            raise ProxyRequestError(f"Request to {path} failed: {e}") from e

        if 200 <= response.status_code < 300:
            return ProxyResponse(status_code=response.status_code, data=_parse_body(response))

        raise ProxyRequestError(
            f"Request failed with status {response.status_code}",
            status_code=response.status_code,
            body=_parse_body(response),
        )

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            try:
                self._client.close()
            except Exception as e:  # pragma: no cover
                logger.warning(f"Error closing proxy HTTP client: {e}")
            self._client = None
