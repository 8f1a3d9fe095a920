"""Ad partner connector adapters.

Import this module to auto-register all available connectors.

Example:
    # Import adapters module to register all connectors
    import adbridge.connectors.adapters  # noqa: F401

    # Or import a specific connector
    from adbridge.connectors.adapters.reddit import RedditConnector
"""

from __future__ import annotations

# Both adapters only need httpx and jinja2, which are core dependencies
from adbridge.connectors.adapters.reddit import RedditConnector as RedditConnector
from adbridge.connectors.adapters.snapchat import SnapchatConnector as SnapchatConnector

__all__ = ["RedditConnector", "SnapchatConnector"]
