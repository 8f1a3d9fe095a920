"""Marketing consent gate."""

from __future__ import annotations

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

ConsentProvider = Callable[[], bool]


class ConsentGate:
    """Answers whether marketing events may be recorded for the visitor.

    Delegates to a consent-management provider when one is installed and
    fails open when none is. A provider that raises is treated as a denial.

    Example:
        gate = ConsentGate(provider=lambda: cmp.has_consent("marketing"))
        if gate.has_marketing_consent():
            ...
    """

    def __init__(self, provider: ConsentProvider | None = None):
        self.provider = provider

    def has_marketing_consent(self) -> bool:
        if self.provider is None:
            return True
        try:
            return bool(self.provider())
        except Exception:
            logger.exception("Consent provider failed; treating as no consent")
            return False
