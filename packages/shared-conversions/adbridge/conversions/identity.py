"""Visitor identity extraction for server-side events.

IP address and user agent are sent as-is. Billing PII is normalised and
SHA-256 hashed before it leaves the store, the way ad platforms expect:

- em: email, trimmed and lowercased
- ph: phone, digits only
- fn / ln: first and last name, lowercased, punctuation removed
- ct: city, lowercased, punctuation and whitespace removed
- zp: postcode, lowercased, spaces and dashes removed (US: first 5 chars,
  GB: outward code plus sector digit)
- country: ISO-2 country code, lowercased
"""

from __future__ import annotations

import hashlib
import re
import string
from collections.abc import Mapping
from dataclasses import replace
from typing import TYPE_CHECKING

from adbridge.conversions.schema import UserContext

if TYPE_CHECKING:
    from adbridge.conversions.commerce import BillingDetails
    from adbridge.conversions.context import RequestContext

_PUNCTUATION = re.compile(f"[{re.escape(string.punctuation)}]")
_PUNCTUATION_AND_SPACE = re.compile(rf"[{re.escape(string.punctuation)}\s]+")
_NON_DIGITS = re.compile(r"\D+")
_POSTCODE_SEPARATORS = re.compile(r"[\s\-]+")
_GB_POSTCODE_PREFIX = re.compile(r"^([a-z]{1,2}\d[a-z\d]?\d?)", re.IGNORECASE)


def sha256(value: str) -> str:
    """Hex SHA-256 digest of a UTF-8 string."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_phone(phone: str) -> str:
    return _NON_DIGITS.sub("", phone)


def normalize_name(name: str) -> str:
    return _PUNCTUATION.sub("", name.lower())


def normalize_city(city: str) -> str:
    return _PUNCTUATION_AND_SPACE.sub("", city.lower())


def normalize_postcode(postcode: str, country: str = "") -> str:
    normalized = _POSTCODE_SEPARATORS.sub("", postcode.lower())
    country = country.upper()
    if country == "US":
        return normalized[:5]
    if country == "GB":
        match = _GB_POSTCODE_PREFIX.match(normalized)
        if match:
            return match.group(1).lower()
    return normalized


def hash_billing_details(billing: BillingDetails) -> dict[str, str]:
    """Hash the non-empty billing fields.

    Returns:
        Mapping of short field name to hex digest.
    """
    hashed: dict[str, str] = {}

    if billing.email:
        hashed["em"] = sha256(normalize_email(billing.email))
    if billing.phone:
        phone = normalize_phone(billing.phone)
        if phone:
            hashed["ph"] = sha256(phone)
    if billing.first_name:
        hashed["fn"] = sha256(normalize_name(billing.first_name))
    if billing.last_name:
        hashed["ln"] = sha256(normalize_name(billing.last_name))
    if billing.city:
        hashed["ct"] = sha256(normalize_city(billing.city))
    if billing.postcode:
        hashed["zp"] = sha256(normalize_postcode(billing.postcode, billing.country))
    if billing.country:
        hashed["country"] = sha256(billing.country.lower())

    return hashed


class UserIdentifier:
    """Builds UserContext records from incoming requests.

    Example:
        >>> identifier = UserIdentifier(partner_cookies={"_rdt_uuid": "uuid"})
        >>> user = identifier.from_request(request)
    """

    def __init__(self, partner_cookies: Mapping[str, str] | None = None):
        """
        Args:
            partner_cookies: Cookie name -> field name of partner identifiers
                to copy from the request into ``UserContext.partner_ids``.
        """
        self.partner_cookies = dict(partner_cookies or {})

    @staticmethod
    def client_ip(request: RequestContext) -> str:
        """Client IP: CF-Connecting-IP, then first X-Forwarded-For, then peer."""
        cf_ip = request.header("CF-Connecting-IP").strip()
        if cf_ip:
            return cf_ip

        forwarded = request.header("X-Forwarded-For")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first

        return request.remote_addr.strip()

    def from_request(self, request: RequestContext | None) -> UserContext:
        """Extract visitor identifiers from a request."""
        if request is None:
            return UserContext()

        partner_ids = {
            field_name: request.cookies[cookie].strip()
            for cookie, field_name in self.partner_cookies.items()
            if request.cookies.get(cookie, "").strip()
        }

        return UserContext(
            ip_address=self.client_ip(request),
            user_agent=request.header("User-Agent").strip(),
            partner_ids=partner_ids,
        )

    @staticmethod
    def with_billing(user: UserContext, billing: BillingDetails) -> UserContext:
        """Return a copy of ``user`` enriched with hashed billing PII."""
        hashed = {**user.hashed, **hash_billing_details(billing)}
        return replace(user, hashed=hashed)
