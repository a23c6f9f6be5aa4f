"""
app/domain/business.py

Business listing records and the website-to-domain rule used for
de-duplication.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from urllib.parse import urlparse


def derive_domain(website: str | None) -> str | None:
    """
    Hostname of `website` without a leading `www.`.

    Falls back to the stripped raw value when it does not parse as a URL, so
    a bare "acme.com" still yields a usable key.
    """

    if website is None:
        return None
    raw = website.strip()
    if not raw:
        return None

    candidate = raw if "://" in raw else f"http://{raw}"
    try:
        hostname = urlparse(candidate).hostname
    except ValueError:
        hostname = None
    if not hostname:
        return raw.lower()

    hostname = hostname.lower()
    if hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname


@dataclass(frozen=True)
class BusinessRecord:
    """
    One extracted listing, as handed to storage.
    """

    name: str
    search_term: str
    website: str | None = None
    domain: str | None = None
    address: str | None = None
    city: str | None = None
    country: str | None = None
    phone: str | None = None
    rating: float | None = None
    email: str | None = None
    owner_name: str | None = None

    def prepared_for_storage(self) -> "BusinessRecord | None":
        """
        Return the record with its domain filled in, or None when it must be
        discarded (no name, or neither website nor domain).
        """

        if not (self.name or "").strip():
            return None
        domain = (self.domain or "").strip() or derive_domain(self.website)
        if not domain:
            return None
        return replace(self, name=self.name.strip(), domain=domain)


@dataclass(frozen=True)
class StoredBusiness:
    """
    Minimal view of a persisted business used by the email sweep.
    """

    business_id: int
    name: str
    website: str
    domain: str | None = None
