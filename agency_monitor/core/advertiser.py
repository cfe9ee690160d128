from __future__ import annotations

from typing import Any

from agency_monitor.core.models import Listing


PRIVATE_PLACEHOLDER = "Inserzionista privato"


def get_advertiser_type(listing: Listing) -> str:
    analytics = _analytics(listing)
    advertiser = str(analytics.get("advertiser") or "").lower()
    return "Agenzia" if advertiser == "agenzia" else "Privato"


def get_advertiser_name(listing: Listing) -> str:
    analytics = _analytics(listing)
    if get_advertiser_type(listing) == "Agenzia":
        return _first_text(analytics.get("agencyName"), analytics.get("agency"), analytics.get("agency_name"))
    contacts = listing.raw.get("contacts") or {}
    if not isinstance(contacts, dict):
        contacts = {}
    name = _first_text(
        analytics.get("advertiserName"),
        analytics.get("privateName"),
        contacts.get("name"),
        contacts.get("contactName"),
    )
    return name or PRIVATE_PLACEHOLDER


def get_advertiser_label(listing: Listing) -> str:
    """
    "Agenzia: <name>" or "Privato: <name>"; unnamed agencies give "Agenzia:".
    """
    advertiser_type = get_advertiser_type(listing)
    name = get_advertiser_name(listing)
    return f"{advertiser_type}: {name}".strip()


def _analytics(listing: Listing) -> dict[str, Any]:
    analytics = listing.raw.get("analytics") or {}
    return analytics if isinstance(analytics, dict) else {}


def _first_text(*values: Any) -> str:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""
