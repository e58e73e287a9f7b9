"""Closed vocabularies shared by enrichment, drafting, and validation."""

from __future__ import annotations

from typing import Final

MERCHANT: Final[str] = "Merchant"
OTHER: Final[str] = "Other"

LEAD_CATEGORIES: Final[tuple[str, ...]] = (
    "Payment Service Provider",
    "Acquirer",
    "Payment Gateway",
    "Payment Orchestrator",
    "Crypto Infrastructure",
    "Wallet Provider",
    "Neobank",
    "Marketplace Platform",
    MERCHANT,
    OTHER,
)

# Categories that resell or distribute a payment method rather than accept it.
INFRASTRUCTURE_CATEGORIES: Final[frozenset[str]] = frozenset(
    category for category in LEAD_CATEGORIES if category not in {MERCHANT, OTHER}
)

INDUSTRIES: Final[tuple[str, ...]] = (
    "Payment Processing & Acquiring",
    "Banking & Financial Services",
    "Fintech & Neobanks",
    "E-commerce & Retail",
    "Marketplaces & Platforms",
    "Gaming & Digital Entertainment",
    "Travel & Hospitality",
    "Healthcare & Wellness",
    "Real Estate & PropTech",
    "Logistics & Supply Chain",
    "SaaS & Enterprise Software",
    "Media & Content",
    "Education & EdTech",
    "Telecommunications",
    "Other",
)

EMPLOYEE_BRACKETS: Final[tuple[str, ...]] = ("1-10", "10-100", "100-500", "500-5000", "5000+")
REVENUE_BRACKETS: Final[tuple[str, ...]] = ("<$1M", "$1-10M", "$10-100M", "$100-500M", "$500M+")
PRIORITY_TIERS: Final[tuple[str, ...]] = ("High", "Medium")
LEAD_SOURCES: Final[tuple[str, ...]] = ("Inbound", "Outbound", "Referral", "Event")

PARTNER_VALUE_PROPS: Final[tuple[dict[str, str], ...]] = (
    {
        "key": "New Revenue Stream",
        "description": "Earn on every crypto transaction routed through an existing merchant base without new acquiring risk",
    },
    {
        "key": "Global Reach",
        "description": "500M+ reachable wallet users across 700+ wallets, no card network required",
    },
    {
        "key": "Compliance",
        "description": "Travel-rule compliance and sanctions screening built in, reducing regulatory risk across jurisdictions",
    },
    {
        "key": "Single API",
        "description": "One integration with KYC/AML handled, plugs into existing PSP stacks",
    },
    {
        "key": "Instant Settlement",
        "description": "Funds settle in seconds instead of 1-3 days for cards or 30+ days for some APMs",
    },
)

MERCHANT_VALUE_PROPS: Final[tuple[dict[str, str], ...]] = (
    {
        "key": "Lower Fees",
        "description": "0.5-1% versus 2.5-3.5% for cards, a direct margin improvement on every transaction",
    },
    {
        "key": "Instant Settlement",
        "description": "Funds settle in seconds, improving cash flow versus multi-day card settlement",
    },
    {
        "key": "Global Reach",
        "description": "Sell to 500M+ wallet users in markets where cards are weak",
    },
    {
        "key": "New Volumes",
        "description": "Crypto-native shoppers bring larger baskets, averaging 15-20% above card transactions",
    },
)


def is_merchant(category: str | None) -> bool:
    return category == MERCHANT


def value_prop_catalog(category: str | None) -> tuple[dict[str, str], ...]:
    """Return the catalog matching the lead's Merchant/non-Merchant branch."""
    return MERCHANT_VALUE_PROPS if is_merchant(category) else PARTNER_VALUE_PROPS


def value_prop_keys(category: str | None) -> list[str]:
    return [entry["key"] for entry in value_prop_catalog(category)]


def coerce_choice(value: object, choices: tuple[str, ...]) -> str | None:
    """Match a free-form model value against a closed set, case-insensitively."""
    if not isinstance(value, str):
        return None
    candidate = value.strip().lower()
    for choice in choices:
        if choice.lower() == candidate:
            return choice
    return None
