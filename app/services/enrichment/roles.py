"""Decision-maker title priorities by lead category and company size.

The tables are ordered: the decision-maker search and the enrichment prompt
both try titles left to right and stop at the first match.
"""

from __future__ import annotations

from typing import Final

SIZE_BRACKETS: Final[tuple[str, ...]] = ("5000+", "500-5000", "100-500", "small")

_SMALL_COMPANY_TITLES: Final[list[str]] = ["CEO", "Co-Founder", "Founder", "CTO", "COO"]

_GENERIC_TITLES: Final[dict[str, list[str]]] = {
    "5000+": [
        "Head of Payments",
        "VP Payments",
        "Director of Payments",
        "VP Product",
        "Head of Partnerships",
        "Chief Product Officer",
    ],
    "500-5000": [
        "Head of Payments",
        "VP Product",
        "Head of Partnerships",
        "Chief Product Officer",
        "CTO",
    ],
    "100-500": ["Head of Product", "VP Product", "Head of Partnerships", "CTO", "COO", "CEO"],
    "small": _SMALL_COMPANY_TITLES,
}

ROLE_PRIORITIES: Final[dict[str, dict[str, list[str]]]] = {
    "Payment Service Provider": {
        "5000+": [
            "Head of Alternative Payments",
            "Head of Payment Methods",
            "Director of APMs",
            "VP Product",
            "Head of Partnerships",
            "Chief Product Officer",
        ],
        "500-5000": [
            "Head of Alternative Payments",
            "Head of Payment Methods",
            "VP Product",
            "Head of Partnerships",
            "Chief Product Officer",
        ],
        "100-500": ["Head of Product", "VP Product", "Head of Partnerships", "CPO", "CTO", "CEO"],
        "small": _SMALL_COMPANY_TITLES,
    },
    "Acquirer": {
        "5000+": [
            "Head of Alternative Payments",
            "Head of Merchant Solutions",
            "VP Acquiring Products",
            "Head of Partnerships",
            "Chief Product Officer",
        ],
        "500-5000": [
            "Head of Merchant Solutions",
            "Head of Alternative Payments",
            "VP Product",
            "Head of Partnerships",
        ],
        "100-500": ["Head of Product", "Head of Partnerships", "COO", "CTO", "CEO"],
        "small": _SMALL_COMPANY_TITLES,
    },
    "Payment Gateway": {
        "5000+": [
            "Head of Payment Methods",
            "Director of Product Partnerships",
            "VP Product",
            "Head of Integrations",
            "CTO",
        ],
        "500-5000": ["Head of Payment Methods", "VP Product", "Head of Integrations", "CTO"],
        "100-500": ["Head of Product", "Head of Integrations", "CTO", "CEO"],
        "small": _SMALL_COMPANY_TITLES,
    },
    "Payment Orchestrator": {
        "5000+": [
            "Head of Payment Partnerships",
            "Director of Connectors",
            "VP Product",
            "Head of Partnerships",
            "CTO",
        ],
        "500-5000": [
            "Head of Payment Partnerships",
            "Head of Connectors",
            "VP Product",
            "Head of Partnerships",
            "CTO",
        ],
        "100-500": ["Head of Partnerships", "Head of Product", "CTO", "CEO"],
        "small": _SMALL_COMPANY_TITLES,
    },
    "Crypto Infrastructure": {
        "5000+": [
            "Head of Payments",
            "VP Business Development",
            "Head of Ecosystem",
            "Head of Partnerships",
            "Chief Business Officer",
        ],
        "500-5000": [
            "Head of Payments",
            "Head of Business Development",
            "Head of Partnerships",
            "Chief Business Officer",
            "CEO",
        ],
        "100-500": ["Head of Business Development", "Head of Partnerships", "CBO", "CEO"],
        "small": _SMALL_COMPANY_TITLES,
    },
    "Wallet Provider": {
        "5000+": [
            "Head of Payments",
            "Head of Partnerships",
            "VP Product",
            "Head of Ecosystem",
            "Chief Product Officer",
        ],
        "500-5000": ["Head of Payments", "Head of Partnerships", "VP Product", "CPO", "CEO"],
        "100-500": ["Head of Product", "Head of Partnerships", "CPO", "CEO"],
        "small": _SMALL_COMPANY_TITLES,
    },
    "Neobank": {
        "5000+": [
            "Head of Crypto",
            "Head of Digital Assets",
            "Head of Payments",
            "VP Product",
            "Chief Product Officer",
        ],
        "500-5000": ["Head of Crypto", "Head of Digital Assets", "Head of Payments", "VP Product", "CPO"],
        "100-500": ["Head of Payments", "Head of Product", "CPO", "CTO", "CEO"],
        "small": _SMALL_COMPANY_TITLES,
    },
    "Marketplace Platform": {
        "5000+": [
            "Head of Payments",
            "Director of Payments",
            "VP Payments",
            "Head of Checkout",
            "VP Product",
        ],
        "500-5000": ["Head of Payments", "Head of Checkout", "VP Product", "CFO"],
        "100-500": ["Head of Payments", "Head of Product", "CFO", "CTO", "CEO"],
        "small": _SMALL_COMPANY_TITLES,
    },
    "Merchant": {
        "5000+": [
            "Head of Payments",
            "Director of Payments",
            "VP Payments",
            "Head of Checkout",
            "VP Treasury",
            "CFO",
        ],
        "500-5000": ["Head of Payments", "Head of Checkout", "VP Finance", "CFO", "CTO"],
        "100-500": ["Head of Payments", "Head of E-commerce", "CFO", "COO", "CEO"],
        "small": _SMALL_COMPANY_TITLES,
    },
}


def size_bracket_for(employees: str | None) -> str:
    """Collapse a stored employee bracket into a resolver size bracket."""
    if employees in ("5000+", "500-5000", "100-500"):
        return employees
    return "small"


def resolve_role_priorities(category: str | None, size_bracket: str | None) -> list[str]:
    """Return the ordered decision-maker titles for a category and size bracket.

    Total: unknown categories use the generic table and unknown brackets are
    treated as ``small``. The returned list is a fresh copy.
    """
    bracket = size_bracket if size_bracket in SIZE_BRACKETS else size_bracket_for(size_bracket)
    table = ROLE_PRIORITIES.get(category or "", _GENERIC_TITLES)
    return list(table.get(bracket) or _GENERIC_TITLES[bracket])
