from __future__ import annotations

import json

from app.models.lead import PriorityItem, StrategicPriorities
from app.services.enrichment.merge import (
    merge_fill_gaps,
    normalize_key_vp,
    normalize_strategic_priorities,
    overlay_priorities,
)


def test_merge_fills_only_empty_fields():
    current = {"industry": "Travel & Hospitality", "company_description": "", "key_vp": None}
    proposed = {"industry": "Other", "company_description": "Acme sells travel", "key_vp": "Global Reach"}

    updates = merge_fill_gaps(current, proposed, ("industry", "company_description", "key_vp"))

    assert updates == {"company_description": "Acme sells travel", "key_vp": "Global Reach"}


def test_merge_ignores_empty_proposals_and_unlisted_fields():
    current = {"industry": None, "lead_status": "New"}
    proposed = {"industry": "  ", "news_sources": [], "lead_status": "Won"}

    assert merge_fill_gaps(current, proposed, ("industry", "news_sources")) == {}


def test_merge_overwrite_fields_replace_existing_values():
    current = {"lead_type": "Other", "industry": "Other"}
    proposed = {"lead_type": "Merchant", "industry": "E-commerce & Retail"}

    updates = merge_fill_gaps(current, proposed, ("lead_type", "industry"), overwrite=("lead_type",))

    assert updates == {"lead_type": "Merchant"}


def test_merge_treats_empty_priorities_as_absent():
    current = {"strategic_priorities": StrategicPriorities()}
    proposed = {"strategic_priorities": StrategicPriorities(company_content=[PriorityItem(text="Expand to EU")])}

    updates = merge_fill_gaps(current, proposed, ("strategic_priorities",))

    assert updates["strategic_priorities"].company_content[0].text == "Expand to EU"


def test_legacy_flat_string_becomes_company_content():
    priorities = normalize_strategic_priorities("- Launch stablecoin checkout\n\n2. Expand into LATAM\n")

    assert [item.text for item in priorities.company_content] == ["Launch stablecoin checkout", "Expand into LATAM"]
    assert priorities.news_and_press == []
    assert priorities.social_media == []


def test_json_string_and_mapping_inputs_agree():
    payload = {
        "news_and_press": [{"text": "Raised Series B", "url": "https://news.example/acme-b"}],
        "company_content": ["Grow merchant base"],
        "social_media": [{"title": "CEO post on USDC", "source_url": "https://x.com/acme/1"}],
    }

    from_mapping = normalize_strategic_priorities(payload)
    from_string = normalize_strategic_priorities(json.dumps(payload))

    assert from_mapping == from_string
    assert from_mapping.social_media == [PriorityItem(text="CEO post on USDC", url="https://x.com/acme/1")]


def test_normalization_is_idempotent():
    once = normalize_strategic_priorities({"company_content": ["One", "Two"], "news_and_press": "Solo headline"})
    twice = normalize_strategic_priorities(once)
    thrice = normalize_strategic_priorities(once.model_dump())

    assert twice == once
    assert thrice == once
    assert once.news_and_press == [PriorityItem(text="Solo headline")]


def test_blank_and_unsupported_inputs_normalize_to_none():
    assert normalize_strategic_priorities(None) is None
    assert normalize_strategic_priorities("   ") is None
    assert normalize_strategic_priorities(42) is None


def test_overlay_replaces_buckets_only_when_adapters_found_items():
    base = StrategicPriorities(
        news_and_press=[PriorityItem(text="Headline")],
        company_content=[PriorityItem(text="Model guess")],
    )
    researched = [PriorityItem(text="Cited priority", url="https://acme.com/blog/1")]

    merged = overlay_priorities(base, company_content=researched, social_media=[])

    assert merged.company_content == researched
    assert merged.news_and_press == [PriorityItem(text="Headline")]
    assert base.company_content[0].text == "Model guess"


def test_overlay_of_nothing_is_none():
    assert overlay_priorities(None, company_content=[], social_media=[]) is None


def test_key_vp_keeps_at_most_two_catalog_keys():
    raw = "lower fees, Bogus Claim, Global Reach, Instant Settlement"

    assert normalize_key_vp(raw, "Merchant") == "Lower Fees, Global Reach"


def test_key_vp_uses_partner_catalog_for_non_merchants():
    assert normalize_key_vp(["Single API", "Lower Fees"], "Acquirer") == "Single API"


def test_key_vp_falls_back_to_first_catalog_key():
    assert normalize_key_vp(None, "Merchant") == "Lower Fees"
    assert normalize_key_vp("nothing useful", None) == "New Revenue Stream"
