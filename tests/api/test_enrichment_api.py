from __future__ import annotations

from uuid import uuid4

from app.clients.llm import EmptyResponseError
from app.models.lead import Lead
from app.services.errors import PersistenceError


def _classified_lead(repository, **fields) -> Lead:
    lead = Lead(
        company=fields.pop("company", "Acme Pay"),
        company_website="https://www.acmepay.com",
        contact_name="Jane Doe",
        lead_type="Acquirer",
        company_size_employees="500-5000",
        **fields,
    )
    repository.insert_leads([lead])
    return lead


def test_enrich_lead_returns_enriched_record(client, repository, stub_llm):
    lead = _classified_lead(repository)
    stub_llm.queue({"key_vp": "Single API", "lead_priority": "High", "company_description": "Card acquirer."})

    response = client.post(f"/api/leads/{lead.id}/enrich")

    assert response.status_code == 200
    body = response.json()
    assert body["lead_status"] == "Enriched"
    assert body["key_vp"] == "Single API"
    assert body["lead_priority"] == "High"
    assert body["contact_email"] == "jane.doe@acmepay.com"
    assert body["contact_email_inferred"] is True
    assert body["contact_email_verified"] is False
    assert len(stub_llm.calls) == 1


def test_enrich_missing_lead_is_404(client):
    response = client.post(f"/api/leads/{uuid4()}/enrich")

    assert response.status_code == 404


def test_enrich_failure_detail_is_opaque(client, repository, stub_llm):
    lead = _classified_lead(repository)
    stub_llm.queue(EmptyResponseError("provider returned nothing"))

    response = client.post(f"/api/leads/{lead.id}/enrich")

    assert response.status_code == 502
    assert response.json() == {"detail": "Enrichment failed"}
    assert repository.get_lead(lead.id).lead_status == "New"


def test_enrich_unparseable_output_is_opaque(client, repository, stub_llm):
    lead = _classified_lead(repository)
    stub_llm.queue("Sorry, I could not research this company.")

    response = client.post(f"/api/leads/{lead.id}/enrich")

    assert response.status_code == 502
    assert response.json()["detail"] == "Enrichment failed"


def test_enrich_write_failure_is_opaque_500(client, repository, stub_llm, monkeypatch):
    lead = _classified_lead(repository)
    stub_llm.queue({"key_vp": "Single API"})

    def failing_update(lead_id, updates):
        raise PersistenceError("Failed to update lead.")

    monkeypatch.setattr(repository, "update_lead", failing_update)

    response = client.post(f"/api/leads/{lead.id}/enrich")

    assert response.status_code == 500
    assert response.json() == {"detail": "Enrichment failed"}
    assert len(stub_llm.calls) == 1
    assert repository.get_lead(lead.id) == lead


def test_batch_enrich_reports_each_lead(client, repository, stub_llm):
    good = _classified_lead(repository, company="Good Co")
    bad = _classified_lead(repository, company="Bad Co")
    missing = uuid4()
    stub_llm.queue({"key_vp": "Global Reach"}, "not json at all")

    response = client.post(
        "/api/leads/enrich/batch",
        json={"ids": [str(good.id), str(bad.id), str(missing)]},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["succeeded"] == 1
    assert body["failed"] == 2
    assert [(item["id"], item["success"]) for item in body["results"]] == [
        (str(good.id), True),
        (str(bad.id), False),
        (str(missing), False),
    ]
    assert body["results"][2]["error"] == f"Lead {missing} not found."


def test_batch_enrich_requires_ids(client):
    assert client.post("/api/leads/enrich/batch", json={"ids": []}).status_code == 422
