from __future__ import annotations

from app.services.leads.importer import normalize_row, parse_leads_csv


def test_headers_are_normalized_and_names_joined():
    row = normalize_row(
        {
            "Company Name": " Acme Pay ",
            "First Name": "Jane",
            "Last Name": "Doe",
            "Job Title": "Head of Payments",
            "LinkedIn URL": "https://linkedin.com/in/janedoe",
            "Notes": "met at Money20/20",
            None: "overflow",
            "Email": "",
        }
    )

    assert row == {
        "company": "Acme Pay",
        "first_name": "Jane",
        "last_name": "Doe",
        "contact_name": "Jane Doe",
        "contact_role": "Head of Payments",
        "contact_linkedin": "https://linkedin.com/in/janedoe",
        "notes": "met at Money20/20",
    }


def test_parse_csv_with_bom_and_mixed_headers():
    content = (
        "\ufeffCompany,Website,Full Name,Email,Source,Type\n"
        "Acme Pay,https://acmepay.com,Jane Doe,jane@acmepay.com,referral,merchant\n"
        ",https://nameless.io,Nobody,,Inbound,\n"
        "Globex,,,,Trade Show,Space Mining\n"
    )

    leads = parse_leads_csv(content)

    assert [lead.company for lead in leads] == ["Acme Pay", "Globex"]
    acme, globex = leads
    assert acme.company_website == "https://acmepay.com"
    assert acme.contact_name == "Jane Doe"
    assert acme.contact_email == "jane@acmepay.com"
    assert acme.lead_source == "Referral"
    assert acme.lead_type == "Merchant"
    assert globex.lead_source == "Inbound"
    assert globex.lead_type is None


def test_closed_vocabulary_columns_are_kept_only_when_recognized():
    content = (
        "Company,Industry,Employees,Revenue\n"
        "Acme Pay,travel & hospitality,5000+,lots\n"
        "Globex,Asteroid Mining,about 40,$1-10M\n"
    )

    acme, globex = parse_leads_csv(content)

    assert acme.industry == "Travel & Hospitality"
    assert acme.company_size_employees == "5000+"
    assert acme.company_size_revenue is None
    assert globex.industry is None
    assert globex.company_size_employees is None
    assert globex.company_size_revenue == "$1-10M"


def test_parse_empty_csv_returns_nothing():
    assert parse_leads_csv("") == []
    assert parse_leads_csv("Company,Email\n") == []
