from __future__ import annotations

import pytest

from app.services.decoding import decode_json_array, decode_json_object
from app.services.errors import ModelOutputError


def test_plain_object():
    assert decode_json_object('{"key_vp": "Global Reach"}') == {"key_vp": "Global Reach"}


def test_fenced_object():
    raw = '```json\n{"lead_type": "Merchant", "company_size_employees": null}\n```'

    assert decode_json_object(raw) == {"lead_type": "Merchant", "company_size_employees": None}


def test_object_embedded_in_prose():
    raw = 'Sure! Here is the result:\n{"subject": "Hi", "body": "Quick idea"}\nLet me know.'

    assert decode_json_object(raw)["body"] == "Quick idea"


def test_array_embedded_in_prose():
    assert decode_json_array('Top priorities: ["EU expansion", "Stablecoins"] (sources below)') == [
        "EU expansion",
        "Stablecoins",
    ]


@pytest.mark.parametrize(
    "raw",
    [None, "", "   ", "no json at all", "{not: valid}", '["an", "array"]'],
)
def test_object_failures_raise_model_output_error(raw):
    with pytest.raises(ModelOutputError) as excinfo:
        decode_json_object(raw)

    assert excinfo.value.code == "502_MODEL_OUTPUT"


def test_object_where_array_expected_raises():
    with pytest.raises(ModelOutputError):
        decode_json_array('{"company": "Acme"}')
