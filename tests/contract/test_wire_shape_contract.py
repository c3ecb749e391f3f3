from __future__ import annotations

import json

from survey_matrice import cluster_agency_names, match_respondent
from survey_matrice.models import Identifier

"""Wire-level JSON contract consumed by the dashboard."""

WIRE_KEYS = {"categories", "overall", "column", "feedback"}


def test_found_result_wire_shape(sheet1, row_matrice):
    payload = match_respondent(Identifier.create(email="jean.dupont@example.com"), sheet1, row_matrice).to_dict()
    assert set(payload) == WIRE_KEYS
    assert all(set(c) == {"name", "value"} for c in payload["categories"])
    assert all(isinstance(c["value"], str) for c in payload["categories"])
    assert isinstance(payload["overall"], str)
    assert payload["column"] is None
    json.dumps(payload)


def test_column_layout_wire_shape(sheet1, column_matrice):
    payload = match_respondent(Identifier.create(email="paul@example.com"), sheet1, column_matrice).to_dict()
    assert set(payload) == WIRE_KEYS
    assert payload["column"] == "D"


def test_not_found_wire_shape(row_matrice):
    payload = match_respondent(Identifier.create(email="ghost@example.com"), None, row_matrice).to_dict()
    assert payload == {"categories": None, "overall": None, "column": None, "feedback": None}


def test_agency_option_wire_shape():
    options = [c.to_dict() for c in cluster_agency_names(["Top of Travel", "Azur"])]
    assert all(set(o) == {"display", "queryValue"} for o in options)
