from __future__ import annotations

from survey_matrice.models import Identifier, MatchSettings, MatriceLayout, Table
from survey_matrice.services.layout import (
    NormalizedQuery,
    cell_matches,
    column_letter,
    detect_layout,
    feedback_index,
    find_anonymous_row,
    find_candidate_rows,
    find_respondent_column,
    overall_index,
    overall_row,
)


def _q(email="", name="", date=""):
    return NormalizedQuery(email=email, name=name, date=date)


def test_query_is_normalized_from_identifier():
    q = NormalizedQuery.from_identifier(Identifier.create(email=" Jean@Example.COM ", name="Jéan", date="2025-07-09"))
    assert q == NormalizedQuery(email="jean@example.com", name="jean", date="09/07/2025")


def test_cell_matches_email_exact_and_contained():
    q = _q(email="jean@example.com")
    assert cell_matches("jean@example.com", q)
    assert cell_matches("contact: jean@example.com", q)
    assert not cell_matches("marie@example.com", q)


def test_cell_matches_name_reverse_containment_on_word_boundaries():
    q = _q(name="m. jean dupont")
    assert cell_matches("jean dupont", q)
    assert cell_matches("dupont", q)
    # too short, or not a whole word of the query
    assert not cell_matches("je", q)
    assert not cell_matches("upon", q)
    # numbers never match by reverse containment
    assert not cell_matches("123", _q(name="chambre 123"))


def test_find_candidate_rows_needs_identity(row_matrice):
    assert find_candidate_rows(row_matrice, _q(date="09/07/2025")) == []
    assert find_candidate_rows(row_matrice, _q(name="marie curie")) == [1]


def test_find_anonymous_row_accepts_accented_label():
    table = Table.from_values(["Nom", "Accueil"], [["Jean", 4], ["Anonymé", 3]])
    assert find_anonymous_row(table) == 1


def test_find_respondent_column_passes(column_matrice):
    assert find_respondent_column(column_matrice, _q(email="paul@example.com")) == 3
    assert find_respondent_column(column_matrice, _q(name="marie curie")) == 2
    # token pass: every name token present as a word of the label
    assert find_respondent_column(column_matrice, _q(name="jean dupont")) == 1
    assert find_respondent_column(column_matrice, _q(name="jean durand")) is None


def test_detect_layout(row_matrice, column_matrice):
    assert detect_layout(Identifier.create(email="paul@example.com"), row_matrice) is MatriceLayout.ROW_PER_RESPONDENT
    assert detect_layout(Identifier.create(name="Jean Dupont"), column_matrice) is MatriceLayout.COLUMN_PER_RESPONDENT
    assert detect_layout(Identifier.create(name="Nobody Here"), row_matrice) is None


def test_overall_index_prefers_column_l(row_matrice):
    settings = MatchSettings()
    assert overall_index(row_matrice.row(0), settings) == 11


def test_overall_index_falls_back_to_last_filled_position():
    settings = MatchSettings()
    table = Table.from_values(["Nom", "A", "B", "Moyenne"], [["Jean", 4, 5, 4.5]])
    assert overall_index(table.row(0), settings) == 3
    assert overall_index(Table.from_values(["Nom"], [["Jean"]]).row(0), settings) is None


def test_overall_row_prefers_moyenne_label(column_matrice):
    assert overall_row(column_matrice, 1) == 6
    table = Table.from_values(["Critère", "Jean"], [["Accueil", 4], ["Chambre", 5], ["Total", None]])
    assert overall_row(table, 1) == 1


def test_feedback_index_matches_normalized_title():
    settings = MatchSettings()
    assert feedback_index(["Nom", "  votre AVIS compte pour nous !   :) "], settings) == 1
    assert feedback_index(["Nom", "Avis"], settings) is None


def test_column_letter():
    assert column_letter(0) == "A"
    assert column_letter(11) == "L"
    assert column_letter(25) == "Z"
    assert column_letter(26) == "AA"
    assert column_letter(71) == "BT"
