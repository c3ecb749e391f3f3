# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path

import pandas as pd
import pytest

from survey_matrice.logging.init import reset_logging
from survey_matrice.models import Table

FEEDBACK_TITLE = "Votre avis compte pour nous ! :)"

# Row-per-respondent matrice: name in A, categories D..K, overall in L, feedback in M
ROW_MATRICE_COLUMNS = [
    "Nom", "Email", "Date",
    "Accueil", "Chambre", "Restaurant", "Piscine", "Animation", "Plage", "Bar", "Excursions",
    "Moyenne générale", FEEDBACK_TITLE,
]
ROW_MATRICE_ROWS = [
    ["Jean Dupont", "jean.dupont@example.com", "09/07/2025", 4, 5, 3, 4, 5, 4, 3, 4, 4.0, "Super séjour"],
    ["Marie Curie", "marie@example.com", "10/07/2025", 5, 5, 5, 4, 4, 5, 5, 5, 4.75, None],
    ["Paul Martin", "paul@example.com", "11/07/2025", 2, 3, 2, 3, 2, 3, 2, 3, 2.5, "Trop bruyant"],
]

# Respondent sheet ("Feuille 1") in the survey-form export layout
SHEET1_COLUMNS = [
    "Horodateur", "Agence", "Date du séjour", "Adresse e-mail", "Nom",
    "Recommanderiez-vous notre hôtel ?",
]
SHEET1_ROWS = [
    ["09/07/2025 10:00:00", "Top of Travel", "09/07/2025", "jean.dupont@example.com", "Jean Dupont", "Oui"],
    ["10/07/2025 11:00:00", "TOP OF TRAVEL", "10/07/2025", "marie@example.com", "Marie Curie", "oui"],
    ["11/07/2025 12:00:00", "Voyages Soleil", "11/07/2025", "paul@example.com", "Paul Martin", "Non"],
]

SAMPLE_CONFIG_YAML = """sheets:
  base_url: https://sheets.example.test/d
  timeout_seconds: 5
  retry_attempts: 2
  retry_backoff_seconds: 0
  throttle_seconds: 0
matching:
  feedback_title: "Votre avis compte pour nous ! :)"
resorts:
  riviera-malte:
    name: "Hôtel Riviera - Malte"
    sheet_id: "sheet-riviera"
    matrice_gid: "1279346619"
  medena-croatie:
    name: "Hôtel Medena - Croatie"
    sheet_id: "sheet-medena"
"""


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return SAMPLE_CONFIG_YAML


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "resorts.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def row_matrice() -> Table:
    return Table.from_values(ROW_MATRICE_COLUMNS, ROW_MATRICE_ROWS)


@pytest.fixture()
def sheet1() -> Table:
    return Table.from_values(SHEET1_COLUMNS, SHEET1_ROWS)


@pytest.fixture()
def column_matrice() -> Table:
    """Column-per-respondent matrice: one respondent per column, categories by row."""
    return Table.from_values(
        ["Critère", "DUPONT Jean", "Marie Curie", "paul@example.com"],
        [
            ["Nom", "N°1", "N°2", "N°3"],
            ["Accueil", 4, 5, 2],
            ["Chambre", 5, 5, 3],
            [None, None, None, None],
            ["Restaurant", 3, "—", 2],
            [FEEDBACK_TITLE, "Très bien", None, "Bof"],
            ["Moyenne générale", 4, 5, 2.33],
        ],
    )


def make_workbook(path: Path, sheets: dict[str, list[list[object]]]) -> Path:
    """Write a header-less workbook (first row = labels) with pandas/openpyxl."""
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for sheet_name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
    return path


@pytest.fixture()
def sample_workbook(temp_workdir: Path) -> Path:
    return make_workbook(
        temp_workdir / "data" / "riviera.xlsx",
        {
            "Feuille 1": [SHEET1_COLUMNS, *SHEET1_ROWS],
            "Matrice": [ROW_MATRICE_COLUMNS, *ROW_MATRICE_ROWS],
        },
    )
