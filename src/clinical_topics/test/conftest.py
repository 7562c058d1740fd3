"""
Shared fixtures for the clinical topics test suite
"""

import matplotlib

matplotlib.use("Agg")

import pytest

from ..data.models import PatientDocument, Token

HEADER = "Patient_ID\tClinic_ID\tProgressNote"


def write_tsv(path, rows, header=HEADER, line_ending="\n"):
    """Write a notes file from pre-joined row strings"""
    lines = ([header] if header is not None else []) + list(rows)
    path.write_bytes((line_ending.join(lines) + line_ending).encode("utf-8"))
    return path


# ----------------------------------------------------------------------
# Documents
# ----------------------------------------------------------------------

@pytest.fixture
def cardio_pulmonary_documents():
    """Six patients: three cardiac, three respiratory"""
    cardiac = "hypertension chest pain troponin cardiology statin blood pressure elevated"
    respiratory = "asthma wheezing inhaler spirometry cough bronchitis albuterol lungs"
    return [
        PatientDocument("P1", cardiac + " hypertension"),
        PatientDocument("P2", cardiac + " statin"),
        PatientDocument("P3", cardiac),
        PatientDocument("P4", respiratory + " inhaler"),
        PatientDocument("P5", respiratory),
        PatientDocument("P6", respiratory + " wheezing cough"),
    ]


@pytest.fixture
def hypertension_documents():
    return [
        PatientDocument("A", "patient reports hypertension and headache"),
        PatientDocument("B", "follow up for knee pain after fall"),
        PatientDocument("C", "hypertension controlled on lisinopril"),
    ]


def make_tokens(pairs):
    """Build tokens from (document_id, term) pairs, numbering positions per document"""
    positions = {}
    tokens = []
    for document_id, term in pairs:
        position = positions.get(document_id, 0)
        tokens.append(Token(document_id, term, position))
        positions[document_id] = position + 1
    return tokens


# ----------------------------------------------------------------------
# Files
# ----------------------------------------------------------------------

@pytest.fixture
def notes_file(tmp_path):
    """Well-formed notes file: 4 records, 3 patients"""
    return write_tsv(tmp_path / "notes.tsv", [
        "101\tC1\tPatient with hypertension, started lisinopril",
        "102\tC1\tAsthma exacerbation, albuterol inhaler refilled",
        "101\tC2\tBlood pressure improved on lisinopril",
        "103\tC3\tKnee pain after fall, ibuprofen recommended",
    ])


@pytest.fixture
def malformed_notes_file(tmp_path):
    """
    Row 3 has a stray tab in the note, row 4 is a fragment from a broken
    line, row 6 has no patient id
    """
    return write_tsv(tmp_path / "malformed.tsv", [
        "201\tC1\tChest pain evaluated",
        "202\tC1\tCough\tand wheezing noted",
        "continued from previous line",
        "203\tC2\tDiabetes follow up",
        "\tC2\tOrphan note without patient",
        "201\tC1\tTroponin negative",
    ])


@pytest.fixture
def corpus_file(tmp_path):
    """Larger file suitable for an end-to-end fit with k=2"""
    cardiac = [
        "hypertension chest pain troponin cardiology",
        "statin blood pressure elevated hypertension",
        "cardiology consult chest pain troponin statin",
    ]
    respiratory = [
        "asthma wheezing inhaler spirometry",
        "cough bronchitis albuterol inhaler wheezing",
        "spirometry asthma albuterol cough",
    ]
    rows = []
    for i, text in enumerate(cardiac):
        rows.append(f"C{i}\tK1\t{text}")
    for i, text in enumerate(respiratory):
        rows.append(f"R{i}\tK2\t{text}")
    return write_tsv(tmp_path / "corpus.tsv", rows)
