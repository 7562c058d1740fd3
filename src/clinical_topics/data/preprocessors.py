#!/usr/bin/env python3
"""
Clinical Topics Pipeline - Note Preprocessors
Text cleaning and per-patient document assembly
"""

import re
import logging
from typing import List

import pandas as pd

from .models import DatasetConfig, PatientDocument, ProgressNote
from .exceptions import PreprocessingError

logger = logging.getLogger(__name__)

CONTROL_CHARS = re.compile(r'[\x00-\x08\x0b-\x0c\x0e-\x1f\x7f]')


class BasePreprocessor:
    """
    Base class for note preprocessors

    Turns accepted ProgressNote records into one PatientDocument per
    patient, in order of first appearance.
    """

    def __init__(self, config: DatasetConfig):
        """
        Initialize preprocessor with configuration

        Args:
            config: Dataset configuration object
        """
        self.config = config
        self.processing_stats = {
            'notes_input': 0,
            'documents_output': 0,
            'empty_notes': 0
        }

    def preprocess(self, notes: List[ProgressNote]) -> List[PatientDocument]:
        """
        Main preprocessing pipeline

        Args:
            notes: Accepted progress notes

        Returns:
            List of PatientDocument objects

        Raises:
            PreprocessingError: If preprocessing fails
        """
        try:
            logger.info("Starting note preprocessing...")
            self.processing_stats['notes_input'] = len(notes)

            df = self._to_frame(notes)
            df['text'] = df['text'].apply(self._clean_text)
            self.processing_stats['empty_notes'] = int((df['text'] == "").sum())

            documents = self._assemble_documents(df)
            self.processing_stats['documents_output'] = len(documents)

            logger.info(f"Preprocessing complete: {len(notes)} notes → {len(documents)} patient documents")
            return documents

        except PreprocessingError:
            raise
        except Exception as e:
            error_msg = f"Preprocessing failed: {e}"
            logger.error(error_msg)
            raise PreprocessingError(error_msg, "main_pipeline", len(notes)) from e

    def _to_frame(self, notes: List[ProgressNote]) -> pd.DataFrame:
        return pd.DataFrame(
            [(n.row_number, n.patient_id, n.clinic_id, n.text) for n in notes],
            columns=['row_number', 'patient_id', 'clinic_id', 'text']
        )

    def _assemble_documents(self, df: pd.DataFrame) -> List[PatientDocument]:
        """Concatenate each patient's notes in file order"""
        documents = []
        separator = self.config.document_separator

        for patient_id, group in df.groupby('patient_id', sort=False):
            texts = [t for t in group['text'] if t]
            clinic_ids = tuple(dict.fromkeys(c for c in group['clinic_id'] if c))
            documents.append(PatientDocument(
                document_id=str(patient_id),
                text=separator.join(texts),
                note_count=len(group),
                clinic_ids=clinic_ids
            ))

        return documents

    def _clean_text(self, text: str) -> str:
        """
        Clean note text content

        Args:
            text: Raw text content

        Returns:
            Cleaned text content
        """
        if not isinstance(text, str):
            return ""

        text = CONTROL_CHARS.sub(' ', text)

        # Exports escape embedded newlines as literal "\n"
        text = text.replace('\\n', ' ').replace('\\t', ' ')

        return ' '.join(text.split())


class ProgressNoteTextPreprocessor(BasePreprocessor):
    """
    Preprocessor for progress-note exports

    Also removes the de-identification placeholders left in the export so
    they do not surface as topic vocabulary.
    """

    PLACEHOLDER_PATTERNS = [
        re.compile(r'\[\*\*[^\]]*\*\*\]'),
        re.compile(r'<\s*(?:name|date|phone|address|mrn|redacted)\s*>', re.IGNORECASE),
    ]

    def _clean_text(self, text: str) -> str:
        if not isinstance(text, str):
            return ""

        for pattern in self.PLACEHOLDER_PATTERNS:
            text = pattern.sub(' ', text)

        return super()._clean_text(text)


def create_preprocessor(config: DatasetConfig, preprocessor_type: str = "progress_note") -> BasePreprocessor:
    """
    Factory function to create appropriate preprocessor

    Args:
        config: Dataset configuration
        preprocessor_type: Type of preprocessor ("base", "progress_note")

    Returns:
        Configured preprocessor instance

    Raises:
        ValueError: If preprocessor type is not recognized
    """
    preprocessor_types = {
        "base": BasePreprocessor,
        "progress_note": ProgressNoteTextPreprocessor
    }

    if preprocessor_type not in preprocessor_types:
        raise ValueError(f"Unknown preprocessor type: {preprocessor_type}")

    return preprocessor_types[preprocessor_type](config)
