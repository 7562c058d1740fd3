#!/usr/bin/env python3
"""
Clinical Topics Pipeline - Data Models & Schemas
Pydantic models and data classes for progress note topic modeling
"""

import json
import hashlib
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

import numpy as np
from pydantic import BaseModel, Field, validator


@dataclass(frozen=True)
class ProgressNote:
    """
    A single parsed progress note record

    Attributes:
        row_number: 1-based physical line number in the source file
        patient_id: Patient identifier
        clinic_id: Clinic identifier
        text: Free-text note content
    """
    row_number: int
    patient_id: str
    clinic_id: str
    text: str = ""

    @property
    def word_count(self) -> int:
        return len(self.text.split()) if self.text else 0


@dataclass(frozen=True)
class PatientDocument:
    """
    One patient's concatenated progress notes

    The document id is the patient id. Created at ingestion and never
    mutated afterwards.
    """
    document_id: str
    text: str
    note_count: int = 1
    clinic_ids: Tuple[str, ...] = ()

    @property
    def text_length(self) -> int:
        return len(self.text)

    @property
    def word_count(self) -> int:
        return len(self.text.split()) if self.text else 0

    @property
    def text_hash(self) -> str:
        return hashlib.md5(self.text.encode()).hexdigest()[:16]

    def to_dict(self) -> Dict[str, Any]:
        """Convert document to dictionary"""
        return {
            'document_id': self.document_id,
            'text': self.text,
            'note_count': self.note_count,
            'clinic_ids': list(self.clinic_ids),
            'text_length': self.text_length,
            'word_count': self.word_count,
            'text_hash': self.text_hash
        }


@dataclass(frozen=True)
class ParseFailure:
    """A malformed input row that was skipped during ingestion"""
    row_number: int
    reason: str
    raw_line: str = ""


class Token(NamedTuple):
    """A single word occurrence tagged with its source document"""
    document_id: str
    term: str
    position: int


class DatasetConfig(BaseModel):
    """
    Configuration model for progress note loading

    Defaults follow the tab-separated export with Patient_ID, Clinic_ID and
    ProgressNote columns.
    """

    # File Configuration
    file_path: str = Field(..., description="Path to the tab-separated notes file")
    encoding: str = Field(default="utf-8", description="File encoding")
    delimiter: str = Field(default="\t", description="Field delimiter")
    has_header: bool = Field(default=True, description="Whether the first line is a header row")

    # Column Mapping
    patient_id_column: str = Field(default="Patient_ID", description="Name of patient ID column")
    clinic_id_column: str = Field(default="Clinic_ID", description="Name of clinic ID column")
    text_column: str = Field(default="ProgressNote", description="Name of note text column")

    # Repair Options
    repair_extra_delimiters: bool = Field(
        default=True,
        description="Fold surplus delimiters back into the free-text column instead of skipping the row"
    )
    document_separator: str = Field(
        default="\n",
        description="Separator used when concatenating one patient's notes"
    )

    @validator('file_path')
    def validate_file_path(cls, v):
        """Validate that file path is not empty"""
        if not v or not v.strip():
            raise ValueError("file_path cannot be empty")
        return v.strip()

    @validator('delimiter')
    def validate_delimiter(cls, v):
        """Delimiter must be a single character"""
        if len(v) != 1:
            raise ValueError("delimiter must be a single character")
        return v

    @property
    def columns(self) -> Tuple[str, str, str]:
        return (self.patient_id_column, self.clinic_id_column, self.text_column)


class ExclusionPolicy(BaseModel):
    """
    Versioned, operator-supplied exclusion list

    Terms are lower-cased, stripped and de-duplicated with their first
    occurrence order preserved.
    """

    version: str = Field(default="0", description="Version label of this exclusion list")
    terms: Tuple[str, ...] = Field(default=(), description="Ordered exclusion terms")

    class Config:
        frozen = True

    @validator('terms', pre=True)
    def normalize_terms(cls, v):
        if v is None:
            return ()
        seen = []
        for term in v:
            term = str(term).strip().lower()
            if term and term not in seen:
                seen.append(term)
        return tuple(seen)

    def extended(self, terms: List[str], version: str) -> "ExclusionPolicy":
        """Return a new policy version with additional terms appended"""
        return ExclusionPolicy(version=version, terms=list(self.terms) + list(terms))


class FilterConfig(BaseModel):
    """Toggles and word lists for the token filter chain"""

    drop_numeric: bool = Field(default=True, description="Drop tokens that parse as numbers")
    drop_stop_words: bool = Field(default=True, description="Drop standard English stop-words")
    apply_exclusions: bool = Field(default=True, description="Drop tokens matching the exclusion policy")
    extra_stop_words: List[str] = Field(default_factory=list, description="Stop-words added to the standard set")
    exclusions: ExclusionPolicy = Field(default_factory=ExclusionPolicy)

    @validator('extra_stop_words')
    def normalize_stop_words(cls, v):
        return [w.strip().lower() for w in v if w and w.strip()]


class ModelConfig(BaseModel):
    """Parameters for fitting the LDA topic model"""

    n_topics: int = Field(..., ge=2, description="Number of topics k")
    random_seed: int = Field(default=1234, description="Random seed for reproducible fits")
    max_iter: int = Field(default=50, ge=1, description="Maximum EM iterations")
    learning_method: str = Field(default="batch", description="'batch' or 'online' variational Bayes")
    doc_topic_prior: Optional[float] = Field(default=None, gt=0, description="Dirichlet prior on gamma")
    topic_word_prior: Optional[float] = Field(default=None, gt=0, description="Dirichlet prior on beta")
    timeout_seconds: Optional[float] = Field(default=None, gt=0, description="Time budget for a single fit")

    @validator('learning_method')
    def validate_learning_method(cls, v):
        if v not in ("batch", "online"):
            raise ValueError("learning_method must be 'batch' or 'online'")
        return v


class ReportConfig(BaseModel):
    """Reporting options"""

    top_n: int = Field(default=10, ge=1, description="Number of terms reported per topic")
    common_terms_n: int = Field(default=20, ge=1, description="Number of common-term exclusion candidates")
    output_dir: Optional[str] = Field(default=None, description="Directory for tables and figures")
    save_figures: bool = Field(default=True, description="Render charts when output_dir is set")


class PipelineConfig(BaseModel):
    """Complete configuration for one pipeline run"""

    dataset: Optional[DatasetConfig] = None
    filters: FilterConfig = Field(default_factory=FilterConfig)
    model: ModelConfig
    report: ReportConfig = Field(default_factory=ReportConfig)

    @classmethod
    def from_json(cls, path: str) -> "PipelineConfig":
        """Load a configuration from a JSON file"""
        with open(path, encoding="utf-8") as f:
            return cls(**json.load(f))

    def config_hash(self) -> str:
        return hashlib.md5(str(self.dict()).encode()).hexdigest()[:16]


class IngestionMetadata(BaseModel):
    """
    Metadata model for the ingestion run

    records_parsed, parse_failures and distinct_patients are the acceptance
    signals checked before modeling.
    """

    # Pipeline Information
    pipeline_start_time: datetime
    pipeline_end_time: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    config_hash: str

    # Data Statistics
    lines_read: int = 0
    records_parsed: int = 0
    records_repaired: int = 0
    parse_failures: int = 0
    distinct_patients: int = 0
    documents_created: int = 0

    # Error Tracking
    failures: List[Dict[str, Any]] = Field(default_factory=list)
    processing_warnings: List[str] = Field(default_factory=list)

    # Text Statistics
    text_stats: Dict[str, float] = Field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        attempted = self.records_parsed + self.parse_failures
        return self.records_parsed / attempted if attempted else 0.0

    def calculate_duration(self):
        """Calculate and set duration if end time is available"""
        if self.pipeline_end_time:
            self.duration_seconds = (
                self.pipeline_end_time - self.pipeline_start_time
            ).total_seconds()

    def add_failures(self, failures: List[ParseFailure]):
        self.parse_failures = len(failures)
        self.failures = [
            {'row_number': f.row_number, 'reason': f.reason, 'raw_line': f.raw_line}
            for f in failures
        ]

    def add_text_stats(self, documents: List[PatientDocument]):
        """Calculate and add text statistics from documents"""
        if not documents:
            return

        text_lengths = [doc.text_length for doc in documents]
        word_counts = [doc.word_count for doc in documents]
        note_counts = [doc.note_count for doc in documents]

        self.text_stats = {
            'avg_text_length': float(np.mean(text_lengths)),
            'avg_word_count': float(np.mean(word_counts)),
            'avg_notes_per_patient': float(np.mean(note_counts)),
            'min_text_length': float(np.min(text_lengths)),
            'max_text_length': float(np.max(text_lengths)),
            'median_text_length': float(np.median(text_lengths))
        }


# Factory functions for common configurations

def create_progress_note_config(
    file_path: str,
    n_topics: int = 6,
    random_seed: int = 1234,
    exclusions: Optional[List[str]] = None,
    exclusions_version: str = "1",
    top_n: int = 10,
    timeout_seconds: Optional[float] = None,
    output_dir: Optional[str] = None
) -> PipelineConfig:
    """
    Create a PipelineConfig for the progress note export

    Args:
        file_path: Path to the tab-separated notes file
        n_topics: Number of topics k
        random_seed: Seed for the LDA fit
        exclusions: Optional operator exclusion terms
        exclusions_version: Version label for the exclusion list
        top_n: Number of terms reported per topic
        timeout_seconds: Optional time budget for the fit
        output_dir: Optional directory for tables and figures

    Returns:
        Configured PipelineConfig
    """
    return PipelineConfig(
        dataset=DatasetConfig(file_path=file_path),
        filters=FilterConfig(
            exclusions=ExclusionPolicy(version=exclusions_version, terms=exclusions or [])
        ),
        model=ModelConfig(
            n_topics=n_topics,
            random_seed=random_seed,
            timeout_seconds=timeout_seconds
        ),
        report=ReportConfig(top_n=top_n, output_dir=output_dir)
    )


def create_demo_config(n_topics: int = 2) -> PipelineConfig:
    """
    Create a PipelineConfig for in-memory demonstration/testing runs

    Args:
        n_topics: Number of topics k

    Returns:
        PipelineConfig without a dataset section
    """
    return PipelineConfig(
        model=ModelConfig(n_topics=n_topics, max_iter=20),
        report=ReportConfig(top_n=5, common_terms_n=5, save_figures=False)
    )
