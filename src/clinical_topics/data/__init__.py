#!/usr/bin/env python3
"""
Clinical Topics Pipeline - Data Ingestion Layer
Loading, row validation and per-patient document assembly for progress notes
"""

from .models import (
    ProgressNote,
    PatientDocument,
    ParseFailure,
    Token,
    DatasetConfig,
    ExclusionPolicy,
    FilterConfig,
    ModelConfig,
    ReportConfig,
    PipelineConfig,
    IngestionMetadata,
    create_progress_note_config,
    create_demo_config
)

from .loaders import (
    RawRecord,
    BaseDataLoader,
    TSVNoteLoader,
    DataLoaderFactory,
    normalize_line_endings
)

from .validators import (
    ValidationResult,
    BaseRecordValidator,
    FieldCountValidator,
    PatientIdValidator,
    CompositeRecordValidator,
    create_validator
)

from .preprocessors import (
    BasePreprocessor,
    ProgressNoteTextPreprocessor,
    create_preprocessor
)

from .ingestion import (
    NoteIngestion,
    ingest_progress_notes
)

from .exceptions import (
    ClinicalNLPError,
    DataIngestionError,
    DataLoadError,
    SchemaValidationError,
    RecordParseError,
    PreprocessingError,
    ConfigurationError,
    ModelFittingError,
    InsufficientDataError,
    ModelTimeoutError
)

# Main public API
__all__ = [
    # Core models
    "ProgressNote",
    "PatientDocument",
    "ParseFailure",
    "Token",
    "IngestionMetadata",

    # Configuration
    "DatasetConfig",
    "ExclusionPolicy",
    "FilterConfig",
    "ModelConfig",
    "ReportConfig",
    "PipelineConfig",
    "create_progress_note_config",
    "create_demo_config",

    # Loaders
    "RawRecord",
    "BaseDataLoader",
    "TSVNoteLoader",
    "DataLoaderFactory",
    "normalize_line_endings",

    # Validators
    "ValidationResult",
    "BaseRecordValidator",
    "FieldCountValidator",
    "PatientIdValidator",
    "CompositeRecordValidator",
    "create_validator",

    # Preprocessors
    "BasePreprocessor",
    "ProgressNoteTextPreprocessor",
    "create_preprocessor",

    # Ingestion orchestrator
    "NoteIngestion",
    "ingest_progress_notes",

    # Exceptions
    "ClinicalNLPError",
    "DataIngestionError",
    "DataLoadError",
    "SchemaValidationError",
    "RecordParseError",
    "PreprocessingError",
    "ConfigurationError",
    "ModelFittingError",
    "InsufficientDataError",
    "ModelTimeoutError"
]
