#!/usr/bin/env python3
"""
Clinical Topics Pipeline - Data Ingestion Orchestrator
Coordinates loading, record validation and document assembly
"""

import json
import logging
import hashlib
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .models import DatasetConfig, IngestionMetadata, PatientDocument, ProgressNote
from .loaders import BaseDataLoader, DataLoaderFactory, RawRecord
from .validators import BaseRecordValidator, ValidationResult, create_validator
from .preprocessors import BasePreprocessor, create_preprocessor
from .exceptions import (
    ConfigurationError, DataIngestionError, DataLoadError,
    PreprocessingError
)

logger = logging.getLogger(__name__)


class NoteIngestion:
    """
    Main orchestrator for progress note ingestion

    Malformed rows are logged with their row number and skipped; the run
    continues with the remaining records. File-level problems (missing
    file, wrong header) are fatal.
    """

    def __init__(
        self,
        config: DatasetConfig,
        loader: Optional[BaseDataLoader] = None,
        validator: Optional[BaseRecordValidator] = None,
        preprocessor: Optional[BasePreprocessor] = None
    ):
        """
        Initialize the ingestion pipeline

        Args:
            config: Dataset configuration object
            loader: Optional custom data loader (auto-created if None)
            validator: Optional custom record validator (auto-created if None)
            preprocessor: Optional custom preprocessor (auto-created if None)
        """
        self.config = config
        self.start_time = None
        self.end_time = None

        self.loader = loader or DataLoaderFactory.create_loader(config)
        self.validator = validator or create_validator(config, "composite")
        self.preprocessor = preprocessor or create_preprocessor(config, "progress_note")

        self.raw_records: Optional[List[RawRecord]] = None
        self.validation_result: Optional[ValidationResult] = None
        self.documents: Optional[List[PatientDocument]] = None
        self.metadata: Optional[IngestionMetadata] = None

        self._validate_configuration()

        logger.info("Progress note ingestion pipeline initialized")

    def _validate_configuration(self):
        """Validate the configuration before processing"""
        path = Path(self.config.file_path)
        if not path.exists():
            raise ConfigurationError(
                f"Data file not found: {self.config.file_path}",
                "file_path",
                self.config.file_path
            )

        if not path.is_file():
            raise ConfigurationError(
                f"Path is not a file: {self.config.file_path}",
                "file_path",
                self.config.file_path
            )

        logger.debug("Configuration validation passed")

    @property
    def notes(self) -> List[ProgressNote]:
        return self.validation_result.valid_notes if self.validation_result else []

    @property
    def records_parsed(self) -> int:
        return self.validation_result.notes_passed if self.validation_result else 0

    @property
    def parse_failures(self) -> int:
        return self.validation_result.notes_failed if self.validation_result else 0

    @property
    def distinct_patients(self) -> int:
        return len({note.patient_id for note in self.notes})

    def ingest(self) -> Tuple[List[PatientDocument], IngestionMetadata]:
        """
        Execute the complete ingestion pipeline

        Returns:
            Tuple of (documents, metadata)

        Raises:
            DataIngestionError: If a file-level step fails
        """
        logger.info("Starting progress note ingestion...")
        self.start_time = datetime.now()

        try:
            self._load_data()
            self._validate_schema()
            self._validate_records()
            self._assemble_documents()
        except DataIngestionError:
            self.end_time = datetime.now()
            raise
        except Exception as e:
            self.end_time = datetime.now()
            error_msg = f"Data ingestion pipeline failed: {e}"
            logger.error(error_msg)
            raise DataIngestionError(error_msg) from e

        self.end_time = datetime.now()
        self._generate_metadata()

        logger.info("✓ Data ingestion completed")
        logger.info(f"  Records parsed: {self.metadata.records_parsed}")
        logger.info(f"  Parse failures: {self.metadata.parse_failures}")
        logger.info(f"  Distinct patients: {self.metadata.distinct_patients}")
        logger.info(f"  Duration: {self.metadata.duration_seconds:.2f} seconds")

        return self.documents, self.metadata

    def _load_data(self):
        logger.info("Step 1: Loading raw records...")
        try:
            self.raw_records = self.loader.load()
        except DataLoadError:
            raise
        except Exception as e:
            raise DataLoadError(f"Failed to load data: {e}", self.config.file_path, e) from e

    def _validate_schema(self):
        logger.info("Step 2: Validating header...")
        self.loader.validate_schema()

    def _validate_records(self):
        logger.info("Step 3: Validating records...")
        self.validation_result = self.validator.validate(self.raw_records)

    def _assemble_documents(self):
        logger.info("Step 4: Assembling patient documents...")
        try:
            self.documents = self.preprocessor.preprocess(self.validation_result.valid_notes)
        except PreprocessingError:
            raise
        except Exception as e:
            raise PreprocessingError(f"Document assembly failed: {e}", "assemble_documents") from e

    def _generate_metadata(self):
        """Generate metadata about the ingestion run"""
        self.metadata = IngestionMetadata(
            pipeline_start_time=self.start_time,
            pipeline_end_time=self.end_time,
            config_hash=self._calculate_config_hash(),
            lines_read=getattr(self.loader, 'lines_read', 0),
            records_parsed=self.records_parsed,
            records_repaired=len(self.validation_result.repaired_rows),
            distinct_patients=self.distinct_patients,
            documents_created=len(self.documents)
        )
        self.metadata.add_failures(self.validation_result.failures)
        self.metadata.add_text_stats(self.documents)
        self.metadata.calculate_duration()

        empty = self.preprocessor.processing_stats.get('empty_notes', 0)
        if empty:
            self.metadata.processing_warnings.append(f"{empty} notes had no text after cleaning")

    def _calculate_config_hash(self) -> str:
        """Calculate a hash of the configuration for tracking"""
        config_str = str(self.config.dict())
        return hashlib.md5(config_str.encode()).hexdigest()[:16]

    def get_pipeline_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the ingestion run

        Returns:
            Dictionary containing summary information
        """
        if not self.metadata:
            return {"status": "not_executed"}

        return {
            "status": "completed" if self.documents else "empty",
            "execution_time": self.metadata.duration_seconds,
            "data_flow": {
                "lines_read": self.metadata.lines_read,
                "records_parsed": self.metadata.records_parsed,
                "parse_failures": self.metadata.parse_failures,
                "records_repaired": self.metadata.records_repaired,
                "distinct_patients": self.metadata.distinct_patients,
                "success_rate": f"{self.metadata.success_rate:.1%}"
            },
            "text_statistics": {
                "avg_length": f"{self.metadata.text_stats.get('avg_text_length', 0):.0f} chars",
                "avg_words": f"{self.metadata.text_stats.get('avg_word_count', 0):.0f} words"
            },
            "failed_rows": [f['row_number'] for f in self.metadata.failures]
        }

    def save_results(self, output_dir: str = "outputs", save_documents: bool = False):
        """
        Save ingestion metadata (and optionally documents) to files

        Args:
            output_dir: Directory to save results
            save_documents: Whether to save the assembled documents
        """
        output_path = Path(output_dir)
        output_path.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

        if self.metadata:
            metadata_file = output_path / f"ingestion_metadata_{timestamp}.json"
            with open(metadata_file, 'w') as f:
                json.dump(self.metadata.dict(), f, indent=2, default=str)
            logger.info(f"Saved metadata to {metadata_file}")

        if save_documents and self.documents:
            documents_file = output_path / f"patient_documents_{timestamp}.json"
            with open(documents_file, 'w') as f:
                json.dump([doc.to_dict() for doc in self.documents], f, indent=2)
            logger.info(f"Saved {len(self.documents)} documents to {documents_file}")


# Convenience function

def ingest_progress_notes(
    file_path: str,
    repair_extra_delimiters: bool = True,
    output_dir: Optional[str] = None
) -> Tuple[List[PatientDocument], IngestionMetadata]:
    """
    Convenience function to ingest a progress note export

    Args:
        file_path: Path to the tab-separated notes file
        repair_extra_delimiters: Fold surplus tabs back into the note
        output_dir: Optional directory to save metadata

    Returns:
        Tuple of (documents, metadata)
    """
    config = DatasetConfig(file_path=file_path, repair_extra_delimiters=repair_extra_delimiters)
    ingestion = NoteIngestion(config)
    documents, metadata = ingestion.ingest()

    if output_dir:
        ingestion.save_results(output_dir)

    return documents, metadata
