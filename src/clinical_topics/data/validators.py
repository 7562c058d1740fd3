#!/usr/bin/env python3
"""
Clinical Topics Pipeline - Record Validators
Row-level validation and repair for tab-separated progress notes
"""

import logging
from abc import ABC, abstractmethod
from collections import Counter
from typing import List, Optional, Tuple

from .loaders import RawRecord
from .models import DatasetConfig, ParseFailure, ProgressNote
from .exceptions import RecordParseError

logger = logging.getLogger(__name__)

EXPECTED_FIELDS = 3
PREVIEW_LENGTH = 80


class ValidationResult:
    """
    Result of validating a batch of raw records

    Holds the accepted notes, the skipped rows and repair counts.
    """

    def __init__(self):
        self.valid_notes: List[ProgressNote] = []
        self.failures: List[ParseFailure] = []
        self.repaired_rows: List[int] = []
        self.failure_categories: Counter = Counter()

    def add_valid_note(self, note: ProgressNote):
        self.valid_notes.append(note)

    def add_failure(self, record: RawRecord, error: RecordParseError, category: str):
        self.failures.append(ParseFailure(
            row_number=record.row_number,
            reason=error.message,
            raw_line=record.raw_line[:PREVIEW_LENGTH]
        ))
        self.failure_categories[category] += 1

    @property
    def notes_passed(self) -> int:
        return len(self.valid_notes)

    @property
    def notes_failed(self) -> int:
        return len(self.failures)


class BaseRecordValidator(ABC):
    """
    Abstract base class for record validators

    A validator either returns a (possibly repaired) record or raises
    RecordParseError. Validators never merge one row into another.
    """

    category = "general"

    def __init__(self, config: DatasetConfig):
        self.config = config
        self.repairs = 0

    @abstractmethod
    def check(self, record: RawRecord) -> RawRecord:
        """Validate a single record, returning it or a repaired copy"""
        pass

    def validate(self, records: List[RawRecord]) -> ValidationResult:
        """
        Validate a list of raw records

        Args:
            records: Raw records from the loader

        Returns:
            ValidationResult with accepted notes and skipped rows
        """
        return run_validators([self], records)


class FieldCountValidator(BaseRecordValidator):
    """
    Enforce exactly three fields per record

    Too few fields means a note was broken across lines; the fragment is
    skipped. Surplus fields are unescaped delimiters inside the free-text
    column and are folded back into it when repair is enabled.
    """

    category = "field_count"

    def check(self, record: RawRecord) -> RawRecord:
        count = len(record.fields)
        if count == EXPECTED_FIELDS:
            return record

        if count < EXPECTED_FIELDS:
            raise RecordParseError(
                f"Row {record.row_number}: expected {EXPECTED_FIELDS} fields, found {count} "
                f"(possible embedded line break)",
                record.row_number,
                count
            )

        if not self.config.repair_extra_delimiters:
            raise RecordParseError(
                f"Row {record.row_number}: expected {EXPECTED_FIELDS} fields, found {count} "
                f"(unescaped delimiter in note)",
                record.row_number,
                count
            )

        note_text = " ".join(record.fields[EXPECTED_FIELDS - 1:])
        self.repairs += 1
        logger.debug(f"Row {record.row_number}: folded {count - EXPECTED_FIELDS} surplus delimiters into note")
        return RawRecord(
            row_number=record.row_number,
            fields=record.fields[:EXPECTED_FIELDS - 1] + (note_text,),
            raw_line=record.raw_line
        )


class PatientIdValidator(BaseRecordValidator):
    """Reject records without a patient identifier"""

    category = "patient_id"

    def check(self, record: RawRecord) -> RawRecord:
        if not record.fields or not record.fields[0].strip():
            raise RecordParseError(
                f"Row {record.row_number}: missing patient id",
                record.row_number,
                len(record.fields)
            )
        return record


class CompositeRecordValidator(BaseRecordValidator):
    """
    Runs several record validators in sequence

    The first failing validator decides the failure reason for a row.
    """

    def __init__(self, config: DatasetConfig, validators: Optional[List[BaseRecordValidator]] = None):
        super().__init__(config)

        if validators is None:
            self.validators = [
                FieldCountValidator(config),
                PatientIdValidator(config)
            ]
        else:
            self.validators = validators

    def check(self, record: RawRecord) -> RawRecord:
        for validator in self.validators:
            record = validator.check(record)
        return record

    def validate(self, records: List[RawRecord]) -> ValidationResult:
        return run_validators(self.validators, records)

    @property
    def total_repairs(self) -> int:
        return sum(v.repairs for v in self.validators)


def run_validators(validators: List[BaseRecordValidator], records: List[RawRecord]) -> ValidationResult:
    """Apply validators to every record, logging and collecting failures"""
    logger.info(f"Validating {len(records)} records...")
    result = ValidationResult()

    for record in records:
        current = record
        category = "general"
        try:
            for validator in validators:
                category = validator.category
                current = validator.check(current)
            if len(current.fields) != EXPECTED_FIELDS:
                category = FieldCountValidator.category
                raise RecordParseError(
                    f"Row {record.row_number}: expected {EXPECTED_FIELDS} fields, found {len(current.fields)}",
                    record.row_number,
                    len(current.fields)
                )
        except RecordParseError as e:
            logger.warning(f"Skipping malformed row: {e.message}")
            result.add_failure(record, e, category)
            continue

        if current is not record:
            result.repaired_rows.append(record.row_number)

        patient_id, clinic_id, text = current.fields
        result.add_valid_note(ProgressNote(
            row_number=current.row_number,
            patient_id=patient_id.strip(),
            clinic_id=clinic_id.strip(),
            text=text
        ))

    logger.info(f"Record validation complete:")
    logger.info(f"  Parsed records: {result.notes_passed}")
    logger.info(f"  Parse failures: {result.notes_failed}")
    if result.repaired_rows:
        logger.info(f"  Repaired rows: {len(result.repaired_rows)}")
    for category, count in result.failure_categories.items():
        logger.info(f"    {category}: {count}")

    return result


# Factory function for creating validators

def create_validator(config: DatasetConfig, validator_type: str = "composite") -> BaseRecordValidator:
    """
    Factory function to create appropriate validator

    Args:
        config: Dataset configuration
        validator_type: Type of validator ("composite", "field_count", "patient_id")

    Returns:
        Configured validator instance

    Raises:
        ValueError: If validator type is not recognized
    """
    validator_types = {
        "composite": CompositeRecordValidator,
        "field_count": FieldCountValidator,
        "patient_id": PatientIdValidator
    }

    if validator_type not in validator_types:
        raise ValueError(f"Unknown validator type: {validator_type}")

    return validator_types[validator_type](config)
