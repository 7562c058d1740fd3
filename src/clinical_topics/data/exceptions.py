#!/usr/bin/env python3
"""
Clinical Topics Pipeline - Custom Exceptions
Custom exception classes for note ingestion and topic model fitting
"""


class ClinicalNLPError(Exception):
    """Base exception class for all clinical topic pipeline errors"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class DataIngestionError(ClinicalNLPError):
    """Base exception for data ingestion layer errors"""
    pass


class DataLoadError(DataIngestionError):
    """Exception raised when data loading fails"""

    def __init__(self, message: str, file_path: str = None, original_error: Exception = None):
        details = {}
        if file_path:
            details['file_path'] = file_path
        if original_error:
            details['original_error'] = str(original_error)
            details['error_type'] = type(original_error).__name__

        super().__init__(message, details)
        self.file_path = file_path
        self.original_error = original_error


class SchemaValidationError(DataIngestionError):
    """Exception raised when the header row does not match the expected columns"""

    def __init__(self, message: str, expected_columns: list = None, found_columns: list = None):
        details = {}
        if expected_columns:
            details['expected_columns'] = expected_columns
        if found_columns:
            details['found_columns'] = found_columns

        super().__init__(message, details)
        self.expected_columns = expected_columns or []
        self.found_columns = found_columns or []


class RecordParseError(DataIngestionError):
    """Exception raised for a single malformed input row"""

    def __init__(self, message: str, row_number: int = None, field_count: int = None):
        details = {}
        if row_number is not None:
            details['row_number'] = row_number
        if field_count is not None:
            details['field_count'] = field_count

        super().__init__(message, details)
        self.row_number = row_number
        self.field_count = field_count


class PreprocessingError(DataIngestionError):
    """Exception raised during note preprocessing"""

    def __init__(self, message: str, processing_step: str = None, affected_rows: int = None):
        details = {}
        if processing_step:
            details['processing_step'] = processing_step
        if affected_rows is not None:
            details['affected_rows'] = affected_rows

        super().__init__(message, details)
        self.processing_step = processing_step
        self.affected_rows = affected_rows


class ConfigurationError(ClinicalNLPError):
    """Exception raised when configuration is invalid"""

    def __init__(self, message: str, config_field: str = None, config_value=None):
        details = {}
        if config_field:
            details['config_field'] = config_field
        if config_value is not None:
            details['config_value'] = config_value

        super().__init__(message, details)
        self.config_field = config_field
        self.config_value = config_value


class ModelFittingError(ClinicalNLPError):
    """Base exception for topic model fitting failures"""

    def __init__(
        self,
        message: str,
        n_topics: int = None,
        n_documents: int = None,
        n_terms: int = None,
        details: dict = None
    ):
        details = dict(details or {})
        if n_topics is not None:
            details['n_topics'] = n_topics
        if n_documents is not None:
            details['n_documents'] = n_documents
        if n_terms is not None:
            details['n_terms'] = n_terms

        super().__init__(message, details)
        self.n_topics = n_topics
        self.n_documents = n_documents
        self.n_terms = n_terms


class InsufficientDataError(ModelFittingError):
    """Exception raised when the matrix cannot support the requested topic count"""
    pass


class ModelTimeoutError(ModelFittingError):
    """Exception raised when model fitting exceeds its time budget"""

    def __init__(self, message: str, timeout_seconds: float = None, n_topics: int = None):
        details = {}
        if timeout_seconds is not None:
            details['timeout_seconds'] = timeout_seconds

        super().__init__(message, n_topics=n_topics, details=details)
        self.timeout_seconds = timeout_seconds
