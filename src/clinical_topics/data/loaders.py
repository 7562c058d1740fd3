#!/usr/bin/env python3
"""
Clinical Topics Pipeline - Data Loaders
Line-oriented loading of tab-separated progress note exports
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from .models import DatasetConfig
from .exceptions import DataLoadError, SchemaValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawRecord:
    """One physical line split on the delimiter, before validation"""
    row_number: int
    fields: Tuple[str, ...]
    raw_line: str


def normalize_line_endings(text: str) -> str:
    """
    Strip carriage-return artifacts from exported text

    CRLF pairs become LF. Any remaining lone CR sits inside a note and is
    replaced with a space so it cannot be read as a row boundary.
    """
    return text.replace("\r\n", "\n").replace("\r", " ")


class BaseDataLoader(ABC):
    """Base class for data loaders"""

    def __init__(self, config: DatasetConfig):
        self.config = config
        self.header: Optional[Tuple[str, ...]] = None
        self.lines_read = 0

    @abstractmethod
    def load(self) -> List[RawRecord]:
        """Load raw records from file"""
        pass

    @abstractmethod
    def validate_schema(self) -> bool:
        """Validate the header row"""
        pass


class TSVNoteLoader(BaseDataLoader):
    """Loader for tab-separated Patient_ID / Clinic_ID / ProgressNote files"""

    def _read_text(self) -> str:
        path = Path(self.config.file_path)
        if not path.exists():
            raise DataLoadError(f"File not found: {self.config.file_path}", self.config.file_path)

        # newline="" keeps stray CRs visible to normalize_line_endings
        try:
            with open(path, encoding=self.config.encoding, newline="") as f:
                return f.read()
        except UnicodeDecodeError:
            logger.warning(f"{self.config.encoding} failed, trying latin1 encoding")
            try:
                with open(path, encoding="latin1", newline="") as f:
                    return f.read()
            except Exception as e:
                raise DataLoadError(
                    f"Failed to load file with both {self.config.encoding} and latin1: {e}",
                    self.config.file_path,
                    e
                )
        except OSError as e:
            raise DataLoadError(f"Failed to read file: {e}", self.config.file_path, e)

    def load(self) -> List[RawRecord]:
        """
        Read the file and split it into raw records

        Returns:
            RawRecord per non-blank data line, numbered by physical line
        """
        logger.info(f"Loading notes from: {self.config.file_path}")

        text = normalize_line_endings(self._read_text())
        lines = text.split("\n")
        if lines and lines[-1] == "":
            lines.pop()
        self.lines_read = len(lines)

        records = []
        start = 0
        if self.config.has_header and lines:
            header_line = lines[0].lstrip("\ufeff")
            self.header = tuple(field.strip() for field in header_line.split(self.config.delimiter))
            start = 1

        for index in range(start, len(lines)):
            line = lines[index]
            if not line.strip():
                continue
            records.append(RawRecord(
                row_number=index + 1,
                fields=tuple(line.split(self.config.delimiter)),
                raw_line=line
            ))

        logger.info(f"Read {self.lines_read} lines, {len(records)} candidate records")
        return records

    def validate_schema(self) -> bool:
        """Validate that the header names the three expected columns"""
        if not self.config.has_header:
            return True

        expected = list(self.config.columns)
        found = list(self.header or ())
        if found != expected:
            raise SchemaValidationError(
                f"Unexpected header: {found}. Expected: {expected}",
                expected,
                found
            )

        logger.info("✓ Schema validation passed")
        return True


class DataLoaderFactory:
    """Simple factory for creating data loaders"""

    @staticmethod
    def create_loader(config: DatasetConfig) -> BaseDataLoader:
        """Create the data loader (delimited text only)"""
        if config.delimiter != "\t":
            logger.warning(f"Non-tab delimiter {config.delimiter!r} configured")
        return TSVNoteLoader(config)
