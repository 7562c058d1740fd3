#!/usr/bin/env python3
"""
Clinical Topics Pipeline - Tokenization
Split note text into lower-cased word tokens tagged with their document id
"""

import logging
from typing import Iterable, Iterator

import pandas as pd
from nltk.tokenize import RegexpTokenizer

from ..data.models import PatientDocument, Token

logger = logging.getLogger(__name__)

# Runs of Unicode word characters; an apostrophe or decimal point between
# word characters stays inside the token ("don't", "3.5").
WORD_PATTERN = r"\w+(?:['’.]\w+)*"

_word_tokenizer = RegexpTokenizer(WORD_PATTERN)


def tokenize(text: str, document_id: str) -> Iterator[Token]:
    """
    Lazily tokenize one document's text

    Args:
        text: Free text of the document
        document_id: Id attached to every token

    Returns:
        Generator of Token; calling again on the same text yields the same
        sequence
    """
    if not text:
        return
    for position, (start, end) in enumerate(_word_tokenizer.span_tokenize(text)):
        yield Token(document_id, text[start:end].lower(), position)


def tokenize_documents(documents: Iterable[PatientDocument]) -> Iterator[Token]:
    """Lazily tokenize documents in order"""
    for document in documents:
        yield from tokenize(document.text, document.document_id)


def tokens_to_frame(tokens: Iterable[Token]) -> pd.DataFrame:
    """Materialize a token stream as a (document_id, term, position) table"""
    return pd.DataFrame(list(tokens), columns=list(Token._fields))
