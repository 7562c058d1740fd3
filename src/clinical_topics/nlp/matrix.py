#!/usr/bin/env python3
"""
Clinical Topics Pipeline - Document-Term Matrix
Sparse (document x term) count matrix built from a filtered token stream
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import scipy.sparse as sp

from ..data.models import Token

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class DocumentTermMatrix:
    """
    Immutable sparse document-term count matrix

    Rows and columns come entirely from observed tokens. Documents that
    lost every token to filtering are listed in empty_documents and have
    no row.
    """
    matrix: sp.csr_matrix
    document_ids: Tuple[str, ...]
    terms: Tuple[str, ...]
    empty_documents: Tuple[str, ...] = ()

    @property
    def shape(self) -> Tuple[int, int]:
        return self.matrix.shape

    @property
    def n_documents(self) -> int:
        return len(self.document_ids)

    @property
    def n_terms(self) -> int:
        return len(self.terms)

    @property
    def is_empty(self) -> bool:
        return self.matrix.nnz == 0

    @property
    def term_index(self) -> Dict[str, int]:
        return {term: i for i, term in enumerate(self.terms)}

    @property
    def document_index(self) -> Dict[str, int]:
        return {doc: i for i, doc in enumerate(self.document_ids)}

    def row_totals(self) -> pd.Series:
        """Surviving token count per document"""
        totals = np.asarray(self.matrix.sum(axis=1)).ravel()
        return pd.Series(totals, index=list(self.document_ids), name="total")

    def count(self, document_id: str, term: str) -> int:
        """Count for one cell, 0 when the term or document is unknown"""
        row = self.document_index.get(document_id)
        col = self.term_index.get(term)
        if row is None or col is None:
            return 0
        return int(self.matrix[row, col])

    def counts_frame(self) -> pd.DataFrame:
        """Tidy (document_id, term, n) table of the nonzero cells"""
        coo = self.matrix.tocoo()
        frame = pd.DataFrame({
            'document_id': np.asarray(self.document_ids, dtype=object)[coo.row],
            'term': np.asarray(self.terms, dtype=object)[coo.col],
            'n': coo.data.astype(np.int64)
        })
        return frame.sort_values(['document_id', 'term'], kind="mergesort").reset_index(drop=True)

    def select_documents(self, document_ids: Sequence[str]) -> "DocumentTermMatrix":
        """Sub-matrix over the given documents, dropping terms that no longer occur"""
        index = self.document_index
        rows = [index[d] for d in document_ids]
        sub = self.matrix[rows, :]
        used = np.flatnonzero(np.asarray(sub.sum(axis=0)).ravel())
        return DocumentTermMatrix(
            matrix=sub[:, used].tocsr(),
            document_ids=tuple(document_ids),
            terms=tuple(self.terms[i] for i in used)
        )

    def to_dataframe(self) -> pd.DataFrame:
        """Dense view, for small matrices and inspection"""
        return pd.DataFrame(
            self.matrix.toarray(),
            index=list(self.document_ids),
            columns=list(self.terms)
        )


def build_document_term_matrix(
    tokens: Iterable[Token],
    document_ids: Optional[Sequence[str]] = None
) -> DocumentTermMatrix:
    """
    Count (document, term) pairs and materialize a sparse matrix

    Args:
        tokens: Filtered token stream
        document_ids: Optional full list of documents in the corpus; fixes
            the row order and lets documents without surviving tokens be
            flagged

    Returns:
        DocumentTermMatrix. Terms are sorted; rows follow document_ids when
        given, otherwise sorted ids, so identical token multisets always
        give identical matrices.
    """
    frame = pd.DataFrame(
        [(t.document_id, t.term) for t in tokens],
        columns=['document_id', 'term']
    )
    counts = frame.groupby(['document_id', 'term'], sort=True).size().rename('n').reset_index()

    observed = set(counts['document_id'])
    if document_ids is not None:
        ordered = list(dict.fromkeys(str(d) for d in document_ids))
        unknown = observed.difference(ordered)
        if unknown:
            ordered.extend(sorted(unknown))
        rows = [d for d in ordered if d in observed]
        empty = tuple(d for d in ordered if d not in observed)
    else:
        rows = sorted(observed)
        empty = ()

    terms = sorted(set(counts['term']))

    if counts.empty:
        matrix = sp.csr_matrix((0, 0), dtype=np.int64)
    else:
        row_codes = pd.Categorical(counts['document_id'], categories=rows).codes.astype(np.int64)
        col_codes = pd.Categorical(counts['term'], categories=terms).codes.astype(np.int64)
        matrix = sp.coo_matrix(
            (counts['n'].to_numpy(dtype=np.int64), (row_codes, col_codes)),
            shape=(len(rows), len(terms))
        ).tocsr()

    if empty:
        logger.warning(f"{len(empty)} documents have no tokens after filtering and are excluded from the matrix")
        logger.debug(f"Empty documents: {list(empty)[:20]}")

    logger.info(f"Document-term matrix: {len(rows)} documents x {len(terms)} terms, {matrix.nnz} nonzero cells")

    return DocumentTermMatrix(
        matrix=matrix,
        document_ids=tuple(rows),
        terms=tuple(terms),
        empty_documents=empty
    )
