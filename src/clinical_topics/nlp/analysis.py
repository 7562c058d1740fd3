#!/usr/bin/env python3
"""
Clinical Topics Pipeline - Post-Model Analysis
Top terms, dominant-topic classification and TF-IDF re-ranking
"""

import logging
from typing import List, Optional

import numpy as np
import pandas as pd
from sklearn.feature_extraction.text import TfidfTransformer

from .matrix import DocumentTermMatrix
from .topic_modeling import TopicModelResult

logger = logging.getLogger(__name__)

# gamma values closer than this are treated as equal
TIE_TOLERANCE = 1e-12

TFIDF_COLUMNS = ['topic', 'document_id', 'term', 'n', 'tf', 'idf', 'tf_idf']


def top_n_with_ties(
    frame: pd.DataFrame,
    value_col: str,
    n: int,
    group_col: Optional[str] = None,
    ascending: bool = False,
    tie_break: Optional[List[str]] = None
) -> pd.DataFrame:
    """
    Keep the n best rows (per group), extended by every row tied with the nth

    Args:
        frame: Input table
        value_col: Column to rank on
        n: Rows to keep per group before ties
        group_col: Optional grouping column
        ascending: Rank smallest values first
        tie_break: Columns (ascending) that order tied rows in the output

    Returns:
        Ranked rows with a 1-based 'rank' column
    """
    if n < 1:
        raise ValueError("n must be at least 1")

    sort_cols = [value_col] + list(tie_break or [])
    sort_order = [ascending] + [True] * len(tie_break or [])

    def _top(group: pd.DataFrame) -> pd.DataFrame:
        ordered = group.sort_values(sort_cols, ascending=sort_order, kind="mergesort")
        if len(ordered) > n:
            cutoff = ordered[value_col].iloc[n - 1]
            keep = ordered[value_col] <= cutoff if ascending else ordered[value_col] >= cutoff
            ordered = ordered[keep]
        ordered = ordered.copy()
        ordered['rank'] = np.arange(1, len(ordered) + 1)
        return ordered

    if frame.empty:
        return frame.assign(rank=pd.Series(dtype=np.int64))
    if group_col is None:
        return _top(frame).reset_index(drop=True)

    parts = [_top(group) for _, group in frame.groupby(group_col, sort=True)]
    return pd.concat(parts, ignore_index=True)


def top_terms(result: TopicModelResult, n: int = 10) -> pd.DataFrame:
    """
    Highest-beta terms per topic

    Exactly n terms per topic unless beta ties at rank n, in which case all
    tied terms are included.
    """
    return top_n_with_ties(result.beta_frame(), 'beta', n, group_col='topic', tie_break=['term'])


def classify_documents(result: TopicModelResult) -> pd.DataFrame:
    """
    Dominant topic per document

    Tie policy: the lowest topic index among the topics sharing the maximal
    gamma wins, and 'tied' is set for that document.

    Returns:
        Table of document_id, topic, gamma, tied
    """
    gamma = result.gamma
    if gamma.size == 0:
        return pd.DataFrame(columns=['document_id', 'topic', 'gamma', 'tied'])

    best = gamma.max(axis=1)
    at_max = gamma >= (best - TIE_TOLERANCE)[:, None]
    topic = np.argmax(at_max, axis=1)
    tied = at_max.sum(axis=1) > 1

    if tied.any():
        logger.info(f"{int(tied.sum())} documents have tied dominant topics; lowest topic index assigned")

    return pd.DataFrame({
        'document_id': list(result.document_ids),
        'topic': topic.astype(np.int64),
        'gamma': gamma[np.arange(len(topic)), topic],
        'tied': tied
    })


def topic_document_counts(classification: pd.DataFrame, n_topics: int) -> pd.DataFrame:
    """Number of documents per dominant topic, including topics with none"""
    counts = classification['topic'].value_counts().reindex(range(n_topics), fill_value=0)
    return pd.DataFrame({'topic': np.arange(n_topics), 'documents': counts.to_numpy(dtype=np.int64)})


def topic_tfidf(dtm: DocumentTermMatrix, classification: pd.DataFrame) -> pd.DataFrame:
    """
    TF-IDF per (term, document) within each topic's assigned documents

    tf is the term's share of the document's surviving tokens; idf is
    ln(N / df) over the documents assigned to the same topic.

    Returns:
        Table with columns topic, document_id, term, n, tf, idf, tf_idf
    """
    parts = []
    for topic, group in classification.groupby('topic', sort=True):
        sub = dtm.select_documents(list(group['document_id']))
        if sub.is_empty:
            continue

        # smooth_idf=False gives ln(N / df) + 1
        transformer = TfidfTransformer(norm=None, smooth_idf=False).fit(sub.matrix)
        idf = transformer.idf_ - 1.0

        coo = sub.matrix.tocoo()
        totals = np.asarray(sub.matrix.sum(axis=1)).ravel()
        n = coo.data.astype(np.float64)
        tf = n / totals[coo.row]
        term_idf = idf[coo.col]

        parts.append(pd.DataFrame({
            'topic': int(topic),
            'document_id': np.asarray(sub.document_ids, dtype=object)[coo.row],
            'term': np.asarray(sub.terms, dtype=object)[coo.col],
            'n': coo.data.astype(np.int64),
            'tf': tf,
            'idf': term_idf,
            'tf_idf': tf * term_idf
        }))

    if not parts:
        return pd.DataFrame(columns=TFIDF_COLUMNS)

    frame = pd.concat(parts, ignore_index=True)
    return frame.sort_values(
        ['topic', 'tf_idf', 'document_id', 'term'],
        ascending=[True, False, True, True],
        kind="mergesort"
    ).reset_index(drop=True)


def rank_terms_by_tfidf(tfidf: pd.DataFrame, n: int = 10) -> pd.DataFrame:
    """
    Topic-distinctive terms: each term scored by its highest tf-idf in the topic

    Returns:
        Table of topic, term, tf_idf, rank (ties at rank n kept)
    """
    if tfidf.empty:
        return pd.DataFrame(columns=['topic', 'term', 'tf_idf', 'rank'])

    best = tfidf.groupby(['topic', 'term'], sort=True)['tf_idf'].max().reset_index()
    return top_n_with_ties(best, 'tf_idf', n, group_col='topic', tie_break=['term'])


def common_term_candidates(tfidf: pd.DataFrame, n: int = 20) -> pd.DataFrame:
    """
    Terms common across the corpus, by lowest mean idf across topics

    These are suggestions for the operator's next exclusion-list version;
    nothing is excluded automatically.

    Returns:
        Table of term, mean_idf, topics (number of topics containing the
        term), rank
    """
    if tfidf.empty:
        return pd.DataFrame(columns=['term', 'mean_idf', 'topics', 'rank'])

    per_topic = tfidf.drop_duplicates(['topic', 'term'])[['topic', 'term', 'idf']]
    summary = per_topic.groupby('term', sort=True).agg(
        mean_idf=('idf', 'mean'),
        topics=('topic', 'nunique')
    ).reset_index()
    return top_n_with_ties(summary, 'mean_idf', n, ascending=True, tie_break=['term'])
