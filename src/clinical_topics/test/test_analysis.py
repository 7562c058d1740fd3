#!/usr/bin/env python3
"""
Tests for top-term ranking, dominant-topic classification and TF-IDF
"""

import math

import numpy as np
import pandas as pd
import pytest

from ..nlp.analysis import (
    classify_documents, common_term_candidates, rank_terms_by_tfidf,
    top_n_with_ties, top_terms, topic_document_counts, topic_tfidf
)
from ..nlp.matrix import build_document_term_matrix
from ..nlp.topic_modeling import TopicModelResult
from .conftest import make_tokens


def make_result(beta, gamma, terms, document_ids):
    beta = np.asarray(beta, dtype=float)
    gamma = np.asarray(gamma, dtype=float)
    return TopicModelResult(
        beta=beta,
        gamma=gamma,
        terms=tuple(terms),
        document_ids=tuple(document_ids),
        n_topics=beta.shape[0],
        random_seed=1234
    )


@pytest.fixture
def small_dtm():
    # A: cough x2, fever; B: cough, rash; C: rash x3
    return build_document_term_matrix(make_tokens([
        ("A", "cough"), ("A", "cough"), ("A", "fever"),
        ("B", "cough"), ("B", "rash"),
        ("C", "rash"), ("C", "rash"), ("C", "rash"),
    ]))


@pytest.fixture
def small_classification():
    return pd.DataFrame({
        'document_id': ["A", "B", "C"],
        'topic': [0, 0, 1],
        'gamma': [0.9, 0.8, 0.7],
        'tied': [False, False, False]
    })


# ----------------------------------------------------------------------
# Top-N with ties
# ----------------------------------------------------------------------

def test_top_n_keeps_ties_at_the_cutoff():
    frame = pd.DataFrame({'term': list("abcde"), 'value': [0.4, 0.3, 0.3, 0.3, 0.1]})

    top = top_n_with_ties(frame, 'value', 2, tie_break=['term'])

    assert list(top['term']) == ["a", "b", "c", "d"]
    assert list(top['rank']) == [1, 2, 3, 4]


def test_top_n_without_ties_is_exact():
    frame = pd.DataFrame({'term': list("abc"), 'value': [0.1, 0.5, 0.3]})

    top = top_n_with_ties(frame, 'value', 2)

    assert list(top['term']) == ["b", "c"]


def test_top_n_ascending_and_validation():
    frame = pd.DataFrame({'term': list("abc"), 'value': [0.1, 0.5, 0.1]})

    assert list(top_n_with_ties(frame, 'value', 1, ascending=True, tie_break=['term'])['term']) == ["a", "c"]
    with pytest.raises(ValueError):
        top_n_with_ties(frame, 'value', 0)


def test_top_terms_per_topic_with_ties():
    result = make_result(
        beta=[[0.5, 0.25, 0.25], [0.1, 0.1, 0.8]],
        gamma=[[0.5, 0.5]],
        terms=["x", "y", "z"],
        document_ids=["D"]
    )

    exact = top_terms(result, 1)
    assert list(exact['term']) == ["x", "z"]

    tied = top_terms(result, 2)
    assert list(tied[tied['topic'] == 0]['term']) == ["x", "y", "z"]
    assert list(tied[tied['topic'] == 1]['term']) == ["z", "x", "y"]


# ----------------------------------------------------------------------
# Classification
# ----------------------------------------------------------------------

def test_classification_picks_lowest_topic_on_ties():
    result = make_result(
        beta=[[0.5, 0.5], [0.5, 0.5]],
        gamma=[[0.7, 0.3], [0.5, 0.5], [0.2, 0.8]],
        terms=["x", "y"],
        document_ids=["A", "B", "C"]
    )

    classification = classify_documents(result)

    assert list(classification['topic']) == [0, 0, 1]
    assert list(classification['tied']) == [False, True, False]
    np.testing.assert_allclose(classification['gamma'], [0.7, 0.5, 0.8])


def test_topic_document_counts_include_empty_topics(small_classification):
    counts = topic_document_counts(small_classification, 3)

    assert list(counts['topic']) == [0, 1, 2]
    assert list(counts['documents']) == [2, 1, 0]


# ----------------------------------------------------------------------
# TF-IDF
# ----------------------------------------------------------------------

def test_topic_tfidf_values(small_dtm, small_classification):
    tfidf = topic_tfidf(small_dtm, small_classification)
    cells = tfidf.set_index(['topic', 'document_id', 'term'])

    # topic 0 holds A and B; cough appears in both
    assert cells.loc[(0, "A", "cough"), 'idf'] == pytest.approx(0.0)
    assert cells.loc[(0, "A", "cough"), 'tf'] == pytest.approx(2 / 3)
    assert cells.loc[(0, "A", "fever"), 'tf_idf'] == pytest.approx(math.log(2) / 3)
    assert cells.loc[(0, "B", "rash"), 'tf_idf'] == pytest.approx(math.log(2) / 2)
    assert cells.loc[(1, "C", "rash"), 'n'] == 3
    assert cells.loc[(1, "C", "rash"), 'tf_idf'] == pytest.approx(0.0)
    assert list(tfidf.columns) == ['topic', 'document_id', 'term', 'n', 'tf', 'idf', 'tf_idf']


def test_rank_terms_by_tfidf(small_dtm, small_classification):
    ranking = rank_terms_by_tfidf(topic_tfidf(small_dtm, small_classification), 1)

    assert list(ranking['topic']) == [0, 1]
    assert list(ranking['term']) == ["rash", "rash"]
    assert ranking['tf_idf'].iloc[0] == pytest.approx(math.log(2) / 2)


def test_common_term_candidates(small_dtm, small_classification):
    tfidf = topic_tfidf(small_dtm, small_classification)

    candidates = common_term_candidates(tfidf, 2)

    assert list(candidates['term']) == ["cough", "rash"]
    assert list(candidates['topics']) == [1, 2]
    assert candidates['mean_idf'].iloc[1] == pytest.approx(math.log(2) / 2)


def test_empty_tfidf_tables():
    empty = pd.DataFrame(columns=['topic', 'document_id', 'term', 'n', 'tf', 'idf', 'tf_idf'])

    assert rank_terms_by_tfidf(empty).empty
    assert common_term_candidates(empty).empty
