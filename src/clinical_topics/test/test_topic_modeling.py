#!/usr/bin/env python3
"""
Tests for LDA fitting, timeouts and topic-count sweeps
"""

import threading
import time

import numpy as np
import pytest

from ..data.models import ModelConfig, create_demo_config
from ..data.exceptions import (
    ConfigurationError, InsufficientDataError, ModelFittingError, ModelTimeoutError
)
from ..nlp.matrix import build_document_term_matrix
from ..nlp.pipeline import TopicPipeline
from ..nlp.topic_modeling import (
    LDATopicModeler, fit_topic_model, summarize_sweep, sweep_topic_counts
)
from .conftest import make_tokens


@pytest.fixture
def dtm(cardio_pulmonary_documents):
    pipeline = TopicPipeline(create_demo_config(2))
    tokens, _ = pipeline.filter(pipeline.tokenize(cardio_pulmonary_documents))
    return pipeline.build_matrix(tokens, cardio_pulmonary_documents)


@pytest.fixture
def tiny_dtm():
    """Three documents over only two distinct terms"""
    return build_document_term_matrix(make_tokens([
        ("A", "cough"), ("B", "fever"), ("C", "cough"), ("C", "fever"),
    ]))


# ----------------------------------------------------------------------
# Single fits
# ----------------------------------------------------------------------

def test_fit_returns_normalized_distributions(dtm):
    result = LDATopicModeler(n_topics=2, max_iter=20).fit(dtm)

    assert result.beta.shape == (2, dtm.n_terms)
    assert result.gamma.shape == (dtm.n_documents, 2)
    np.testing.assert_allclose(result.beta.sum(axis=1), 1.0, atol=1e-6)
    np.testing.assert_allclose(result.gamma.sum(axis=1), 1.0, atol=1e-6)
    assert result.terms == dtm.terms
    assert result.document_ids == dtm.document_ids
    assert result.random_seed == 1234
    assert result.n_iter >= 1
    assert np.isfinite(result.perplexity)


def test_refit_with_same_seed_is_reproducible(dtm):
    first = LDATopicModeler(n_topics=2, random_seed=99, max_iter=20).fit(dtm)
    second = LDATopicModeler(n_topics=2, random_seed=99, max_iter=20).fit(dtm)

    np.testing.assert_allclose(first.beta, second.beta, rtol=0, atol=1e-12)
    np.testing.assert_allclose(first.gamma, second.gamma, rtol=0, atol=1e-12)


def test_tidy_frames(dtm):
    result = fit_topic_model(dtm, ModelConfig(n_topics=2, max_iter=10))

    beta = result.beta_frame()
    gamma = result.gamma_frame()

    assert list(beta.columns) == ["topic", "term", "beta"]
    assert len(beta) == 2 * dtm.n_terms
    assert list(gamma.columns) == ["document_id", "topic", "gamma"]
    assert len(gamma) == 2 * dtm.n_documents
    assert gamma.groupby("document_id")["gamma"].sum().round(6).eq(1.0).all()


def test_too_many_topics_for_terms(tiny_dtm):
    with pytest.raises(InsufficientDataError, match="^Insufficient data") as excinfo:
        LDATopicModeler(n_topics=3).fit(tiny_dtm)

    assert isinstance(excinfo.value, ModelFittingError)
    assert excinfo.value.n_terms == 2


def test_too_many_topics_for_documents():
    dtm = build_document_term_matrix(make_tokens([
        ("A", "cough"), ("A", "fever"), ("A", "rash"), ("B", "itch"),
    ]))

    with pytest.raises(InsufficientDataError, match="documents"):
        LDATopicModeler(n_topics=3).fit(dtm)


def test_empty_matrix_is_rejected():
    dtm = build_document_term_matrix([], document_ids=["A", "B"])

    with pytest.raises(InsufficientDataError, match="empty"):
        LDATopicModeler(n_topics=2).fit(dtm)


@pytest.mark.parametrize("n_topics", [0, 1])
def test_fewer_than_two_topics_is_a_configuration_error(n_topics):
    with pytest.raises(ConfigurationError):
        LDATopicModeler(n_topics=n_topics)


def test_non_positive_timeout_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        LDATopicModeler(n_topics=2, timeout_seconds=0)


# ----------------------------------------------------------------------
# Timeouts
# ----------------------------------------------------------------------

def test_fit_exceeding_timeout_raises(dtm, monkeypatch):
    def slow_fit(self, X):
        time.sleep(1.0)
        raise AssertionError("abandoned fit should never be used")

    monkeypatch.setattr(LDATopicModeler, "_fit_model", slow_fit)
    modeler = LDATopicModeler(n_topics=2, timeout_seconds=0.05)

    with pytest.raises(ModelTimeoutError) as excinfo:
        modeler.fit(dtm)

    assert excinfo.value.timeout_seconds == 0.05
    assert excinfo.value.n_topics == 2
    assert modeler.result is None
    # abandoned, not stopped: the fit thread is still running
    assert "lda-fit-k2" in [t.name for t in threading.enumerate()]


def test_fit_within_timeout_matches_untimed_fit(dtm):
    timed = LDATopicModeler(n_topics=2, max_iter=10, timeout_seconds=60).fit(dtm)
    untimed = LDATopicModeler(n_topics=2, max_iter=10).fit(dtm)

    np.testing.assert_allclose(timed.gamma, untimed.gamma, rtol=0, atol=1e-12)


def test_errors_inside_timed_fit_propagate(dtm, monkeypatch):
    def broken_fit(self, X):
        raise RuntimeError("solver failed")

    monkeypatch.setattr(LDATopicModeler, "_fit_model", broken_fit)

    with pytest.raises(RuntimeError, match="solver failed"):
        LDATopicModeler(n_topics=2, timeout_seconds=5).fit(dtm)


# ----------------------------------------------------------------------
# Sweeps
# ----------------------------------------------------------------------

def test_sweep_fits_each_topic_count(dtm):
    base = ModelConfig(n_topics=2, max_iter=10)

    results = sweep_topic_counts(dtm, [3, 2, 3], base, max_workers=2)

    assert list(results) == [2, 3]
    assert results[3].gamma.shape == (dtm.n_documents, 3)

    single = fit_topic_model(dtm, base)
    np.testing.assert_allclose(results[2].beta, single.beta, rtol=0, atol=1e-12)

    summary = summarize_sweep(results)
    assert list(summary["n_topics"]) == [2, 3]
    assert list(summary.columns) == ["n_topics", "perplexity", "log_likelihood", "n_iter"]


def test_sweep_checks_inputs_before_fitting(tiny_dtm):
    with pytest.raises(InsufficientDataError):
        sweep_topic_counts(tiny_dtm, [2, 5], ModelConfig(n_topics=2))


def test_empty_sweep():
    assert sweep_topic_counts(None, [], ModelConfig(n_topics=2)) == {}


def test_sweep_failure_does_not_wait_for_running_fits(dtm, monkeypatch):
    release = threading.Event()

    def fit_model(self, X):
        if self.n_topics == 2:
            raise RuntimeError("k=2 diverged")
        release.wait(5)
        raise RuntimeError("released")

    monkeypatch.setattr(LDATopicModeler, "_fit_model", fit_model)
    start = time.monotonic()
    try:
        with pytest.raises(RuntimeError, match="k=2 diverged"):
            sweep_topic_counts(dtm, [2, 3, 4], ModelConfig(n_topics=2), max_workers=3)
        assert time.monotonic() - start < 1.0
    finally:
        release.set()


def test_sweep_failure_cancels_queued_fits(dtm, monkeypatch):
    release = threading.Event()
    started = []

    def fit_model(self, X):
        started.append(self.n_topics)
        if self.n_topics == 2:
            raise RuntimeError("k=2 diverged")
        release.wait(5)
        raise RuntimeError("released")

    monkeypatch.setattr(LDATopicModeler, "_fit_model", fit_model)
    try:
        with pytest.raises(RuntimeError, match="k=2 diverged"):
            sweep_topic_counts(dtm, [2, 3, 4], ModelConfig(n_topics=2), max_workers=1)
        # one worker: k=3 may have been picked up, k=4 is still queued
        assert 4 not in started
    finally:
        release.set()
