#!/usr/bin/env python3
"""
Topic modeling using LDA for clinical progress notes
"""

import os
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.decomposition import LatentDirichletAllocation

from ..data.models import ModelConfig
from ..data.exceptions import ConfigurationError, InsufficientDataError, ModelTimeoutError
from .matrix import DocumentTermMatrix

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class TopicModelResult:
    """
    Container for a fitted LDA model's distributions

    beta is (n_topics x n_terms), gamma is (n_documents x n_topics); every
    row of both sums to 1.
    """
    beta: np.ndarray
    gamma: np.ndarray
    terms: Tuple[str, ...]
    document_ids: Tuple[str, ...]
    n_topics: int
    random_seed: int
    perplexity: float = float("nan")
    log_likelihood: float = float("nan")
    n_iter: int = 0

    def beta_frame(self) -> pd.DataFrame:
        """Tidy (topic, term, beta) table"""
        k, v = self.beta.shape
        return pd.DataFrame({
            'topic': np.repeat(np.arange(k), v),
            'term': np.tile(np.asarray(self.terms, dtype=object), k),
            'beta': self.beta.ravel()
        })

    def gamma_frame(self) -> pd.DataFrame:
        """Tidy (document_id, topic, gamma) table"""
        d, k = self.gamma.shape
        return pd.DataFrame({
            'document_id': np.repeat(np.asarray(self.document_ids, dtype=object), k),
            'topic': np.tile(np.arange(k), d),
            'gamma': self.gamma.ravel()
        })


def _normalize_rows(values: np.ndarray) -> np.ndarray:
    totals = values.sum(axis=1, keepdims=True)
    totals[totals == 0] = 1.0
    return values / totals


class LDATopicModeler:
    """LDA topic modeling over a document-term count matrix"""

    def __init__(self,
                 n_topics: int,
                 random_seed: int = 1234,
                 max_iter: int = 50,
                 learning_method: str = "batch",
                 doc_topic_prior: Optional[float] = None,
                 topic_word_prior: Optional[float] = None,
                 timeout_seconds: Optional[float] = None):
        """
        Initialize topic modeler

        Args:
            n_topics: Number of topics k (at least 2)
            random_seed: Seed passed to the LDA routine
            max_iter: Maximum number of EM iterations
            learning_method: 'batch' or 'online' variational Bayes
            doc_topic_prior: Dirichlet prior on per-document topic weights
            topic_word_prior: Dirichlet prior on per-topic term weights
            timeout_seconds: Optional time budget for fit()
        """
        if n_topics is None or int(n_topics) < 2:
            raise ConfigurationError("Number of topics must be at least 2", "n_topics", n_topics)
        if timeout_seconds is not None and timeout_seconds <= 0:
            raise ConfigurationError("Timeout must be positive", "timeout_seconds", timeout_seconds)

        self.n_topics = int(n_topics)
        self.random_seed = random_seed
        self.max_iter = max_iter
        self.learning_method = learning_method
        self.doc_topic_prior = doc_topic_prior
        self.topic_word_prior = topic_word_prior
        self.timeout_seconds = timeout_seconds

        self.lda_model = None
        self.result: Optional[TopicModelResult] = None
        self.is_fitted = False

    @classmethod
    def from_config(cls, config: ModelConfig) -> "LDATopicModeler":
        return cls(
            n_topics=config.n_topics,
            random_seed=config.random_seed,
            max_iter=config.max_iter,
            learning_method=config.learning_method,
            doc_topic_prior=config.doc_topic_prior,
            topic_word_prior=config.topic_word_prior,
            timeout_seconds=config.timeout_seconds
        )

    def _create_model(self) -> LatentDirichletAllocation:
        return LatentDirichletAllocation(
            n_components=self.n_topics,
            doc_topic_prior=self.doc_topic_prior,
            topic_word_prior=self.topic_word_prior,
            learning_method=self.learning_method,
            max_iter=self.max_iter,
            random_state=self.random_seed
        )

    def check_inputs(self, dtm: DocumentTermMatrix):
        """
        Fail fast when the matrix cannot support k topics

        Raises:
            InsufficientDataError: Empty matrix, or k above the number of
                terms or documents
        """
        if dtm.is_empty or dtm.n_documents == 0 or dtm.n_terms == 0:
            raise InsufficientDataError(
                "Insufficient data: document-term matrix is empty",
                self.n_topics, dtm.n_documents, dtm.n_terms
            )
        if self.n_topics > dtm.n_terms:
            raise InsufficientDataError(
                f"Insufficient data: {self.n_topics} topics requested but only {dtm.n_terms} distinct terms",
                self.n_topics, dtm.n_documents, dtm.n_terms
            )
        if self.n_topics > dtm.n_documents:
            raise InsufficientDataError(
                f"Insufficient data: {self.n_topics} topics requested but only {dtm.n_documents} documents",
                self.n_topics, dtm.n_documents, dtm.n_terms
            )

    def fit(self, dtm: DocumentTermMatrix) -> TopicModelResult:
        """
        Fit the topic model on a document-term matrix

        Args:
            dtm: Document-term count matrix

        Returns:
            TopicModelResult with normalized beta and gamma

        Raises:
            InsufficientDataError: If the matrix cannot support k topics
            ModelTimeoutError: If the fit exceeds timeout_seconds
        """
        self.check_inputs(dtm)

        logger.info(
            f"Fitting LDA: k={self.n_topics}, seed={self.random_seed}, "
            f"{dtm.n_documents} documents x {dtm.n_terms} terms"
        )

        if self.timeout_seconds is None:
            lda, doc_topic = self._fit_model(dtm.matrix)
        else:
            lda, doc_topic = self._fit_with_timeout(dtm.matrix)

        beta = _normalize_rows(np.asarray(lda.components_, dtype=np.float64))
        gamma = _normalize_rows(np.asarray(doc_topic, dtype=np.float64))

        self.lda_model = lda
        self.result = TopicModelResult(
            beta=beta,
            gamma=gamma,
            terms=dtm.terms,
            document_ids=dtm.document_ids,
            n_topics=self.n_topics,
            random_seed=self.random_seed,
            perplexity=float(lda.perplexity(dtm.matrix)),
            log_likelihood=float(lda.score(dtm.matrix)),
            n_iter=int(lda.n_iter_)
        )
        self.is_fitted = True

        logger.info(f"✓ LDA fit complete in {lda.n_iter_} iterations (perplexity {self.result.perplexity:.2f})")
        return self.result

    def _fit_model(self, X) -> Tuple[LatentDirichletAllocation, np.ndarray]:
        lda = self._create_model()
        lda.fit(X)
        # transform() starts every document from the same state, so
        # identical rows always get identical gamma
        doc_topic = lda.transform(X)
        return lda, doc_topic

    def _fit_with_timeout(self, X) -> Tuple[LatentDirichletAllocation, np.ndarray]:
        """
        Run the fit on a daemon worker thread bounded by timeout_seconds

        A fit that overruns is abandoned, not stopped: the solver cannot be
        interrupted, so the thread keeps running in the background until the
        fit ends on its own. Its result is discarded and, as a daemon, the
        thread cannot keep the interpreter alive.
        """
        outcome = {}

        def target():
            try:
                outcome['result'] = self._fit_model(X)
            except Exception as e:
                outcome['error'] = e

        worker = threading.Thread(target=target, name=f"lda-fit-k{self.n_topics}", daemon=True)
        worker.start()
        worker.join(self.timeout_seconds)

        if worker.is_alive():
            logger.error(f"LDA fit with k={self.n_topics} exceeded {self.timeout_seconds}s; abandoned fit keeps running in the background")
            raise ModelTimeoutError(
                f"Model fitting exceeded {self.timeout_seconds} seconds",
                self.timeout_seconds,
                self.n_topics
            )
        if 'error' in outcome:
            raise outcome['error']
        return outcome['result']


def fit_topic_model(dtm: DocumentTermMatrix, config: ModelConfig) -> TopicModelResult:
    """Convenience function: fit one LDA model from a ModelConfig"""
    return LDATopicModeler.from_config(config).fit(dtm)


def sweep_topic_counts(
    dtm: DocumentTermMatrix,
    topic_counts: Iterable[int],
    base_config: ModelConfig,
    max_workers: Optional[int] = None
) -> Dict[int, TopicModelResult]:
    """
    Fit independent models for several k on a bounded worker pool

    Each fit is a pure function of (matrix, k, seed). The first failure is
    re-raised as soon as it happens: queued fits are cancelled and fits
    already running are left to finish in the background, their results
    discarded.

    Args:
        dtm: Document-term matrix shared by all fits
        topic_counts: Values of k to try
        base_config: Seed, iterations, priors and timeout for every fit
        max_workers: Worker thread count (default: CPU count, at most one per k)

    Returns:
        Dict mapping k to its TopicModelResult, in ascending k
    """
    ks = sorted(set(int(k) for k in topic_counts))
    if not ks:
        return {}

    modelers = {k: LDATopicModeler.from_config(base_config.copy(update={'n_topics': k})) for k in ks}
    for modeler in modelers.values():
        modeler.check_inputs(dtm)

    workers = max_workers or min(len(ks), os.cpu_count() or 1)
    logger.info(f"Sweeping topic counts {ks} on {workers} workers")

    executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="lda-sweep")
    futures = {executor.submit(modeler.fit, dtm): k for k, modeler in modelers.items()}
    results = {}
    try:
        for future in as_completed(futures):
            results[futures[future]] = future.result()
    except Exception as e:
        logger.error(f"Sweep aborted at k={futures[future]}: {e}")
        executor.shutdown(wait=False, cancel_futures=True)
        raise
    executor.shutdown(wait=True)

    return {k: results[k] for k in ks}


def summarize_sweep(results: Dict[int, TopicModelResult]) -> pd.DataFrame:
    """(n_topics, perplexity, log_likelihood, n_iter) per fitted k"""
    rows: List[dict] = [
        {
            'n_topics': k,
            'perplexity': r.perplexity,
            'log_likelihood': r.log_likelihood,
            'n_iter': r.n_iter
        }
        for k, r in sorted(results.items())
    ]
    return pd.DataFrame(rows, columns=['n_topics', 'perplexity', 'log_likelihood', 'n_iter'])
