#!/usr/bin/env python3
"""
Clinical Topics Pipeline - Orchestration
Explicit stage composition: documents → tokens → filtered tokens → matrix → model → reports
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import pandas as pd

from ..data.ingestion import NoteIngestion
from ..data.models import (
    FilterConfig, IngestionMetadata, PatientDocument, PipelineConfig, Token,
    create_progress_note_config
)
from ..data.exceptions import ConfigurationError
from .tokenization import tokenize_documents
from .filters import FilterChain
from .matrix import DocumentTermMatrix, build_document_term_matrix
from .topic_modeling import LDATopicModeler, TopicModelResult
from .analysis import (
    classify_documents, common_term_candidates, rank_terms_by_tfidf,
    top_terms, topic_document_counts, topic_tfidf
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class AnalysisTables:
    """Post-model tables derived from one fitted model"""
    top_terms: pd.DataFrame
    classification: pd.DataFrame
    document_counts: pd.DataFrame
    tfidf: pd.DataFrame
    tfidf_ranking: pd.DataFrame
    common_terms: pd.DataFrame

    @property
    def exclusion_candidates(self) -> List[str]:
        return list(self.common_terms['term'])


@dataclass(frozen=True, eq=False)
class PipelineResult:
    """Everything one pipeline run produced, held in memory for reporting"""
    config: PipelineConfig
    documents: Tuple[PatientDocument, ...]
    dtm: DocumentTermMatrix
    model: TopicModelResult
    analysis: AnalysisTables
    filter_stats: Dict[str, int] = field(default_factory=dict)
    metadata: Optional[IngestionMetadata] = None

    @property
    def empty_documents(self) -> Tuple[str, ...]:
        return self.dtm.empty_documents


def filter_tokens(tokens: Iterable[Token], config: FilterConfig) -> Tuple[List[Token], Dict[str, int]]:
    """Apply the configured filter chain and return surviving tokens with per-stage drop counts"""
    chain = FilterChain.from_config(config)
    survivors = list(chain.apply(tokens))
    return survivors, chain.stats()


def analyze_model(dtm: DocumentTermMatrix, model: TopicModelResult, top_n: int = 10, common_terms_n: int = 20) -> AnalysisTables:
    """Derive the post-model tables from a fitted model"""
    classification = classify_documents(model)
    tfidf = topic_tfidf(dtm, classification)
    return AnalysisTables(
        top_terms=top_terms(model, top_n),
        classification=classification,
        document_counts=topic_document_counts(classification, model.n_topics),
        tfidf=tfidf,
        tfidf_ranking=rank_terms_by_tfidf(tfidf, top_n),
        common_terms=common_term_candidates(tfidf, common_terms_n)
    )


class TopicPipeline:
    """
    Single-pass batch pipeline over progress notes

    Each stage method is a pure function of its inputs and the
    configuration; run() threads the intermediate results through them.
    """

    def __init__(self, config: PipelineConfig):
        self.config = config

    def ingest(self) -> Tuple[List[PatientDocument], IngestionMetadata]:
        if self.config.dataset is None:
            raise ConfigurationError("No dataset configured for ingestion", "dataset")
        return NoteIngestion(self.config.dataset).ingest()

    def tokenize(self, documents: Sequence[PatientDocument]) -> Iterator[Token]:
        return tokenize_documents(documents)

    def filter(self, tokens: Iterable[Token]) -> Tuple[List[Token], Dict[str, int]]:
        return filter_tokens(tokens, self.config.filters)

    def build_matrix(self, tokens: Iterable[Token], documents: Sequence[PatientDocument]) -> DocumentTermMatrix:
        return build_document_term_matrix(tokens, [doc.document_id for doc in documents])

    def fit(self, dtm: DocumentTermMatrix) -> TopicModelResult:
        return LDATopicModeler.from_config(self.config.model).fit(dtm)

    def analyze(self, dtm: DocumentTermMatrix, model: TopicModelResult) -> AnalysisTables:
        report = self.config.report
        return analyze_model(dtm, model, report.top_n, report.common_terms_n)

    def run(self) -> PipelineResult:
        """Ingest the configured file and run every stage"""
        documents, metadata = self.ingest()
        return self.run_on_documents(documents, metadata)

    def run_on_documents(
        self,
        documents: Sequence[PatientDocument],
        metadata: Optional[IngestionMetadata] = None
    ) -> PipelineResult:
        """Run tokenization through analysis on already-assembled documents"""
        documents = tuple(documents)
        logger.info(f"Running topic pipeline on {len(documents)} documents")
        logger.info(f"Exclusion policy version {self.config.filters.exclusions.version}: "
                    f"{len(self.config.filters.exclusions.terms)} terms")

        tokens, filter_stats = self.filter(self.tokenize(documents))
        logger.info(f"Filtering kept {len(tokens)} tokens; dropped {filter_stats}")

        dtm = self.build_matrix(tokens, documents)
        if dtm.empty_documents:
            logger.warning(f"{len(dtm.empty_documents)} documents excluded from modeling (no surviving tokens)")

        model = self.fit(dtm)
        analysis = self.analyze(dtm, model)

        return PipelineResult(
            config=self.config,
            documents=documents,
            dtm=dtm,
            model=model,
            analysis=analysis,
            filter_stats=filter_stats,
            metadata=metadata
        )


def analyze_progress_notes(
    file_path: str,
    n_topics: int = 6,
    random_seed: int = 1234,
    exclusions: Optional[List[str]] = None,
    top_n: int = 10
) -> PipelineResult:
    """
    Convenience function to run the full pipeline on a notes file

    Args:
        file_path: Path to the tab-separated notes file
        n_topics: Number of topics k
        random_seed: Seed for the LDA fit
        exclusions: Optional operator exclusion terms
        top_n: Number of terms reported per topic

    Returns:
        PipelineResult
    """
    config = create_progress_note_config(
        file_path,
        n_topics=n_topics,
        random_seed=random_seed,
        exclusions=exclusions,
        top_n=top_n
    )
    return TopicPipeline(config).run()
