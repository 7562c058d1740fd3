"""
Clinical Topics Pipeline - NLP Layer
Tokenization, filtering, document-term matrix, LDA fitting and analysis
"""

from .tokenization import tokenize, tokenize_documents, tokens_to_frame
from .filters import (
    FilterStage,
    NumericTokenFilter,
    StopWordFilter,
    ExclusionFilter,
    FilterChain
)
from .matrix import DocumentTermMatrix, build_document_term_matrix
from .topic_modeling import (
    LDATopicModeler,
    TopicModelResult,
    fit_topic_model,
    sweep_topic_counts,
    summarize_sweep
)
from .analysis import (
    top_n_with_ties,
    top_terms,
    classify_documents,
    topic_document_counts,
    topic_tfidf,
    rank_terms_by_tfidf,
    common_term_candidates
)
from .pipeline import (
    AnalysisTables,
    PipelineResult,
    TopicPipeline,
    analyze_model,
    analyze_progress_notes,
    filter_tokens
)

__all__ = [
    "tokenize",
    "tokenize_documents",
    "tokens_to_frame",
    "FilterStage",
    "NumericTokenFilter",
    "StopWordFilter",
    "ExclusionFilter",
    "FilterChain",
    "DocumentTermMatrix",
    "build_document_term_matrix",
    "LDATopicModeler",
    "TopicModelResult",
    "fit_topic_model",
    "sweep_topic_counts",
    "summarize_sweep",
    "top_n_with_ties",
    "top_terms",
    "classify_documents",
    "topic_document_counts",
    "topic_tfidf",
    "rank_terms_by_tfidf",
    "common_term_candidates",
    "AnalysisTables",
    "PipelineResult",
    "TopicPipeline",
    "analyze_model",
    "analyze_progress_notes",
    "filter_tokens"
]
