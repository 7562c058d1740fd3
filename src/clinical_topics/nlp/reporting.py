#!/usr/bin/env python3
"""
Clinical Topics Pipeline - Reporting
Topic summaries, charts and table export for a finished pipeline run
"""

import math
import logging
from pathlib import Path
from typing import Dict, Optional

import pandas as pd
import matplotlib.pyplot as plt

from .pipeline import PipelineResult

logger = logging.getLogger(__name__)


def get_topic_summary(ranking: pd.DataFrame, value_col: str = 'beta', top_n: int = 5) -> pd.DataFrame:
    """Get a one-row-per-topic summary of a term ranking as DataFrame"""
    summary_data = []
    for topic, group in ranking.groupby('topic', sort=True):
        group = group.sort_values('rank')
        summary_data.append({
            'Topic_ID': int(topic),
            'Description': f"Topic about {', '.join(group['term'].head(3))}",
            'Top_Keywords': ', '.join(group['term'].head(top_n)),
            'Top_Weights': ', '.join(f"{w:.3f}" for w in group[value_col].head(top_n))
        })

    return pd.DataFrame(summary_data, columns=['Topic_ID', 'Description', 'Top_Keywords', 'Top_Weights'])


def print_topics(ranking: pd.DataFrame, value_col: str = 'beta', top_n: int = 10):
    """Print topics in a readable format"""
    print("🔍 Discovered Clinical Topics")
    print("=" * 60)

    for topic, group in ranking.groupby('topic', sort=True):
        group = group.sort_values('rank').head(top_n)
        print(f"\n📋 Topic #{int(topic) + 1}: {', '.join(group['term'].head(3))}")
        print("-" * 40)

        for i, (term, weight) in enumerate(zip(group['term'], group[value_col])):
            print(f"  {i+1:2d}. {term:<20} ({value_col}: {weight:.3f})")


def plot_top_terms(
    ranking: pd.DataFrame,
    value_col: str = 'beta',
    title: str = "Top terms per topic",
    ncols: int = 3,
    output_path: Optional[str] = None
):
    """
    Faceted horizontal bar chart of the ranked terms of every topic

    Args:
        ranking: Table with topic, term, rank and value_col
        value_col: Column plotted on the x axis ('beta' or 'tf_idf')
        title: Figure title
        ncols: Facets per row
        output_path: Optional file to save the figure to

    Returns:
        matplotlib Figure
    """
    topics = sorted(ranking['topic'].unique())
    ncols = max(1, min(ncols, len(topics)))
    nrows = max(1, math.ceil(len(topics) / ncols))

    fig, axes = plt.subplots(nrows, ncols, figsize=(5 * ncols, 3.5 * nrows), squeeze=False)
    for ax in axes.ravel()[len(topics):]:
        ax.set_visible(False)

    for ax, topic in zip(axes.ravel(), topics):
        group = ranking[ranking['topic'] == topic].sort_values('rank', ascending=False)
        ax.barh(group['term'], group[value_col], color=f"C{int(topic) % 10}")
        ax.set_title(f"Topic {int(topic) + 1}")
        ax.set_xlabel(value_col)

    fig.suptitle(title)
    fig.tight_layout()

    if output_path:
        fig.savefig(output_path, dpi=150)
        logger.info(f"Saved figure to {output_path}")
    return fig


def plot_topic_document_counts(counts: pd.DataFrame, output_path: Optional[str] = None):
    """Bar chart of the number of documents assigned to each topic"""
    fig, ax = plt.subplots(figsize=(10, 6))
    ax.bar([f"Topic {int(t) + 1}" for t in counts['topic']], counts['documents'])
    ax.set_ylabel("Documents")
    ax.set_title("Documents per dominant topic")
    fig.tight_layout()

    if output_path:
        fig.savefig(output_path, dpi=150)
        logger.info(f"Saved figure to {output_path}")
    return fig


def save_tables(result: PipelineResult, output_dir: str) -> Dict[str, Path]:
    """
    Write the in-memory result tables as CSV files

    Args:
        result: Finished pipeline run
        output_dir: Target directory (created if missing)

    Returns:
        Mapping of table name to written path
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    tables = {
        'beta': result.model.beta_frame(),
        'gamma': result.model.gamma_frame(),
        'top_terms': result.analysis.top_terms,
        'classification': result.analysis.classification,
        'document_counts': result.analysis.document_counts,
        'tfidf_ranking': result.analysis.tfidf_ranking,
        'common_terms': result.analysis.common_terms,
    }
    if result.dtm.empty_documents:
        tables['empty_documents'] = pd.DataFrame({'document_id': list(result.dtm.empty_documents)})

    written = {}
    for name, table in tables.items():
        path = output_path / f"{name}.csv"
        table.to_csv(path, index=False)
        written[name] = path

    logger.info(f"Saved {len(written)} tables to {output_path}")
    return written


def save_figures(result: PipelineResult, output_dir: str) -> Dict[str, Path]:
    """Render and save the ranked-term and document-count charts"""
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    paths = {
        'top_terms': output_path / "top_terms_beta.png",
        'tfidf_terms': output_path / "top_terms_tfidf.png",
        'document_counts': output_path / "documents_per_topic.png",
    }

    figures = [
        plot_top_terms(result.analysis.top_terms, 'beta', "Top terms per topic (beta)",
                       output_path=str(paths['top_terms'])),
        plot_top_terms(result.analysis.tfidf_ranking, 'tf_idf', "Topic-distinctive terms (tf-idf)",
                       output_path=str(paths['tfidf_terms'])),
        plot_topic_document_counts(result.analysis.document_counts,
                                   output_path=str(paths['document_counts'])),
    ]
    for fig in figures:
        plt.close(fig)

    return paths
