#!/usr/bin/env python3
"""
Command-line entry point: fit an LDA topic model over a progress note export
"""

import argparse
import logging
import sys

import matplotlib

from .data.models import ExclusionPolicy, PipelineConfig, create_progress_note_config
from .data.exceptions import ClinicalNLPError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clinical-topics",
        description="Topic modeling (LDA) over tab-separated clinical progress notes"
    )
    parser.add_argument("input", help="Tab-separated file with Patient_ID, Clinic_ID, ProgressNote")
    parser.add_argument("--config", help="JSON PipelineConfig; command-line options override it")
    parser.add_argument("--topics", "-k", type=int, help="Number of topics (>= 2)")
    parser.add_argument("--seed", type=int, help="Random seed for the LDA fit")
    parser.add_argument("--top-n", type=int, help="Terms reported per topic")
    parser.add_argument("--exclude", action="append", default=None, metavar="TERM",
                        help="Exclusion term (repeatable, case-insensitive substring match)")
    parser.add_argument("--exclusions-version", default=None, help="Version label for the exclusion list")
    parser.add_argument("--timeout", type=float, help="Time budget for model fitting, in seconds")
    parser.add_argument("--output-dir", help="Directory for CSV tables and figures")
    parser.add_argument("--no-figures", action="store_true", help="Skip chart rendering")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def load_config(args: argparse.Namespace) -> PipelineConfig:
    """Merge a JSON config (if any) with command-line overrides"""
    if args.config:
        config = PipelineConfig.from_json(args.config)
        data = config.dict()
        data['dataset'] = dict(data.get('dataset') or {}, file_path=args.input)
    else:
        data = create_progress_note_config(args.input, n_topics=args.topics or 6).dict()

    if args.topics is not None:
        data['model']['n_topics'] = args.topics
    if args.seed is not None:
        data['model']['random_seed'] = args.seed
    if args.timeout is not None:
        data['model']['timeout_seconds'] = args.timeout
    if args.top_n is not None:
        data['report']['top_n'] = args.top_n
    if args.output_dir is not None:
        data['report']['output_dir'] = args.output_dir
    if args.no_figures:
        data['report']['save_figures'] = False
    if args.exclude is not None or args.exclusions_version is not None:
        current = data['filters'].get('exclusions') or {}
        data['filters']['exclusions'] = ExclusionPolicy(
            version=args.exclusions_version or current.get('version', "0"),
            terms=args.exclude if args.exclude is not None else current.get('terms', ())
        ).dict()

    return PipelineConfig(**data)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    matplotlib.use("Agg")

    # pyplot must be imported after the backend is chosen
    from .nlp.pipeline import TopicPipeline
    from .nlp.reporting import get_topic_summary, print_topics, save_figures, save_tables

    try:
        config = load_config(args)
        result = TopicPipeline(config).run()
    except ClinicalNLPError as e:
        logger.error(f"Pipeline failed: {e}")
        return 1
    except ValueError as e:
        # pydantic validation errors for bad option values
        logger.error(f"Invalid configuration: {e}")
        return 1

    metadata = result.metadata
    logger.info(f"Records parsed: {metadata.records_parsed}, parse failures: {metadata.parse_failures}, "
                f"distinct patients: {metadata.distinct_patients}")
    if result.empty_documents:
        logger.info(f"Documents excluded (no surviving tokens): {len(result.empty_documents)}")

    print_topics(result.analysis.top_terms, 'beta', config.report.top_n)
    print()
    print(get_topic_summary(result.analysis.tfidf_ranking, 'tf_idf').to_string(index=False))
    print(f"\nCommon-term exclusion candidates: {', '.join(result.analysis.exclusion_candidates)}")

    if config.report.output_dir:
        save_tables(result, config.report.output_dir)
        if config.report.save_figures:
            save_figures(result, config.report.output_dir)

    return 0


if __name__ == '__main__':
    sys.exit(main())
