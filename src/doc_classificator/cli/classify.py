"""
Command-line interface for document classification.

Classifies a file or every file in a directory, then writes the export
report (summary, results and audit log) as JSON.

Usage:
    # Single file
    python -m doc_classificator.cli.classify contract.pdf

    # With model override
    python -m doc_classificator.cli.classify docs/ --model ollama/llama3.1:8b

    # Safety-first template, cross-verification, report to file
    python -m doc_classificator.cli.classify docs/ --template safety_first --cross-verify --output report.json
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

import structlog

from doc_classificator.classification.llm_client import (
    create_llm_client,
    create_llm_client_from_model_string,
)
from doc_classificator.classification.prompts import list_templates
from doc_classificator.config import settings
from doc_classificator.intake.document_loader import load_document
from doc_classificator.logging_config import setup_logging
from doc_classificator.reporting.export import export_report_json
from doc_classificator.session import ClassificationSession, create_session
from doc_classificator.taxonomy.registry import load_taxonomy


logger = structlog.get_logger(__name__)


# ============================================================================
# CLI FUNCTIONS
# ============================================================================

def collect_files(input_path: Path) -> List[Path]:
    """
    Files to classify: the path itself, or every non-hidden file below a directory.

    Directory contents are sorted so intake order is reproducible.
    """
    if input_path.is_file():
        return [input_path]

    return sorted(
        p for p in input_path.rglob("*")
        if p.is_file() and not any(part.startswith(".") for part in p.relative_to(input_path).parts)
    )


def ingest_files(session: ClassificationSession, files: List[Path], verbose: bool = False) -> int:
    """Register files as pending documents; returns the number ingested."""
    for idx, path in enumerate(files, 1):
        if verbose:
            print(f"[{idx}/{len(files)}] Queued {path.name}", file=sys.stderr)
        session.orchestrator.add_document(load_document(path))
    return len(files)


def write_output(report_json: str, output_path: Optional[Path]) -> None:
    """Write the report to a file, or stdout when no path is given."""
    if not output_path:
        print(report_json)
        return

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(report_json)
        f.write("\n")

    logger.info("output_written", path=str(output_path))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Document Classification CLI - classify files and export an audit report",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Single file with default model
  %(prog)s contract.pdf

  # Override model
  %(prog)s docs/ --model ollama/llama3.1:8b

  # Cross-verify anything below 90%% confidence
  %(prog)s docs/ --cross-verify --threshold 0.9 --output report.json

Supported models:
  - ollama/<model>:<tag>  (e.g., ollama/llama3.1:8b)
  - openai/<model>        (e.g., openai/gpt-4o-mini) - requires LLM_API_KEY
  - deepseek/<model>      (e.g., deepseek/deepseek-chat) - requires LLM_API_KEY
        """
    )

    parser.add_argument(
        "input",
        type=str,
        help="Path to a document or a directory of documents"
    )

    parser.add_argument(
        "--template",
        "-t",
        type=str,
        choices=list_templates(),
        default=None,
        help=f"Prompt template (default: {settings.prompt_template})"
    )

    parser.add_argument(
        "--model",
        "-m",
        type=str,
        default=None,
        help="Override LLM model (format: provider/model-name, e.g., 'ollama/llama3.1:8b')"
    )

    parser.add_argument(
        "--cross-verify",
        action="store_true",
        default=None,
        help="Issue a second classification call for low-confidence results"
    )

    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help=f"Cross-verification confidence threshold (default: {settings.cross_verify_threshold})"
    )

    parser.add_argument(
        "--taxonomy",
        type=str,
        default=None,
        help="Path to a taxonomy JSON file (default: packaged taxonomy)"
    )

    parser.add_argument(
        "--output",
        "-o",
        type=str,
        default=None,
        help="Output file path for the JSON report (default: stdout)"
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output"
    )

    return parser


# ============================================================================
# MAIN CLI
# ============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    setup_logging(log_level="DEBUG" if args.verbose else None, log_json=False, stream=sys.stderr)

    input_path = Path(args.input)
    if not input_path.exists():
        print(f"Error: Path not found: {input_path}", file=sys.stderr)
        sys.exit(1)

    try:
        client = (
            create_llm_client_from_model_string(args.model)
            if args.model
            else create_llm_client()
        )
        session = create_session(
            client=client,
            taxonomy=load_taxonomy(args.taxonomy or settings.taxonomy_file),
            template=args.template,
            cross_verify_enabled=args.cross_verify,
            cross_verify_threshold=args.threshold,
        )

        files = collect_files(input_path)
        if not files:
            logger.warning("no_files_found", directory=str(input_path))

        ingest_files(session, files, verbose=args.verbose)
        summary = asyncio.run(session.orchestrator.process_all())

        report_json = export_report_json(session.export_report())
        write_output(report_json, Path(args.output) if args.output else None)

        if args.verbose:
            for result in summary.results:
                if result.is_error:
                    outcome = f"ERROR ({result.error.kind.value})"
                else:
                    outcome = ", ".join(
                        session.taxonomy.get(c.category).label for c in result.categories
                    )
                print(f"  {result.document_name}: {outcome}", file=sys.stderr)
            print(
                f"\nProcessed {summary.processed} documents, {summary.failed} failed",
                file=sys.stderr
            )

    except (ValueError, OSError) as e:
        logger.error("cli_failed", error=str(e), exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    return 0


if __name__ == "__main__":
    sys.exit(main())
