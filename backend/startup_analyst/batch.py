"""
Batch analysis command line entry point

    python -m startup_analyst.batch "Company Data" --output report.json
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .core.config import settings
from .core.logging_config import setup_logging
from .services.analysis_orchestrator import AnalysisOrchestrator
from .services.batch_analyzer import BatchAnalyzer
from .services.llm_client import OllamaLLMClient
from .services.ocr_client import VisionOCRClient

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Analyze every company folder in a data directory")
    parser.add_argument(
        "folder",
        nargs="?",
        default=settings.BATCH_DATA_PATH,
        help=f"Directory with one sub-folder per company (default: {settings.BATCH_DATA_PATH})",
    )
    parser.add_argument(
        "--output", "-o",
        default=settings.BATCH_REPORT_FILENAME,
        help=f"Where to write the JSON report (default: {settings.BATCH_REPORT_FILENAME})",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=settings.BATCH_COMPANY_DELAY_SECONDS,
        help="Seconds to wait between companies",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


async def run_batch(folder: str, output: str, delay: float) -> int:
    llm_client = OllamaLLMClient()
    if not await llm_client.is_available():
        logger.warning(f"LLM service at {llm_client.host} is not reachable, analyses will likely fail")

    orchestrator = AnalysisOrchestrator(llm_client, VisionOCRClient())
    analyzer = BatchAnalyzer(orchestrator, data_path=folder, company_delay=delay)

    try:
        report = await analyzer.analyze_folder()
    except FileNotFoundError as e:
        logger.error(str(e))
        return 1

    analyzer.save_report(report, Path(output))

    summary = report.summary
    print(f"Companies analyzed: {summary.total_companies}")
    print(f"Successful: {summary.successful_analyses}  Failed: {summary.failed_analyses}")
    print(f"Average score: {report.benchmarks.average_score}")
    for opportunity in report.insights.investment_opportunities:
        print(f"  {opportunity.company_name}: {opportunity.score}/100 ({opportunity.decision.value})")
    print(f"Report written to {output}")

    return 0 if summary.successful_analyses or not summary.total_companies else 2


def main():
    """Main function"""
    args = build_parser().parse_args()
    setup_logging(log_level="DEBUG" if args.verbose else None)
    sys.exit(asyncio.run(run_batch(args.folder, args.output, args.delay)))


if __name__ == "__main__":
    main()
