"""
Batch Company Analyzer

Runs the single-company pipeline over every company sub-folder of a data
directory, one company at a time, and aggregates the results into a
cross-company report (common strengths and weaknesses, top opportunities,
score/decision/risk distributions).
"""

import asyncio
import logging
import re
import time
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..core.config import settings
from ..core.errors import AnalysisError
from ..models.analysis import Decision
from ..models.batch import (
    BatchBenchmarks,
    BatchInsights,
    BatchReport,
    BatchSummary,
    CompanyBatchResult,
    InvestmentOpportunity,
)
from ..models.documents import DocumentUpload
from .analysis_orchestrator import AnalysisOrchestrator
from .text_extraction import is_supported

logger = logging.getLogger(__name__)

FOLDER_NUMBERING_PATTERN = re.compile(r"^\d+\.\s*")
RISK_LEVELS = ("Low", "Medium", "High")
COMMON_PATTERN_MIN_COUNT = 2
COMMON_PATTERN_LIMIT = 5
TOP_OPPORTUNITIES = 5
TOP_PERFORMERS = 3

STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"


def extract_company_name(folder_name: str) -> str:
    """Remove numbering like "01. " from folder names"""
    return FOLDER_NUMBERING_PATTERN.sub("", folder_name).strip() or folder_name


def find_common_patterns(items: Iterable[str], min_count: int = COMMON_PATTERN_MIN_COUNT,
                         limit: int = COMMON_PATTERN_LIMIT) -> List[str]:
    """Lowercased items mentioned at least min_count times, most frequent first"""
    frequency = Counter(item.lower().strip() for item in items if item and item.strip())
    return [item for item, count in frequency.most_common() if count >= min_count][:limit]


def _average(values: List[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0.0


def _risk_bucket(level: str) -> Optional[str]:
    lowered = level.lower()
    for bucket in RISK_LEVELS:
        if bucket.lower() in lowered:
            return bucket
    return None


class BatchAnalyzer:
    """Analyze every company folder under a data directory"""

    def __init__(self, orchestrator: AnalysisOrchestrator, data_path: Optional[str] = None,
                 company_delay: Optional[float] = None):
        self.orchestrator = orchestrator
        self.data_path = Path(data_path or settings.BATCH_DATA_PATH).resolve()
        self.company_delay = (
            company_delay if company_delay is not None else settings.BATCH_COMPANY_DELAY_SECONDS
        )

    def scan_company_folders(self) -> List[str]:
        if not self.data_path.is_dir():
            raise FileNotFoundError(f"Company data directory not found: {self.data_path}")

        return sorted(
            entry.name for entry in self.data_path.iterdir()
            if entry.is_dir() and not entry.name.startswith(".")
        )

    @staticmethod
    def get_document_paths(folder_path: Path) -> List[Path]:
        return sorted(
            path for path in folder_path.iterdir()
            if path.is_file() and not path.name.startswith(".") and is_supported(path.name)
        )

    async def analyze_company(self, folder: str) -> CompanyBatchResult:
        start_time = time.time()
        company_name = extract_company_name(folder)
        document_paths = self.get_document_paths(self.data_path / folder)

        if not document_paths:
            logger.warning(f"No documents found for {company_name}")
            return CompanyBatchResult(
                company_name=company_name,
                folder=folder,
                status=STATUS_FAILED,
                error="No documents found",
                processing_time=round(time.time() - start_time, 2),
            )

        document_names = [path.name for path in document_paths]
        logger.info(f"Processing {len(document_paths)} document(s) for {company_name}")

        try:
            uploads = []
            for path in document_paths:
                data = await asyncio.to_thread(path.read_bytes)
                uploads.append(DocumentUpload(filename=path.name, data=data))

            report = await self.orchestrator.analyze(uploads)
        except (AnalysisError, OSError) as e:
            logger.error(f"Error analyzing {company_name}: {e}")
            return CompanyBatchResult(
                company_name=company_name,
                folder=folder,
                status=STATUS_FAILED,
                documents=document_names,
                error=str(e),
                processing_time=round(time.time() - start_time, 2),
            )

        return CompanyBatchResult(
            company_name=company_name,
            folder=folder,
            status=STATUS_SUCCESS,
            documents=document_names,
            overall_score=report.overall_score,
            decision=report.decision,
            sector_tag=report.sector_tag,
            processing_time=round(time.time() - start_time, 2),
            report=report,
        )

    async def analyze_folder(self, data_path: Optional[str] = None) -> BatchReport:
        """Analyze every company folder sequentially and build the batch report"""
        if data_path:
            self.data_path = Path(data_path).resolve()
        logger.info(f"Starting batch analysis of {self.data_path}")
        start_time = time.time()

        folders = self.scan_company_folders()
        logger.info(f"Found {len(folders)} company folders")

        results = []
        for index, folder in enumerate(folders):
            if index and self.company_delay:
                # Spread load on the LLM service
                await asyncio.sleep(self.company_delay)
            logger.info(f"Processing {folder} ({index + 1}/{len(folders)})")
            results.append(await self.analyze_company(folder))

        report = self.build_report(results, time.time() - start_time)
        logger.info(
            f"Batch analysis completed: {report.summary.successful_analyses} succeeded, "
            f"{report.summary.failed_analyses} failed"
        )
        return report

    def build_report(self, results: List[CompanyBatchResult], processing_time: float) -> BatchReport:
        successful = [result for result in results if result.status == STATUS_SUCCESS and result.report]

        return BatchReport(
            summary=BatchSummary(
                total_companies=len(results),
                successful_analyses=len(successful),
                failed_analyses=len(results) - len(successful),
                processing_time=round(processing_time, 2),
                analysis_date=datetime.now(timezone.utc).isoformat(),
            ),
            companies=results,
            insights=self.calculate_insights(successful),
            benchmarks=self.calculate_benchmarks(successful),
        )

    @staticmethod
    def calculate_insights(successful: List[CompanyBatchResult]) -> BatchInsights:
        strengths = [item for result in successful for item in result.report.narrative.key_strengths]
        weaknesses = [item for result in successful for item in result.report.narrative.key_weaknesses]

        ranked = sorted(successful, key=lambda result: result.report.overall_score, reverse=True)
        opportunities = [
            InvestmentOpportunity(
                company_name=result.company_name,
                score=result.report.overall_score,
                decision=result.report.decision,
                reasoning=result.report.narrative.reasoning,
            )
            for result in ranked[:TOP_OPPORTUNITIES]
        ]

        return BatchInsights(
            common_strengths=find_common_patterns(strengths),
            common_weaknesses=find_common_patterns(weaknesses),
            investment_opportunities=opportunities,
        )

    @staticmethod
    def calculate_benchmarks(successful: List[CompanyBatchResult]) -> BatchBenchmarks:
        reports = [result.report for result in successful]
        ranked = sorted(successful, key=lambda result: result.report.overall_score, reverse=True)

        risk_distribution: Dict[str, int] = {level: 0 for level in RISK_LEVELS}
        for report in reports:
            bucket = _risk_bucket(report.narrative.risk_analysis.level)
            if bucket:
                risk_distribution[bucket] += 1

        decision_distribution = {decision.value: 0 for decision in Decision}
        for report in reports:
            decision_distribution[report.decision.value] += 1

        return BatchBenchmarks(
            average_score=_average([report.overall_score for report in reports]),
            average_revenue=_average([report.company_profile.financials.current_revenue for report in reports]),
            average_growth_rate=_average([report.company_profile.financials.revenue_growth_rate for report in reports]),
            average_valuation=_average([report.company_profile.funding.valuation for report in reports]),
            top_performers=[result.company_name for result in ranked[:TOP_PERFORMERS]],
            decision_distribution=decision_distribution,
            risk_distribution=risk_distribution,
            sector_distribution=dict(Counter(report.sector_tag for report in reports)),
        )

    @staticmethod
    def save_report(report: BatchReport, output_path: Path) -> Path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(report.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
        logger.info(f"Batch report saved to {output_path}")
        return output_path
