"""
Analysis Orchestrator

Runs one company's documents through the pipeline:

    extracting -> consolidating -> classifying -> scoring -> done | failed

Extraction failures are per document: the document is dropped and recorded
while the rest continue. Every later failure is fatal for the request and is
raised as a typed AnalysisError tagged with the stage it happened in. No
placeholder analysis is ever produced.
"""

import asyncio
import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..core.config import settings
from ..core.errors import AnalysisError, ExtractionError, NoUsableInput
from ..core.logging_config import log_llm_result
from ..models.analysis import (
    AnalysisReport,
    Narrative,
    ProcessingMetadata,
    ProfileAssessment,
)
from ..models.company_profile import CompanyProfile
from ..models.documents import DocumentUpload, FailedDocument, ProcessedDocument
from ..utils.json_repair import parse_llm_json
from ..utils.prompt_templates import render_prompt
from .document_consolidator import DocumentConsolidator
from .llm_client import LLMClient
from .ocr_client import OCRClient
from .scoring import score_analysis
from .sector_benchmarks import format_benchmark_guidance, get_sector_benchmark
from .sector_classifier import SectorClassifier
from .text_extraction import TextExtractor

logger = logging.getLogger(__name__)


class AnalysisStage(str, Enum):
    PENDING = "pending"
    EXTRACTING = "extracting"
    CONSOLIDATING = "consolidating"
    CLASSIFYING = "classifying"
    SCORING = "scoring"
    DONE = "done"
    FAILED = "failed"


@dataclass
class AnalysisRun:
    """Request-scoped progress of one analysis"""
    analysis_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: float = field(default_factory=time.time)
    stage: AnalysisStage = AnalysisStage.PENDING
    failed_stage: Optional[AnalysisStage] = None

    def advance(self, stage: AnalysisStage):
        logger.info(f"Analysis {self.analysis_id}: starting stage '{stage.value}'")
        self.stage = stage

    def fail(self, error: AnalysisError):
        self.failed_stage = self.stage
        logger.error(f"Analysis {self.analysis_id} failed at stage '{self.stage.value}': {error.message}")
        self.stage = AnalysisStage.FAILED

    @property
    def elapsed(self) -> float:
        return round(time.time() - self.started_at, 2)


@contextmanager
def pipeline_stage(run: AnalysisRun, stage: AnalysisStage):
    """Enter a stage; typed failures get the stage attached and fail the run"""
    run.advance(stage)
    try:
        yield
    except AnalysisError as e:
        if e.stage is None:
            e.stage = stage.value
        run.fail(e)
        raise


class AnalysisOrchestrator:
    """Sequences extraction, consolidation, classification and scoring"""

    def __init__(
        self,
        llm_client: LLMClient,
        ocr_client: OCRClient,
        extraction_concurrency: Optional[int] = None,
        scoring_max_tokens: Optional[int] = None,
        scoring_temperature: Optional[float] = None,
    ):
        self.llm_client = llm_client
        self.extractor = TextExtractor(ocr_client)
        self.consolidator = DocumentConsolidator(llm_client)
        self.classifier = SectorClassifier(llm_client)
        self.extraction_concurrency = extraction_concurrency or settings.EXTRACTION_CONCURRENCY
        self.scoring_max_tokens = scoring_max_tokens or settings.LLM_MAX_TOKENS
        self.scoring_temperature = (
            scoring_temperature if scoring_temperature is not None else settings.LLM_TEMPERATURE
        )

    async def extract_documents(
        self, uploads: Sequence[DocumentUpload]
    ) -> Tuple[List[ProcessedDocument], List[ExtractionError]]:
        """Extract all uploads concurrently; failures are collected, not raised"""
        semaphore = asyncio.Semaphore(self.extraction_concurrency)

        async def _process(upload: DocumentUpload):
            async with semaphore:
                try:
                    return await self.extractor.process(upload)
                except ExtractionError as e:
                    e.filename = e.filename or upload.filename
                    e.stage = AnalysisStage.EXTRACTING.value
                    logger.warning(f"Skipping {upload.filename}: {e.error_code}: {e.message}")
                    return e
                except Exception as e:
                    logger.exception(f"Unexpected error extracting {upload.filename}")
                    return ExtractionError(
                        f"Unexpected extraction error: {e}",
                        upload.filename,
                        stage=AnalysisStage.EXTRACTING.value,
                    )

        results = await asyncio.gather(*(_process(upload) for upload in uploads))

        documents = [result for result in results if isinstance(result, ProcessedDocument)]
        failures = [result for result in results if isinstance(result, ExtractionError)]
        logger.info(f"Extraction finished: {len(documents)} succeeded, {len(failures)} failed")
        return documents, failures

    def _create_scoring_prompt(self, profile: CompanyProfile, sector: str) -> str:
        guidance = format_benchmark_guidance(get_sector_benchmark(sector))
        return render_prompt(
            "scoring",
            sector=sector,
            profile=profile.to_prompt_json(),
            benchmark_guidance=guidance,
        )

    async def _request_scoring(self, profile: CompanyProfile, sector: str) -> Dict[str, Any]:
        prompt = self._create_scoring_prompt(profile, sector)
        response = await self.llm_client.complete(
            prompt, max_tokens=self.scoring_max_tokens, temperature=self.scoring_temperature
        )
        log_llm_result(logger, "Scoring response", response)
        return parse_llm_json(response, context="Investment scoring")

    async def score_profile(
        self,
        profile: CompanyProfile,
        sector: Optional[str] = None,
        run: Optional[AnalysisRun] = None,
    ) -> ProfileAssessment:
        """Classify (unless a sector is given) and score an already consolidated profile"""
        run = run or AnalysisRun()

        with pipeline_stage(run, AnalysisStage.CLASSIFYING):
            classification = await self.classifier.classify(profile, manual_sector=sector)

        with pipeline_stage(run, AnalysisStage.SCORING):
            analysis = await self._request_scoring(profile, classification.sector)
            scores = score_analysis(analysis)
            narrative = Narrative.from_analysis(analysis)

        logger.info(
            f"Scored '{profile.company_name}': {scores.overall_score}/100 -> {scores.decision.value} "
            f"(sector {classification.sector})"
        )
        return ProfileAssessment(
            sector_tag=classification.sector,
            sector_confidence=classification.confidence,
            category_breakdowns=scores.categories,
            overall_score=scores.overall_score,
            decision=scores.decision,
            narrative=narrative,
        )

    async def analyze(self, uploads: Sequence[DocumentUpload]) -> AnalysisReport:
        """
        Full pipeline for one company's documents.

        Raises:
            NoUsableInput: zero documents yielded text
            AnalysisError: any consolidation, classification or scoring failure
        """
        run = AnalysisRun()
        logger.info(f"Analysis {run.analysis_id}: {len(uploads)} document(s) received")

        with pipeline_stage(run, AnalysisStage.EXTRACTING):
            documents, failures = await self.extract_documents(uploads)
            if not documents:
                raise NoUsableInput(
                    f"None of the {len(uploads)} document(s) yielded any text",
                    failures=failures,
                )

        with pipeline_stage(run, AnalysisStage.CONSOLIDATING):
            profile = await self.consolidator.consolidate(documents)

        assessment = await self.score_profile(profile, run=run)

        run.advance(AnalysisStage.DONE)
        report = AnalysisReport(
            company_profile=profile,
            sector_tag=assessment.sector_tag,
            sector_confidence=assessment.sector_confidence,
            category_breakdowns=assessment.category_breakdowns,
            overall_score=assessment.overall_score,
            decision=assessment.decision,
            narrative=assessment.narrative,
            documents_processed=len(documents),
            document_summaries=[document.summary() for document in documents],
            failed_documents=[
                FailedDocument(filename=failure.filename, error_code=failure.error_code, message=failure.message)
                for failure in failures
            ],
            processing_metadata=ProcessingMetadata(
                analysis_id=run.analysis_id,
                timestamp=datetime.now(timezone.utc).isoformat(),
                processing_time=run.elapsed,
                documents_processed=len(documents),
                total_text_extracted=sum(len(document.raw_text) for document in documents),
            ),
        )
        logger.info(f"Analysis {run.analysis_id} completed in {run.elapsed}s")
        return report
