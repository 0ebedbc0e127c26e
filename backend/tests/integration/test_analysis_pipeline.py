"""
Integration tests: full analysis pipeline with in-memory LLM and OCR services
"""

import copy
import json
from unittest.mock import patch

import pytest

from startup_analyst.core.errors import (
    LLMQuotaExceeded,
    NoUsableInput,
    ParseFailure,
    SchemaIncomplete,
    UpstreamQuotaExceeded,
)
from startup_analyst.models.analysis import Decision
from startup_analyst.models.documents import DocumentType, DocumentUpload
from startup_analyst.services.analysis_orchestrator import (
    AnalysisOrchestrator,
    AnalysisRun,
    AnalysisStage,
)

pytestmark = pytest.mark.integration


@pytest.fixture
def uploads():
    return [
        DocumentUpload(filename="MediScan_pitch.txt", data=b"MediScan pitch deck: AI radiology triage. " * 30),
        DocumentUpload(filename="financials.txt", data=b"ARR $1.2M, 150% growth, burn $80k/month."),
        DocumentUpload(filename="founders.docx", data=b"this is not a real docx file"),
    ]


class TestAnalysisPipeline:
    """End-to-end orchestration"""

    @pytest.mark.asyncio
    async def test_full_analysis_with_one_corrupted_document(self, fake_llm, fake_ocr, uploads, llm_responses):
        fake_llm.queue(*llm_responses)
        orchestrator = AnalysisOrchestrator(fake_llm, fake_ocr)

        report = await orchestrator.analyze(uploads)

        assert report.documents_processed == 2
        assert [summary.filename for summary in report.document_summaries] == ["MediScan_pitch.txt", "financials.txt"]
        assert report.document_summaries[0].type == DocumentType.PITCH_DECK
        assert len(report.failed_documents) == 1
        assert report.failed_documents[0].filename == "founders.docx"
        assert report.failed_documents[0].error_code == "extraction_failed"

        assert report.company_profile.company_name == "MediScan"
        assert report.sector_tag == "HealthTech"
        assert report.sector_confidence == 0.9
        # Recomputed from factor points; the model said "Maybe"
        assert report.overall_score == 72
        assert report.decision == Decision.STRONG_INVEST
        assert len(report.category_breakdowns) == 6
        assert report.narrative.key_strengths == ["Experienced team", "Regulatory approval"]
        assert report.narrative.confidence == 80
        assert report.processing_metadata.documents_processed == 2
        assert len(report.processing_metadata.analysis_id) == 32

        consolidation_prompt, classification_prompt, scoring_prompt = fake_llm.prompts
        assert "=== Document: MediScan_pitch.txt (Type: pitch_deck) ===" in consolidation_prompt
        assert "founders.docx" not in consolidation_prompt
        assert "MediScan" in classification_prompt
        assert "SECTOR-SPECIFIC BENCHMARKS: HealthTech" in scoring_prompt

    @pytest.mark.asyncio
    async def test_report_serializes_to_camel_case(self, fake_llm, fake_ocr, uploads, llm_responses):
        fake_llm.queue(*llm_responses)
        orchestrator = AnalysisOrchestrator(fake_llm, fake_ocr)

        report = await orchestrator.analyze(uploads[:1])
        data = json.loads(report.model_dump_json(by_alias=True))

        assert data["sectorTag"] == "HealthTech"
        assert data["overallScore"] == 72
        assert data["companyProfile"]["companyOverview"]["name"] == "MediScan"
        assert data["categoryBreakdowns"][0]["factors"]["founderExperience"]["maxPoints"] == 8
        assert data["failedDocuments"] == []

    @pytest.mark.asyncio
    async def test_damaged_docx_does_not_fail_request(self, fake_llm, fake_ocr, uploads, corrupted_docx,
                                                       llm_responses):
        uploads[2] = DocumentUpload(filename="founders.docx", data=corrupted_docx)
        fake_llm.queue(*llm_responses)
        orchestrator = AnalysisOrchestrator(fake_llm, fake_ocr)

        report = await orchestrator.analyze(uploads)

        assert report.documents_processed == 2
        assert report.failed_documents[0].filename == "founders.docx"
        assert report.failed_documents[0].error_code == "extraction_failed"

    @pytest.mark.asyncio
    async def test_unexpected_extractor_error_is_recorded(self, fake_llm, fake_ocr, uploads, llm_responses):
        fake_llm.queue(*llm_responses)
        orchestrator = AnalysisOrchestrator(fake_llm, fake_ocr)
        real_process = orchestrator.extractor.process

        async def flaky_process(upload):
            if upload.filename == "financials.txt":
                raise RuntimeError("decoder crashed")
            return await real_process(upload)

        with patch.object(orchestrator.extractor, "process", side_effect=flaky_process):
            report = await orchestrator.analyze(uploads)

        assert report.documents_processed == 1
        failed = {failure.filename: failure.error_code for failure in report.failed_documents}
        assert failed == {"financials.txt": "extraction_failed", "founders.docx": "extraction_failed"}

    @pytest.mark.asyncio
    async def test_extraction_concurrency_is_bounded(self, fake_llm, ocr_factory):
        ocr = ocr_factory(text="Whiteboard photo text " * 10, delay=0.01)
        orchestrator = AnalysisOrchestrator(fake_llm, ocr, extraction_concurrency=2)
        uploads = [DocumentUpload(filename=f"slide{index}.png", data=b"\x89PNG") for index in range(6)]

        documents, failures = await orchestrator.extract_documents(uploads)

        assert len(documents) == 6
        assert failures == []
        assert len(ocr.calls) == 6
        assert ocr.peak_in_flight == 2

    @pytest.mark.asyncio
    async def test_no_usable_documents(self, fake_llm, fake_ocr):
        orchestrator = AnalysisOrchestrator(fake_llm, fake_ocr)
        uploads = [
            DocumentUpload(filename="empty.txt", data=b""),
            DocumentUpload(filename="virus.exe", data=b"MZ"),
        ]

        with pytest.raises(NoUsableInput) as exc_info:
            await orchestrator.analyze(uploads)

        error = exc_info.value
        assert error.stage == "extracting"
        assert error.status_code == 422
        assert [failure["errorCode"] for failure in error.details()["failedDocuments"]] == [
            "empty_result", "unsupported_format",
        ]
        assert fake_llm.prompts == []

    @pytest.mark.asyncio
    async def test_all_documents_hit_ocr_quota(self, fake_llm, ocr_factory):
        ocr = ocr_factory(error=UpstreamQuotaExceeded("OCR quota exceeded"))
        orchestrator = AnalysisOrchestrator(fake_llm, ocr)

        with pytest.raises(NoUsableInput) as exc_info:
            await orchestrator.analyze([
                DocumentUpload(filename="scan1.png", data=b"\x89PNG"),
                DocumentUpload(filename="scan2.jpg", data=b"\xff\xd8"),
            ])

        assert exc_info.value.status_code == 429
        assert [failure.filename for failure in exc_info.value.failures] == ["scan1.png", "scan2.jpg"]

    @pytest.mark.asyncio
    async def test_consolidation_parse_failure(self, fake_llm, fake_ocr, uploads):
        fake_llm.queue("I am unable to summarize these documents.")
        orchestrator = AnalysisOrchestrator(fake_llm, fake_ocr)

        with pytest.raises(ParseFailure) as exc_info:
            await orchestrator.analyze(uploads)

        assert exc_info.value.stage == "consolidating"
        assert exc_info.value.snippet == "I am unable to summarize these documents."

    @pytest.mark.asyncio
    async def test_classification_llm_failure(self, fake_llm, fake_ocr, uploads, llm_responses):
        fake_llm.queue(llm_responses[0], LLMQuotaExceeded("LLM quota exceeded"))
        orchestrator = AnalysisOrchestrator(fake_llm, fake_ocr)

        with pytest.raises(LLMQuotaExceeded) as exc_info:
            await orchestrator.analyze(uploads)

        assert exc_info.value.stage == "classifying"

    @pytest.mark.asyncio
    async def test_scoring_missing_categories(self, fake_llm, fake_ocr, uploads, llm_responses, sample_analysis):
        incomplete = copy.deepcopy(sample_analysis)
        del incomplete["tractionAnalysis"]
        fake_llm.queue(llm_responses[0], llm_responses[1], json.dumps(incomplete))
        orchestrator = AnalysisOrchestrator(fake_llm, fake_ocr)

        with pytest.raises(SchemaIncomplete) as exc_info:
            await orchestrator.analyze(uploads)

        assert exc_info.value.stage == "scoring"
        assert exc_info.value.missing_keys == ["tractionAnalysis"]

    @pytest.mark.asyncio
    async def test_truncated_scoring_response_is_repaired(self, fake_llm, fake_ocr, uploads, llm_responses):
        # Cut inside the trailing executiveSummary string
        scoring = llm_responses[2]
        truncated = scoring[:scoring.index('"executiveSummary"') + len('"executiveSummary": "MediScan tri')]
        fake_llm.queue(llm_responses[0], llm_responses[1], truncated)
        orchestrator = AnalysisOrchestrator(fake_llm, fake_ocr)

        report = await orchestrator.analyze(uploads)

        assert report.overall_score == 72
        assert report.narrative.executive_summary == ""


class TestProfileScoring:
    """Scoring an already consolidated profile"""

    @pytest.mark.asyncio
    async def test_manual_sector(self, fake_llm, fake_ocr, sample_profile, sample_analysis):
        fake_llm.queue(json.dumps(sample_analysis))
        orchestrator = AnalysisOrchestrator(fake_llm, fake_ocr)
        run = AnalysisRun()

        assessment = await orchestrator.score_profile(sample_profile, sector="medtech", run=run)

        assert assessment.sector_tag == "HealthTech"
        assert assessment.sector_confidence == 1.0
        assert assessment.overall_score == 72
        assert len(fake_llm.prompts) == 1
        assert run.stage == AnalysisStage.SCORING

    @pytest.mark.asyncio
    async def test_run_records_failed_stage(self, fake_llm, fake_ocr, sample_profile):
        fake_llm.queue("not json")
        orchestrator = AnalysisOrchestrator(fake_llm, fake_ocr)
        run = AnalysisRun()

        with pytest.raises(ParseFailure):
            await orchestrator.score_profile(sample_profile, run=run)

        assert run.stage == AnalysisStage.FAILED
        assert run.failed_stage == AnalysisStage.CLASSIFYING
