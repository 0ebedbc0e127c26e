import asyncio
import copy
import json
import zipfile
from io import BytesIO
from typing import List, Optional, Union

import docx
import pptx
import pytest
from pptx.util import Inches

from startup_analyst.models.analysis import (
    AnalysisReport,
    Decision,
    Narrative,
    ProcessingMetadata,
)
from startup_analyst.models.company_profile import CompanyProfile
from startup_analyst.services.llm_client import LLMClient
from startup_analyst.services.ocr_client import OCRClient
from startup_analyst.services.scoring import score_analysis


class FakeLLMClient(LLMClient):
    """Returns queued responses in order; queued exceptions are raised instead."""

    def __init__(self, responses: Optional[List[Union[str, Exception]]] = None, available: bool = True):
        self.responses = list(responses or [])
        self.prompts: List[str] = []
        self.calls: List[dict] = []
        self.available = available

    def queue(self, *responses: Union[str, Exception]):
        self.responses.extend(responses)

    async def complete(self, prompt: str, max_tokens: int = 4096, temperature: float = 0.3) -> str:
        self.prompts.append(prompt)
        self.calls.append({"max_tokens": max_tokens, "temperature": temperature})
        if not self.responses:
            raise AssertionError("FakeLLMClient received an unexpected completion call")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def is_available(self) -> bool:
        return self.available


class FakeOCRClient(OCRClient):
    """OCR stand-in: fixed text, or an exception to raise. Tracks peak concurrent calls."""

    def __init__(self, text: str = "", error: Optional[Exception] = None, delay: float = 0):
        self.text = text
        self.error = error
        self.delay = delay
        self.calls: List[str] = []
        self.in_flight = 0
        self.peak_in_flight = 0

    async def extract_text(self, data: bytes, filename: str) -> str:
        self.calls.append(filename)
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error:
                # Fresh instance per call, the orchestrator tags it with the filename
                raise copy.copy(self.error)
            return self.text
        finally:
            self.in_flight -= 1


@pytest.fixture
def fake_llm():
    return FakeLLMClient()


@pytest.fixture
def fake_ocr():
    return FakeOCRClient(text="Scanned page text " * 20)


@pytest.fixture
def ocr_factory():
    """FakeOCRClient constructor for tests that need a specific text or error"""
    return FakeOCRClient


@pytest.fixture
def sample_profile_data():
    """Consolidation output with the usual LLM quirks (strings for numbers, nulls)."""
    return {
        "companyOverview": {
            "name": "MediScan",
            "industry": "Med-Tech",
            "stage": "Seed",
            "location": "Berlin",
            "description": "AI assisted radiology triage",
            "foundedYear": "2021",
        },
        "founders": [
            {"name": "Ada Lind", "role": "CEO", "background": "Radiologist"},
            {"name": "Tom Berg", "role": "CTO", "background": None},
        ],
        "financials": {
            "currentRevenue": "$1.2M",
            "revenueGrowthRate": 150,
            "employees": "12",
            "burnRate": None,
        },
        "market": {"tam": "4.5B", "competitors": ["RadAI", {"name": "ScanCo"}]},
        "traction": {"customers": 14, "milestones": [{"description": "CE mark", "achieved": "yes"}]},
        "funding": {"seeking": 2000000, "valuation": "8000000"},
        "risks": None,
    }


@pytest.fixture
def sample_profile(sample_profile_data):
    return CompanyProfile.model_validate(sample_profile_data)


@pytest.fixture
def sample_analysis():
    """Scoring response whose factor points sum to 72 weighted points."""
    return {
        "founderAnalysis": {
            "score": 18,
            "breakdown": {
                "founderExperience": {"points": 6, "assessment": "Clinical founders"},
                "teamComposition": {"points": 5, "assessment": "Balanced"},
                "advisoryBoard": {"points": 2, "assessment": "Two advisors"},
                "trackRecord": {"points": 2, "assessment": "First exit pending"},
            },
            "summary": "Strong clinical team",
        },
        "marketAnalysis": {
            "score": 16,
            "breakdown": {
                "marketSize": {"points": 7, "assessment": "Large"},
                "marketTiming": {"points": 5, "assessment": "Good"},
                "competitionLevel": {"points": 4, "assessment": "Crowded"},
            },
            "summary": "Big market",
        },
        "productAnalysis": {
            "score": 16,
            "breakdown": {
                "innovationLevel": {"points": 6, "assessment": "Novel"},
                "productMarketFit": {"points": 5, "assessment": "Pilots"},
                "scalability": {"points": 5, "assessment": "Cloud"},
            },
            "summary": "Solid product",
        },
        "tractionAnalysis": {
            "score": 12,
            "breakdown": {
                "customerGrowth": {"points": 5, "assessment": "14 clinics"},
                "revenueGrowth": {"points": 4, "assessment": "150% YoY"},
                "keyPartnerships": {"points": 3, "assessment": "One hospital group"},
            },
            "summary": "Early traction",
        },
        "financialAnalysis": {
            "score": 10,
            "breakdown": {
                "unitEconomics": {"points": 4, "assessment": "Positive"},
                "burnRate": {"points": 3, "assessment": "Moderate"},
                "revenueModel": {"points": 3, "assessment": "SaaS"},
            },
            "summary": "Reasonable",
        },
        "competitiveAnalysis": {
            "score": 3,
            "breakdown": {
                "uniqueValueProp": {"points": 1, "assessment": "Speed"},
                "defensibility": {"points": 2, "assessment": "Data moat"},
            },
            "summary": "Some moat",
        },
        "recommendation": {
            "decision": "Maybe",
            "investmentThesis": "Clinical AI with early revenue",
            "reasoning": ["Experienced team", "Growing market"],
            "keyStrengths": ["Experienced team", "Regulatory approval"],
            "keyWeaknesses": ["Small sales team"],
            "nextSteps": ["Reference calls"],
        },
        "riskAnalysis": {"level": "Medium", "majorRisks": ["Reimbursement"], "mitigation": ["Payer pilots"]},
        "executiveSummary": "MediScan triages radiology scans.",
        "confidence": 0.8,
    }


@pytest.fixture
def llm_responses(sample_profile_data, sample_analysis):
    """Consolidation, classification and scoring responses for one full analysis."""
    return [
        "```json\n" + json.dumps(sample_profile_data) + "\n```",
        '{"sector": "Med-Tech", "confidence": 0.9, "reasoning": "Medical imaging software"}',
        "Here is my analysis:\n" + json.dumps(sample_analysis),
    ]


@pytest.fixture
def report_factory(sample_profile, sample_analysis):
    """Build AnalysisReport objects with chosen score, strengths and risk level."""

    def _build(
        score: int = 72,
        strengths: Optional[List[str]] = None,
        weaknesses: Optional[List[str]] = None,
        risk_level: str = "Medium",
        sector: str = "HealthTech",
        profile: Optional[CompanyProfile] = None,
    ) -> AnalysisReport:
        scores = score_analysis(sample_analysis)
        narrative = Narrative.model_validate({
            "executiveSummary": "Summary",
            "reasoning": [f"Scored {score}"],
            "keyStrengths": strengths or [],
            "keyWeaknesses": weaknesses or [],
            "riskAnalysis": {"level": risk_level},
            "confidence": 80,
        })
        return AnalysisReport(
            company_profile=profile or sample_profile,
            sector_tag=sector,
            sector_confidence=0.9,
            category_breakdowns=scores.categories,
            overall_score=score,
            decision=Decision.STRONG_INVEST if score >= 70 else Decision.PASS,
            narrative=narrative,
            documents_processed=1,
            processing_metadata=ProcessingMetadata(
                analysis_id="test",
                timestamp="2025-01-01T00:00:00+00:00",
                processing_time=0.1,
                documents_processed=1,
                total_text_extracted=100,
            ),
        )

    return _build

def build_docx(paragraphs, table_rows=()):
    document = docx.Document()
    for text in paragraphs:
        document.add_paragraph(text)
    if table_rows:
        table = document.add_table(rows=len(table_rows), cols=len(table_rows[0]))
        for row, values in zip(table.rows, table_rows):
            for cell, value in zip(row.cells, values):
                cell.text = value
    buffer = BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def build_pptx(slides):
    presentation = pptx.Presentation()
    layout = presentation.slide_layouts[6]  # blank
    for lines in slides:
        slide = presentation.slides.add_slide(layout)
        if lines:
            box = slide.shapes.add_textbox(Inches(1), Inches(1), Inches(6), Inches(4))
            box.text_frame.text = "\n".join(lines)
    buffer = BytesIO()
    presentation.save(buffer)
    return buffer.getvalue()


def corrupt_zip_member(data: bytes, member: str) -> bytes:
    """Flip the compressed bytes of one archive member, keeping the zip directory intact"""
    with zipfile.ZipFile(BytesIO(data)) as archive:
        info = archive.getinfo(member)
    offset = info.header_offset
    name_length = int.from_bytes(data[offset + 26:offset + 28], "little")
    extra_length = int.from_bytes(data[offset + 28:offset + 30], "little")
    start = offset + 30 + name_length + extra_length
    corrupted = bytearray(data)
    for index in range(start, start + min(info.compress_size, 64)):
        corrupted[index] ^= 0xFF
    return bytes(corrupted)


@pytest.fixture
def docx_factory():
    return build_docx


@pytest.fixture
def pptx_factory():
    return build_pptx


@pytest.fixture
def corrupted_docx():
    """A structurally valid .docx whose document body no longer inflates"""
    data = build_docx(["Founding team: Ada Lovelace, CEO"])
    return corrupt_zip_member(data, "word/document.xml")



# Configure pytest markers
def pytest_configure(config):
    """Configure pytest settings."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers",
        "unit: marks tests as unit tests"
    )
