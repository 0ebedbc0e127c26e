"""
Analysis result models: scored categories, narrative and the final report.
"""

from enum import Enum
from typing import Any, Dict, List

from pydantic import ConfigDict, Field

from .base import (
    CamelModel,
    LenientModel,
    LenientStr,
    LenientStrList,
    coerce_number,
)
from .company_profile import CompanyProfile
from .documents import DocumentSummary, FailedDocument


class Decision(str, Enum):
    PASS = "Pass"
    MAYBE = "Maybe"
    INVEST = "Invest"
    STRONG_INVEST = "Strong Invest"


class FactorScore(CamelModel):
    points: float
    max_points: int
    assessment: str = ""


class CategoryResult(CamelModel):
    name: str
    label: str
    score: float
    max_score: int
    percentage: float
    weight: float
    summary: str = ""
    factors: Dict[str, FactorScore] = Field(default_factory=dict)


class ScoreSummary(CamelModel):
    """Deterministic scoring output"""
    categories: List[CategoryResult]
    overall_score: int
    decision: Decision


class SectorClassification(CamelModel):
    sector: str
    confidence: float = 0.0
    reasoning: str = ""
    raw_sector: str = ""
    fallback_applied: bool = False


class RiskAnalysis(LenientModel):
    level: LenientStr = ""
    major_risks: LenientStrList = Field(default_factory=list)
    mitigation: LenientStrList = Field(default_factory=list)


class Narrative(LenientModel):
    executive_summary: LenientStr = ""
    investment_thesis: LenientStr = ""
    reasoning: LenientStrList = Field(default_factory=list)
    key_strengths: LenientStrList = Field(default_factory=list)
    key_weaknesses: LenientStrList = Field(default_factory=list)
    next_steps: LenientStrList = Field(default_factory=list)
    risk_analysis: RiskAnalysis = Field(default_factory=RiskAnalysis)
    confidence: int = Field(default=0, ge=0, le=100)

    @classmethod
    def from_analysis(cls, analysis: Dict[str, Any]) -> "Narrative":
        """Collect the free-text parts of a scoring response"""
        recommendation = analysis.get("recommendation")
        if not isinstance(recommendation, dict):
            recommendation = {}

        # Models answer with either 0-1 or 0-100
        confidence = coerce_number(analysis.get("confidence"))
        if 0 < confidence <= 1:
            confidence *= 100
        confidence = max(0, min(100, int(round(confidence))))

        return cls.model_validate({
            "executiveSummary": analysis.get("executiveSummary"),
            "investmentThesis": recommendation.get("investmentThesis"),
            "reasoning": recommendation.get("reasoning"),
            "keyStrengths": recommendation.get("keyStrengths"),
            "keyWeaknesses": recommendation.get("keyWeaknesses"),
            "nextSteps": recommendation.get("nextSteps"),
            "riskAnalysis": analysis.get("riskAnalysis"),
            "confidence": confidence,
        })


class Competitor(LenientModel):
    name: LenientStr = ""
    funding_raised: LenientStr = ""
    valuation: LenientStr = ""
    revenue_growth: LenientStr = ""
    employees: LenientStr = ""
    key_highlight: LenientStr = ""
    data_quality: LenientStr = ""


class ProcessingMetadata(CamelModel):
    analysis_id: str
    timestamp: str
    processing_time: float
    documents_processed: int
    total_text_extracted: int


class AnalysisReport(CamelModel):
    model_config = ConfigDict(frozen=True)

    company_profile: CompanyProfile
    sector_tag: str
    sector_confidence: float = 0.0
    category_breakdowns: List[CategoryResult]
    overall_score: int = Field(ge=0, le=100)
    decision: Decision
    narrative: Narrative
    documents_processed: int
    document_summaries: List[DocumentSummary] = Field(default_factory=list)
    failed_documents: List[FailedDocument] = Field(default_factory=list)
    processing_metadata: ProcessingMetadata


class ProfileAssessment(CamelModel):
    """Classification, recomputed scores and narrative for one company profile"""
    sector_tag: str
    sector_confidence: float = 0.0
    category_breakdowns: List[CategoryResult]
    overall_score: int = Field(ge=0, le=100)
    decision: Decision
    narrative: Narrative
