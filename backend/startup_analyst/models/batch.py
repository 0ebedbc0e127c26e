"""
Batch analysis report models
"""

from typing import Dict, List, Optional

from pydantic import Field

from .analysis import AnalysisReport, Decision
from .base import CamelModel


class CompanyBatchResult(CamelModel):
    company_name: str
    folder: str
    status: str  # "success" | "failed"
    documents: List[str] = Field(default_factory=list)
    overall_score: Optional[int] = None
    decision: Optional[Decision] = None
    sector_tag: Optional[str] = None
    error: Optional[str] = None
    processing_time: float = 0.0
    report: Optional[AnalysisReport] = None


class BatchSummary(CamelModel):
    total_companies: int
    successful_analyses: int
    failed_analyses: int
    processing_time: float
    analysis_date: str


class InvestmentOpportunity(CamelModel):
    company_name: str
    score: int
    decision: Decision
    reasoning: List[str] = Field(default_factory=list)


class BatchInsights(CamelModel):
    common_strengths: List[str] = Field(default_factory=list)
    common_weaknesses: List[str] = Field(default_factory=list)
    investment_opportunities: List[InvestmentOpportunity] = Field(default_factory=list)


class BatchBenchmarks(CamelModel):
    average_score: float = 0.0
    average_revenue: float = 0.0
    average_growth_rate: float = 0.0
    average_valuation: float = 0.0
    top_performers: List[str] = Field(default_factory=list)
    decision_distribution: Dict[str, int] = Field(default_factory=dict)
    risk_distribution: Dict[str, int] = Field(default_factory=dict)
    sector_distribution: Dict[str, int] = Field(default_factory=dict)


class BatchReport(CamelModel):
    summary: BatchSummary
    companies: List[CompanyBatchResult]
    insights: BatchInsights
    benchmarks: BatchBenchmarks
