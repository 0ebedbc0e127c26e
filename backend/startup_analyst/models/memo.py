"""
InvestmentMemo: an investment-committee memo written from a finished analysis.

Every text section is LLM-generated from the report; the decision is always
the report's own score-derived decision.
"""

from typing import List

from pydantic import Field

from .analysis import Decision
from .base import CamelModel, LenientModel, LenientStr, LenientStrList


class MemoCompanyOverview(LenientModel):
    mission: LenientStr = ""
    problem: LenientStr = ""
    solution: LenientStr = ""
    value_proposition: LenientStr = ""


class MemoMarketAnalysis(LenientModel):
    market_size: LenientStr = ""
    market_dynamics: LenientStr = ""
    competitive_landscape: LenientStr = ""
    market_opportunity: LenientStr = ""


class MemoBusinessModel(LenientModel):
    revenue_model: LenientStr = ""
    unit_economics: LenientStr = ""
    scalability: LenientStr = ""
    defensibility: LenientStr = ""


class MemoTeamAssessment(LenientModel):
    founder_background: LenientStr = ""
    team_strengths: LenientStr = ""
    key_hires: LenientStr = ""
    advisors: LenientStr = ""


class MemoTractionMetrics(LenientModel):
    current_traction: LenientStr = ""
    growth_trajectory: LenientStr = ""
    key_milestones: LenientStr = ""
    customer_evidence: LenientStr = ""


class MemoFinancialAnalysis(LenientModel):
    current_financials: LenientStr = ""
    projections: LenientStr = ""
    funding_history: LenientStr = ""
    use_of_funds: LenientStr = ""


class MemoRiskAssessment(LenientModel):
    key_risks: LenientStrList = Field(default_factory=list)
    mitigation_strategies: LenientStrList = Field(default_factory=list)
    red_flags: LenientStrList = Field(default_factory=list)


class MemoInvestmentThesis(LenientModel):
    why_now: LenientStr = ""
    why_this: LenientStr = ""
    expected_return: LenientStr = ""


class MemoExplanation(LenientModel):
    reasoning: LenientStr = ""
    next_steps: LenientStrList = Field(default_factory=list)
    timeline: LenientStr = ""


class MemoRecommendation(CamelModel):
    decision: Decision
    overall_score: int = Field(ge=0, le=100)
    reasoning: str = ""
    next_steps: List[str] = Field(default_factory=list)
    timeline: str = ""


class InvestmentMemo(CamelModel):
    company_name: str
    sector: str
    executive_summary: str
    investment_highlights: List[str]
    company_overview: MemoCompanyOverview
    market_analysis: MemoMarketAnalysis
    business_model: MemoBusinessModel
    team_assessment: MemoTeamAssessment
    traction_metrics: MemoTractionMetrics
    financial_analysis: MemoFinancialAnalysis
    risk_assessment: MemoRiskAssessment
    investment_thesis: MemoInvestmentThesis
    recommendation: MemoRecommendation
