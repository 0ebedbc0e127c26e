"""
Investment Memo Generator

Writes an investment-committee memo from a finished AnalysisReport. Each memo
section is its own LLM call; sections run concurrently under a semaphore and
any section failure fails the whole memo. The recommendation keeps the
report's decision and score; the model only explains it.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Type

from ..core.config import settings
from ..core.errors import ParseFailure, SchemaIncomplete
from ..core.logging_config import log_llm_result
from ..models.analysis import AnalysisReport, Competitor
from ..models.base import LenientModel
from ..models.memo import (
    InvestmentMemo,
    MemoBusinessModel,
    MemoCompanyOverview,
    MemoExplanation,
    MemoFinancialAnalysis,
    MemoInvestmentThesis,
    MemoMarketAnalysis,
    MemoRecommendation,
    MemoRiskAssessment,
    MemoTeamAssessment,
    MemoTractionMetrics,
)
from ..utils.json_repair import EXPECT_ARRAY, parse_llm_json
from ..utils.prompt_templates import render_prompt
from .llm_client import LLMClient

logger = logging.getLogger(__name__)

MAX_HIGHLIGHTS = 7


def _dump(value: Any) -> Any:
    if isinstance(value, list):
        return [_dump(item) for item in value]
    if hasattr(value, "model_dump"):
        return value.model_dump(by_alias=True)
    return value


@dataclass(frozen=True)
class MemoSection:
    key: str
    title: str
    model: Type[LenientModel]
    fields: Dict[str, Any]
    guidance: str
    source: Callable[[AnalysisReport, Sequence[Competitor]], Dict[str, Any]]

    def render_fields(self) -> str:
        return json.dumps(self.fields, indent=2)


MEMO_SECTIONS = (
    MemoSection(
        key="company_overview",
        title="Company Overview",
        model=MemoCompanyOverview,
        fields={
            "mission": "The company's mission",
            "problem": "The problem they are solving",
            "solution": "How the product or service solves it",
            "valueProposition": "Unique value proposition and competitive advantages",
        },
        guidance="Write 2-3 sentences for each field.",
        source=lambda report, competitors: {
            "companyOverview": report.company_profile.company_overview,
            "product": report.company_profile.product,
            "businessModel": report.company_profile.business_model,
        },
    ),
    MemoSection(
        key="market_analysis",
        title="Market Analysis",
        model=MemoMarketAnalysis,
        fields={
            "marketSize": "TAM/SAM/SOM with specific numbers",
            "marketDynamics": "Key trends and growth drivers",
            "competitiveLandscape": "Competitive dynamics and key players",
            "marketOpportunity": "Why now and what the opportunity is",
        },
        guidance="Write 3-4 sentences for each field with specific data points.",
        source=lambda report, competitors: {
            "market": report.company_profile.market,
            "comparableCompanies": list(competitors),
        },
    ),
    MemoSection(
        key="business_model",
        title="Business Model",
        model=MemoBusinessModel,
        fields={
            "revenueModel": "How the company makes money",
            "unitEconomics": "LTV, CAC, payback period and margins",
            "scalability": "How the business can scale efficiently",
            "defensibility": "Moats and competitive advantages",
        },
        guidance="Write 3-4 sentences for each field with metrics where available.",
        source=lambda report, competitors: {
            "businessModel": report.company_profile.business_model,
            "financials": report.company_profile.financials,
            "product": report.company_profile.product,
        },
    ),
    MemoSection(
        key="team_assessment",
        title="Team Assessment",
        model=MemoTeamAssessment,
        fields={
            "founderBackground": "Founders' relevant experience and track record",
            "teamStrengths": "Strengths and complementary skills",
            "keyHires": "Key hires made or still needed",
            "advisors": "Advisors and board, if disclosed",
        },
        guidance="Write 2-3 sentences for each field.",
        source=lambda report, competitors: {
            "founders": report.company_profile.founders,
            "employees": report.company_profile.financials.employees,
        },
    ),
    MemoSection(
        key="traction_metrics",
        title="Traction and Metrics",
        model=MemoTractionMetrics,
        fields={
            "currentTraction": "Current customers, revenue and usage",
            "growthTrajectory": "Growth rates and trend",
            "keyMilestones": "Milestones achieved and upcoming",
            "customerEvidence": "Partnerships, case studies or customer proof points",
        },
        guidance="Write 2-3 sentences for each field with specific numbers.",
        source=lambda report, competitors: {
            "traction": report.company_profile.traction,
            "financials": report.company_profile.financials,
        },
    ),
    MemoSection(
        key="financial_analysis",
        title="Financial Analysis",
        model=MemoFinancialAnalysis,
        fields={
            "currentFinancials": "Revenue, margins, burn and runway",
            "projections": "Revenue projections and their plausibility",
            "fundingHistory": "Capital raised so far and the current round",
            "useOfFunds": "How the new capital will be allocated",
        },
        guidance="Write 2-3 sentences for each field with specific numbers.",
        source=lambda report, competitors: {
            "financials": report.company_profile.financials,
            "funding": report.company_profile.funding,
        },
    ),
    MemoSection(
        key="risk_assessment",
        title="Risk Assessment",
        model=MemoRiskAssessment,
        fields={
            "keyRisks": ["Risk 1", "Risk 2"],
            "mitigationStrategies": ["Mitigation 1", "Mitigation 2"],
            "redFlags": ["Red flag 1"],
        },
        guidance="List 3-5 key risks with a mitigation for each, plus any red flags.",
        source=lambda report, competitors: {
            "risks": report.company_profile.risks,
            "riskAnalysis": report.narrative.risk_analysis,
            "keyWeaknesses": report.narrative.key_weaknesses,
        },
    ),
    MemoSection(
        key="investment_thesis",
        title="Investment Thesis",
        model=MemoInvestmentThesis,
        fields={
            "whyNow": "Why the timing is right",
            "whyThis": "Why this company in particular",
            "expectedReturn": "Return potential and plausible exit paths",
        },
        guidance="Write 2-3 sentences for each field.",
        source=lambda report, competitors: {
            "investmentThesis": report.narrative.investment_thesis,
            "keyStrengths": report.narrative.key_strengths,
            "market": report.company_profile.market,
            "funding": report.company_profile.funding,
            "overallScore": report.overall_score,
        },
    ),
)


def _format_list(items: Sequence[str]) -> str:
    return "\n".join(f"- {item}" for item in items) or "- (none)"


class MemoGenerator:
    """Investment memo sections from an AnalysisReport"""

    def __init__(self, llm_client: LLMClient, concurrency: Optional[int] = None,
                 max_tokens: Optional[int] = None):
        self.llm_client = llm_client
        self.concurrency = concurrency or settings.MEMO_SECTION_CONCURRENCY
        self.max_tokens = max_tokens or settings.MEMO_MAX_TOKENS

    def _report_json(self, report: AnalysisReport) -> str:
        return json.dumps({
            "companyProfile": report.company_profile.to_dict(),
            "sector": report.sector_tag,
            "overallScore": report.overall_score,
            "decision": report.decision.value,
            "narrative": report.narrative.model_dump(by_alias=True),
        }, indent=2, ensure_ascii=False)

    async def _complete(self, label: str, prompt: str, temperature: float = 0.5) -> str:
        response = await self.llm_client.complete(prompt, max_tokens=self.max_tokens, temperature=temperature)
        log_llm_result(logger, label, response)
        return response

    async def executive_summary(self, report: AnalysisReport) -> str:
        prompt = render_prompt(
            "memo_executive_summary",
            company_name=report.company_profile.company_name,
            sector=report.sector_tag,
            score=report.overall_score,
            decision=report.decision.value,
            report=self._report_json(report),
        )
        response = await self._complete("Memo executive summary", prompt)
        if not response.strip():
            raise ParseFailure("Memo executive summary: empty response", response)
        return response.strip()

    async def investment_highlights(self, report: AnalysisReport) -> List[str]:
        prompt = render_prompt(
            "memo_highlights",
            company_name=report.company_profile.company_name,
            report=self._report_json(report),
        )
        response = await self._complete("Memo highlights", prompt)
        entries = parse_llm_json(response, expect=EXPECT_ARRAY, context="Memo highlights")
        highlights = [entry.strip() for entry in entries if isinstance(entry, str) and entry.strip()]
        if not highlights:
            raise ParseFailure("Memo highlights: no highlights in response", response)
        return highlights[:MAX_HIGHLIGHTS]

    async def section(self, part: MemoSection, report: AnalysisReport,
                      competitors: Sequence[Competitor] = ()) -> LenientModel:
        """
        One structured memo section.

        Raises:
            ParseFailure: the response is not a JSON object
            SchemaIncomplete: the object has none of the section's fields
        """
        data = {key: _dump(value) for key, value in part.source(report, competitors).items()}
        prompt = render_prompt(
            "memo_section",
            section_title=part.title,
            company_name=report.company_profile.company_name,
            sector=report.sector_tag,
            data=json.dumps(data, indent=2, ensure_ascii=False),
            guidance=part.guidance,
            fields=part.render_fields(),
        )
        response = await self._complete(f"Memo {part.title}", prompt)
        payload = parse_llm_json(response, context=f"Memo {part.title}")

        if not any(name in payload for name in part.fields):
            raise SchemaIncomplete(
                f"Memo {part.title}: response has none of the expected fields",
                missing_keys=list(part.fields),
            )
        return part.model.model_validate(payload)

    async def recommendation(self, report: AnalysisReport) -> MemoRecommendation:
        categories = "\n".join(
            f"- {category.label}: {category.score}/{category.max_score}" for category in report.category_breakdowns
        )
        prompt = render_prompt(
            "memo_recommendation",
            company_name=report.company_profile.company_name,
            score=report.overall_score,
            decision=report.decision.value,
            strengths=_format_list(report.narrative.key_strengths),
            weaknesses=_format_list(report.narrative.key_weaknesses),
            categories=categories or "- (none)",
        )
        response = await self._complete("Memo recommendation", prompt, temperature=0.3)
        payload = parse_llm_json(response, context="Memo recommendation")

        explanation = MemoExplanation.model_validate(payload)
        if not explanation.reasoning:
            raise SchemaIncomplete("Memo recommendation: response has no reasoning", missing_keys=["reasoning"])

        # Decision always follows the deterministic score
        return MemoRecommendation(
            decision=report.decision,
            overall_score=report.overall_score,
            reasoning=explanation.reasoning,
            next_steps=explanation.next_steps,
            timeline=explanation.timeline,
        )

    async def generate(self, report: AnalysisReport, competitors: Sequence[Competitor] = ()) -> InvestmentMemo:
        """
        Full memo for one analysis.

        Raises:
            AnalysisError: any section failed to generate
        """
        company_name = report.company_profile.company_name
        logger.info(f"Generating investment memo for '{company_name}' ({len(MEMO_SECTIONS) + 3} sections)")
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _limited(coroutine):
            async with semaphore:
                return await coroutine

        summary, highlights, recommendation, *sections = await asyncio.gather(
            _limited(self.executive_summary(report)),
            _limited(self.investment_highlights(report)),
            _limited(self.recommendation(report)),
            *(_limited(self.section(part, report, competitors)) for part in MEMO_SECTIONS),
        )

        logger.info(f"Investment memo for '{company_name}' generated")
        return InvestmentMemo(
            company_name=company_name,
            sector=report.sector_tag,
            executive_summary=summary,
            investment_highlights=highlights,
            recommendation=recommendation,
            **{part.key: section for part, section in zip(MEMO_SECTIONS, sections)},
        )
