"""
Investment Scoring Engine

Pure, deterministic recalculation of the six weighted category scores, the
overall 0-100 score and the decision label. Only per-factor point allocations
from the LLM are used (clamped to their fixed maximum); category totals and
decision strings returned by the model are always recomputed here.
"""

import logging
import math
from fractions import Fraction
from typing import Any, Dict, Mapping, Optional, Tuple

from ..core.errors import SchemaIncomplete
from ..models.analysis import CategoryResult, Decision, FactorScore, ScoreSummary
from ..models.base import coerce_number, coerce_text

logger = logging.getLogger(__name__)

# Fixed factor allocations per category (factor -> max points)
CATEGORY_FACTORS: Dict[str, Dict[str, int]] = {
    "founderAnalysis": {
        "founderExperience": 8,
        "teamComposition": 6,
        "advisoryBoard": 3,
        "trackRecord": 3,
    },
    "marketAnalysis": {
        "marketSize": 8,
        "marketTiming": 6,
        "competitionLevel": 6,
    },
    "productAnalysis": {
        "innovationLevel": 8,
        "productMarketFit": 6,
        "scalability": 6,
    },
    "tractionAnalysis": {
        "customerGrowth": 8,
        "revenueGrowth": 7,
        "keyPartnerships": 5,
    },
    "financialAnalysis": {
        "unitEconomics": 6,
        "burnRate": 5,
        "revenueModel": 4,
    },
    "competitiveAnalysis": {
        "uniqueValueProp": 2,
        "defensibility": 3,
    },
}

CATEGORY_LABELS = {
    "founderAnalysis": "Founder & Team",
    "marketAnalysis": "Market Opportunity",
    "productAnalysis": "Product & Technology",
    "tractionAnalysis": "Traction & Growth",
    "financialAnalysis": "Financial Health",
    "competitiveAnalysis": "Competitive Position",
}

# Integer percentages keep the weight sum exact
CATEGORY_WEIGHT_PERCENT = {
    "founderAnalysis": 20,
    "marketAnalysis": 20,
    "productAnalysis": 20,
    "tractionAnalysis": 20,
    "financialAnalysis": 15,
    "competitiveAnalysis": 5,
}

CATEGORY_WEIGHTS = {name: percent / 100 for name, percent in CATEGORY_WEIGHT_PERCENT.items()}

CATEGORY_MAX = {name: sum(factors.values()) for name, factors in CATEGORY_FACTORS.items()}

DECISION_THRESHOLDS = (
    (70, Decision.STRONG_INVEST),
    (60, Decision.INVEST),
    (50, Decision.MAYBE),
)

NOT_ASSESSED = "Not assessed"


def clamp_points(points: Any, max_points: int) -> float:
    """Clamp a factor allocation to [0, max_points]; unusable values count as 0"""
    value = coerce_number(points)
    return min(max(value, 0.0), float(max_points))


def _lookup_factor(breakdown: Mapping[str, Any], factor: str) -> Any:
    if factor in breakdown:
        return breakdown[factor]
    lowered = factor.lower()
    for key, value in breakdown.items():
        if isinstance(key, str) and key.lower() == lowered:
            return value
    return None


def _factor_entry(entry: Any) -> Tuple[Any, str]:
    """Split an LLM factor entry into (points, assessment)"""
    if isinstance(entry, dict):
        return entry.get("points", entry.get("score")), coerce_text(entry.get("assessment"))
    return entry, ""


def score_factors(category: str, breakdown: Optional[Mapping[str, Any]]) -> Dict[str, FactorScore]:
    """Clamp every fixed factor of a category; missing factors score 0"""
    if category not in CATEGORY_FACTORS:
        raise KeyError(f"Unknown scoring category: {category}")
    if not isinstance(breakdown, Mapping):
        breakdown = {}

    factors = {}
    for factor, max_points in CATEGORY_FACTORS[category].items():
        entry = _lookup_factor(breakdown, factor)
        if entry is None:
            factors[factor] = FactorScore(points=0.0, max_points=max_points, assessment=NOT_ASSESSED)
            continue

        raw_points, assessment = _factor_entry(entry)
        points = clamp_points(raw_points, max_points)
        if points != coerce_number(raw_points):
            logger.debug(f"Clamped {category}.{factor} from {raw_points!r} to {points}")
        factors[factor] = FactorScore(points=points, max_points=max_points, assessment=assessment)

    return factors


def recompute_category_score(category: str, breakdown: Optional[Mapping[str, Any]]) -> float:
    """Sum of clamped factor points; overrides any category total from the model"""
    return sum(factor.points for factor in score_factors(category, breakdown).values())


def overall_score(category_scores: Mapping[str, float]) -> int:
    """
    Weighted blend of category percentages, rounded half-up to an integer.

    Categories absent from category_scores count as 0.
    """
    total = Fraction(0)
    for category, percent in CATEGORY_WEIGHT_PERCENT.items():
        score = Fraction(coerce_number(category_scores.get(category, 0)))
        total += score / CATEGORY_MAX[category] * percent

    return max(0, min(100, math.floor(total + Fraction(1, 2))))


def decision_for_score(score: int) -> Decision:
    for threshold, decision in DECISION_THRESHOLDS:
        if score >= threshold:
            return decision
    return Decision.PASS


def build_category_result(category: str, payload: Any) -> CategoryResult:
    """Turn one {score, breakdown, summary} block into a recomputed CategoryResult"""
    if not isinstance(payload, dict):
        payload = {}

    factors = score_factors(category, payload.get("breakdown"))
    score = sum(factor.points for factor in factors.values())

    llm_score = payload.get("score")
    if llm_score is not None and coerce_number(llm_score) != score:
        logger.debug(f"Overriding model score for {category}: {llm_score!r} -> {score}")

    max_score = CATEGORY_MAX[category]
    return CategoryResult(
        name=category,
        label=CATEGORY_LABELS[category],
        score=score,
        max_score=max_score,
        percentage=round(score / max_score * 100, 1),
        weight=CATEGORY_WEIGHTS[category],
        summary=coerce_text(payload.get("summary")),
        factors=factors,
    )


def score_analysis(analysis: Mapping[str, Any]) -> ScoreSummary:
    """
    Recompute every category, the overall score and the decision.

    Args:
        analysis: Parsed scoring response holding the six *Analysis blocks

    Raises:
        SchemaIncomplete: when any of the six category keys is absent
    """
    missing = [category for category in CATEGORY_FACTORS if category not in analysis]
    if missing:
        raise SchemaIncomplete(
            f"Scoring response is missing required categories: {', '.join(missing)}",
            missing_keys=missing,
        )

    categories = [build_category_result(category, analysis[category]) for category in CATEGORY_FACTORS]
    score = overall_score({category.name: category.score for category in categories})
    decision = decision_for_score(score)

    recommendation = analysis.get("recommendation")
    llm_decision = recommendation.get("decision") if isinstance(recommendation, dict) else None
    if llm_decision and llm_decision != decision.value:
        logger.info(f"Model decision '{llm_decision}' replaced by computed '{decision.value}' (score {score})")

    return ScoreSummary(categories=categories, overall_score=score, decision=decision)
