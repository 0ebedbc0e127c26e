"""
Sector Classification Service
Maps a consolidated company profile to exactly one of the supported sector tags
"""

import logging
import re
from typing import Optional, Tuple

from ..core.errors import SchemaIncomplete
from ..core.logging_config import log_llm_result
from ..models.analysis import SectorClassification
from ..models.base import coerce_number, coerce_text
from ..models.company_profile import CompanyProfile
from ..utils.json_repair import parse_llm_json
from ..utils.prompt_templates import render_prompt
from .llm_client import LLMClient
from .sector_benchmarks import DEFAULT_SECTOR, SECTORS

logger = logging.getLogger(__name__)

CLASSIFICATION_MAX_TOKENS = 512
CLASSIFICATION_TEMPERATURE = 0.1

# Ordered substring rules for tags outside the enumeration; first match wins
SECTOR_FALLBACK_RULES = (
    (("health", "med-tech", "medtech", "medical", "biotech", "clinical", "pharma", "telemed"), "HealthTech"),
    (("fintech", "fin-tech", "financ", "payment", "banking", "lending", "insurtech", "crypto"), "Consumer FinTech"),
    (("cyber", "security"), "Cybersecurity"),
    (("ai/ml", "machine learning", "deep learning", "artificial intelligence", "mlops", "ai infrastructure"), "AI/ML Infrastructure"),
    (("climate", "cleantech", "clean tech", "energy", "carbon", "sustainab"), "Climate Tech"),
    (("edtech", "education", "e-learning", "learning"), "EdTech"),
    (("hardware", "iot", "robotic", "device"), "Hardware/IoT"),
    (("marketplace",), "Marketplace"),
    (("e-commerce", "ecommerce", "dtc", "direct-to-consumer", "retail"), "E-commerce/DTC"),
    (("social", "community", "media"), "Consumer Social"),
)
AI_WORD_PATTERN = re.compile(r"\bai\b")
SAAS_KEYWORDS = ("saas", "software")


def _fallback_sector(tag: str) -> str:
    lowered = tag.lower()

    for keywords, sector in SECTOR_FALLBACK_RULES:
        if any(keyword in lowered for keyword in keywords):
            return sector

    if AI_WORD_PATTERN.search(lowered):
        return "AI/ML Infrastructure"

    if any(keyword in lowered for keyword in SAAS_KEYWORDS) or "enterprise" in lowered:
        return "Enterprise SaaS" if "enterprise" in lowered else "B2B SaaS"

    return DEFAULT_SECTOR


def normalize_sector(tag: str) -> Tuple[str, bool]:
    """
    Map any tag onto the sector enumeration.

    Returns:
        (sector, fallback_applied). fallback_applied is False only for a
        case-exact member of the enumeration.
    """
    tag = (tag or "").strip()
    if tag in SECTORS:
        return tag, False

    for sector in SECTORS:
        if sector.lower() == tag.lower():
            return sector, True

    return _fallback_sector(tag), True


class SectorClassifier:
    """Service for classifying startups into the supported sectors"""

    def __init__(self, llm_client: LLMClient):
        self.llm_client = llm_client

    def _create_classification_prompt(self, profile: CompanyProfile) -> str:
        sectors = "\n".join(f"- {sector}" for sector in SECTORS)
        return render_prompt("sector_classification", sectors=sectors, profile=profile.to_prompt_json())

    def parse_response(self, response: str) -> SectorClassification:
        """Validate a classification response and normalize its sector tag"""
        data = parse_llm_json(response, context="Sector classification")

        raw_sector = coerce_text(data.get("sector", data.get("primary_sector")))
        if not raw_sector:
            raise SchemaIncomplete("Sector classification response has no 'sector'", missing_keys=["sector"])

        sector, fallback_applied = normalize_sector(raw_sector)
        if fallback_applied:
            logger.warning(f"Sector '{raw_sector}' is not a supported tag, mapped to '{sector}'")

        confidence = coerce_number(data.get("confidence"))
        if confidence > 1:
            confidence /= 100
        confidence = max(0.0, min(confidence, 1.0))

        return SectorClassification(
            sector=sector,
            confidence=confidence,
            reasoning=coerce_text(data.get("reasoning")),
            raw_sector=raw_sector,
            fallback_applied=fallback_applied,
        )

    async def classify(self, profile: CompanyProfile, manual_sector: Optional[str] = None) -> SectorClassification:
        """Main classification method"""
        if manual_sector:
            sector, fallback_applied = normalize_sector(manual_sector)
            logger.info(f"Using manual sector '{manual_sector}' -> '{sector}'")
            return SectorClassification(
                sector=sector,
                confidence=1.0,
                reasoning=f"Manual classification to {sector}",
                raw_sector=manual_sector,
                fallback_applied=fallback_applied,
            )

        prompt = self._create_classification_prompt(profile)
        response = await self.llm_client.complete(
            prompt, max_tokens=CLASSIFICATION_MAX_TOKENS, temperature=CLASSIFICATION_TEMPERATURE
        )
        log_llm_result(logger, "Sector classification response", response)

        result = self.parse_response(response)
        logger.info(f"Final classification result: sector={result.sector}, confidence={result.confidence}")
        return result
