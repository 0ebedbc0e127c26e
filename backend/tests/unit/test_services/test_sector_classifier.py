"""
Unit tests for sector classification and the sector benchmark table
"""

import pytest

from startup_analyst.core.errors import ParseFailure, SchemaIncomplete
from startup_analyst.services.sector_benchmarks import (
    DEFAULT_SECTOR,
    SECTORS,
    format_benchmark_guidance,
    get_all_sectors,
    get_sector_benchmark,
)
from startup_analyst.services.sector_classifier import SectorClassifier, normalize_sector


class TestNormalizeSector:
    """Mapping arbitrary tags onto the sector enumeration"""

    def test_exact_member(self):
        assert normalize_sector("HealthTech") == ("HealthTech", False)

    def test_case_insensitive_member(self):
        assert normalize_sector("consumer fintech") == ("Consumer FinTech", True)

    @pytest.mark.parametrize("tag,sector", [
        ("Med-Tech", "HealthTech"),
        ("Med-Tech Innovations", "HealthTech"),
        ("Digital Health", "HealthTech"),
        ("Payments", "Consumer FinTech"),
        ("Cyber Defense", "Cybersecurity"),
        ("Machine Learning Platform", "AI/ML Infrastructure"),
        ("Generative AI", "AI/ML Infrastructure"),
        ("Renewable Energy", "Climate Tech"),
        ("Online Education", "EdTech"),
        ("Consumer Robotics", "Hardware/IoT"),
        ("Freelance Marketplace", "Marketplace"),
        ("Ecommerce", "E-commerce/DTC"),
        ("Creator Community", "Consumer Social"),
        ("Enterprise Software", "Enterprise SaaS"),
        ("Vertical SaaS", "B2B SaaS"),
    ])
    def test_keyword_fallback(self, tag, sector):
        assert normalize_sector(tag) == (sector, True)

    def test_unknown_tag_defaults(self):
        assert normalize_sector("Widgets") == (DEFAULT_SECTOR, True)
        assert normalize_sector("") == (DEFAULT_SECTOR, True)

    def test_result_always_in_enumeration(self):
        for tag in ("Med-Tech", "Widgets", "aerospace", "AI", "B2B SaaS"):
            assert normalize_sector(tag)[0] in SECTORS


class TestSectorClassifier:
    """Test cases for SectorClassifier"""

    def test_parse_response_normalizes_sector(self, fake_llm):
        classifier = SectorClassifier(fake_llm)
        result = classifier.parse_response('{"sector": "Med-Tech", "confidence": 85, "reasoning": "Imaging"}')
        assert result.sector == "HealthTech"
        assert result.raw_sector == "Med-Tech"
        assert result.fallback_applied is True
        assert result.confidence == 0.85

    def test_parse_response_unwraps_array(self, fake_llm):
        classifier = SectorClassifier(fake_llm)
        result = classifier.parse_response('[{"sector": "EdTech", "confidence": 0.7}]')
        assert result.sector == "EdTech"
        assert result.fallback_applied is False

    def test_parse_response_primary_sector_key(self, fake_llm):
        classifier = SectorClassifier(fake_llm)
        result = classifier.parse_response('{"primary_sector": "Marketplace", "confidence": "0.6"}')
        assert result.sector == "Marketplace"
        assert result.confidence == 0.6

    def test_parse_response_without_sector(self, fake_llm):
        classifier = SectorClassifier(fake_llm)
        with pytest.raises(SchemaIncomplete) as exc_info:
            classifier.parse_response('{"confidence": 0.5}')
        assert exc_info.value.missing_keys == ["sector"]

    @pytest.mark.asyncio
    async def test_classify_calls_llm(self, fake_llm, sample_profile):
        fake_llm.queue('```json\n{"sector": "HealthTech", "confidence": 0.92, "reasoning": "Radiology"}\n```')
        classifier = SectorClassifier(fake_llm)

        result = await classifier.classify(sample_profile)

        assert result.sector == "HealthTech"
        assert result.confidence == 0.92
        prompt = fake_llm.prompts[0]
        for sector in SECTORS:
            assert f"- {sector}" in prompt
        assert "MediScan" in prompt

    @pytest.mark.asyncio
    async def test_manual_sector_skips_llm(self, fake_llm, sample_profile):
        classifier = SectorClassifier(fake_llm)

        result = await classifier.classify(sample_profile, manual_sector="Climate Tech")

        assert result.sector == "Climate Tech"
        assert result.confidence == 1.0
        assert fake_llm.prompts == []

    @pytest.mark.asyncio
    async def test_unparseable_response(self, fake_llm, sample_profile):
        fake_llm.queue("The company is probably HealthTech.")
        classifier = SectorClassifier(fake_llm)

        with pytest.raises(ParseFailure):
            await classifier.classify(sample_profile)


class TestSectorBenchmarks:
    """The static benchmark table"""

    def test_twelve_sectors(self):
        assert len(get_all_sectors()) == 12
        assert get_all_sectors()[0] == "Enterprise SaaS"
        assert "HealthTech" in SECTORS

    def test_every_sector_has_examples_and_guidance(self):
        for sector in SECTORS:
            benchmark = get_sector_benchmark(sector)
            assert benchmark.name == sector
            assert len(benchmark.examples) == 3
            assert benchmark.team and benchmark.market and benchmark.financial

    def test_unknown_sector_gets_default(self):
        assert get_sector_benchmark("Space Mining").name == DEFAULT_SECTOR

    def test_format_guidance(self):
        guidance = format_benchmark_guidance(get_sector_benchmark("HealthTech"))
        assert guidance.startswith("SECTOR-SPECIFIC BENCHMARKS: HealthTech")
        assert "1. Oscar Health" in guidance
        assert "FINANCIAL (max 15 points):" in guidance
        assert "$" not in guidance.split("Real-World Examples:")[0]
