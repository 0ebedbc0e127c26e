"""
Competitor Discovery

Finds up to three comparable companies for a startup: a web search
(Google Custom Search compatible API) supplies public snippets and the LLM
turns them into structured competitor records. Without search credentials the
service returns no competitors rather than inventing any.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from ..core.config import settings
from ..core.logging_config import log_llm_result
from ..models.analysis import Competitor
from ..utils.json_repair import EXPECT_ARRAY, parse_llm_json
from ..utils.prompt_templates import render_prompt
from .llm_client import LLMClient

logger = logging.getLogger(__name__)

SEARCH_RESULT_COUNT = 5
PROMPT_RESULT_COUNT = 3
MAX_COMPETITORS = 3
DISCOVERY_MAX_TOKENS = 2048


@dataclass
class SearchResult:
    title: str
    snippet: str
    link: str


class CompetitorDiscovery:
    """Search + LLM extraction of comparable companies"""

    def __init__(
        self,
        llm_client: LLMClient,
        http_client: Optional[httpx.AsyncClient] = None,
        api_key: Optional[str] = None,
        engine_id: Optional[str] = None,
        search_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.llm_client = llm_client
        self.http_client = http_client
        self.api_key = api_key if api_key is not None else settings.SEARCH_API_KEY
        self.engine_id = engine_id if engine_id is not None else settings.SEARCH_ENGINE_ID
        self.search_url = search_url or settings.SEARCH_API_URL
        self.timeout = timeout or settings.SEARCH_TIMEOUT_SECONDS

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.engine_id)

    @staticmethod
    def build_query(company_name: str, industry: str) -> str:
        query = f"top {industry} startups funding valuation metrics"
        if company_name:
            query += f" -{company_name}"
        return query

    async def _get(self, client: httpx.AsyncClient, params: Dict[str, Any]) -> httpx.Response:
        return await client.get(self.search_url, params=params, timeout=self.timeout)

    async def search(self, company_name: str, industry: str) -> List[SearchResult]:
        """Public web search; HTTP problems are logged and yield no results"""
        if not self.is_configured:
            logger.warning("Competitor search not configured (SEARCH_API_KEY / SEARCH_ENGINE_ID missing)")
            return []

        params = {
            "key": self.api_key,
            "cx": self.engine_id,
            "q": self.build_query(company_name, industry),
            "num": SEARCH_RESULT_COUNT,
        }
        logger.info(f"Searching competitors: {params['q']}")

        try:
            if self.http_client is not None:
                response = await self._get(self.http_client, params)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._get(client, params)
            response.raise_for_status()
            items = response.json().get("items") or []
        except httpx.HTTPStatusError as e:
            logger.error(f"Search API error {e.response.status_code}: {e.response.text[:200]}")
            return []
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Search API request failed: {e}")
            return []

        results = [
            SearchResult(
                title=item.get("title", ""),
                snippet=item.get("snippet", ""),
                link=item.get("link", ""),
            )
            for item in items
            if isinstance(item, dict)
        ]
        logger.info(f"Found {len(results)} search results")
        return results

    def _create_prompt(self, company_name: str, industry: str, results: List[SearchResult]) -> str:
        snippets = [
            {"title": result.title, "snippet": result.snippet, "link": result.link}
            for result in results[:PROMPT_RESULT_COUNT]
        ]
        return render_prompt(
            "competitor_discovery",
            company_name=company_name or "the company",
            industry=industry,
            search_results=json.dumps(snippets, indent=2, ensure_ascii=False),
        )

    def parse_response(self, response: str) -> List[Competitor]:
        """Keep entries with a string name, at most three"""
        entries = parse_llm_json(response, expect=EXPECT_ARRAY, context="Competitor discovery")
        competitors = []
        for entry in entries:
            if isinstance(entry, dict) and isinstance(entry.get("name"), str) and entry["name"].strip():
                competitors.append(Competitor.model_validate(entry))
            if len(competitors) == MAX_COMPETITORS:
                break
        return competitors

    async def discover(self, company_name: str, industry: str) -> List[Competitor]:
        """
        Find comparable companies.

        Raises:
            LLMError / ParseFailure: when search results exist but the LLM step fails
        """
        results = await self.search(company_name, industry)
        if not results:
            return []

        prompt = self._create_prompt(company_name, industry, results)
        response = await self.llm_client.complete(prompt, max_tokens=DISCOVERY_MAX_TOKENS, temperature=0.2)
        log_llm_result(logger, "Competitor discovery response", response)

        competitors = self.parse_response(response)
        logger.info(f"Identified {len(competitors)} competitor(s) for {company_name or industry}")
        return competitors
