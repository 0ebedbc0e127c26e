"""
Request dependencies

Services are constructed once in the application lifespan and stored on
app.state; endpoints receive them through these dependencies so tests can
override them with fakes.
"""

from fastapi import Depends, HTTPException, Request, status

from ..core.config import settings

from ..services.analysis_orchestrator import AnalysisOrchestrator
from ..services.competitor_discovery import CompetitorDiscovery
from ..services.due_diligence import DueDiligenceAssistant
from ..services.llm_client import LLMClient
from ..services.memo_generator import MemoGenerator


def _service(request: Request, name: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Service '{name}' is not initialized",
        )
    return service


def get_llm_client(request: Request) -> LLMClient:
    return _service(request, "llm_client")


def get_orchestrator(request: Request) -> AnalysisOrchestrator:
    return _service(request, "orchestrator")


def get_competitor_discovery(request: Request) -> CompetitorDiscovery:
    return _service(request, "competitor_discovery")


# Stateless, built per request on top of the shared LLM client
def get_due_diligence_assistant(llm_client: LLMClient = Depends(get_llm_client)) -> DueDiligenceAssistant:
    return DueDiligenceAssistant(
        llm_client,
        relevance_threshold=settings.DUE_DILIGENCE_RELEVANCE_THRESHOLD,
        max_chunks=settings.DUE_DILIGENCE_MAX_CHUNKS,
    )


def get_memo_generator(llm_client: LLMClient = Depends(get_llm_client)) -> MemoGenerator:
    return MemoGenerator(llm_client)
