from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import analysis, batch, due_diligence
from .api.dependencies import get_llm_client
from .core.config import settings
from .core.errors import AnalysisError
from .core.logging_config import setup_logging
from .services.analysis_orchestrator import AnalysisOrchestrator
from .services.competitor_discovery import CompetitorDiscovery
from .services.llm_client import LLMClient, OllamaLLMClient
from .services.ocr_client import VisionOCRClient

logger = setup_logging("startup_analyst")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Connecting to LLM service at {settings.OLLAMA_HOST} (model {settings.LLM_MODEL})")
    llm_client = OllamaLLMClient()
    http_client = httpx.AsyncClient()

    app.state.llm_client = llm_client
    app.state.orchestrator = AnalysisOrchestrator(llm_client, VisionOCRClient())
    app.state.competitor_discovery = CompetitorDiscovery(llm_client, http_client=http_client)
    yield
    # Shutdown
    logger.info("Closing HTTP clients")
    await http_client.aclose()


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AnalysisError)
async def analysis_error_handler(request: Request, exc: AnalysisError):
    logger.warning(f"{request.method} {request.url.path} failed with {exc.error_code} at stage {exc.stage}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include routers
app.include_router(analysis.router, prefix=settings.API_V1_STR)
app.include_router(batch.router, prefix=settings.API_V1_STR)
app.include_router(due_diligence.router, prefix=settings.API_V1_STR)


@app.get("/")
def read_root():
    return {"message": f"Welcome to {settings.PROJECT_NAME} API"}


@app.get("/api/health")
async def health_check(llm_client: LLMClient = Depends(get_llm_client)):
    llm_available = await llm_client.is_available()
    logger.info(f"Health check accessed - Environment: {settings.ENVIRONMENT}, LLM available: {llm_available}")
    return {"status": "healthy", "environment": settings.ENVIRONMENT, "llmAvailable": llm_available}
