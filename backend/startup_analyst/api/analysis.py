from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, File, Form, HTTPException, UploadFile, status
from pydantic import Field
import logging

from ..core.errors import SchemaIncomplete
from ..models.analysis import AnalysisReport, Competitor, ProfileAssessment, ScoreSummary
from ..models.base import CamelModel
from ..models.company_profile import CompanyProfile
from ..models.documents import DocumentSummary, DocumentType, DocumentUpload
from ..models.memo import InvestmentMemo
from ..services.analysis_orchestrator import AnalysisOrchestrator
from ..services.competitor_discovery import CompetitorDiscovery
from ..services.memo_generator import MemoGenerator
from ..services.scoring import score_analysis
from .dependencies import get_competitor_discovery, get_memo_generator, get_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analysis", tags=["analysis"])


class ExtractionResponse(CamelModel):
    document: DocumentSummary
    raw_text: str


class ProfileScoringRequest(CamelModel):
    profile: CompanyProfile
    sector: Optional[str] = None


class CompetitorRequest(CamelModel):
    company_name: str = ""
    industry: str


class CompetitorResponse(CamelModel):
    competitors: List[Competitor]


class MemoRequest(CamelModel):
    report: AnalysisReport
    competitors: List[Competitor] = Field(default_factory=list)


def _parse_document_types(document_types: Optional[List[str]], file_count: int) -> List[Optional[DocumentType]]:
    if not document_types:
        return [None] * file_count

    if len(document_types) != file_count:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Got {len(document_types)} document types for {file_count} files",
        )

    parsed = []
    for value in document_types:
        if not value:
            parsed.append(None)
            continue
        try:
            parsed.append(DocumentType(value))
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown document type '{value}'",
            )
    return parsed


@router.post("", response_model=AnalysisReport)
async def analyze_documents(
    files: List[UploadFile] = File(...),
    document_types: Optional[List[str]] = Form(None),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """Run the full pipeline over one company's documents"""
    if not files:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No files uploaded")

    declared_types = _parse_document_types(document_types, len(files))

    uploads = []
    for file, declared_type in zip(files, declared_types):
        content = await file.read()
        uploads.append(DocumentUpload(filename=file.filename or "upload", data=content, declared_type=declared_type))

    logger.info(f"Analysis requested for {len(uploads)} file(s): {[upload.filename for upload in uploads]}")
    return await orchestrator.analyze(uploads)


@router.post("/extract", response_model=ExtractionResponse)
async def extract_document(
    file: UploadFile = File(...),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """Extract the text of a single document without any LLM analysis"""
    content = await file.read()
    document = await orchestrator.extractor.process(DocumentUpload(filename=file.filename or "upload", data=content))
    return ExtractionResponse(document=document.summary(), raw_text=document.raw_text)


@router.post("/scores", response_model=ScoreSummary)
async def recalculate_scores(analysis: Dict[str, Any] = Body(...)):
    """Deterministically recompute category, overall score and decision from factor points"""
    try:
        return score_analysis(analysis)
    except SchemaIncomplete as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": e.message, "missingKeys": e.missing_keys},
        )


@router.post("/profile", response_model=ProfileAssessment)
async def score_profile(
    request: ProfileScoringRequest,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """Classify and score an already consolidated company profile"""
    return await orchestrator.score_profile(request.profile, sector=request.sector)


@router.post("/competitors", response_model=CompetitorResponse)
async def discover_competitors(
    request: CompetitorRequest,
    discovery: CompetitorDiscovery = Depends(get_competitor_discovery),
):
    """Find up to three comparable companies"""
    competitors = await discovery.discover(request.company_name, request.industry)
    return CompetitorResponse(competitors=competitors)


@router.post("/memo", response_model=InvestmentMemo)
async def generate_memo(
    request: MemoRequest,
    generator: MemoGenerator = Depends(get_memo_generator),
):
    """Write an investment-committee memo for a finished analysis"""
    return await generator.generate(request.report, competitors=request.competitors)
