from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
import logging

from ..core.config import settings
from ..models.base import CamelModel
from ..models.batch import BatchReport
from ..services.analysis_orchestrator import AnalysisOrchestrator
from ..services.batch_analyzer import BatchAnalyzer
from .dependencies import get_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/batch", tags=["batch"])


class BatchRequest(CamelModel):
    folder: Optional[str] = None  # relative to BATCH_DATA_PATH
    delay: Optional[float] = None
    save_report: bool = False


def resolve_batch_folder(folder: Optional[str]) -> Path:
    """Resolve a requested folder inside the configured batch data root"""
    root = Path(settings.BATCH_DATA_PATH).resolve()
    if not folder:
        return root

    resolved = (root / folder).resolve()
    if resolved != root and root not in resolved.parents:
        logger.warning(f"Rejected batch folder outside the data root: {folder}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Batch folder must be inside the configured data directory",
        )
    return resolved


@router.post("", response_model=BatchReport)
async def run_batch_analysis(
    request: BatchRequest,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """Analyze every company folder of a directory under the batch data root"""
    data_path = resolve_batch_folder(request.folder)
    analyzer = BatchAnalyzer(orchestrator, data_path=str(data_path), company_delay=request.delay)

    try:
        report = await analyzer.analyze_folder()
    except FileNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    if request.save_report:
        analyzer.save_report(report, data_path / settings.BATCH_REPORT_FILENAME)

    return report
