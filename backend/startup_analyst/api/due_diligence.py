from typing import List

from fastapi import APIRouter, Depends
from pydantic import Field
import logging

from ..models.base import CamelModel
from ..models.due_diligence import ChatMessage, DueDiligenceContext, InvestorConcerns
from ..services.due_diligence import DueDiligenceAssistant
from .dependencies import get_due_diligence_assistant

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/due-diligence", tags=["due-diligence"])


class QuestionRequest(CamelModel):
    question: str = Field(min_length=1)
    context: DueDiligenceContext


class ContextRequest(CamelModel):
    context: DueDiligenceContext


class AnswerResponse(CamelModel):
    message: ChatMessage


class SuggestionsResponse(CamelModel):
    suggestions: List[str]


class ConcernsResponse(CamelModel):
    concerns: InvestorConcerns


@router.post("/ask", response_model=AnswerResponse)
async def ask_question(
    request: QuestionRequest,
    assistant: DueDiligenceAssistant = Depends(get_due_diligence_assistant),
):
    """Answer an investor question from the company's documents"""
    message = await assistant.ask_question(request.question, request.context)
    return AnswerResponse(message=message)


@router.post("/suggestions", response_model=SuggestionsResponse)
async def suggest_follow_up_questions(
    request: ContextRequest,
    assistant: DueDiligenceAssistant = Depends(get_due_diligence_assistant),
):
    """Follow-up questions based on the conversation so far"""
    suggestions = await assistant.suggest_follow_up_questions(request.context)
    return SuggestionsResponse(suggestions=suggestions)


@router.post("/concerns", response_model=ConcernsResponse)
async def analyze_investor_concerns(
    request: ContextRequest,
    assistant: DueDiligenceAssistant = Depends(get_due_diligence_assistant),
):
    """Concerns, positive signals and open questions raised in the conversation"""
    logger.info(f"Concern analysis for {request.context.company_name}: {len(request.context.conversation_history)} message(s)")
    concerns = await assistant.analyze_investor_concerns(request.context)
    return ConcernsResponse(concerns=concerns)
