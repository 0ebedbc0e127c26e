"""
Due diligence Q&A models: the conversation, its document context and the
structured answers the assistant returns.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from .base import CamelModel, LenientModel, LenientStr, LenientStrList


class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ChatMessage(CamelModel):
    id: str = ""
    role: ChatRole
    content: str
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    sources: List[str] = Field(default_factory=list)
    confidence: Optional[int] = Field(default=None, ge=0, le=100)


class ContextDocument(CamelModel):
    name: str
    content: str
    type: str = "other"


class DueDiligenceContext(CamelModel):
    company_name: str
    documents: List[ContextDocument] = Field(default_factory=list)
    analysis_results: Optional[Dict[str, Any]] = None
    conversation_history: List[ChatMessage] = Field(default_factory=list)


class QueryAnalysis(LenientModel):
    intent: LenientStr = ""
    entities: LenientStrList = Field(default_factory=list)
    category: LenientStr = ""


class InvestorConcerns(LenientModel):
    primary_concerns: LenientStrList = Field(default_factory=list)
    positive_signals: LenientStrList = Field(default_factory=list)
    unanswered_questions: LenientStrList = Field(default_factory=list)
