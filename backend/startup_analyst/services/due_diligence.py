"""
Due Diligence Assistant

Answers investor questions about one company from its own documents.
Documents are split into paragraph chunks, scored against the question with a
keyword heuristic (question words, LLM-extracted entities, category keywords)
and the best chunks go into the answer prompt together with the analysis
results and recent conversation. Answer confidence is the mean relevance of
the chunks used, so an answer without supporting excerpts has confidence 0.
"""

import json
import logging
import re
import uuid
from dataclasses import dataclass
from typing import List, Sequence

from ..core.errors import ParseFailure
from ..core.logging_config import log_llm_result
from ..models.due_diligence import (
    ChatMessage,
    ChatRole,
    DueDiligenceContext,
    InvestorConcerns,
    QueryAnalysis,
)
from ..utils.json_repair import EXPECT_ARRAY, parse_llm_json
from ..utils.prompt_templates import render_prompt
from .llm_client import LLMClient

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1000
RELEVANCE_THRESHOLD = 0.3
MAX_CHUNKS = 5
ANSWER_HISTORY_WINDOW = 5
FOLLOW_UP_HISTORY_WINDOW = 3
FOLLOW_UP_COUNT = 3
ANALYSIS_DATA_MAX_CHARS = 6000
MIN_QUESTION_WORD_LENGTH = 4

PARAGRAPH_BREAK = re.compile(r"\n\s*\n+")

GENERAL_QUERY = QueryAnalysis(intent="General inquiry", entities=[], category="general")

CATEGORY_KEYWORDS = {
    "financial": ("revenue", "cost", "profit", "margin", "burn", "runway", "valuation"),
    "team": ("founder", "ceo", "cto", "team", "experience", "hire", "advisor"),
    "market": ("market", "tam", "sam", "customer", "segment", "growth"),
    "product": ("product", "feature", "technology", "platform", "solution"),
    "risks": ("risk", "challenge", "concern", "competition", "threat"),
    "traction": ("growth", "user", "customer", "revenue", "mrr", "arr"),
}


@dataclass
class DocumentChunk:
    content: str
    source: str
    relevance: float = 0.0


def chunk_document(content: str, source: str, chunk_size: int = CHUNK_SIZE) -> List[DocumentChunk]:
    """Group paragraphs into chunks of roughly chunk_size characters"""
    chunks = []
    current = ""
    for paragraph in PARAGRAPH_BREAK.split(content):
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        if current and len(current) + len(paragraph) > chunk_size:
            chunks.append(DocumentChunk(current, source))
            current = paragraph
        else:
            current = f"{current}\n\n{paragraph}" if current else paragraph

    if current:
        chunks.append(DocumentChunk(current, source))
    return chunks


def calculate_relevance(question: str, content: str, query: QueryAnalysis) -> float:
    """0-1 relevance: 40% question words, 40% entities, 20% category keywords"""
    content_lower = content.lower()

    words = [word for word in question.lower().split() if len(word) >= MIN_QUESTION_WORD_LENGTH]
    matched_words = [word for word in words if word in content_lower]
    score = len(matched_words) / max(len(words), 1) * 0.4

    matched_entities = [entity for entity in query.entities if entity.lower() in content_lower]
    score += len(matched_entities) / max(len(query.entities), 1) * 0.4

    keywords = CATEGORY_KEYWORDS.get(query.category.lower(), ())
    matched_keywords = [keyword for keyword in keywords if keyword in content_lower]
    score += len(matched_keywords) / max(len(keywords), 1) * 0.2

    return min(score, 1.0)


def _format_history(messages: Sequence[ChatMessage]) -> str:
    if not messages:
        return "(no previous messages)"
    return "\n".join(f"{message.role.value}: {message.content}" for message in messages)


class DueDiligenceAssistant:
    """Document-grounded Q&A over one company's data room"""

    def __init__(self, llm_client: LLMClient, relevance_threshold: float = RELEVANCE_THRESHOLD,
                 max_chunks: int = MAX_CHUNKS):
        self.llm_client = llm_client
        self.relevance_threshold = relevance_threshold
        self.max_chunks = max_chunks

    async def analyze_query(self, question: str) -> QueryAnalysis:
        """Intent, entities and category of a question; unparseable output degrades to a general query"""
        response = await self.llm_client.complete(
            render_prompt("due_diligence_query", question=question), max_tokens=500, temperature=0.2
        )
        try:
            return QueryAnalysis.model_validate(parse_llm_json(response, context="Query analysis"))
        except ParseFailure as e:
            # Only narrows retrieval; the question words still drive relevance
            logger.warning(f"Query analysis unusable, retrieving by question words only: {e.message}")
            return GENERAL_QUERY

    def retrieve(self, question: str, context: DueDiligenceContext, query: QueryAnalysis) -> List[DocumentChunk]:
        """Most relevant document chunks above the threshold, best first"""
        relevant = []
        for document in context.documents:
            for chunk in chunk_document(document.content, document.name):
                chunk.relevance = calculate_relevance(question, chunk.content, query)
                if chunk.relevance > self.relevance_threshold:
                    relevant.append(chunk)

        relevant.sort(key=lambda chunk: chunk.relevance, reverse=True)
        logger.info(f"Retrieved {min(len(relevant), self.max_chunks)} of {len(relevant)} relevant chunk(s)")
        return relevant[:self.max_chunks]

    def _create_answer_prompt(self, question: str, context: DueDiligenceContext,
                              chunks: Sequence[DocumentChunk]) -> str:
        excerpts = "\n\n".join(
            f'[{index}] From "{chunk.source}" (Relevance: {chunk.relevance * 100:.0f}%):\n{chunk.content}'
            for index, chunk in enumerate(chunks, start=1)
        ) or "(no relevant excerpts found)"

        analysis_data = "(none)"
        if context.analysis_results:
            analysis_data = json.dumps(context.analysis_results, indent=2, ensure_ascii=False)[:ANALYSIS_DATA_MAX_CHARS]

        return render_prompt(
            "due_diligence_answer",
            company_name=context.company_name,
            question=question,
            excerpts=excerpts,
            analysis_data=analysis_data,
            history=_format_history(context.conversation_history[-ANSWER_HISTORY_WINDOW:]),
        )

    async def ask_question(self, question: str, context: DueDiligenceContext) -> ChatMessage:
        """
        Answer one investor question.

        Raises:
            LLMError: the answer could not be generated
            ParseFailure: the model returned an empty answer
        """
        logger.info(f"Due diligence question for {context.company_name}: {question}")
        query = await self.analyze_query(question)
        chunks = self.retrieve(question, context, query)

        response = await self.llm_client.complete(
            self._create_answer_prompt(question, context, chunks), max_tokens=800, temperature=0.3
        )
        log_llm_result(logger, "Due diligence answer", response)
        if not response.strip():
            raise ParseFailure("Due diligence answer: empty response", response)

        sources = list(dict.fromkeys(chunk.source for chunk in chunks))
        confidence = round(sum(chunk.relevance for chunk in chunks) / len(chunks) * 100) if chunks else 0

        return ChatMessage(
            id=f"msg-{uuid.uuid4().hex[:12]}",
            role=ChatRole.ASSISTANT,
            content=response.strip(),
            sources=sources,
            confidence=confidence,
        )

    async def suggest_follow_up_questions(self, context: DueDiligenceContext) -> List[str]:
        """Up to three follow-up questions based on the recent conversation"""
        prompt = render_prompt(
            "due_diligence_follow_up",
            company_name=context.company_name,
            history=_format_history(context.conversation_history[-FOLLOW_UP_HISTORY_WINDOW:]),
            count=FOLLOW_UP_COUNT,
        )
        response = await self.llm_client.complete(prompt, max_tokens=300, temperature=0.5)
        log_llm_result(logger, "Follow-up suggestions", response)

        entries = parse_llm_json(response, expect=EXPECT_ARRAY, context="Follow-up suggestions")
        questions = [entry.strip() for entry in entries if isinstance(entry, str) and entry.strip()]
        if not questions:
            raise ParseFailure("Follow-up suggestions: no questions in response", response)
        return questions[:FOLLOW_UP_COUNT]

    async def analyze_investor_concerns(self, context: DueDiligenceContext) -> InvestorConcerns:
        """Concerns, positive signals and open questions raised in the conversation so far"""
        if not context.conversation_history:
            return InvestorConcerns()

        prompt = render_prompt(
            "due_diligence_concerns",
            company_name=context.company_name,
            history=_format_history(context.conversation_history),
        )
        response = await self.llm_client.complete(prompt, max_tokens=600, temperature=0.3)
        log_llm_result(logger, "Investor concerns", response)
        return InvestorConcerns.model_validate(parse_llm_json(response, context="Investor concerns"))
