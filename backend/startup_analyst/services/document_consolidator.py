"""
Document Consolidator

Merges every successfully extracted document of one company into a single
CompanyProfile with one LLM call against a fixed JSON schema.
"""

import logging
from typing import List, Optional, Sequence

from ..core.config import settings
from ..core.errors import SchemaIncomplete
from ..core.logging_config import log_llm_result
from ..models.company_profile import PROFILE_SECTIONS, CompanyProfile
from ..models.documents import ProcessedDocument
from ..utils.json_repair import parse_llm_json
from ..utils.prompt_templates import render_prompt
from .llm_client import LLMClient

logger = logging.getLogger(__name__)

CONSOLIDATION_TEMPERATURE = 0.2


class DocumentConsolidator:
    """Builds the consolidation prompt and validates the returned profile"""

    def __init__(self, llm_client: LLMClient, max_chars_per_document: Optional[int] = None,
                 max_tokens: Optional[int] = None):
        self.llm_client = llm_client
        self.max_chars_per_document = (
            max_chars_per_document if max_chars_per_document is not None
            else settings.CONSOLIDATION_MAX_CHARS_PER_DOCUMENT
        )
        self.max_tokens = max_tokens or settings.LLM_MAX_TOKENS

    def _document_block(self, document: ProcessedDocument) -> str:
        text = document.raw_text
        if self.max_chars_per_document and len(text) > self.max_chars_per_document:
            logger.warning(
                f"Truncating {document.filename} from {len(text)} to {self.max_chars_per_document} chars"
            )
            text = text[:self.max_chars_per_document]
        return f"=== Document: {document.filename} (Type: {document.declared_type.value}) ===\n{text}"

    def build_prompt(self, documents: Sequence[ProcessedDocument]) -> str:
        blocks = [self._document_block(document) for document in documents]
        return render_prompt("consolidation", documents="\n\n".join(blocks))

    async def consolidate(self, documents: Sequence[ProcessedDocument]) -> CompanyProfile:
        """
        Consolidate documents into one CompanyProfile.

        Raises:
            LLMError: the completion call failed
            ParseFailure: the response is not JSON even after repair
            SchemaIncomplete: the JSON holds none of the profile sections
        """
        if not documents:
            raise ValueError("consolidate() needs at least one document")

        logger.info(f"Consolidating {len(documents)} document(s)")
        prompt = self.build_prompt(documents)
        response = await self.llm_client.complete(
            prompt, max_tokens=self.max_tokens, temperature=CONSOLIDATION_TEMPERATURE
        )
        log_llm_result(logger, "Consolidation response", response)

        data = parse_llm_json(response, context="Consolidation")
        present: List[str] = [section for section in PROFILE_SECTIONS if section in data]
        if not present:
            raise SchemaIncomplete(
                "Consolidation response contains none of the company profile sections",
                missing_keys=list(PROFILE_SECTIONS),
            )

        profile = CompanyProfile.model_validate(data)
        logger.info(
            f"Consolidated profile for '{profile.company_name}' "
            f"({len(present)}/{len(PROFILE_SECTIONS)} sections present)"
        )
        return profile
