"""
Document models: uploaded bytes in, ProcessedDocument out of extraction.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import ConfigDict, Field

from .base import CamelModel


class DocumentType(str, Enum):
    PITCH_DECK = "pitch_deck"
    FINANCIAL_MODEL = "financial_model"
    FOUNDERS_INFO = "founders_info"
    BUSINESS_PLAN = "business_plan"
    OTHER = "other"


class ExtractionMethod(str, Enum):
    TEXT = "text"
    PDF_TEXT_LAYER = "pdf_text_layer"
    OFFICE = "office"
    OCR = "ocr"


@dataclass
class DocumentUpload:
    """Raw file handed to the pipeline"""
    filename: str
    data: bytes
    declared_type: Optional[DocumentType] = None

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass
class ExtractedText:
    text: str
    method: ExtractionMethod


class ProcessedDocument(CamelModel):
    model_config = ConfigDict(frozen=True)

    filename: str
    declared_type: DocumentType
    raw_text: str
    size_bytes: int
    extraction_confidence: int = Field(ge=0, le=100)
    extraction_method: ExtractionMethod

    def summary(self) -> "DocumentSummary":
        return DocumentSummary(
            filename=self.filename,
            type=self.declared_type,
            text_length=len(self.raw_text),
            confidence=self.extraction_confidence,
            method=self.extraction_method,
        )


class DocumentSummary(CamelModel):
    filename: str
    type: DocumentType
    text_length: int
    confidence: int
    method: ExtractionMethod


class FailedDocument(CamelModel):
    filename: str
    error_code: str
    message: str
