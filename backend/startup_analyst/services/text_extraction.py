"""
Text Extraction Adapter

Turns uploaded bytes into plain text. Dispatches on the file extension:
plain text passthrough, PDF text layer (pdfplumber, then PyPDF2), Office
documents (python-docx, python-pptx), and OCR for images. A PDF whose text layer is empty or too
short (scanned decks) is retried through OCR before giving up.
"""

import asyncio
import logging
from io import BytesIO
from pathlib import PurePath
from typing import Optional

import docx
import pdfplumber
import pptx
import PyPDF2

from ..core.config import settings
from ..core.errors import EmptyResult, ExtractionError, UnsupportedFormat
from ..models.documents import (
    DocumentType,
    DocumentUpload,
    ExtractedText,
    ExtractionMethod,
    ProcessedDocument,
)
from .ocr_client import OCRClient

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = {".txt", ".md", ".csv"}
PDF_EXTENSIONS = {".pdf"}
OFFICE_EXTENSIONS = {".docx", ".pptx"}
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp", ".bmp", ".tiff"}
SUPPORTED_EXTENSIONS = TEXT_EXTENSIONS | PDF_EXTENSIONS | OFFICE_EXTENSIONS | IMAGE_EXTENSIONS

PITCH_DECK_KEYWORDS = ("pitch", "deck")
# Ordered (keywords, type) rules applied to the lowercased filename
DOCUMENT_TYPE_RULES = (
    (("financial", "model"), DocumentType.FINANCIAL_MODEL),
    (("founder", "team"), DocumentType.FOUNDERS_INFO),
    (("business", "plan"), DocumentType.BUSINESS_PLAN),
)

OCR_CONFIDENCE_CAP = 90
CONFIDENCE_CAP = 95


def file_extension(filename: str) -> str:
    return PurePath(filename).suffix.lower()


def is_supported(filename: str) -> bool:
    return file_extension(filename) in SUPPORTED_EXTENSIONS


def classify_document_type(filename: str, text: str) -> DocumentType:
    """Infer the document type from its filename, or from the text for pitch decks"""
    name = filename.lower()
    if any(keyword in name for keyword in PITCH_DECK_KEYWORDS) or "pitch deck" in text.lower():
        return DocumentType.PITCH_DECK

    for keywords, document_type in DOCUMENT_TYPE_RULES:
        if any(keyword in name for keyword in keywords):
            return document_type
    return DocumentType.OTHER


def extraction_confidence(text: str, size_bytes: int, method: ExtractionMethod) -> int:
    """Heuristic 0-100 confidence from text volume and text density per byte"""
    confidence = 50

    if len(text) > 1000:
        confidence += 20
    if len(text) > 5000:
        confidence += 10

    density = len(text) / size_bytes if size_bytes else 0
    if density > 0.005:
        confidence += 15
    if density > 0.01:
        confidence += 10

    cap = OCR_CONFIDENCE_CAP if method is ExtractionMethod.OCR else CONFIDENCE_CAP
    return min(confidence, cap)


def _extract_pdf_with_pdfplumber(data: bytes) -> str:
    pages = []
    with pdfplumber.open(BytesIO(data)) as pdf:
        for page in pdf.pages:
            pages.append(page.extract_text() or "")
    return "\n".join(pages)


def _extract_pdf_with_pypdf2(data: bytes) -> str:
    reader = PyPDF2.PdfReader(BytesIO(data))
    return "\n".join(page.extract_text() or "" for page in reader.pages)


def extract_pdf_text_layer(data: bytes, filename: str = "") -> str:
    """Read the PDF text layer; an unreadable file yields "" so OCR can take over"""
    try:
        return _extract_pdf_with_pdfplumber(data)
    except Exception as e:
        logger.warning(f"pdfplumber could not read {filename}: {e}")

    try:
        return _extract_pdf_with_pypdf2(data)
    except Exception as e:
        logger.warning(f"PyPDF2 could not read {filename}: {e}")
        return ""


def _extract_docx(data: bytes) -> str:
    document = docx.Document(BytesIO(data))
    lines = [paragraph.text.strip() for paragraph in document.paragraphs]
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                lines.append(" | ".join(cells))
    return "\n".join(line for line in lines if line)


def _extract_pptx(data: bytes) -> str:
    presentation = pptx.Presentation(BytesIO(data))
    blocks = []
    for number, slide in enumerate(presentation.slides, start=1):
        lines = [shape.text_frame.text.strip() for shape in slide.shapes if shape.has_text_frame]
        lines = [line for line in lines if line]
        if lines:
            blocks.append(f"--- Slide {number} ---\n" + "\n".join(lines))
    return "\n\n".join(blocks)


def extract_office_text(data: bytes, filename: str) -> str:
    """Text of a .docx body (paragraphs, then table rows) or of every .pptx slide in order"""
    reader = _extract_docx if file_extension(filename) == ".docx" else _extract_pptx
    try:
        return reader(data)
    except Exception as e:
        # python-docx/pptx surface zip, zlib, lxml and content-type errors unwrapped
        raise ExtractionError(f"Corrupted or unreadable Office document: {e}", filename) from e


class TextExtractor:
    """Extract plain text from one document, with OCR as the fallback route"""

    def __init__(self, ocr_client: OCRClient, min_text_chars: Optional[int] = None,
                 max_size_bytes: Optional[int] = None):
        self.ocr_client = ocr_client
        self.min_text_chars = min_text_chars if min_text_chars is not None else settings.MIN_TEXT_LAYER_CHARS
        self.max_size_bytes = max_size_bytes or settings.MAX_UPLOAD_SIZE

    async def extract(self, data: bytes, filename: str) -> ExtractedText:
        """
        Extract text from raw bytes.

        Raises:
            UnsupportedFormat: unknown extension or file over the size limit
            EmptyResult: every route produced no text
            ExtractionError: corrupted input or OCR failure (incl. upstream subkinds)
        """
        extension = file_extension(filename)
        if extension not in SUPPORTED_EXTENSIONS:
            raise UnsupportedFormat(f"Unsupported file type '{extension or filename}'", filename)
        if len(data) > self.max_size_bytes:
            raise UnsupportedFormat(
                f"File exceeds the {self.max_size_bytes // (1024 * 1024)}MB size limit", filename
            )
        if not data:
            raise EmptyResult("File is empty", filename)

        if extension in TEXT_EXTENSIONS:
            result = ExtractedText(data.decode("utf-8", errors="replace"), ExtractionMethod.TEXT)
        elif extension in OFFICE_EXTENSIONS:
            text = await asyncio.to_thread(extract_office_text, data, filename)
            result = ExtractedText(text, ExtractionMethod.OFFICE)
        elif extension in PDF_EXTENSIONS:
            result = await self._extract_pdf(data, filename)
        else:
            result = await self._ocr(data, filename)

        if not result.text.strip():
            raise EmptyResult("No text could be extracted from the document", filename)

        logger.info(f"Extracted {len(result.text)} chars from {filename} via {result.method.value}")
        return result

    async def _extract_pdf(self, data: bytes, filename: str) -> ExtractedText:
        text = await asyncio.to_thread(extract_pdf_text_layer, data, filename)
        if len(text.strip()) >= self.min_text_chars:
            return ExtractedText(text, ExtractionMethod.PDF_TEXT_LAYER)

        logger.info(f"Text layer of {filename} has {len(text.strip())} chars, falling back to OCR")
        return await self._ocr(data, filename)

    async def _ocr(self, data: bytes, filename: str) -> ExtractedText:
        text = await self.ocr_client.extract_text(data, filename)
        return ExtractedText(text, ExtractionMethod.OCR)

    async def process(self, upload: DocumentUpload) -> ProcessedDocument:
        """Extract an upload and wrap it as an immutable ProcessedDocument"""
        extracted = await self.extract(upload.data, upload.filename)
        declared_type = upload.declared_type or classify_document_type(upload.filename, extracted.text)

        return ProcessedDocument(
            filename=upload.filename,
            declared_type=declared_type,
            raw_text=extracted.text,
            size_bytes=upload.size_bytes,
            extraction_confidence=extraction_confidence(extracted.text, upload.size_bytes, extracted.method),
            extraction_method=extracted.method,
        )
