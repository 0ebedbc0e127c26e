"""
OCR Client

Fallback text recognition for scanned PDFs and images: PDF pages are rendered
with pdf2image and every page image is transcribed by an Ollama vision model.
"""

import asyncio
import logging
from io import BytesIO
from typing import List, Optional

import httpx
import ollama
from PIL import Image, UnidentifiedImageError
from pdf2image import convert_from_bytes
from pdf2image.exceptions import PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError

from ..core.config import settings
from ..core.errors import (
    ExtractionError,
    UpstreamAuthFailure,
    UpstreamContentRejected,
    UpstreamQuotaExceeded,
)
from ..core.logging_config import log_llm_result
from ..utils.prompt_templates import render_prompt

logger = logging.getLogger(__name__)

CONTENT_REJECTION_MARKERS = ("safety", "blocked", "policy")


def image_to_byte_array(image: Image.Image) -> bytes:
    """Convert PIL Image to byte array"""
    buffer = BytesIO()
    image.save(buffer, format=image.format or "JPEG")
    return buffer.getvalue()


def map_ocr_error(error: ollama.ResponseError, filename: str) -> ExtractionError:
    status = getattr(error, "status_code", None)
    message = str(error.error)
    if status == 429:
        return UpstreamQuotaExceeded(f"OCR quota exceeded: {message}", filename)
    if status in (401, 403):
        return UpstreamAuthFailure(f"OCR service authentication failed: {message}", filename)
    if any(marker in message.lower() for marker in CONTENT_REJECTION_MARKERS):
        return UpstreamContentRejected(f"OCR service rejected the content: {message}", filename)
    return ExtractionError(f"OCR request failed ({status}): {message}", filename)


class OCRClient:
    """Interface for OCR backends: (bytes, filename) -> text"""

    async def extract_text(self, data: bytes, filename: str) -> str:
        raise NotImplementedError


class VisionOCRClient(OCRClient):
    """OCR through an Ollama vision model"""

    def __init__(
        self,
        host: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        dpi: Optional[int] = None,
        client: Optional[ollama.AsyncClient] = None,
    ):
        self.host = host or settings.OLLAMA_HOST
        self.model = model or settings.VISION_MODEL
        self.timeout = timeout or settings.OCR_TIMEOUT_SECONDS
        self.dpi = dpi or settings.PDF_RENDER_DPI
        self._client = client or ollama.AsyncClient(host=self.host)

    async def extract_text(self, data: bytes, filename: str) -> str:
        images = await asyncio.to_thread(self._to_images, data, filename)
        logger.info(f"Running OCR on {len(images)} page(s) of {filename}")

        pages = []
        for page_number, image_bytes in enumerate(images, start=1):
            text = await self._transcribe(image_bytes, filename, page_number)
            if text.strip():
                pages.append(text.strip())

        return "\n\n".join(pages)

    def _to_images(self, data: bytes, filename: str) -> List[bytes]:
        if filename.lower().endswith(".pdf"):
            try:
                pages_as_images = convert_from_bytes(data, dpi=self.dpi, fmt="jpeg")
            except (PDFPageCountError, PDFSyntaxError) as e:
                raise ExtractionError(f"Could not render PDF pages: {e}", filename) from e
            except PDFInfoNotInstalledError as e:
                raise ExtractionError("PDF rendering unavailable: poppler is not installed", filename) from e
            return [image_to_byte_array(page_image) for page_image in pages_as_images]

        try:
            with Image.open(BytesIO(data)) as image:
                image.verify()
        except (UnidentifiedImageError, OSError) as e:
            raise ExtractionError(f"Unreadable image: {e}", filename) from e
        return [data]

    async def _transcribe(self, image_bytes: bytes, filename: str, page_number: int) -> str:
        try:
            response = await asyncio.wait_for(
                self._client.generate(
                    model=self.model,
                    prompt=render_prompt("ocr_page"),
                    images=[image_bytes],
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"OCR of {filename} page {page_number} timed out after {self.timeout}s")
            raise ExtractionError(f"OCR timed out after {self.timeout:g} seconds", filename)
        except ollama.ResponseError as e:
            logger.error(f"OCR of {filename} page {page_number} failed: {e}")
            raise map_ocr_error(e, filename) from e
        except (httpx.HTTPError, ConnectionError) as e:
            logger.error(f"OCR service unreachable at {self.host}: {e}")
            raise ExtractionError(f"OCR service unreachable at {self.host}", filename) from e

        text = response['response'] or ""
        log_llm_result(logger, f"OCR {filename} page {page_number}", text, level=logging.DEBUG)
        return text
