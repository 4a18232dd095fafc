"""Document extraction service.

Turns uploaded files into text fragments for the user message. PDFs are
parsed with pypdf and plain text formats are decoded; anything else becomes
a short placeholder naming the file. Extraction never raises: a file that
cannot be read degrades into a placeholder so sibling uploads and the
request itself carry on.
"""

import asyncio
import io
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Sequence

from pypdf import PdfReader

logger = logging.getLogger(__name__)

# Uploads above this size are skipped rather than parsed
MAX_UPLOAD_BYTES = 15 * 1024 * 1024
# Extracted text is cut to this many characters to keep prompts bounded
MAX_EXTRACTED_CHARS = 15_000

Extractor = Callable[[bytes], str]


class ExtractionStatus(str, Enum):
    """Outcome of extracting one uploaded file."""

    EXTRACTED = "extracted"
    FAILED = "failed"
    UNSUPPORTED = "unsupported"
    TOO_LARGE = "too_large"


@dataclass(frozen=True)
class UploadedDocument:
    """A file received with a message."""

    name: str
    media_type: str
    data: bytes


@dataclass(frozen=True)
class ExtractedFragment:
    """Text derived from one uploaded file."""

    source_name: str
    media_type: str
    text: str
    status: ExtractionStatus

    @property
    def extracted(self) -> bool:
        return self.status == ExtractionStatus.EXTRACTED


def extract_pdf_text(data: bytes) -> str:
    """Extract the text layer of a PDF, one block per page."""
    reader = PdfReader(io.BytesIO(data))
    parts = []
    for page in reader.pages:
        text = page.extract_text() or ""
        if text.strip():
            parts.append(text)
    return "\n\n".join(parts).strip()


def decode_text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace").strip()


DEFAULT_EXTRACTORS: dict[str, Extractor] = {
    "application/pdf": extract_pdf_text,
    "text/plain": decode_text,
    "text/markdown": decode_text,
    "text/csv": decode_text,
}


def format_size(num_bytes: int) -> str:
    if num_bytes >= 1024 * 1024:
        return f"{num_bytes / (1024 * 1024):g} MB"
    if num_bytes >= 1024:
        return f"{num_bytes / 1024:g} KB"
    return f"{num_bytes} bytes"


def _base_media_type(media_type: str) -> str:
    # "text/plain; charset=utf-8" -> "text/plain"
    return media_type.split(";", 1)[0].strip().lower()


class DocumentExtractor:
    """Converts uploaded documents into bounded text fragments."""

    def __init__(
        self,
        max_bytes: int = MAX_UPLOAD_BYTES,
        max_chars: int = MAX_EXTRACTED_CHARS,
        extractors: dict[str, Extractor] | None = None,
    ):
        """Initialize the extractor.

        Args:
            max_bytes: Largest upload that will be parsed
            max_chars: Extracted text is truncated to this length
            extractors: Media type to extraction function. Defaults to
                pypdf for PDFs and UTF-8 decoding for text formats.

        """
        self.max_bytes = max_bytes
        self.max_chars = max_chars
        self.extractors = dict(DEFAULT_EXTRACTORS if extractors is None else extractors)

    async def extract(self, document: UploadedDocument) -> ExtractedFragment:
        """Extract one document. Never raises."""
        media_type = _base_media_type(document.media_type) or "application/octet-stream"

        if len(document.data) > self.max_bytes:
            logger.warning(
                f"Skipping {document.name}: {len(document.data)} bytes exceeds {self.max_bytes}"
            )
            return ExtractedFragment(
                source_name=document.name,
                media_type=media_type,
                text=f"[Skipped {document.name}: larger than {format_size(self.max_bytes)}]",
                status=ExtractionStatus.TOO_LARGE,
            )

        extractor = self.extractors.get(media_type)
        if extractor is None:
            return ExtractedFragment(
                source_name=document.name,
                media_type=media_type,
                text=f"User uploaded file: {document.name} ({media_type})",
                status=ExtractionStatus.UNSUPPORTED,
            )

        try:
            # Parsing is CPU-bound and blocking, keep it off the event loop
            loop = asyncio.get_running_loop()
            text = await loop.run_in_executor(None, extractor, document.data)
        except Exception as e:
            logger.error(f"Failed to extract {document.name} ({media_type}): {e}")
            return ExtractedFragment(
                source_name=document.name,
                media_type=media_type,
                text=f"[Could not read {document.name}]",
                status=ExtractionStatus.FAILED,
            )

        text = text or ""
        logger.info(f"Extracted {document.name}: {len(text)} chars")
        return ExtractedFragment(
            source_name=document.name,
            media_type=media_type,
            text=text[: self.max_chars],
            status=ExtractionStatus.EXTRACTED,
        )

    async def extract_all(self, documents: Sequence[UploadedDocument]) -> list[ExtractedFragment]:
        """Extract documents concurrently, keeping upload order."""
        if not documents:
            return []
        return list(await asyncio.gather(*(self.extract(doc) for doc in documents)))
