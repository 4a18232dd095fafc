"""Message ingestion - combines typed text and uploaded files into one user turn."""

from typing import Sequence

from mentra.services.extraction import DocumentExtractor, ExtractedFragment, UploadedDocument

EXTRACTED_DELIMITER = "--- Extracted from {name} ---"


class EmptyMessageError(ValueError):
    """Raised when a message has neither text nor file content."""

    def __init__(self):
        super().__init__("Message must include text or files")


def render_fragment(fragment: ExtractedFragment) -> str:
    """Render a fragment for inclusion in the message.

    Extracted text gets a delimiter line naming its source file. Placeholders
    are single lines that already name the file.
    """
    if fragment.extracted:
        header = EXTRACTED_DELIMITER.format(name=fragment.source_name)
        return f"{header}\n{fragment.text}"
    return fragment.text


def combine_message_content(text: str, fragments: Sequence[ExtractedFragment]) -> str:
    """Combine raw text with extracted fragments, in upload order.

    Raises:
        EmptyMessageError: If the combined content is blank

    """
    parts = []
    if text and text.strip():
        parts.append(text.strip())
    parts.extend(render_fragment(fragment) for fragment in fragments)

    content = "\n\n".join(parts)
    if not content.strip():
        raise EmptyMessageError()
    return content


class MessageIngestionPipeline:
    """Extracts uploads and assembles the user message content."""

    def __init__(self, extractor: DocumentExtractor):
        self.extractor = extractor

    async def ingest(self, text: str, documents: Sequence[UploadedDocument] = ()) -> str:
        """Build the content of one user turn.

        Raises:
            EmptyMessageError: If there is no text and no file content

        """
        fragments = await self.extractor.extract_all(documents)
        return combine_message_content(text, fragments)
