from __future__ import annotations

import io
import logging
import os
import uuid
from pathlib import Path
from typing import List, Optional, Tuple

from docx import Document
from pypdf import PdfReader

from ..domain.base import utc_now
from ..domain.compost_models import FileMetadata, ProcessedFile

logger = logging.getLogger(__name__)

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
MARKDOWN_MIMES = ("text/markdown", "text/x-markdown")
TEXT_MIME = "text/plain"
IMAGE_MIMES = ("image/png", "image/jpeg", "image/gif")

ALLOWED_MIME_TYPES: Tuple[str, ...] = (PDF_MIME, DOCX_MIME, TEXT_MIME, *MARKDOWN_MIMES, "image/jpeg", "image/png", "image/gif")
ALLOWED_EXTENSIONS: Tuple[str, ...] = (".pdf", ".docx", ".txt", ".md", ".markdown", ".jpg", ".jpeg", ".png", ".gif")

MAX_UPLOAD_FILES = 10
MAX_UPLOAD_BYTES = 50 * 1024 * 1024

_EXTENSION_MIMES = {
    ".md": "text/markdown",
    ".markdown": "text/markdown",
    ".txt": TEXT_MIME,
    ".pdf": PDF_MIME,
    ".docx": DOCX_MIME,
}


class UnsupportedFileTypeError(ValueError):
    pass


class FileProcessingError(RuntimeError):
    pass


def is_allowed_upload(filename: str, mime_type: Optional[str]) -> bool:
    """Browsers sometimes send the wrong MIME type, so the extension also counts."""
    if mime_type in ALLOWED_MIME_TYPES:
        return True
    return Path(filename or "").suffix.lower() in ALLOWED_EXTENSIONS


def correct_mime_type(mime_type: Optional[str], original_name: str) -> str:
    mime = mime_type or "application/octet-stream"
    if mime == "application/octet-stream":
        return _EXTENSION_MIMES.get(Path(original_name).suffix.lower(), mime)
    return mime


def count_words(text: str) -> int:
    """Whitespace token count; an empty document still counts as one word."""
    return len((text or "").strip().split()) or 1


def generate_file_id() -> str:
    return f"file_{int(utc_now().timestamp() * 1000)}_{uuid.uuid4().hex[:9]}"


def extract_pdf_text(data: bytes) -> Tuple[str, int]:
    reader = PdfReader(io.BytesIO(data))
    texts: List[str] = []
    for page in reader.pages:
        t = page.extract_text() or ""
        if t:
            texts.append(t)
    return "\n".join(texts), len(reader.pages)


def extract_docx_text(data: bytes) -> str:
    doc = Document(io.BytesIO(data))
    return "\n".join(p.text for p in doc.paragraphs if p.text and p.text.strip())


def describe_image(original_name: str, size: int) -> str:
    size_kb = round(size / 1024)
    return (
        f"Image File Analysis: {original_name}\n\n"
        f"File Type: Image ({Path(original_name).suffix.lower()})\n"
        f"Size: {size_kb} KB\n"
        f"Uploaded: {utc_now().isoformat()}\n\n"
        "This is an image file that was uploaded to the composting system.\n"
        "The image likely contains visual elements such as:\n"
        "- User interface screenshots\n"
        "- Design mockups\n"
        "- Diagrams or flowcharts\n"
        "- Code screenshots\n"
        "- Documentation visuals\n\n"
        "To extract meaningful components from this image, AI vision analysis would be needed to:\n"
        "1. Identify UI components and patterns\n"
        "2. Extract any visible text or code\n"
        "3. Analyze design elements and layouts\n"
        "4. Suggest reusable visual patterns"
    )


class FileProcessor:
    """Turns an uploaded file on disk into a :class:`ProcessedFile`."""

    def process_file(self, file_path: str, original_name: str, mime_type: Optional[str]) -> ProcessedFile:
        corrected = correct_mime_type(mime_type, original_name)
        path = Path(file_path)
        size = path.stat().st_size
        pages: Optional[int] = None

        if corrected not in ALLOWED_MIME_TYPES:
            raise UnsupportedFileTypeError(f"Unsupported file type: {mime_type}")

        try:
            if corrected == PDF_MIME:
                content, pages = extract_pdf_text(path.read_bytes())
            elif corrected == DOCX_MIME:
                content = extract_docx_text(path.read_bytes())
            elif corrected in MARKDOWN_MIMES or corrected == TEXT_MIME:
                content = path.read_text(encoding="utf-8", errors="replace")
            else:
                content = describe_image(original_name, size)
        except Exception as exc:
            logger.error("Error processing file %s: %s", original_name, exc)
            raise FileProcessingError(f"Failed to process file: {exc}") from exc

        return ProcessedFile(
            id=generate_file_id(),
            original_name=original_name,
            mime_type=corrected,
            size=size,
            content=content,
            metadata=FileMetadata(pages=pages, word_count=count_words(content)),
        )

    def cleanup_file(self, file_path: str) -> None:
        try:
            if os.path.exists(file_path):
                os.unlink(file_path)
        except OSError as exc:
            logger.error("Error cleaning up file %s: %s", file_path, exc)
