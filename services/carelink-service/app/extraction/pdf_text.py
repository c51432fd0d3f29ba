"""
CareLink Service — PDF text extraction

The extractor only ever sees text; this is the single place that touches
the uploaded binary.
"""
import io
import logging

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from app.core.errors import ValidationError

logger = logging.getLogger(__name__)


def extract_pdf_text(data: bytes) -> str:
    """Concatenate the text layer of every page, one page per block."""
    if not data:
        raise ValidationError("No PDF file uploaded")
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except (PdfReadError, ValueError) as exc:
        logger.warning("Unreadable PDF upload: %s", exc)
        raise ValidationError("The uploaded file is not a readable PDF") from exc
    return "\n".join(pages)
