"""
CareLink Service — Shared field types
"""
import uuid
from typing import Annotated

from pydantic import AfterValidator


def _canonical_uuid(value: str) -> str:
    # Raises ValueError on malformed input, which FastAPI reports as 422
    return str(uuid.UUID(value))


# Primary keys are uuid4 strings; accept any UUID spelling, store the canonical form.
EntityId = Annotated[str, AfterValidator(_canonical_uuid)]
