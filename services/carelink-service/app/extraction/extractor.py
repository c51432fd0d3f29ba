"""
CareLink Service — Requirement extraction from unstructured text

Turns the text of an uploaded requirement list into candidate donation items
using layered, rule-based line heuristics. Pure and deterministic: no I/O,
no shared state, safe to call from any request handler.

Line shapes understood (first match wins):
    "Rice - 50 kg"      "Rice: 50 kg"      "Milk — 20 liters"
    "50 kg Rice"
    "Rice 50 kg"
    "Rice 50kg"
    "Rice    50    kg"  (column layout, tabs or 2+ spaces)
    "Notebooks 40"      (no unit: low confidence, counted in pieces)
"""
import re
from dataclasses import dataclass, asdict

from app.extraction.categories import classify
from app.extraction.units import is_unit, normalize_unit

CONFIDENCE_HIGH = "high"
CONFIDENCE_LOW = "low"
FALLBACK_UNIT = "pieces"
TABLE_HEADER_SCAN_LINES = 10

_QTY = r"(\d+[\d,.]*)"

_NUMBERING_RE = re.compile(r"^\d+[.)](?!\d)\s*")
_BULLET_RE = re.compile(r"^[-•●▪◦*]\s*")
_DASH_RE = re.compile(r"^\s*[-–—]\s*")

_HEADER_RE = re.compile(r"^(s\.?\s*no|serial|item\s*name|description|quantity|unit|total|date|sr)", re.I)
_META_RE = re.compile(r"^(required|needed|list|items|donation|page|orphanage)", re.I)

_SEPARATED_RE = re.compile(rf"^(.+?)\s*[-:–—]\s*{_QTY}\s*([a-zA-Z]+.*)$")
_QTY_FIRST_RE = re.compile(rf"^{_QTY}\s*([a-zA-Z]{{1,10}})\s+(.+)$")
_NAME_QTY_UNIT_RE = re.compile(rf"^(.+?)\s+{_QTY}\s*([a-zA-Z]{{1,10}})$")
_NAME_QTYUNIT_RE = re.compile(rf"^(.+?)\s+{_QTY}([a-zA-Z]{{1,10}})$")
_COLUMN_SPLIT_RE = re.compile(r"\s{2,}|\t")
_PURE_QTY_RE = re.compile(r"^\d+[\d,.]*$")
_NAME_QTY_RE = re.compile(rf"^(.+?)\s+{_QTY}$")

_TABLE_NAME_WORD_RE = re.compile(r"item|name|description", re.I)
_TABLE_QTY_WORD_RE = re.compile(r"qty|quantity|amount|number", re.I)

_NUMBER_PREFIX_RE = re.compile(r"\d+(?:\.\d+)?")


@dataclass(frozen=True)
class Candidate:
    name: str
    quantity: float | int
    unit: str
    suggested_category: str
    confidence: str = CONFIDENCE_HIGH

    def to_dict(self) -> dict:
        return asdict(self)


def _parse_quantity(raw: str) -> float | int:
    match = _NUMBER_PREFIX_RE.match(raw.replace(",", ""))
    if not match:
        return 0
    value = float(match.group(0))
    return int(value) if value.is_integer() else value


def _build(raw_name: str, raw_qty: str, raw_unit: str, confidence: str = CONFIDENCE_HIGH) -> Candidate | None:
    name = re.sub(r"[,;:]+$", "", raw_name)
    name = re.sub(r"^\s*[-•●]\s*", "", name).strip()
    if len(name) < 2:
        return None

    quantity = _parse_quantity(raw_qty)
    if quantity <= 0:
        return None

    return Candidate(
        name=name,
        quantity=quantity,
        unit=normalize_unit(raw_unit),
        suggested_category=classify(name),
        confidence=confidence,
    )


def _clean_line(line: str) -> str:
    cleaned = _NUMBERING_RE.sub("", line)
    cleaned = _BULLET_RE.sub("", cleaned)
    cleaned = _DASH_RE.sub("", cleaned)
    return cleaned.strip()


def parse_line(line: str) -> Candidate | None:
    """Parse one line of text into a Candidate, or None if it is not an item."""
    cleaned = _clean_line(line)
    if len(cleaned) < 3:
        return None
    if _HEADER_RE.match(cleaned) or _META_RE.match(cleaned):
        return None

    match = _SEPARATED_RE.match(cleaned)
    if match:
        unit_token = match.group(3).split()[0]
        if is_unit(unit_token):
            return _build(match.group(1), match.group(2), unit_token)

    match = _QTY_FIRST_RE.match(cleaned)
    if match and is_unit(match.group(2)):
        return _build(match.group(3), match.group(1), match.group(2))

    match = _NAME_QTY_UNIT_RE.match(cleaned)
    if match and is_unit(match.group(3)):
        return _build(match.group(1), match.group(2), match.group(3))

    match = _NAME_QTYUNIT_RE.match(cleaned)
    if match and is_unit(match.group(3)):
        return _build(match.group(1), match.group(2), match.group(3))

    parts = [part for part in _COLUMN_SPLIT_RE.split(cleaned) if part]
    if len(parts) >= 3:
        qty_idx = next((i for i, part in enumerate(parts) if _PURE_QTY_RE.match(part)), -1)
        if 0 < qty_idx < len(parts) - 1 and is_unit(parts[qty_idx + 1]):
            return _build(" ".join(parts[:qty_idx]), parts[qty_idx], parts[qty_idx + 1])

    match = _NAME_QTY_RE.match(cleaned)
    if match and len(match.group(1)) > 2:
        return _build(match.group(1), match.group(2), FALLBACK_UNIT, CONFIDENCE_LOW)

    return None


def _parse_table(lines: list[str]) -> list[Candidate]:
    header_idx = next(
        (
            i for i, line in enumerate(lines[:TABLE_HEADER_SCAN_LINES])
            if _TABLE_NAME_WORD_RE.search(line) and _TABLE_QTY_WORD_RE.search(line)
        ),
        None,
    )
    if header_idx is None:
        return []
    return [c for c in (parse_line(line) for line in lines[header_idx + 1:]) if c is not None]


def extract(raw_text: str | None) -> list[Candidate]:
    """
    Extract requirement candidates from raw document text.
    Never raises on malformed input; unusable text yields an empty list.
    """
    if not raw_text:
        return []

    lines = [line.strip() for line in raw_text.splitlines() if line.strip()]
    seen: set[str] = set()
    candidates: list[Candidate] = []

    def _merge(found):
        for candidate in found:
            key = candidate.name.lower()
            if key not in seen:
                seen.add(key)
                candidates.append(candidate)

    _merge(c for c in (parse_line(line) for line in lines) if c is not None)

    # Sparse results usually mean a table layout the line scan could not read
    if len(candidates) < 2:
        _merge(_parse_table(lines))

    return candidates
