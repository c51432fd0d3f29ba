"""
Requirement extraction heuristics: line shapes, normalization, dedup and the
table fallback.
"""
import pytest

from app.extraction.extractor import Candidate, _parse_table, extract, parse_line


def test_separated_line_yields_high_confidence_candidate():
    assert parse_line("Rice - 50 kg") == Candidate(
        name="Rice", quantity=50, unit="kg", suggested_category="Grains & Cereals", confidence="high"
    )


@pytest.mark.parametrize("line", ["50kg Rice", "Rice 50kg", "Rice   50   kg", "Rice: 50 kgs", "2. Rice - 50 Kg"])
def test_equivalent_shapes_normalize_identically(line):
    candidate = parse_line(line)
    assert candidate is not None
    assert (candidate.name, candidate.quantity, candidate.unit) == ("Rice", 50, "kg")


def test_unit_aliases_are_canonicalized():
    assert parse_line("Milk - 20 ltrs").unit == "liters"
    assert parse_line("Soap 12 pcs").unit == "pieces"
    assert parse_line("Biscuits - 10 pkt.").unit == "packets"


def test_comma_grouped_quantity():
    candidate = parse_line("Wheat flour - 1,200 kg")
    assert candidate.quantity == 1200


def test_fractional_quantity_kept_as_float():
    assert parse_line("Ghee - 2.5 kg").quantity == 2.5


def test_missing_unit_falls_back_to_low_confidence_pieces():
    candidate = parse_line("Notebooks 40")
    assert candidate.unit == "pieces"
    assert candidate.confidence == "low"
    assert candidate.suggested_category == "Stationery & Books"


@pytest.mark.parametrize("line", ["Item Name  Quantity  Unit", "Required items for March", "Page 2", "ab", "Rice - 0 kg"])
def test_headers_meta_and_degenerate_lines_are_skipped(line):
    assert parse_line(line) is None


def test_unknown_unit_does_not_produce_high_confidence_match():
    candidate = parse_line("Rice - 50 crates")
    assert candidate is None or candidate.confidence == "low"


def test_extract_deduplicates_case_insensitively():
    text = "Rice - 50 kg\nRICE - 20 kg\nMilk - 20 liters\n"
    names = [c.name for c in extract(text)]
    assert names == ["Rice", "Milk"]


def test_extract_handles_empty_and_garbage_input():
    assert extract("") == []
    assert extract(None) == []
    assert extract("\n\n   \n%%%%\n") == []


def test_column_layout_row():
    candidate = parse_line("Toothpaste\t30\ttubes")
    assert candidate.name == "Toothpaste"
    assert candidate.quantity == 30
    assert candidate.unit == "tubes"
    assert candidate.suggested_category == "Hygiene & Toiletries"


def test_extract_document():
    text = """
    Orphanage requirement list
    1. Rice - 50 kg
    2. Milk - 20 liters
    3. Toothpaste 30 tubes
    4. Blankets - 15 pieces
    """
    candidates = extract(text)
    assert [c.name for c in candidates] == ["Rice", "Milk", "Toothpaste", "Blankets"]
    assert [c.suggested_category for c in candidates] == [
        "Grains & Cereals", "Dairy Products", "Hygiene & Toiletries", "Clothing",
    ]
    assert all(c.confidence == "high" for c in candidates)


def test_to_dict_shape():
    assert parse_line("Rice - 50 kg").to_dict() == {
        "name": "Rice",
        "quantity": 50,
        "unit": "kg",
        "suggested_category": "Grains & Cereals",
        "confidence": "high",
    }


@pytest.mark.parametrize("line,quantity,name", [
    ("2.5 kg Sugar", 2.5, "Sugar"),
    ("1.5kg Rice", 1.5, "Rice"),
    ("3) 2.5 kg Sugar", 2.5, "Sugar"),
])
def test_decimal_quantity_first_is_not_mistaken_for_numbering(line, quantity, name):
    candidate = parse_line(line)
    assert candidate.name == name
    assert candidate.quantity == quantity
    assert candidate.unit == "kg"


def test_table_rows_are_read_after_a_header_in_the_first_lines():
    lines = ["Care home needs", "Item Name   Qty   Unit", "Rice   50   kg", "Milk   20   liters"]
    assert [c.name for c in _parse_table(lines)] == ["Rice", "Milk"]


def test_table_header_after_line_ten_is_ignored():
    lines = [f"Note line {chr(65 + i)}" for i in range(10)] + ["Item Name   Qty   Unit", "Rice   50   kg"]
    assert _parse_table(lines) == []


def test_table_without_header_yields_nothing():
    assert _parse_table(["Rice   50   kg", "Milk   20   liters"]) == []


def test_sparse_line_scan_falls_back_to_table_without_duplicates():
    text = "Item Name   Qty   Unit\nRice   50   kg\nThank you for your support"
    candidates = extract(text)
    assert [(c.name, c.quantity, c.unit) for c in candidates] == [("Rice", 50, "kg")]
