"""Turn raw parsed rows into canonical card records."""

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from .fields import (
    IMAGE_BASE_URL,
    extract_year,
    normalize_image_url,
    parse_boolean,
    parse_image_list,
    parse_money,
    parse_quantity,
)
from .headers import canonicalize_headers
from .keys import has_identity, record_id
from .models import CANONICAL_FIELDS, CardRecord, NormalizeResult, ParsedTable

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "USD"

COMPLETENESS_FIELDS = (
    "image",
    "image_back",
    "year",
    "set",
    "card_number",
    "player",
    "team",
    "league",
    "parallel",
    "insert",
    "value",
)

FILL_RATE_FIELDS = ("year", "image", "image_back")


def _cell(value: Optional[str]) -> str:
    return str(value or "").replace("\r", "").strip()


def _collect(row: Mapping[str, str], header_map: Mapping[str, str]):
    """Gather cell values under canonical names, first non-blank cell wins."""
    values: Dict[str, str] = {}
    columns: List[str] = []
    for label, canonical in header_map.items():
        cell = _cell(row.get(label))
        if canonical not in values:
            columns.append(canonical)
            values[canonical] = cell
        elif not values[canonical] and cell:
            values[canonical] = cell
    return values, columns


def record_from_row(
    row: Mapping[str, str],
    header_map: Mapping[str, str],
    position: int = 0,
    image_base_url: str = IMAGE_BASE_URL,
    default_currency: str = DEFAULT_CURRENCY,
) -> CardRecord:
    """Build one canonical record from a raw row.

    Malformed cells fall back to their empty/default value; this never raises.

    Args:
        row: Raw label -> cell mapping from the parser.
        header_map: Raw label -> canonical field name.
        position: 1-based row position, used for ids of rows with no identity.
        image_base_url: Prefix for bare image filenames.
        default_currency: Currency stored when the row has none.

    Returns:
        The canonical record.
    """
    values, columns = _collect(row, header_map)

    kwargs = {name: values.get(name, "") for name in CANONICAL_FIELDS}
    kwargs["year"] = extract_year(kwargs["year"])
    kwargs["quantity"] = parse_quantity(values.get("quantity"))
    kwargs["purchase_price"] = parse_money(values.get("purchase_price"))
    kwargs["value"] = parse_money(values.get("value"))
    kwargs["rookie"] = parse_boolean(kwargs["rookie"])
    kwargs["autograph"] = parse_boolean(kwargs["autograph"])
    kwargs["currency"] = kwargs["currency"] or default_currency
    if not kwargs["condition"]:
        kwargs["condition"] = "graded" if kwargs["grade"] else "raw"

    image, image_back = kwargs["image"], kwargs["image_back"]
    if not image and values.get("images"):
        parsed = parse_image_list(values["images"], image_base_url)
        image = parsed[0] if parsed else ""
        if not image_back and len(parsed) > 1:
            image_back = parsed[1]
        for derived in ("image", "image_back"):
            if derived not in columns:
                columns.append(derived)
    kwargs["image"] = normalize_image_url(image, image_base_url)
    kwargs["image_back"] = normalize_image_url(image_back, image_base_url)

    extras = {name: value for name, value in values.items() if name not in CANONICAL_FIELDS}
    record = CardRecord(**kwargs, extras=extras, columns=tuple(columns), source_row=position)

    if not record.id:
        record = record.updated(id=synthesize_id(record, position))
    return record


def synthesize_id(record: CardRecord, position: int) -> str:
    """Deterministic id for a row that has none; ``row_<n>`` when nothing identifies it."""
    if has_identity(record):
        return record_id(record)
    return f"row_{position}"


def normalize_table(
    table: ParsedTable,
    image_base_url: str = IMAGE_BASE_URL,
    default_currency: str = DEFAULT_CURRENCY,
) -> List[CardRecord]:
    """Canonicalize headers once, then normalize every row of ``table``."""
    if table.is_empty:
        return []
    header_map = canonicalize_headers(table.headers)
    return [
        record_from_row(row, header_map, position, image_base_url, default_currency)
        for position, row in enumerate(table.rows, start=1)
    ]


def completeness_score(record: CardRecord) -> int:
    """Number of populated high-value fields."""
    return sum(1 for name in COMPLETENESS_FIELDS if not record.is_blank(name))


def dedupe_by_id(records: Iterable[CardRecord]) -> List[CardRecord]:
    """Keep one record per id, preferring the most complete (first on ties)."""
    best: Dict[str, CardRecord] = {}
    for record in records:
        current = best.get(record.id)
        if current is None or completeness_score(record) > completeness_score(current):
            best[record.id] = record
    return list(best.values())


def records_frame(records: Sequence[CardRecord], headers: Sequence[str]) -> pd.DataFrame:
    """Text view of ``records`` as a DataFrame with one column per header."""
    rows = [record.to_row() for record in records]
    return pd.DataFrame(rows, columns=list(headers), dtype=object).fillna("")


def fill_rates(records: Sequence[CardRecord], names: Sequence[str] = FILL_RATE_FIELDS) -> Dict[str, int]:
    """Count of records with a non-blank value, per field."""
    frame = records_frame(records, names)
    return {name: int((frame[name].str.strip() != "").sum()) for name in names}


def output_headers(records: Iterable[CardRecord]) -> List[str]:
    """Canonical header order followed by synthetic columns in first-seen order."""
    headers = list(CANONICAL_FIELDS)
    for record in records:
        for name in record.extras:
            if name not in headers:
                headers.append(name)
    return headers


def normalize_export(
    table: ParsedTable,
    image_base_url: str = IMAGE_BASE_URL,
    default_currency: str = DEFAULT_CURRENCY,
) -> NormalizeResult:
    """Normalize a raw export into the canonical schema, one record per id."""
    records = normalize_table(table, image_base_url, default_currency)
    deduped = dedupe_by_id(records)
    removed = len(records) - len(deduped)
    if removed:
        logger.info(f"Deduped by id: {len(records)} -> {len(deduped)} (removed {removed})")

    rates = fill_rates(deduped)
    total = len(deduped)
    if total:
        summary = " | ".join(
            f"{name}={count}/{total} ({round(100 * count / total)}%)" for name, count in rates.items()
        )
        logger.info(f"Fill rates: {summary}")

    return NormalizeResult(
        records=deduped,
        headers=output_headers(deduped),
        rows_parsed=len(records),
        delimiter=table.delimiter,
        fill_rates=rates,
    )
