"""Field-level coercions.

Every helper here is total: bad input yields the canonical empty value
(``""``, ``None`` or a default) instead of raising.
"""

import json
import re
import unicodedata
from decimal import Decimal, InvalidOperation
from typing import Callable, List, Optional, Sequence
from urllib.parse import quote

import pandas as pd

IMAGE_BASE_URL = (
    "https://sportscards.standard.us-east-1.oortstorages.com/"
    "new%20card%20scans%202/card%20matcher/"
)

TRUE_TOKENS = frozenset({"1", "true", "yes", "y", "t"})
FALSE_TOKENS = frozenset({"0", "false", "no", "n", "f"})

_YEAR_RE = re.compile(r"(19|20)\d{2}")
_DIGIT_RE = re.compile(r"\d")
_QUANTITY_RE = re.compile(r"^\+?(\d+)(?:\.0*)?$")
_URL_RE = re.compile(r"^https?://", re.IGNORECASE)
_FRONT_KV_RE = re.compile(
    r"\bfront\s*[:=]\s*(.+?)\s*(?=\bback\s*[:=]|[;|,\n]|$)", re.IGNORECASE
)
_BACK_KV_RE = re.compile(
    r"\bback\s*[:=]\s*(.+?)\s*(?=\bfront\s*[:=]|[;|,\n]|$)", re.IGNORECASE
)
_IMAGE_SPLIT_RE = re.compile(r"\s*[|,;\n]\s*")

# Title heuristics. These are approximate: they get common listing titles
# right and give up (empty string) otherwise.
_LEADING_YEAR_RE = re.compile(r"^\s*(?:19|20)\d{2}(?:\s*[-/]\s*\d{2,4})?\b\s*")
_CARD_NO_MARKER_RE = re.compile(
    r"\b(?:FIFA|UEFA|MLS|NBA|NFL|MLB|NHL)\s*#?\s*([A-Z]{0,4}-?\d[A-Z0-9-]{0,6})\b",
    re.IGNORECASE,
)
_CARD_NO_HASH_RE = re.compile(r"#\s*([A-Z0-9][A-Z0-9-]{0,7})\b", re.IGNORECASE)
_TITLE_STOP_RE = re.compile(
    r"\b(?:RC|Rookie|Auto|Autograph|Patch|Relic|Refractor|Prizm|Parallel|SP|SSP|"
    r"PSA|BGS|SGC|CGC|Graded|Numbered)\b|/\s*\d+|\(|\[",
    re.IGNORECASE,
)


def clean_text(value: object) -> str:
    """Trim, drop carriage returns and collapse whitespace runs."""
    if value is None:
        return ""
    return re.sub(r"\s+", " ", str(value).replace("\r", "")).strip()


def deburr(value: object) -> str:
    decomposed = unicodedata.normalize("NFKD", "" if value is None else str(value))
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_text(value: object) -> str:
    """Fold text for comparisons: ``"José & Co."`` -> ``"jose and co"``."""
    folded = deburr(value).lower().replace("&", "and")
    return re.sub(r"[^a-z0-9]+", " ", folded).strip()


def extract_year(value: object) -> str:
    """First 19xx/20xx run in ``value``; season ranges keep the start year."""
    match = _YEAR_RE.search("" if value is None else str(value))
    return match.group(0) if match else ""


def parse_money(value: object) -> Optional[Decimal]:
    """Parse a money cell; empty or invalid input returns None, never 0."""
    stripped = re.sub(r"[^0-9.\-]", "", "" if value is None else str(value))
    if not stripped:
        return None
    try:
        parsed = Decimal(stripped)
    except InvalidOperation:
        return None
    if not parsed.is_finite():
        return None
    return parsed


def format_money(value: Optional[Decimal]) -> str:
    return "" if value is None else format(value, "f")


def parse_quantity(value: object) -> int:
    """Non-negative integer quantity, 1 when blank or unparsable."""
    match = _QUANTITY_RE.match(clean_text(value))
    if not match:
        return 1
    return int(match.group(1))


def parse_boolean(value: object) -> str:
    """Tri-state boolean token: ``"true"``, ``"false"``, the raw token or ``""``."""
    token = clean_text(value).lower()
    if token in TRUE_TOKENS:
        return "true"
    if token in FALSE_TOKENS:
        return "false"
    return token


def parse_timestamp(value: object) -> Optional[pd.Timestamp]:
    """Parse a timestamp cell; relative words such as ``now`` are rejected."""
    text = clean_text(value)
    if not _DIGIT_RE.search(text):
        return None
    parsed = pd.to_datetime(text, utc=True, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed


def normalize_image_url(value: object, base_url: str = IMAGE_BASE_URL) -> str:
    """Absolute URLs pass through; bare filenames are placed under ``base_url``."""
    text = clean_text(value)
    if not text:
        return ""
    if text.startswith(base_url) or _URL_RE.match(text):
        return text

    cleaned = re.sub(r"""^["'\[\(]+""", "", text)
    cleaned = re.sub(r"""["'\]\)]+$""", "", cleaned)
    cleaned = re.sub(r"^(?:\./|/)+", "", cleaned)
    filename = re.split(r"[\\/]", cleaned)[-1].strip()
    if not filename:
        return ""
    return base_url + quote(filename, safe="")


def _images_from_json(text: str) -> Optional[List[str]]:
    if not (text.startswith("[") and text.endswith("]")):
        return None
    try:
        parsed = json.loads(text)
    except ValueError:
        return None
    if not isinstance(parsed, list):
        return None
    return [clean_text(item) for item in parsed if item is not None]


def _images_from_key_values(text: str) -> Optional[List[str]]:
    front = _FRONT_KV_RE.search(text)
    back = _BACK_KV_RE.search(text)
    if not front and not back:
        return None
    return [
        clean_text(front.group(1)) if front else "",
        clean_text(back.group(1)) if back else "",
    ]


def _images_from_delimiters(text: str) -> Optional[List[str]]:
    return [part for part in _IMAGE_SPLIT_RE.split(text) if part]


IMAGE_LIST_PARSERS: Sequence[Callable[[str], Optional[List[str]]]] = (
    _images_from_json,
    _images_from_key_values,
    _images_from_delimiters,
)


def parse_image_list(value: object, base_url: str = IMAGE_BASE_URL) -> List[str]:
    """Split an images cell into an ordered list of URLs.

    Parsers are tried in priority order (JSON array, ``front=``/``back=``
    pairs, then ``| , ;`` or newline separated); the first that recognises the
    cell wins. Positions are kept, so a key/value cell with only a back image
    yields ``["", url]``.
    """
    text = str(value or "").replace("\r", "").strip()
    if not text:
        return []
    for parser in IMAGE_LIST_PARSERS:
        parts = parser(text)
        if parts is not None:
            return [normalize_image_url(part, base_url) for part in parts]
    return []


def extract_card_number_from_title(title: object) -> str:
    """Best-effort card number from a listing title (``"#221"`` -> ``"221"``)."""
    text = clean_text(title)
    match = _CARD_NO_HASH_RE.search(text) or _CARD_NO_MARKER_RE.search(text)
    return match.group(1) if match else ""


def extract_set_from_title(title: object) -> str:
    """Approximate set name: leading year/season dropped, cut at the card number."""
    text = _LEADING_YEAR_RE.sub("", clean_text(title))
    cut = text.find("#")
    if cut != -1:
        text = text[:cut]
    return text.strip(" -")


def extract_player_from_title(title: object) -> str:
    """Approximate player name: the words after the card number token."""
    text = clean_text(title)
    match = _CARD_NO_HASH_RE.search(text)
    if not match:
        return ""
    rest = text[match.end():]
    stop = _TITLE_STOP_RE.search(rest)
    if stop:
        rest = rest[:stop.start()]
    return rest.strip(" -,")
