"""Map free-text column labels onto canonical field names."""

import re
from types import MappingProxyType
from typing import Dict, Iterable, Mapping

from .models import CANONICAL_FIELDS

# Synthetic columns the pipeline knows how to use even though they are not
# part of the canonical schema.
AUXILIARY_FIELDS = ("title", "images")

_ALIASES = {
    "card_number": (
        "card #", "card#", "card no", "card no.", "card number", "cardnumber",
        "card_no", "number", "no", "no.", "#", "card num",
    ),
    "player": ("name", "player name", "player_name", "athlete", "character", "players"),
    "set": ("set name", "set_name", "product", "collection", "series", "card set"),
    "subset": ("sub-set", "sub set"),
    "year": (
        "season", "yr", "year/season", "set year", "release year",
        "year manufactured", "season year",
    ),
    "quantity": ("qty", "count", "quantity available", "available quantity", "copies"),
    "id": (
        "sku", "custom label", "custom label (sku)", "item number", "item id",
        "card id", "card_id",
    ),
    "value": (
        "price", "est value", "estimated value", "current value", "start price",
        "market value", "value (usd)",
    ),
    "purchase_price": ("cost", "buy price", "purchase", "paid", "purchase price", "cost basis"),
    "rookie": ("rc", "rookie card", "rookie?"),
    "autograph": ("auto", "sig", "signed", "autographed", "auto?"),
    "serial_number": (
        "sn", "serial", "serial#", "serial #", "serial number", "print run",
        "numbered", "serial numbered",
    ),
    "grade": ("graded", "grade value", "professional grader grade", "card grade"),
    "condition": ("card condition", "cond"),
    "parallel": ("variant", "parallel/variety", "parallel / variety", "variation", "parallel type"),
    "insert": ("insert set", "insert name"),
    "team": ("team name", "club"),
    "league": ("league name",),
    "sport": ("category",),
    "notes": ("note", "comments", "comment", "description"),
    "timestamp": ("updated", "updated at", "updated_at", "last updated", "date added", "added"),
    "currency": ("curr",),
    "source": ("origin",),
    "image": (
        "img", "photo", "front", "image_url", "image url", "front_image",
        "front image", "image_front", "image front", "photo_url", "photo url",
        "front_url", "front url", "picture url", "filename", "file",
    ),
    "image_back": (
        "back", "back image", "back_image", "image back", "image_back",
        "back url", "back_url", "back photo",
    ),
    "images": ("images", "pictures", "item photo url", "photos"),
    "title": ("title", "item title", "listing title"),
}

HEADER_ALIASES: Mapping[str, str] = MappingProxyType(
    {alias: canonical for canonical, aliases in _ALIASES.items() for alias in aliases}
)

KNOWN_FIELDS = frozenset(CANONICAL_FIELDS) | frozenset(AUXILIARY_FIELDS)


def normalize_header(label: str) -> str:
    """Trim, collapse internal whitespace and lower-case a header label."""
    return re.sub(r"\s+", " ", str(label or "").strip()).lower()


def slugify(label: str) -> str:
    return re.sub(r"[^0-9a-z]+", "_", label.lower()).strip("_")


def canonicalize_header(label: str) -> str:
    """Return the canonical field name for a raw header label.

    Unknown labels become a slug, which is kept in output as a synthetic
    column but plays no part in matching.
    """
    normalized = normalize_header(label)
    if normalized in HEADER_ALIASES:
        return HEADER_ALIASES[normalized]
    if normalized in KNOWN_FIELDS:
        return normalized

    slug = slugify(normalized)
    if slug in HEADER_ALIASES:
        return HEADER_ALIASES[slug]
    if slug in KNOWN_FIELDS:
        return slug
    return slug or "col"


def canonicalize_headers(labels: Iterable[str]) -> Dict[str, str]:
    """Map each raw label to its canonical name."""
    return {label: canonicalize_header(label) for label in labels}
