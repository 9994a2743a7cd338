"""Identity keys used to find candidate matches and literal duplicates."""

import hashlib
from typing import Tuple

from .fields import (
    extract_card_number_from_title,
    extract_player_from_title,
    extract_set_from_title,
    extract_year,
    normalize_text,
)
from .models import VARIANT_FIELDS, CardRecord

KEY_SEPARATOR = "|"
WEAK_PREFIX = "weak:"


def identity_fields(record: CardRecord) -> Tuple[str, str, str, str]:
    """Return folded ``(player, set, card_number, year)`` for a record.

    Each blank structured value falls back to what can be mined from the
    title; the year also falls back to a year embedded in the set name.
    """
    title = record.title
    player = record.player or extract_player_from_title(title)
    set_name = record.set or extract_set_from_title(title)
    card_number = record.card_number or extract_card_number_from_title(title)
    year = (
        extract_year(record.year)
        or extract_year(record.set)
        or extract_year(title)
    )
    return (
        normalize_text(player),
        normalize_text(set_name),
        normalize_text(card_number),
        year,
    )


def build_key(record: CardRecord) -> str:
    """Primary identity key: ``player|set|card_number|year``."""
    return KEY_SEPARATOR.join(identity_fields(record))


def build_strict_key(record: CardRecord) -> str:
    """Identity key plus the variant and physical-state fields."""
    variant = [normalize_text(record.get(name)) for name in VARIANT_FIELDS]
    return KEY_SEPARATOR.join([*identity_fields(record), *variant])


def is_weak_key(record: CardRecord) -> bool:
    """A key built from fewer than two identity fields collides too easily."""
    return sum(1 for part in identity_fields(record) if part) < 2


def first_image(record: CardRecord) -> str:
    return record.image or record.image_back


def fallback_key(record: CardRecord) -> str:
    return f"{normalize_text(record.title)}{KEY_SEPARATOR}{first_image(record)}"


def candidate_key(record: CardRecord) -> str:
    """Key used to bucket candidates, falling back to title/image when weak."""
    if is_weak_key(record):
        return WEAK_PREFIX + fallback_key(record)
    return build_key(record)


def has_identity(record: CardRecord) -> bool:
    """Whether any identity, title or image data exists to derive an id from."""
    return any(identity_fields(record)) or bool(record.title.strip()) or bool(first_image(record))


def duplicate_key(record: CardRecord) -> str:
    """Strict duplicate key, widened with the title/image fallback when weak.

    Two sparse rows would otherwise share a key made mostly of blanks.
    """
    if is_weak_key(record):
        return f"{WEAK_PREFIX}{build_strict_key(record)}{KEY_SEPARATOR}{fallback_key(record)}"
    return build_strict_key(record)


def record_id(record: CardRecord) -> str:
    """Deterministic ``c_<sha1>`` id derived from the duplicate key."""
    digest = hashlib.sha1(duplicate_key(record).encode("utf-8")).hexdigest()[:10]
    return f"c_{digest}"
