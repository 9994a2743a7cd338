"""Field-by-field merge policy for matched records and strict duplicates."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, FrozenSet, List, Optional, Sequence

from .fields import clean_text, parse_timestamp
from .keys import record_id
from .models import CANONICAL_FIELDS, MONEY_FIELDS, SHADOW_PREFIX, CardRecord

MERGE_VALUE_STRATEGIES = ("keep_old", "max", "min", "newest")
NOTES_SEPARATOR = " | "

# Fields with their own combination rule; everything else follows the
# precedence/blank-filling rule.
_AGGREGATED = frozenset({"id", "quantity", "notes", "timestamp", *MONEY_FIELDS})


@dataclass(frozen=True)
class MergePolicy:
    """How conflicting values are resolved.

    Attributes:
        fill_blanks: Fill blank fields of the winning record from the other one.
        merge_values: Strategy for ``value``/``purchase_price``: keep_old, max,
            min or newest (by ``timestamp``).
        fill_fields: Restrict blank-filling to these fields; None means all.
    """
    fill_blanks: bool = False
    merge_values: str = "keep_old"
    fill_fields: Optional[FrozenSet[str]] = None

    def __post_init__(self):
        if self.merge_values not in MERGE_VALUE_STRATEGIES:
            raise ValueError(
                f"Unsupported merge_values strategy: {self.merge_values!r} "
                f"(expected one of {', '.join(MERGE_VALUE_STRATEGIES)})"
            )

    def may_fill(self, name: str) -> bool:
        return self.fill_blanks and (self.fill_fields is None or name in self.fill_fields)


def _field_names(old: CardRecord, new: CardRecord) -> List[str]:
    names = list(CANONICAL_FIELDS)
    for record in (old, new):
        for name in record.extras:
            if name not in names:
                names.append(name)
    return names


def _raw(record: CardRecord, name: str):
    if name in CANONICAL_FIELDS:
        return getattr(record, name)
    return record.extras.get(name, "")


def _pick(old: CardRecord, new: CardRecord, name: str, policy: MergePolicy):
    """Old value wins; new is used for columns old never had, or to fill blanks."""
    if not new.supplies(name) or new.is_blank(name):
        return _raw(old, name)
    if not old.supplies(name):
        return _raw(new, name)
    if old.is_blank(name) and policy.may_fill(name):
        return _raw(new, name)
    return _raw(old, name)


def newer(old: CardRecord, new: CardRecord) -> CardRecord:
    """The record with the later timestamp; ``new`` wins ties and unknowns."""
    old_ts = parse_timestamp(old.timestamp)
    new_ts = parse_timestamp(new.timestamp)
    if old_ts is not None and (new_ts is None or old_ts > new_ts):
        return old
    return new


def merge_money(
    old: CardRecord,
    new: CardRecord,
    name: str,
    strategy: str,
    current: Optional[Decimal],
) -> Optional[Decimal]:
    """Combine a money field according to ``strategy``."""
    if strategy == "keep_old":
        return current
    a, b = getattr(old, name), getattr(new, name)
    present = [v for v in (a, b) if v is not None]
    if not present:
        return current
    if strategy == "max":
        return max(present)
    if strategy == "min":
        return min(present)
    picked = getattr(newer(old, new), name)
    return current if picked is None else picked


def merge_notes(old_notes: str, new_notes: str) -> str:
    a, b = clean_text(old_notes), clean_text(new_notes)
    if a and b and a != b:
        return f"{a}{NOTES_SEPARATOR}{b}"
    return a or b


def merge_timestamps(old: CardRecord, new: CardRecord) -> str:
    if old.timestamp and new.timestamp:
        return newer(old, new).timestamp
    return old.timestamp or new.timestamp


def merge_columns(old: Sequence[str], new: Sequence[str]) -> List[str]:
    columns = list(old)
    for name in new:
        if name not in columns:
            columns.append(name)
    return columns


def merge_records(
    old: CardRecord,
    new: CardRecord,
    policy: MergePolicy = MergePolicy(),
    duplicate: bool = False,
) -> CardRecord:
    """Merge ``new`` into ``old`` without mutating either.

    Args:
        old: The authoritative record; its values take precedence.
        new: The reference record (or the later of two duplicates).
        policy: Blank-filling and money strategy.
        duplicate: The pair shares a strict duplicate key, so quantities are
            summed instead of kept.

    Returns:
        The merged record. Whenever both sources supplied a column and the new
        value lost, it is kept under ``norm_<field>``.
    """
    values: Dict[str, object] = {}
    extras: Dict[str, str] = {}
    for name in _field_names(old, new):
        if name in _AGGREGATED:
            continue
        picked = _pick(old, new, name, policy)
        if name in CANONICAL_FIELDS:
            values[name] = picked
        else:
            extras[name] = picked

    if duplicate:
        values["quantity"] = max(0, old.quantity) + max(0, new.quantity)
    else:
        values["quantity"] = _pick(old, new, "quantity", policy)

    for name in MONEY_FIELDS:
        current = _pick(old, new, name, policy)
        values[name] = merge_money(old, new, name, policy.merge_values, current)

    values["notes"] = merge_notes(old.notes, new.notes)
    values["timestamp"] = merge_timestamps(old, new)

    if old.supplies("id") and old.id:
        values["id"] = old.id
    elif new.id:
        values["id"] = new.id
    else:
        values["id"] = ""

    merged = CardRecord(
        **values,
        extras=extras,
        columns=tuple(merge_columns(old.columns, new.columns)),
        source_row=old.source_row,
    )
    if not merged.id:
        merged = merged.updated(id=record_id(merged))

    shadows = _shadows(old, new, merged, duplicate)
    if shadows:
        merged.extras.update(shadows)
        merged = merged.updated(columns=tuple(merge_columns(merged.columns, list(shadows))))
    return merged


def _shadows(old: CardRecord, new: CardRecord, merged: CardRecord, duplicate: bool) -> Dict[str, str]:
    """``norm_<field>`` copies of new values that lost a collision.

    Quantity is only shadowed when it was not summed. A shadow already carried
    by the merged record is extended, so every losing value of a group survives.
    """
    shadows = {}
    for name in new.columns:
        if name.startswith(SHADOW_PREFIX) or not old.supplies(name):
            continue
        if name == "notes" or (name == "quantity" and duplicate) or new.is_blank(name):
            continue
        value = new.get(name)
        if value == merged.get(name):
            continue
        shadow = f"{SHADOW_PREFIX}{name}"
        previous = merged.extras.get(shadow, "")
        if not previous:
            shadows[shadow] = value
        elif value not in previous.split(NOTES_SEPARATOR):
            shadows[shadow] = f"{previous}{NOTES_SEPARATOR}{value}"
    return shadows


def merge_headers(old_headers: Sequence[str], new_headers: Sequence[str]) -> List[str]:
    """Old header order, new columns appended, a ``norm_`` column per collision."""
    headers = list(old_headers)
    for name in new_headers:
        if name not in headers:
            headers.append(name)
        elif not name.startswith(SHADOW_PREFIX) and f"{SHADOW_PREFIX}{name}" not in headers:
            headers.append(f"{SHADOW_PREFIX}{name}")
    return headers
