"""Dataclass models shared across the card inventory pipeline."""

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from .fields import format_money

CANONICAL_FIELDS: Tuple[str, ...] = (
    "id",
    "sport",
    "year",
    "set",
    "subset",
    "card_number",
    "player",
    "team",
    "league",
    "parallel",
    "insert",
    "rookie",
    "autograph",
    "serial_number",
    "grade",
    "condition",
    "quantity",
    "purchase_price",
    "value",
    "currency",
    "notes",
    "image",
    "image_back",
    "source",
    "timestamp",
)

IDENTITY_FIELDS: Tuple[str, ...] = ("player", "set", "card_number", "year")
VARIANT_FIELDS: Tuple[str, ...] = (
    "parallel",
    "insert",
    "rookie",
    "autograph",
    "serial_number",
    "grade",
    "condition",
)
MONEY_FIELDS: Tuple[str, ...] = ("purchase_price", "value")

SHADOW_PREFIX = "norm_"

MATCHED = "matched"
UNMATCHED = "unmatched"
AMBIGUOUS = "ambiguous"


def _to_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return format_money(value)
    return str(value)


@dataclass
class ParsedTable:
    """Header labels and raw rows read from one delimited file."""
    headers: List[str] = field(default_factory=list)
    rows: List[Dict[str, str]] = field(default_factory=list)
    delimiter: str = ","

    @property
    def is_empty(self) -> bool:
        return not self.headers or not self.rows


@dataclass
class CardRecord:
    """One canonical inventory line.

    Canonical fields are attributes with a single casing. Columns that have no
    canonical meaning (``title``, ``images``, ``norm_*`` shadows, ...) live in
    ``extras``. ``columns`` lists the columns the source file supplied, which is
    what merge uses to tell an absent column from a blank cell.
    """
    id: str = ""
    sport: str = ""
    year: str = ""
    set: str = ""
    subset: str = ""
    card_number: str = ""
    player: str = ""
    team: str = ""
    league: str = ""
    parallel: str = ""
    insert: str = ""
    rookie: str = ""
    autograph: str = ""
    serial_number: str = ""
    grade: str = ""
    condition: str = ""
    quantity: int = 1
    purchase_price: Optional[Decimal] = None
    value: Optional[Decimal] = None
    currency: str = ""
    notes: str = ""
    image: str = ""
    image_back: str = ""
    source: str = ""
    timestamp: str = ""
    extras: Dict[str, str] = field(default_factory=dict)
    columns: Tuple[str, ...] = ()
    source_row: int = 0

    @property
    def title(self) -> str:
        return self.extras.get("title", "")

    def get(self, name: str) -> str:
        """Return the text form of a canonical or synthetic column."""
        if name in CANONICAL_FIELDS:
            return _to_text(getattr(self, name))
        return self.extras.get(name, "")

    def supplies(self, name: str) -> bool:
        """Whether the source file had a column for ``name``."""
        return name in self.columns

    def is_blank(self, name: str) -> bool:
        return not self.get(name).strip()

    def to_row(self) -> Dict[str, str]:
        row = {name: self.get(name) for name in CANONICAL_FIELDS}
        row.update(self.extras)
        return row

    def supplied_row(self) -> Dict[str, str]:
        """Only the columns the source supplied (plus merged-in ones)."""
        return {name: self.get(name) for name in self.columns}

    def updated(self, **changes) -> "CardRecord":
        """Return a copy with ``changes`` applied; the original is untouched."""
        if "extras" not in changes:
            changes["extras"] = dict(self.extras)
        return replace(self, **changes)


@dataclass
class CandidateScore:
    """A reference record position and the score it earned."""
    position: int
    score: float


@dataclass
class MatchOutcome:
    """Classification of one authoritative row."""
    row: int
    status: str
    key: str
    candidates: List[CandidateScore] = field(default_factory=list)
    chosen: Optional[int] = None

    @property
    def score(self) -> float:
        return self.candidates[0].score if self.candidates else 0.0


@dataclass
class ReconcileResult:
    """Merged output of an authoritative dataset against a reference dataset."""
    records: List[CardRecord]
    headers: List[str]
    outcomes: List[MatchOutcome]
    authoritative: List[CardRecord]
    reference: List[CardRecord]
    used_reference: List[int] = field(default_factory=list)

    def _count(self, status: str) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def matched_count(self) -> int:
        return self._count(MATCHED)

    @property
    def unmatched_count(self) -> int:
        return self._count(UNMATCHED)

    @property
    def ambiguous_count(self) -> int:
        return self._count(AMBIGUOUS)

    @property
    def unused_reference(self) -> List[CardRecord]:
        used = set(self.used_reference)
        return [r for i, r in enumerate(self.reference) if i not in used]


@dataclass
class DuplicateGroup:
    """Records collapsed into one line because they share a strict key."""
    key: str
    kept_id: str
    merged_ids: List[str] = field(default_factory=list)
    row_count: int = 1
    merged_quantity: int = 0


@dataclass
class DedupeResult:
    """Result of collapsing strict duplicates within one dataset."""
    records: List[CardRecord]
    headers: List[str]
    groups: List[DuplicateGroup]
    rows_in: int

    @property
    def rows_out(self) -> int:
        return len(self.records)

    @property
    def merged_rows(self) -> int:
        return self.rows_in - self.rows_out


@dataclass
class AppendResult:
    """Bulk-export records added to (or skipped for) an inventory."""
    records: List[CardRecord]
    headers: List[str]
    added: List[Tuple[str, CardRecord]] = field(default_factory=list)
    skipped: List[Tuple[str, CardRecord]] = field(default_factory=list)
    duplicates_inside_bulk: List[Tuple[str, CardRecord]] = field(default_factory=list)


@dataclass
class NormalizeResult:
    """Canonical records produced from one raw export."""
    records: List[CardRecord]
    headers: List[str]
    rows_parsed: int
    delimiter: str
    fill_rates: Dict[str, int] = field(default_factory=dict)

    @property
    def removed_duplicate_ids(self) -> int:
        return self.rows_parsed - len(self.records)
