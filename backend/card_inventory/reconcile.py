"""Reconciliation passes over canonical records.

- ``reconcile_records``: match an authoritative dataset against a reference
  dataset and merge confident matches.
- ``dedupe_records``: collapse literal duplicates within one dataset.
- ``append_new_records``: add bulk-export cards an inventory does not hold yet.
"""

import logging
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .config import PipelineConfig
from .keys import candidate_key, duplicate_key
from .merge import MergePolicy, merge_columns, merge_headers, merge_records
from .models import (
    AMBIGUOUS,
    MATCHED,
    UNMATCHED,
    AppendResult,
    CardRecord,
    DedupeResult,
    DuplicateGroup,
    MatchOutcome,
    ReconcileResult,
)
from .scoring import accept, rank_candidates

logger = logging.getLogger(__name__)

CandidateIndex = Dict[str, List[Tuple[int, CardRecord]]]


def build_index(
    records: Sequence[CardRecord],
    key_fn: Callable[[CardRecord], str] = candidate_key,
) -> CandidateIndex:
    """Group records by key, remembering each record's input position."""
    index: CandidateIndex = defaultdict(list)
    for position, record in enumerate(records):
        key = key_fn(record)
        if key:
            index[key].append((position, record))
    return dict(index)


def column_order(records: Sequence[CardRecord]) -> List[str]:
    """Columns supplied across ``records`` in first-seen order."""
    columns: List[str] = []
    for record in records:
        columns = merge_columns(columns, record.columns)
    return columns


def classify(
    record: CardRecord,
    row: int,
    index: CandidateIndex,
    config: PipelineConfig,
) -> MatchOutcome:
    """Decide whether one authoritative record is matched, unmatched or ambiguous."""
    key = candidate_key(record)
    candidates = index.get(key, [])
    if not candidates:
        return MatchOutcome(row=row, status=UNMATCHED, key=key)

    ranked = rank_candidates(record, candidates, config.weights)
    if len(ranked) == 1:
        status = MATCHED if ranked[0].score >= config.thresholds.floor else UNMATCHED
    else:
        status = MATCHED if accept(ranked, config.thresholds) else AMBIGUOUS

    chosen = ranked[0].position if status == MATCHED else None
    return MatchOutcome(row=row, status=status, key=key, candidates=ranked, chosen=chosen)


def reconcile_records(
    authoritative: Sequence[CardRecord],
    reference: Sequence[CardRecord],
    config: Optional[PipelineConfig] = None,
) -> ReconcileResult:
    """Merge confident reference matches into the authoritative records.

    Unmatched and ambiguous rows pass through unchanged. Reference records are
    never inserted; the ones no match consumed are exposed as
    ``ReconcileResult.unused_reference`` for manual review.

    Args:
        authoritative: The "old" dataset; its values take precedence.
        reference: The "new" dataset searched for candidates.
        config: Thresholds, weights and merge policy.

    Returns:
        ReconcileResult with one output record per authoritative record.
    """
    config = config or PipelineConfig()
    index = build_index(reference)
    logger.info(f"Indexed {len(reference)} reference rows under {len(index)} keys")

    outputs: List[CardRecord] = []
    outcomes: List[MatchOutcome] = []
    used: List[int] = []

    for row, record in enumerate(authoritative):
        outcome = classify(record, row, index, config)
        outcomes.append(outcome)
        logger.debug(f"Row {row + 1}: {outcome.status} key={outcome.key!r} score={outcome.score}")

        if outcome.status == MATCHED:
            match = reference[outcome.chosen]
            outputs.append(merge_records(record, match, config.policy))
            if outcome.chosen not in used:
                used.append(outcome.chosen)
        else:
            outputs.append(record)

    headers = merge_headers(column_order(authoritative), column_order(reference))
    headers = merge_columns(headers, column_order(outputs))

    result = ReconcileResult(
        records=outputs,
        headers=headers,
        outcomes=outcomes,
        authoritative=list(authoritative),
        reference=list(reference),
        used_reference=used,
    )
    logger.info(
        f"matched={result.matched_count} | unmatched={result.unmatched_count} | "
        f"ambiguous={result.ambiguous_count} | cols={len(headers)}"
    )
    if result.unmatched_count or result.ambiguous_count:
        logger.warning("Some authoritative rows were not merged (see report samples).")
    unused = len(reference) - len(used)
    if unused:
        logger.info(f"{unused} reference rows were never matched (see report).")
    return result


def dedupe_records(
    records: Sequence[CardRecord],
    policy: MergePolicy = MergePolicy(),
) -> DedupeResult:
    """Collapse records sharing a strict duplicate key, summing quantities.

    Only literal duplicates merge: parallel, insert, rookie, autograph, serial,
    grade and condition are all part of the key. The first record of a group
    keeps its position and acts as the old side of every merge.
    """
    merged: Dict[str, CardRecord] = {}
    groups: Dict[str, DuplicateGroup] = {}

    for record in records:
        key = duplicate_key(record)
        existing = merged.get(key)
        if existing is None:
            merged[key] = record
            continue

        combined = merge_records(existing, record, policy, duplicate=True)
        merged[key] = combined

        group = groups.get(key)
        if group is None:
            group = groups[key] = DuplicateGroup(key=key, kept_id=combined.id)
        group.kept_id = combined.id
        group.row_count += 1
        group.merged_quantity = combined.quantity
        if record.id:
            group.merged_ids.append(record.id)

    deduped = list(merged.values())
    headers = column_order(deduped)
    logger.info(
        f"Rows in: {len(records)} | rows out: {len(deduped)} | duplicate groups: {len(groups)}"
    )
    return DedupeResult(
        records=deduped,
        headers=headers,
        groups=list(groups.values()),
        rows_in=len(records),
    )


def append_new_records(
    inventory: Sequence[CardRecord],
    bulk: Sequence[CardRecord],
) -> AppendResult:
    """Append bulk-export cards whose key the inventory does not hold yet.

    The first bulk row of each key is considered; later rows with the same key
    are reported as duplicates inside the bulk export.
    """
    inventory_keys = {candidate_key(record) for record in inventory}
    seen_in_bulk = set()
    result = AppendResult(records=list(inventory), headers=[])

    for record in bulk:
        key = candidate_key(record)
        if key in seen_in_bulk:
            result.duplicates_inside_bulk.append((key, record))
            continue
        seen_in_bulk.add(key)
        if key in inventory_keys:
            result.skipped.append((key, record))
            continue
        result.added.append((key, record))
        result.records.append(record)
        inventory_keys.add(key)

    result.headers = merge_columns(column_order(inventory), column_order(bulk))
    logger.info(
        f"Added: {len(result.added)} | skipped: {len(result.skipped)} | "
        f"duplicates within bulk: {len(result.duplicates_inside_bulk)}"
    )
    return result
