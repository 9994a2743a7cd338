"""JSON audit reports written next to each output."""

import json
from typing import Any, Dict, List, Optional

from .config import PipelineConfig
from .models import (
    AMBIGUOUS,
    UNMATCHED,
    AppendResult,
    CardRecord,
    DedupeResult,
    NormalizeResult,
    ReconcileResult,
)

SUMMARY_FIELDS = ("id", "player", "set", "card_number", "year", "team")
TOP_CANDIDATES = 3


def record_summary(record: CardRecord) -> Dict[str, str]:
    summary = {name: record.get(name) for name in SUMMARY_FIELDS}
    summary["title"] = record.title
    return summary


def _unmatched_sample(result: ReconcileResult, limit: int) -> List[Dict[str, Any]]:
    sample = []
    for outcome in result.outcomes:
        if outcome.status != UNMATCHED:
            continue
        if len(sample) >= limit:
            break
        entry: Dict[str, Any] = {"key": outcome.key, **record_summary(result.authoritative[outcome.row])}
        if outcome.candidates:
            entry["best_score"] = outcome.score
        sample.append(entry)
    return sample


def _ambiguous_sample(result: ReconcileResult, limit: int) -> List[Dict[str, Any]]:
    sample = []
    for outcome in result.outcomes:
        if outcome.status != AMBIGUOUS:
            continue
        if len(sample) >= limit:
            break
        sample.append({
            "key": outcome.key,
            "old": record_summary(result.authoritative[outcome.row]),
            "top_candidates": [
                {"score": candidate.score, **record_summary(result.reference[candidate.position])}
                for candidate in outcome.candidates[:TOP_CANDIDATES]
            ],
        })
    return sample


def reconcile_report(
    result: ReconcileResult,
    old_path: str,
    new_path: str,
    config: Optional[PipelineConfig] = None,
) -> Dict[str, Any]:
    """Counts and bounded samples for a reconciliation run."""
    config = config or PipelineConfig()
    unused = result.unused_reference
    return {
        "inputs": {
            "old_path": str(old_path),
            "new_path": str(new_path),
            "old_rows": len(result.authoritative),
            "new_rows": len(result.reference),
            "fill_blanks": config.policy.fill_blanks,
            "merge_values": config.policy.merge_values,
        },
        "results": {
            "matched": result.matched_count,
            "unmatched": result.unmatched_count,
            "ambiguous": result.ambiguous_count,
            "output_rows": len(result.records),
            "output_columns": len(result.headers),
            "unused_reference_rows": len(unused),
        },
        "samples": {
            "unmatched_rows": _unmatched_sample(result, config.sample_limit),
            "ambiguous_rows": _ambiguous_sample(result, config.sample_limit),
            "unused_reference_rows": [r.supplied_row() for r in unused[: config.unused_sample_limit]],
        },
    }


def dedupe_report(
    result: DedupeResult,
    in_path: str,
    config: Optional[PipelineConfig] = None,
) -> Dict[str, Any]:
    config = config or PipelineConfig()
    return {
        "inputs": {
            "in_path": str(in_path),
            "rows": result.rows_in,
            "fill_blanks": config.policy.fill_blanks,
            "merge_values": config.policy.merge_values,
        },
        "results": {
            "rows_in": result.rows_in,
            "rows_out": result.rows_out,
            "merged_rows": result.merged_rows,
            "duplicate_groups": len(result.groups),
        },
        "samples": {
            "duplicate_groups": [
                {
                    "key": group.key,
                    "kept_id": group.kept_id,
                    "merged_ids": group.merged_ids,
                    "row_count": group.row_count,
                    "merged_quantity": group.merged_quantity,
                }
                for group in result.groups[: config.unused_sample_limit]
            ],
        },
    }


def normalize_report(result: NormalizeResult, in_path: str) -> Dict[str, Any]:
    return {
        "inputs": {"in_path": str(in_path), "delimiter": result.delimiter},
        "results": {
            "rows_parsed": result.rows_parsed,
            "rows_out": len(result.records),
            "removed_duplicate_ids": result.removed_duplicate_ids,
            "fill_rates": result.fill_rates,
        },
    }


def append_report(
    result: AppendResult,
    inventory_path: str,
    bulk_path: str,
    bulk_rows: int,
    config: Optional[PipelineConfig] = None,
) -> Dict[str, Any]:
    config = config or PipelineConfig()
    inventory_rows = len(result.records) - len(result.added)

    def sample(entries):
        return [
            {"key": key, **record_summary(record)}
            for key, record in entries[: config.unused_sample_limit]
        ]

    return {
        "inputs": {
            "inventory_path": str(inventory_path),
            "bulk_path": str(bulk_path),
            "inventory_rows": inventory_rows,
            "bulk_rows": bulk_rows,
        },
        "results": {
            "added": len(result.added),
            "skipped": len(result.skipped),
            "duplicates_inside_bulk": len(result.duplicates_inside_bulk),
            "output_rows": len(result.records),
        },
        "samples": {
            "added": sample(result.added),
            "skipped": sample(result.skipped),
            "duplicates_inside_bulk": sample(result.duplicates_inside_bulk),
        },
    }


def render_report(report: Dict[str, Any]) -> str:
    return json.dumps(report, indent=2) + "\n"
