"""Trading card inventory normalization and reconciliation."""

from .models import CardRecord, ParsedTable, ReconcileResult, DedupeResult
from .delimited import parse_delimited, format_delimited, detect_delimiter
from .normalize import normalize_export, normalize_table, record_from_row
from .keys import build_key, build_strict_key, record_id
from .merge import MergePolicy, merge_records
from .reconcile import reconcile_records, dedupe_records, append_new_records
from .config import PipelineConfig, load_config
from .errors import InventoryError, MissingInputError, InputReadError, ConfigError

__all__ = [
    "CardRecord",
    "ParsedTable",
    "ReconcileResult",
    "DedupeResult",
    "parse_delimited",
    "format_delimited",
    "detect_delimiter",
    "normalize_export",
    "normalize_table",
    "record_from_row",
    "build_key",
    "build_strict_key",
    "record_id",
    "MergePolicy",
    "merge_records",
    "reconcile_records",
    "dedupe_records",
    "append_new_records",
    "PipelineConfig",
    "load_config",
    "InventoryError",
    "MissingInputError",
    "InputReadError",
    "ConfigError",
]
