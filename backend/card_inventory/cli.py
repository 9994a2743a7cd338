"""Command line entry point: ``card-inventory <command> [options]``."""

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from .config import PipelineConfig, load_config
from .errors import ConfigError, InventoryError, MissingInputError
from .files import choose_input, read_table, render_records, require_inputs, write_outputs
from .merge import MERGE_VALUE_STRATEGIES
from .normalize import normalize_export, normalize_table
from .reconcile import append_new_records, dedupe_records, reconcile_records
from .report import append_report, dedupe_report, normalize_report, reconcile_report, render_report

logger = logging.getLogger(__name__)

NORMALIZED_BASENAME = "full_card_inventory.normalized"
DEFAULT_OUTDIR = "data"


def _load_records(path: str, config: PipelineConfig):
    table = read_table(path)
    return normalize_table(table, config.image_base_url, config.default_currency)


def _with_policy_flags(config: PipelineConfig, args: argparse.Namespace) -> PipelineConfig:
    """Command line flags override the policy read from the config file."""
    changes = {}
    if args.fill_blanks:
        changes["fill_blanks"] = True
    if args.merge_values:
        changes["merge_values"] = args.merge_values
    if not changes:
        return config
    return replace(config, policy=replace(config.policy, **changes))


def run_normalize(args: argparse.Namespace, config: PipelineConfig) -> None:
    in_path = args.in_path or choose_input(config.input_candidates)
    if in_path is None:
        raise MissingInputError(config.input_candidates)
    require_inputs([in_path])
    logger.info(f"Input: {in_path}")

    table = read_table(in_path)
    result = normalize_export(table, config.image_base_url, config.default_currency)

    outdir = Path(args.outdir)
    write_outputs({
        outdir / f"{NORMALIZED_BASENAME}.csv": render_records(result.records, result.headers, ",", supplied_only=False),
        outdir / f"{NORMALIZED_BASENAME}.tsv": render_records(result.records, result.headers, "\t", supplied_only=False),
        outdir / f"{NORMALIZED_BASENAME}.report.json": render_report(normalize_report(result, in_path)),
    })
    logger.info(f"Rows: {len(result.records)}")


def run_merge(args: argparse.Namespace, config: PipelineConfig) -> None:
    require_inputs([args.old, args.new])
    config = _with_policy_flags(config, args)

    authoritative = _load_records(args.old, config)
    reference = _load_records(args.new, config)
    result = reconcile_records(authoritative, reference, config)

    write_outputs({
        args.out_csv: render_records(result.records, result.headers, ","),
        args.out_tsv: render_records(result.records, result.headers, "\t"),
        args.out_report: render_report(reconcile_report(result, args.old, args.new, config)),
    })


def run_dedupe(args: argparse.Namespace, config: PipelineConfig) -> None:
    require_inputs([args.in_path])
    config = _with_policy_flags(config, args)

    records = _load_records(args.in_path, config)
    result = dedupe_records(records, config.policy)

    write_outputs({
        args.out_csv: render_records(result.records, result.headers, ","),
        args.out_tsv: render_records(result.records, result.headers, "\t"),
        args.out_report: render_report(dedupe_report(result, args.in_path, config)),
    })


def run_append(args: argparse.Namespace, config: PipelineConfig) -> None:
    require_inputs([args.inventory, args.bulk])

    inventory = _load_records(args.inventory, config)
    bulk = _load_records(args.bulk, config)
    result = append_new_records(inventory, bulk)

    write_outputs({
        args.out: render_records(result.records, result.headers, ","),
        args.report: render_report(append_report(result, args.inventory, args.bulk, len(bulk), config)),
    })


def _add_policy_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--fill-blanks",
        action="store_true",
        help="Fill blank fields of the kept record from the other one",
    )
    parser.add_argument(
        "--merge-values",
        choices=MERGE_VALUE_STRATEGIES,
        default=None,
        help="How value/purchase_price conflicts are resolved (default: keep_old)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="card-inventory",
        description="Normalize, merge and dedupe trading card inventory exports",
    )
    parser.add_argument("--config", type=Path, help="YAML file overriding thresholds, weights and policy")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log per-row decisions")
    subparsers = parser.add_subparsers(dest="command", required=True)

    normalize = subparsers.add_parser("normalize", help="Rewrite a raw export in the canonical schema")
    normalize.add_argument("--in", dest="in_path", help="Input file (default: first configured candidate found)")
    normalize.add_argument("--outdir", default=DEFAULT_OUTDIR, help="Output directory (default: data)")
    normalize.set_defaults(handler=run_normalize)

    merge = subparsers.add_parser("merge", help="Merge a reference dataset into an authoritative one")
    merge.add_argument("--old", default="public/inventory.csv", help="Authoritative dataset")
    merge.add_argument("--new", default=f"{DEFAULT_OUTDIR}/{NORMALIZED_BASENAME}.csv", help="Reference dataset")
    merge.add_argument("--out-csv", default="data/inventory.hybrid.csv")
    merge.add_argument("--out-tsv", default="data/inventory.hybrid.tsv")
    merge.add_argument("--out-report", default="data/inventory.hybrid.report.json")
    _add_policy_arguments(merge)
    merge.set_defaults(handler=run_merge)

    dedupe = subparsers.add_parser("dedupe", help="Collapse strict duplicates, summing quantities")
    dedupe.add_argument("--in", dest="in_path", default="data/inventory.hybrid.csv")
    dedupe.add_argument("--out-csv", default="data/inventory.deduped.csv")
    dedupe.add_argument("--out-tsv", default="data/inventory.deduped.tsv")
    dedupe.add_argument("--out-report", default="data/inventory.deduped.report.json")
    _add_policy_arguments(dedupe)
    dedupe.set_defaults(handler=run_dedupe)

    append = subparsers.add_parser("append", help="Add bulk-export cards missing from an inventory")
    append.add_argument("--inventory", default="public/inventory.csv")
    append.add_argument("--bulk", default="data/ebay-bulk.csv")
    append.add_argument("--out", default="data/inventory.with-bulk.csv")
    append.add_argument("--report", default="data/inventory.with-bulk.report.json")
    append.set_defaults(handler=run_append)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
        args.handler(args, config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    except InventoryError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
