"""Tests for reconciliation, strict dedupe and bulk append."""

from decimal import Decimal

import pytest

from card_inventory.config import PipelineConfig
from card_inventory.delimited import parse_delimited
from card_inventory.models import AMBIGUOUS, MATCHED, UNMATCHED
from card_inventory.normalize import normalize_table
from card_inventory.reconcile import (
    append_new_records,
    build_index,
    dedupe_records,
    reconcile_records,
)
from card_inventory.scoring import MatchThresholds


def _records(text):
    return normalize_table(parse_delimited(text))


@pytest.fixture
def old_records(old_inventory_csv):
    return _records(old_inventory_csv)


@pytest.fixture
def new_records(new_inventory_csv):
    return _records(new_inventory_csv)


class TestBuildIndex:
    """Tests for build_index function."""

    def test_groups_positions_by_key(self, new_records):
        index = build_index(new_records)
        assert index["lionel messi|topps chrome|7|2024"] == [(0, new_records[0])]
        assert len(index) == 3


class TestReconcileRecords:
    """Tests for reconcile_records function."""

    def test_classifies_every_authoritative_row(self, old_records, new_records):
        result = reconcile_records(old_records, new_records)

        assert [o.status for o in result.outcomes] == [MATCHED, MATCHED, UNMATCHED]
        assert result.matched_count == 2
        assert result.unmatched_count == 1
        assert len(result.records) == len(old_records)

    def test_merges_matched_rows(self, old_records, new_records):
        result = reconcile_records(old_records, new_records)
        messi = result.records[0]

        assert messi.id == "A1"
        assert messi.value == Decimal("10.00")
        assert messi.team == "Inter Miami"
        assert messi.extras["norm_value"] == "12.50"
        assert messi.notes == "top loader"

    def test_unmatched_rows_pass_through(self, old_records, new_records):
        result = reconcile_records(old_records, new_records)
        unknown = result.records[2]

        assert unknown is old_records[2]
        assert unknown.supplied_row().get("team") is None

    def test_unused_reference_rows_are_not_inserted(self, old_records, new_records):
        result = reconcile_records(old_records, new_records)

        assert [r.id for r in result.unused_reference] == ["c_x3"]
        assert "Kylian Mbappe" not in [r.player for r in result.records]

    def test_headers_keep_old_order_and_append_new(self, old_records, new_records):
        result = reconcile_records(old_records, new_records)

        assert result.headers[:7] == ["id", "player", "set", "card_number", "year", "value", "notes"]
        for name in ("team", "league", "image", "norm_value", "norm_id"):
            assert name in result.headers

    def test_tied_candidates_are_ambiguous(self, make_record):
        old = [make_record(id="A1", player="Messi", set="Topps", card_number="7", year="2024")]
        new = [
            make_record(id="N1", player="Messi", set="Topps", card_number="7", year="2024", team="Inter Miami"),
            make_record(id="N2", player="Messi", set="Topps", card_number="7", year="2024", team="PSG"),
        ]

        result = reconcile_records(old, new)

        assert result.outcomes[0].status == AMBIGUOUS
        assert [c.position for c in result.outcomes[0].candidates] == [0, 1]
        assert result.records[0] is old[0]
        assert len(result.unused_reference) == 2

    def test_gap_of_exactly_one_point_is_ambiguous(self, make_record):
        cells = dict(player="Messi", set="Topps", card_number="7", year="2024")
        old = [make_record(id="A1", team="Inter Miami", **cells)]
        new = [
            make_record(id="N1", team="Inter Miami", **cells),
            make_record(id="N2", **cells),
        ]

        assert reconcile_records(old, new).outcomes[0].status == AMBIGUOUS

    def test_clear_winner_is_matched(self, make_record):
        cells = dict(player="Messi", set="Topps", card_number="7", year="2024")
        old = [make_record(id="A1", team="Inter Miami", league="MLS", **cells)]
        new = [
            make_record(id="N1", **cells),
            make_record(id="N2", team="Inter Miami", league="MLS", **cells),
        ]

        outcome = reconcile_records(old, new).outcomes[0]

        assert outcome.status == MATCHED
        assert outcome.chosen == 1

    def test_three_candidates_with_a_narrow_leader_are_ambiguous(self, make_record):
        """Two candidates tie at the floor and a third leads them by exactly the gap."""
        cells = dict(player="Messi", set="Topps")
        old = [make_record(id="A1", team="Inter Miami", **cells)]
        new = [
            make_record(id="N1", **cells),
            make_record(id="N2", team="Inter Miami", **cells),
            make_record(id="N3", **cells),
        ]

        result = reconcile_records(old, new)
        outcome = result.outcomes[0]

        assert outcome.status == AMBIGUOUS
        assert [c.position for c in outcome.candidates] == [1, 0, 2]
        assert [c.score for c in outcome.candidates] == [9.0, 8.0, 8.0]
        assert result.records[0] is old[0]

    def test_single_candidate_below_floor_is_unmatched(self, make_record):
        old = [make_record(set="Topps", year="2024")]
        new = [make_record(set="Topps", year="2024", team="Inter Miami")]

        result = reconcile_records(old, new)

        assert result.outcomes[0].status == UNMATCHED
        assert result.outcomes[0].score == 5.0

    def test_floor_comes_from_config(self, make_record):
        old = [make_record(set="Topps", year="2024")]
        new = [make_record(set="Topps", year="2024", team="Inter Miami")]
        config = PipelineConfig(thresholds=MatchThresholds(floor=5.0))

        result = reconcile_records(old, new, config)

        assert result.outcomes[0].status == MATCHED
        assert result.records[0].team == "Inter Miami"

    def test_empty_reference(self, old_records):
        result = reconcile_records(old_records, [])
        assert result.unmatched_count == 3
        assert result.records == old_records


class TestDedupeRecords:
    """Tests for dedupe_records function."""

    def test_sums_quantities_of_literal_duplicates(self, duplicates_csv):
        result = dedupe_records(_records(duplicates_csv))

        assert result.rows_in == 3
        assert result.rows_out == 2
        assert result.merged_rows == 1
        assert result.records[0].quantity == 3
        assert result.records[0].notes == "binder | box"

    def test_graded_copy_stays_separate(self, duplicates_csv):
        result = dedupe_records(_records(duplicates_csv))

        graded = result.records[1]
        assert graded.grade == "PSA 10"
        assert graded.quantity == 1

    def test_reports_duplicate_groups(self, duplicates_csv):
        records = _records(duplicates_csv)
        result = dedupe_records(records)

        (group,) = result.groups
        assert group.row_count == 2
        assert group.merged_quantity == 3
        assert group.kept_id == records[0].id

    def test_quantity_is_conserved(self, duplicates_csv):
        records = _records(duplicates_csv)
        result = dedupe_records(records)
        assert sum(r.quantity for r in result.records) == sum(r.quantity for r in records)

    def test_three_way_group_keeps_every_value(self):
        text = (
            "player,set,card_number,year,value\n"
            "Messi,Topps,7,2024,1\n"
            "Messi,Topps,7,2024,2\n"
            "Messi,Topps,7,2024,3\n"
        )
        (merged,) = dedupe_records(_records(text)).records

        assert merged.quantity == 3
        assert merged.get("value") == "1"
        assert merged.extras["norm_value"] == "2 | 3"

    def test_no_duplicates(self, old_records):
        result = dedupe_records(old_records)
        assert result.records == old_records
        assert result.groups == []


class TestAppendNewRecords:
    """Tests for append_new_records function."""

    def test_adds_only_unknown_cards(self, old_records, bulk_export_csv):
        bulk = _records(bulk_export_csv)

        result = append_new_records(old_records, bulk)

        assert [r.title for _, r in result.added] == ["2023-24 Panini Prizm #221 Haaland"]
        assert [r.title for _, r in result.skipped] == ["2024 Topps Chrome #7 Lionel Messi"]
        assert len(result.duplicates_inside_bulk) == 1
        assert len(result.records) == len(old_records) + 1

    def test_appended_record_keeps_bulk_images(self, old_records, bulk_export_csv):
        result = append_new_records(old_records, _records(bulk_export_csv))

        haaland = result.records[-1]
        assert haaland.image.endswith("/a.jpg")
        assert haaland.image_back.endswith("/b.jpg")
        assert "title" in result.headers
        assert result.headers[0] == "id"
