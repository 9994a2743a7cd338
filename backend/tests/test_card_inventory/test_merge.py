"""Tests for field-by-field record merging."""

from decimal import Decimal

import pytest

from card_inventory.merge import MergePolicy, merge_headers, merge_notes, merge_records, newer


class TestMergePolicy:
    """Tests for MergePolicy dataclass."""

    def test_rejects_unknown_strategy(self):
        with pytest.raises(ValueError, match="merge_values"):
            MergePolicy(merge_values="average")

    def test_fill_fields_restricts_filling(self):
        policy = MergePolicy(fill_blanks=True, fill_fields=frozenset({"team"}))
        assert policy.may_fill("team")
        assert not policy.may_fill("league")
        assert not MergePolicy().may_fill("team")


class TestMergeRecords:
    """Tests for merge_records function."""

    def test_old_value_wins_and_new_value_is_shadowed(self, make_record):
        old = make_record(id="A1", player="Lionel Messi", value="10.00")
        new = make_record(id="c_x1", player="Lionel Messi", value="12.50", team="Inter Miami")

        merged = merge_records(old, new)

        assert merged.id == "A1"
        assert merged.value == Decimal("10.00")
        assert merged.extras["norm_value"] == "12.50"
        assert merged.extras["norm_id"] == "c_x1"
        assert "norm_player" not in merged.extras

    def test_columns_old_never_had_come_from_new(self, make_record):
        old = make_record(id="A1", player="Lionel Messi")
        new = make_record(player="Lionel Messi", team="Inter Miami", image="a.jpg")

        merged = merge_records(old, new)

        assert merged.team == "Inter Miami"
        assert merged.image.endswith("/a.jpg")
        assert merged.columns == ("id", "player", "team", "image")

    def test_blank_old_value_is_kept_without_fill_blanks(self, make_record):
        old = make_record(id="A1", player="Messi", team="")
        new = make_record(player="Messi", team="Inter Miami")

        merged = merge_records(old, new)

        assert merged.team == ""
        assert merged.extras["norm_team"] == "Inter Miami"

    def test_fill_blanks(self, make_record):
        old = make_record(id="A1", player="Messi", team="")
        new = make_record(player="Messi", team="Inter Miami")

        merged = merge_records(old, new, MergePolicy(fill_blanks=True))

        assert merged.team == "Inter Miami"
        assert "norm_team" not in merged.extras

    def test_inputs_are_not_mutated(self, make_record):
        old = make_record(id="A1", player="Messi", value="1")
        new = make_record(player="Messi", value="2", team="Miami")

        merge_records(old, new)

        assert old.extras == {}
        assert old.columns == ("id", "player", "value")
        assert new.value == Decimal("2")

    def test_duplicate_merge_sums_quantity(self, make_record):
        first = make_record(player="Messi", quantity="1")
        second = make_record(player="Messi", quantity="2")

        assert merge_records(first, second, duplicate=True).quantity == 3
        assert merge_records(first, second).quantity == 1

    def test_kept_quantity_shadows_the_other_one(self, make_record):
        old = make_record(id="A1", player="Messi", quantity="1")
        new = make_record(player="Messi", quantity="3")

        assert merge_records(old, new).extras["norm_quantity"] == "3"
        assert "norm_quantity" not in merge_records(old, new, duplicate=True).extras

    def test_repeated_merges_keep_every_losing_value(self, make_record):
        first = make_record(player="Messi", value="1")
        second = make_record(player="Messi", value="2")
        third = make_record(player="Messi", value="3")

        merged = merge_records(merge_records(first, second, duplicate=True), third, duplicate=True)

        assert merged.value == Decimal("1")
        assert merged.extras["norm_value"] == "2 | 3"

    def test_notes_are_joined(self, make_record):
        old = make_record(player="Messi", notes="binder")
        new = make_record(player="Messi", notes="box")
        assert merge_records(old, new).notes == "binder | box"

    @pytest.mark.parametrize(
        "strategy,expected",
        [("keep_old", "10"), ("max", "12"), ("min", "10"), ("newest", "12")],
    )
    def test_merge_values_strategies(self, make_record, strategy, expected):
        old = make_record(player="Messi", value="10", timestamp="2024-01-01")
        new = make_record(player="Messi", value="12", timestamp="2024-03-01")

        merged = merge_records(old, new, MergePolicy(merge_values=strategy))

        assert merged.value == Decimal(expected)

    def test_newest_prefers_later_old_record(self, make_record):
        old = make_record(player="Messi", value="10", timestamp="2024-05-01")
        new = make_record(player="Messi", value="12", timestamp="2024-03-01")

        merged = merge_records(old, new, MergePolicy(merge_values="newest"))

        assert merged.value == Decimal("10")
        assert merged.timestamp == "2024-05-01"

    def test_max_ignores_blank_values(self, make_record):
        old = make_record(player="Messi", value="")
        new = make_record(player="Messi", value="7")
        assert merge_records(old, new, MergePolicy(merge_values="max")).value == Decimal("7")


class TestHelpers:
    """Tests for newer, merge_notes and merge_headers functions."""

    def test_newer_breaks_ties_towards_new(self, make_record):
        old = make_record(player="Messi", timestamp="2024-01-01")
        new = make_record(player="Messi", timestamp="2024-01-01")
        assert newer(old, new) is new

    def test_merge_notes_skips_repeats(self):
        assert merge_notes("binder", "binder") == "binder"
        assert merge_notes("", "box") == "box"

    def test_merge_headers_adds_shadow_columns(self):
        headers = merge_headers(["id", "player", "value"], ["player", "team", "value"])
        assert headers == ["id", "player", "value", "norm_player", "team", "norm_value"]
