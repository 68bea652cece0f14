import math

import polars as pl
import pytest

from nfl_stability.errors import InsufficientData, MissingColumn, SchemaMismatch
from nfl_stability.stability import (
    STATUS_INSUFFICIENT,
    STATUS_OK,
    STATUS_UNDEFINED,
    pair_consecutive_periods,
    stability_table,
    threshold_sensitivity,
    year_over_year_stability,
)
from nfl_stability.transforms import MetricSpec, aggregate_entity_periods


PAIR_KEYS = ["entity_id", "entity_name", "category"]


def _agg(rows: list[tuple]) -> pl.DataFrame:
    return pl.DataFrame(
        rows,
        schema={
            "entity_id": pl.Utf8,
            "entity_name": pl.Utf8,
            "season": pl.Int64,
            "category": pl.Utf8,
            "n": pl.Int64,
            "avg": pl.Float64,
        },
        orient="row",
    )


class TestPairConsecutivePeriods:
    def test_single_entity_two_consecutive_seasons(self):
        agg = _agg([("P1", "p1", 2016, "short", 12, 5.0), ("P1", "p1", 2017, "short", 15, 6.0)])

        paired = pair_consecutive_periods(agg, PAIR_KEYS, ["avg"])

        assert paired.height == 1
        row = paired.row(0, named=True)
        assert row["category"] == "short"
        assert row["entity_id"] == "P1"
        assert (row["season"], row["season_next"]) == (2016, 2017)
        assert (row["avg_current"], row["avg_next"]) == (5.0, 6.0)

    def test_rows_below_threshold_never_pair(self):
        obs = pl.DataFrame(
            {
                "entity_id": ["P1"] * 17,
                "entity_name": ["p1"] * 17,
                "season": [2016] * 12 + [2017] * 5,
                "category": ["short"] * 17,
                "value": [5.0] * 12 + [6.0] * 5,
            }
        )
        agg = aggregate_entity_periods(
            obs, PAIR_KEYS + ["season"], [MetricSpec("avg", "value")], min_count=10
        )

        paired = pair_consecutive_periods(agg, PAIR_KEYS, ["avg"])

        assert agg.height == 1
        assert paired.height == 0

    def test_non_consecutive_seasons_are_excluded(self):
        agg = _agg(
            [
                ("P2", "p2", 2016, "short", 20, 4.0),
                ("P2", "p2", 2018, "short", 20, 7.0),
                ("P1", "p1", 2016, "short", 20, 5.0),
                ("P1", "p1", 2017, "short", 20, 6.0),
            ]
        )

        paired = pair_consecutive_periods(agg, PAIR_KEYS, ["avg"])

        assert paired["entity_id"].to_list() == ["P1"]

    def test_next_period_is_always_current_plus_one(self):
        agg = _agg(
            [(f"P{i}", f"p{i}", season, cat, 30, float(i + season % 7))
             for i in range(6) for season in (2015, 2016, 2017, 2019, 2020) for cat in ("short", "long")
             if (i + season) % 3]
        )

        paired = pair_consecutive_periods(agg, PAIR_KEYS, ["avg"])

        assert paired.height > 0
        assert (paired["season_next"] - paired["season"]).unique().to_list() == [1]

    def test_same_entity_different_category_does_not_pair(self):
        agg = _agg([("P1", "p1", 2016, "short", 20, 5.0), ("P1", "p1", 2017, "long", 20, 9.0)])

        assert pair_consecutive_periods(agg, PAIR_KEYS, ["avg"]).height == 0

    def test_name_is_part_of_the_key(self):
        agg = _agg([("P1", "A.Smith", 2016, "short", 20, 5.0), ("P1", "Al Smith", 2017, "short", 20, 9.0)])

        assert pair_consecutive_periods(agg, PAIR_KEYS, ["avg"]).height == 0

    def test_custom_shift(self):
        agg = _agg([("P2", "p2", 2016, "short", 20, 4.0), ("P2", "p2", 2018, "short", 20, 7.0)])

        paired = pair_consecutive_periods(agg, PAIR_KEYS, ["avg"], shift=2)

        assert paired["season_next"].to_list() == [2018]

    def test_empty_input_is_fatal(self):
        with pytest.raises(InsufficientData):
            pair_consecutive_periods(_agg([]), PAIR_KEYS, ["avg"])

    def test_missing_column_is_fatal(self):
        agg = _agg([("P1", "p1", 2016, "short", 12, 5.0)]).drop("category")

        with pytest.raises(MissingColumn):
            pair_consecutive_periods(agg, PAIR_KEYS, ["avg"])

    def test_duplicate_entity_period_rows_rejected(self):
        agg = _agg([("P1", "p1", 2016, "short", 12, 5.0), ("P1", "p1", 2016, "short", 13, 5.5)])

        with pytest.raises(SchemaMismatch):
            pair_consecutive_periods(agg, PAIR_KEYS, ["avg"])


class TestStabilityTable:
    def _two_category_agg(self) -> pl.DataFrame:
        rows = []
        short_values = [1.0, 2.0, 3.0, 4.0, 5.0]
        long_current = [1.0, 2.0, 3.0, 4.0, 5.0]
        long_next = [3.0, 1.0, 5.0, 2.0, 4.0]
        for i in range(5):
            rows.append((f"S{i}", f"s{i}", 2020, "short", 20, short_values[i]))
            rows.append((f"S{i}", f"s{i}", 2021, "short", 20, short_values[i]))
            rows.append((f"L{i}", f"l{i}", 2020, "long", 20, long_current[i]))
            rows.append((f"L{i}", f"l{i}", 2021, "long", 20, long_next[i]))
        return _agg(rows)

    def test_perfect_and_noisy_categories(self):
        paired, results = year_over_year_stability(self._two_category_agg(), PAIR_KEYS, ["avg"])

        assert paired.height == 10
        by_cat = {r["category"]: r for r in results.iter_rows(named=True)}
        short, long = by_cat["short"], by_cat["long"]
        assert short["status"] == STATUS_OK
        assert short["correlation"] == pytest.approx(1.0)
        assert long["status"] == STATUS_OK
        assert long["n_pairs"] == 5
        assert long["correlation"] == pytest.approx(0.3)
        # five pairs leave a wide interval around 0.3
        assert long["ci_lower"] < 0 < long["ci_upper"]
        assert long["ci_upper"] - long["ci_lower"] > 1.0

    def test_results_are_deterministic(self):
        agg = self._two_category_agg()

        first = year_over_year_stability(agg, PAIR_KEYS, ["avg"])[1]
        second = year_over_year_stability(agg.reverse(), PAIR_KEYS, ["avg"])[1]

        assert first.equals(second)

    def test_zero_variance_is_undefined_not_zero(self):
        agg = _agg(
            [(f"P{i}", f"p{i}", season, "short", 20, 5.0 if season == 2020 else float(i))
             for i in range(4) for season in (2020, 2021)]
        )

        results = year_over_year_stability(agg, PAIR_KEYS, ["avg"])[1]

        row = results.row(0, named=True)
        assert row["status"] == STATUS_UNDEFINED
        assert math.isnan(row["correlation"])
        assert row["ci_lower"] is None

    def test_float_noise_in_equal_means_is_undefined(self):
        # both 0.15 on paper, not bit-identical once averaged
        current = [sum([0.1, 0.2]) / 2, 0.15, sum([0.05, 0.25]) / 2, 0.15]
        assert len(set(current)) > 1
        paired = pl.DataFrame({"avg_current": current, "avg_next": [1.0, 3.0, 2.0, 5.0]})

        row = stability_table(paired, ["avg"], by=[]).row(0, named=True)

        assert row["n_pairs"] == 4
        assert row["status"] == STATUS_UNDEFINED
        assert math.isnan(row["correlation"])
        assert row["ci_lower"] is None

    def test_small_but_real_spread_is_still_correlated(self):
        paired = pl.DataFrame({"avg_current": [1e-6, 2e-6, 3e-6, 4e-6], "avg_next": [1.0, 2.0, 3.0, 4.0]})

        row = stability_table(paired, ["avg"], by=[]).row(0, named=True)

        assert row["status"] == STATUS_OK
        assert row["correlation"] == pytest.approx(1.0)

    def test_single_pair_is_insufficient_but_other_categories_proceed(self):
        rows = [("P1", "p1", 2020, "long", 20, 3.0), ("P1", "p1", 2021, "long", 20, 4.0)]
        rows += [(f"S{i}", f"s{i}", season, "short", 20, float(i * (season - 2019)))
                 for i in range(4) for season in (2020, 2021)]

        results = year_over_year_stability(_agg(rows), PAIR_KEYS, ["avg"])[1]

        by_cat = {r["category"]: r for r in results.iter_rows(named=True)}
        assert by_cat["long"]["status"] == STATUS_INSUFFICIENT
        assert by_cat["long"]["n_pairs"] == 1
        assert math.isnan(by_cat["long"]["correlation"])
        assert by_cat["short"]["status"] == STATUS_OK
        assert by_cat["short"]["correlation"] == pytest.approx(1.0)

    def test_no_grouping_columns_yields_one_row_per_metric(self):
        agg = self._two_category_agg().with_columns((pl.col("avg") * 2).alias("double"))
        paired = pair_consecutive_periods(agg, PAIR_KEYS, ["avg", "double"])

        results = stability_table(paired, ["double", "avg"], by=[])

        assert results["metric"].to_list() == ["avg", "double"]
        assert results["n_pairs"].to_list() == [10, 10]
        assert results["correlation"][0] == pytest.approx(results["correlation"][1])

    def test_empty_pairs_report_insufficient(self):
        paired = pl.DataFrame(schema={"avg_current": pl.Float64, "avg_next": pl.Float64})

        results = stability_table(paired, ["avg"], by=[])

        assert results.row(0, named=True)["status"] == STATUS_INSUFFICIENT
        assert results.row(0, named=True)["n_pairs"] == 0

    def test_null_metric_values_are_skipped(self):
        paired = pl.DataFrame(
            {
                "category": ["short"] * 4,
                "avg_current": [1.0, 2.0, 3.0, None],
                "avg_next": [2.0, 4.0, 6.0, 1.0],
            }
        )

        row = stability_table(paired, ["avg"]).row(0, named=True)

        assert row["n_pairs"] == 3
        assert row["correlation"] == pytest.approx(1.0)

    def test_missing_metric_columns_are_fatal(self):
        paired = pl.DataFrame({"category": ["short"], "avg_current": [1.0]})

        with pytest.raises(MissingColumn):
            stability_table(paired, ["avg"])


def test_threshold_sensitivity_stacks_results_per_threshold():
    counts = {"A": 12, "B": 60, "C": 120, "D": 40}
    data = {"entity_id": [], "entity_name": [], "season": [], "value": []}
    for k, (entity, n) in enumerate(counts.items()):
        for season in (2020, 2021):
            for j in range(n):
                data["entity_id"].append(entity)
                data["entity_name"].append(entity.lower())
                data["season"].append(season)
                data["value"].append(float(k * (season - 2019) + (j % 2)))
    obs = pl.DataFrame(data)

    result = threshold_sensitivity(
        obs,
        keys=["entity_id", "entity_name"],
        metrics=[MetricSpec("avg", "value")],
        thresholds=[10, 50, 100],
    )

    assert result["min_count"].to_list() == [10, 50, 100]
    assert result["n_pairs"].to_list() == [4, 2, 1]
    assert result["n_entity_periods"].to_list() == [8, 4, 2]
    assert result["status"].to_list() == [STATUS_OK, STATUS_OK, STATUS_INSUFFICIENT]


def test_threshold_sensitivity_handles_threshold_above_every_group():
    obs = pl.DataFrame({"entity_id": ["A"] * 3, "entity_name": ["a"] * 3, "season": [2020, 2020, 2021], "value": [1.0, 2.0, 3.0]})

    result = threshold_sensitivity(obs, ["entity_id", "entity_name"], [MetricSpec("avg", "value")], thresholds=[1, 5])

    assert result["min_count"].to_list() == [1, 5]
    assert result["n_entity_periods"].to_list() == [2, 0]
    assert result["status"].to_list() == [STATUS_INSUFFICIENT, STATUS_INSUFFICIENT]
