from __future__ import annotations

import math
from typing import Sequence

import numpy as np
import pytest

from signal_backtester.contexts.backtest.application.services import (
    BUILDER_BANDED,
    BUILDER_CATEGORICAL,
    BUILDER_COMPOSITE,
    BUILDER_CROSSOVER,
    BUILDER_DIVERGENCE,
    BUILDER_MULTI_BAR,
    BUILDER_PRICE,
    BUILDER_PRICE_CHANNEL,
    BUILDER_PRICE_RANGE,
    BUILDER_ROLLING_AVERAGE,
    BUILDER_THRESHOLD,
    BUILDER_VOLUME_AVERAGE,
    ContextBuilderSpecV1,
    build_evaluation_context_v1,
)
from signal_backtester.contexts.backtest.domain.value_objects import (
    CONTEXT_KIND_BANDED,
    CONTEXT_KIND_DERIVED,
    CONTEXT_KIND_THRESHOLD,
    EvaluationContextV1,
)
from signal_backtester.contexts.indicators.application.dto import (
    AlignedIndicatorSeries,
    CandleArrays,
    IndicatorSeries,
)
from signal_backtester.shared_kernel.primitives import Symbol, Timeframe


def _candles(
    closes: Sequence[float],
    *,
    volumes: Sequence[float] | None = None,
) -> CandleArrays:
    """
    Build 1h candle arrays where `high = close + 1` and `low = close - 1`.

    Args:
        closes: Close prices oldest-to-newest.
        volumes: Optional volumes; defaults to ones.
    Returns:
        CandleArrays: Dense arrays for builder tests.
    Assumptions:
        Timestamps are contiguous hourly bars.
    Raises:
        ValueError: If arrays violate CandleArrays invariants.
    Side Effects:
        None.
    """
    close = np.array(closes, dtype=np.float64)
    volume = (
        np.array(volumes, dtype=np.float64)
        if volumes is not None
        else np.ones(close.shape[0], dtype=np.float64)
    )
    return CandleArrays(
        symbol=Symbol("ETHUSDT"),
        timeframe=Timeframe("1h"),
        ts_open=np.arange(close.shape[0], dtype=np.int64) * 3_600_000,
        open=close.copy(),
        high=close + 1.0,
        low=close - 1.0,
        close=close,
        volume=volume,
    )


def _build(
    spec: ContextBuilderSpecV1,
    *,
    series: IndicatorSeries,
    candles: CandleArrays,
    index: int,
) -> EvaluationContextV1 | None:
    aligned: AlignedIndicatorSeries = series.align(candle_count=candles.bar_count)
    return build_evaluation_context_v1(
        builder_spec=spec,
        series=aligned,
        candles=candles,
        index=index,
    )


def test_threshold_builder_reads_aligned_value_and_previous_value() -> None:
    candles = _candles([10.0, 11.0, 12.0, 13.0, 14.0])
    series = IndicatorSeries.flat([55.0, 60.0, 65.0])

    context = _build(
        ContextBuilderSpecV1(builder=BUILDER_THRESHOLD),
        series=series,
        candles=candles,
        index=4,
    )

    assert context is not None
    assert context.kind == CONTEXT_KIND_THRESHOLD
    assert context.number("value") == 65.0
    assert context.number("previous_value") == 60.0


def test_threshold_builder_reports_unavailable_during_indicator_warmup() -> None:
    """
    Verify candle indexes before the series offset produce no context.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        Series of length 3 over 5 candles starts at candle index 2.
    Raises:
        AssertionError: If a warm-up step yields a context.
    Side Effects:
        None.
    """
    candles = _candles([10.0, 11.0, 12.0, 13.0, 14.0])
    series = IndicatorSeries.flat([55.0, 60.0, 65.0])
    spec = ContextBuilderSpecV1(builder=BUILDER_THRESHOLD)

    assert _build(spec, series=series, candles=candles, index=1) is None
    first = _build(spec, series=series, candles=candles, index=2)
    assert first is not None
    assert first.number("value") == 55.0
    assert math.isnan(first.number("previous_value"))


def test_threshold_builder_reads_named_field_from_records() -> None:
    candles = _candles([10.0, 11.0, 12.0])
    series = IndicatorSeries.records(
        [
            {"MACD": 1.0, "signal": 0.5, "histogram": -0.2},
            {"MACD": 1.5, "signal": 0.7, "histogram": 0.3},
        ]
    )

    context = _build(
        ContextBuilderSpecV1(builder=BUILDER_THRESHOLD, value_field="histogram"),
        series=series,
        candles=candles,
        index=2,
    )

    assert context is not None
    assert context.number("value") == 0.3
    assert context.number("previous_value") == -0.2


def test_price_builder_uses_close_without_indicator() -> None:
    candles = _candles([10.0, 11.0, 12.0])
    spec = ContextBuilderSpecV1(builder=BUILDER_PRICE)

    context = _build(spec, series=IndicatorSeries.empty(), candles=candles, index=2)

    assert spec.requires_indicator is False
    assert context is not None
    assert context.kind == CONTEXT_KIND_THRESHOLD
    assert context.number("value") == 12.0
    assert context.number("previous_value") == 11.0


def test_rolling_average_builder_includes_current_bar_in_window() -> None:
    candles = _candles([1.0] * 6)
    series = IndicatorSeries.flat([1.0, 2.0, 3.0, 4.0, 5.0, 6.0])
    spec = ContextBuilderSpecV1(builder=BUILDER_ROLLING_AVERAGE, lookback=3)

    assert spec.min_lookback == 2
    assert _build(spec, series=series, candles=candles, index=1) is None
    context = _build(spec, series=series, candles=candles, index=5)

    assert context is not None
    assert context.number("value") == 6.0
    assert context.number("average") == pytest.approx(5.0)


def test_crossover_builder_requires_previous_record() -> None:
    """
    Verify crossover contexts carry current and previous fast/slow values.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        First aligned record has no predecessor and therefore yields no context.
    Raises:
        AssertionError: If crossover values or availability differ.
    Side Effects:
        None.
    """
    candles = _candles([10.0, 11.0, 12.0, 13.0])
    series = IndicatorSeries.records(
        [
            {"k": 20.0, "d": 25.0},
            {"k": 30.0, "d": 28.0},
        ]
    )
    spec = ContextBuilderSpecV1(builder=BUILDER_CROSSOVER, fast_field="k", slow_field="d")

    assert _build(spec, series=series, candles=candles, index=2) is None
    context = _build(spec, series=series, candles=candles, index=3)

    assert context is not None
    assert dict(context.values) == {
        "fast": 30.0,
        "slow": 28.0,
        "previous_fast": 20.0,
        "previous_slow": 25.0,
    }


def test_multi_bar_builder_collects_three_prior_values() -> None:
    candles = _candles([1.0] * 5)
    series = IndicatorSeries.flat([9.0, 8.0, 7.0, 6.0, 5.0])
    spec = ContextBuilderSpecV1(builder=BUILDER_MULTI_BAR)

    assert _build(spec, series=series, candles=candles, index=2) is None
    context = _build(spec, series=series, candles=candles, index=4)

    assert context is not None
    assert context.numbers("all") == (6.0, 7.0, 8.0)
    assert context.number("current") == 5.0


def test_categorical_builder_exposes_trend_value_and_close() -> None:
    candles = _candles([100.0, 101.0])
    series = IndicatorSeries.records([{"trend": "Long", "value": 95.0}])

    context = _build(
        ContextBuilderSpecV1(builder=BUILDER_CATEGORICAL),
        series=series,
        candles=candles,
        index=1,
    )

    assert context is not None
    assert context.text("trend") == "long"
    assert context.number("value") == 95.0
    assert context.number("price") == 101.0


def test_banded_builder_merges_bundle_fields_with_price_fields() -> None:
    """
    Verify bundle sub-series with different lengths are aligned independently.

    Args:
        None.
    Returns:
        None.
    Assumptions:
        `ema3` is shorter than `ema1`, so at index 1 only `ema1` is present.
    Raises:
        AssertionError: If bundle alignment or price fields differ.
    Side Effects:
        None.
    """
    candles = _candles([10.0, 11.0, 12.0, 13.0])
    series = IndicatorSeries.bundle(
        {
            "ema1": [1.0, 2.0, 3.0],
            "ema2": [5.0, 6.0],
            "ema3": [9.0],
        }
    )
    spec = ContextBuilderSpecV1(builder=BUILDER_BANDED)

    early = _build(spec, series=series, candles=candles, index=1)
    late = _build(spec, series=series, candles=candles, index=3)

    assert early is not None
    assert early.number("ema1") == 1.0
    assert math.isnan(early.number("ema3"))
    assert late is not None
    assert late.kind == CONTEXT_KIND_BANDED
    assert (late.number("ema1"), late.number("ema2"), late.number("ema3")) == (3.0, 6.0, 9.0)
    assert late.number("price") == 13.0
    assert late.number("previous_price") == 12.0
    assert late.number("high") == 14.0
    assert late.number("low") == 12.0


def test_pivot_builder_adds_close_price() -> None:
    candles = _candles([100.0, 101.0])
    series = IndicatorSeries.records(
        [{"pivot": 100.0, "r1": 102.0, "r2": 104.0, "s1": 98.0, "s2": 96.0}] * 2
    )

    context = _build(
        ContextBuilderSpecV1(builder="pivot"),
        series=series,
        candles=candles,
        index=1,
    )

    assert context is not None
    assert context.number("price") == 101.0
    assert context.number("r1") == 102.0


def test_pivot_builder_unwraps_nested_record_field() -> None:
    candles = _candles([100.0, 95.0])
    levels = {"pivot": 100.0, "r1": 102.0, "r2": 104.0, "s1": 98.0, "s2": 96.0}
    series = IndicatorSeries.records([{"woodies": levels}] * 2)

    context = _build(
        ContextBuilderSpecV1(builder="pivot", record_field="woodies"),
        series=series,
        candles=candles,
        index=1,
    )

    assert context is not None
    assert context.number("price") == 95.0
    assert context.number("s2") == 96.0
    assert context.number("r2") == 104.0


def test_pivot_builder_missing_nested_levels_read_as_nan() -> None:
    candles = _candles([100.0, 95.0])
    series = IndicatorSeries.records([{"woodies": None}] * 2)

    context = _build(
        ContextBuilderSpecV1(builder="pivot", record_field="woodies"),
        series=series,
        candles=candles,
        index=1,
    )

    assert context is not None
    assert math.isnan(context.number("s1"))


def test_composite_builder_adds_previous_fields() -> None:
    candles = _candles([10.0, 11.0, 12.0])
    series = IndicatorSeries.records(
        [
            {"ema": 1.0, "histogram": -1.0},
            {"ema": 2.0, "histogram": 0.5},
        ]
    )

    context = _build(
        ContextBuilderSpecV1(builder=BUILDER_COMPOSITE, fields=("ema", "histogram")),
        series=series,
        candles=candles,
        index=2,
    )

    assert context is not None
    assert context.number("ema") == 2.0
    assert context.number("previous_ema") == 1.0
    assert context.number("histogram") == 0.5
    assert context.number("previous_histogram") == -1.0
    assert context.number("previous_price") == 11.0


def test_divergence_builder_drops_pending_divergences() -> None:
    candles = _candles([10.0, 11.0])
    series = IndicatorSeries.records(
        [
            {
                "hasDivergence": True,
                "divergence": [
                    {"indicator": "bullishRSI", "type": "regular"},
                    {"indicator": "bearishMACD", "type": "Pending Divergence"},
                    {"type": "regular"},
                ],
            }
        ]
    )

    context = _build(
        ContextBuilderSpecV1(builder=BUILDER_DIVERGENCE),
        series=series,
        candles=candles,
        index=1,
    )

    assert context is not None
    assert context.flag("has_divergence") is True
    assert context.items("confirmed") == ("bullishRSI",)
    assert context.number("price") == 11.0


def test_price_range_builder_uses_inclusive_window() -> None:
    candles = _candles([10.0, 20.0, 15.0, 12.0, 18.0])
    spec = ContextBuilderSpecV1(builder=BUILDER_PRICE_RANGE, lookback=3)

    context = _build(spec, series=IndicatorSeries.empty(), candles=candles, index=4)

    assert context is not None
    assert context.kind == CONTEXT_KIND_DERIVED
    assert context.number("high") == 19.0
    assert context.number("low") == 11.0
    assert context.number("price") == 18.0


def test_price_channel_builder_excludes_current_bar() -> None:
    candles = _candles([10.0, 20.0, 15.0, 30.0])
    spec = ContextBuilderSpecV1(builder=BUILDER_PRICE_CHANNEL, lookback=3)

    assert spec.min_lookback == 3
    assert _build(spec, series=IndicatorSeries.empty(), candles=candles, index=2) is None
    context = _build(spec, series=IndicatorSeries.empty(), candles=candles, index=3)

    assert context is not None
    assert context.kind == CONTEXT_KIND_BANDED
    assert context.number("upper") == 21.0
    assert context.number("lower") == 9.0
    assert context.number("price") == 30.0


def test_volume_average_builder_averages_prior_volumes() -> None:
    candles = _candles([10.0] * 4, volumes=[1.0, 2.0, 3.0, 12.0])
    spec = ContextBuilderSpecV1(builder=BUILDER_VOLUME_AVERAGE, lookback=3)

    context = _build(spec, series=IndicatorSeries.empty(), candles=candles, index=3)

    assert context is not None
    assert context.number("volume") == 12.0
    assert context.number("average_volume") == pytest.approx(2.0)


def test_build_evaluation_context_rejects_out_of_range_index() -> None:
    candles = _candles([10.0, 11.0])

    with pytest.raises(IndexError):
        _build(
            ContextBuilderSpecV1(builder=BUILDER_PRICE),
            series=IndicatorSeries.empty(),
            candles=candles,
            index=2,
        )


@pytest.mark.parametrize(
    ("kwargs", "message"),
    (
        ({"builder": "unknown"}, "unsupported"),
        ({"builder": BUILDER_CROSSOVER, "fast_field": "k"}, "fast_field and slow_field"),
        ({"builder": BUILDER_COMPOSITE}, "requires fields"),
        ({"builder": BUILDER_PRICE_CHANNEL}, "lookback > 0"),
    ),
)
def test_context_builder_spec_rejects_incomplete_configuration(
    kwargs: dict[str, object],
    message: str,
) -> None:
    with pytest.raises(ValueError, match=message):
        ContextBuilderSpecV1(**kwargs)  # type: ignore[arg-type]
