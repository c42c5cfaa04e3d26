from __future__ import annotations

import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Mapping

import numpy as np

from signal_backtester.contexts.backtest.domain.value_objects import (
    CONTEXT_KIND_BANDED,
    CONTEXT_KIND_CATEGORICAL,
    CONTEXT_KIND_COMPOSITE,
    CONTEXT_KIND_CROSSOVER,
    CONTEXT_KIND_DERIVED,
    CONTEXT_KIND_DIVERGENCE,
    CONTEXT_KIND_MULTI_BAR,
    CONTEXT_KIND_PIVOT,
    CONTEXT_KIND_THRESHOLD,
    EvaluationContextV1,
)
from signal_backtester.contexts.indicators.application.dto import (
    AlignedIndicatorSeries,
    CandleArrays,
    as_float,
)

BUILDER_THRESHOLD = "threshold"
BUILDER_PRICE = "price"
BUILDER_ROLLING_AVERAGE = "rolling_average"
BUILDER_CROSSOVER = "crossover"
BUILDER_MULTI_BAR = "multi_bar"
BUILDER_CATEGORICAL = "categorical"
BUILDER_BANDED = "banded"
BUILDER_PIVOT = "pivot"
BUILDER_COMPOSITE = "composite"
BUILDER_DIVERGENCE = "divergence"
BUILDER_PRICE_RANGE = "price_range"
BUILDER_PRICE_CHANNEL = "price_channel"
BUILDER_VOLUME_AVERAGE = "volume_average"

_MULTI_BAR_DEPTH = 3
_PENDING_DIVERGENCE_TYPE = "pending divergence"
_PIVOT_LEVELS = ("pivot", "r1", "r2", "s1", "s2")

ContextBuilderFn = Callable[..., EvaluationContextV1 | None]


@dataclass(frozen=True, slots=True)
class ContextBuilderSpecV1:
    """
    Declarative binding of one family tag to a context-builder shape.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/signal_families_v1.py
      - src/signal_backtester/contexts/backtest/application/services/trade_simulator_v1.py
      - tests/unit/contexts/backtest/application/services/test_signal_context_builders_v1.py
    """

    builder: str
    value_field: str = "value"
    fast_field: str | None = None
    slow_field: str | None = None
    fields: tuple[str, ...] = ()
    lookback: int = 0
    record_field: str | None = None

    def __post_init__(self) -> None:
        """
        Validate builder literal and the parameters it requires.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Field names match indicator-library output keys verbatim (case-sensitive).
        Raises:
            ValueError: If builder is unknown or its required parameters are missing.
        Side Effects:
            Normalizes builder literal to lowercase.
        """
        normalized_builder = self.builder.strip().lower()
        object.__setattr__(self, "builder", normalized_builder)
        if normalized_builder not in _BUILDERS:
            raise ValueError(f"ContextBuilderSpecV1.builder is unsupported: {self.builder!r}")
        if not self.value_field.strip():
            raise ValueError("ContextBuilderSpecV1.value_field must be non-empty")
        if normalized_builder == BUILDER_CROSSOVER and (
            not self.fast_field or not self.slow_field
        ):
            raise ValueError("crossover builder requires fast_field and slow_field")
        if normalized_builder == BUILDER_COMPOSITE and not self.fields:
            raise ValueError("composite builder requires fields")
        if self.record_field is not None and not self.record_field.strip():
            raise ValueError("ContextBuilderSpecV1.record_field must be non-empty when set")
        if self.lookback < 0:
            raise ValueError("ContextBuilderSpecV1.lookback must be >= 0")
        if normalized_builder in _WINDOWED_BUILDERS and self.lookback <= 0:
            raise ValueError(f"{normalized_builder} builder requires lookback > 0")

    @property
    def context_kind(self) -> str:
        """Return the uniform context shape this builder emits."""
        return _BUILDER_CONTEXT_KIND[self.builder]

    @property
    def min_lookback(self) -> int:
        """
        Return the smallest candle index at which the builder can produce a context.

        Args:
            None.
        Returns:
            int: Minimum index; smaller indexes always yield "unavailable".
        Assumptions:
            Indicator warm-up offset is handled separately by series alignment.
        Raises:
            None.
        Side Effects:
            None.
        """
        if self.builder == BUILDER_MULTI_BAR:
            return _MULTI_BAR_DEPTH
        if self.builder in (BUILDER_CROSSOVER, BUILDER_COMPOSITE):
            return 1
        if self.builder in (BUILDER_ROLLING_AVERAGE, BUILDER_PRICE_RANGE):
            return self.lookback - 1
        if self.builder in (BUILDER_PRICE_CHANNEL, BUILDER_VOLUME_AVERAGE):
            return self.lookback
        return 0

    @property
    def requires_indicator(self) -> bool:
        return self.builder not in _CANDLE_ONLY_BUILDERS


def build_evaluation_context_v1(
    *,
    builder_spec: ContextBuilderSpecV1,
    series: AlignedIndicatorSeries,
    candles: CandleArrays,
    index: int,
) -> EvaluationContextV1 | None:
    """
    Build per-step evaluation context for one candle index.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/trade_simulator_v1.py
      - src/signal_backtester/contexts/indicators/application/dto/indicator_series.py
      - tests/unit/contexts/backtest/application/services/test_signal_context_builders_v1.py

    Args:
        builder_spec: Family builder binding.
        series: Indicator output aligned to candle indexes (empty for candle-only families).
        candles: Oldest-to-newest candle arrays.
        index: Candle index being evaluated.
    Returns:
        EvaluationContextV1 | None: Context, or None when the step is unavailable.
    Assumptions:
        Missing sub-fields degrade to `nan`/None inside the context instead of raising.
    Raises:
        IndexError: If index is outside candle arrays.
    Side Effects:
        None.
    """
    if index < 0 or index >= candles.bar_count:
        raise IndexError(f"candle index {index} is out of range [0, {candles.bar_count})")
    if index < builder_spec.min_lookback:
        return None
    builder_fn = _BUILDERS[builder_spec.builder]
    return builder_fn(spec=builder_spec, series=series, candles=candles, index=index)


def _build_threshold(
    *,
    spec: ContextBuilderSpecV1,
    series: AlignedIndicatorSeries,
    candles: CandleArrays,
    index: int,
) -> EvaluationContextV1 | None:
    if series.record_at(index) is None:
        return None
    return _context(
        kind=CONTEXT_KIND_THRESHOLD,
        index=index,
        values={
            "value": series.value_at(index, spec.value_field),
            "previous_value": series.value_at(index - 1, spec.value_field),
        },
    )


def _build_price(
    *,
    spec: ContextBuilderSpecV1,
    series: AlignedIndicatorSeries,
    candles: CandleArrays,
    index: int,
) -> EvaluationContextV1 | None:
    return _context(
        kind=CONTEXT_KIND_THRESHOLD,
        index=index,
        values={
            "value": _close(candles=candles, index=index),
            "previous_value": _close(candles=candles, index=index - 1),
        },
    )


def _build_rolling_average(
    *,
    spec: ContextBuilderSpecV1,
    series: AlignedIndicatorSeries,
    candles: CandleArrays,
    index: int,
) -> EvaluationContextV1 | None:
    if series.record_at(index) is None:
        return None
    window = [
        series.value_at(window_index, spec.value_field)
        for window_index in range(index - spec.lookback + 1, index + 1)
    ]
    average = math.fsum(window) / len(window)
    return _context(
        kind=CONTEXT_KIND_THRESHOLD,
        index=index,
        values={
            "value": window[-1],
            "previous_value": series.value_at(index - 1, spec.value_field),
            "average": average,
        },
    )


def _build_crossover(
    *,
    spec: ContextBuilderSpecV1,
    series: AlignedIndicatorSeries,
    candles: CandleArrays,
    index: int,
) -> EvaluationContextV1 | None:
    current = series.record_at(index)
    previous = series.record_at(index - 1)
    if current is None or previous is None:
        return None
    fast_field = spec.fast_field or ""
    slow_field = spec.slow_field or ""
    return _context(
        kind=CONTEXT_KIND_CROSSOVER,
        index=index,
        values={
            "fast": as_float(current.get(fast_field)),
            "slow": as_float(current.get(slow_field)),
            "previous_fast": as_float(previous.get(fast_field)),
            "previous_slow": as_float(previous.get(slow_field)),
        },
    )


def _build_multi_bar(
    *,
    spec: ContextBuilderSpecV1,
    series: AlignedIndicatorSeries,
    candles: CandleArrays,
    index: int,
) -> EvaluationContextV1 | None:
    if series.record_at(index - _MULTI_BAR_DEPTH) is None or series.record_at(index) is None:
        return None
    return _context(
        kind=CONTEXT_KIND_MULTI_BAR,
        index=index,
        values={
            "all": tuple(
                series.value_at(index - depth, spec.value_field)
                for depth in range(1, _MULTI_BAR_DEPTH + 1)
            ),
            "current": series.value_at(index, spec.value_field),
        },
    )


def _build_categorical(
    *,
    spec: ContextBuilderSpecV1,
    series: AlignedIndicatorSeries,
    candles: CandleArrays,
    index: int,
) -> EvaluationContextV1 | None:
    record = series.record_at(index)
    if record is None:
        return None
    return _context(
        kind=CONTEXT_KIND_CATEGORICAL,
        index=index,
        values={
            "trend": record.get("trend"),
            "value": as_float(record.get(spec.value_field)),
            "price": _close(candles=candles, index=index),
        },
    )


def _build_banded(
    *,
    spec: ContextBuilderSpecV1,
    series: AlignedIndicatorSeries,
    candles: CandleArrays,
    index: int,
) -> EvaluationContextV1 | None:
    record = series.record_at(index)
    if record is None:
        return None
    values: dict[str, Any] = dict(record)
    values.update(_price_fields(candles=candles, index=index))
    return _context(kind=CONTEXT_KIND_BANDED, index=index, values=values)


def _build_pivot(
    *,
    spec: ContextBuilderSpecV1,
    series: AlignedIndicatorSeries,
    candles: CandleArrays,
    index: int,
) -> EvaluationContextV1 | None:
    record = series.record_at(index)
    if record is None:
        return None
    levels: Mapping[str, Any] = record
    if spec.record_field is not None:
        # Уровни могут лежать во вложенной записи, например {"woodies": {...}}.
        nested = record.get(spec.record_field)
        if isinstance(nested, Mapping):
            levels = nested
    values: dict[str, Any] = {name: as_float(levels.get(name)) for name in _PIVOT_LEVELS}
    values["price"] = _close(candles=candles, index=index)
    return _context(kind=CONTEXT_KIND_PIVOT, index=index, values=values)


def _build_composite(
    *,
    spec: ContextBuilderSpecV1,
    series: AlignedIndicatorSeries,
    candles: CandleArrays,
    index: int,
) -> EvaluationContextV1 | None:
    current = series.record_at(index)
    previous = series.record_at(index - 1)
    if current is None or previous is None:
        return None
    values: dict[str, Any] = {}
    for name in spec.fields:
        values[name] = as_float(current.get(name))
        values[f"previous_{name}"] = as_float(previous.get(name))
    values.update(_price_fields(candles=candles, index=index))
    return _context(kind=CONTEXT_KIND_COMPOSITE, index=index, values=values)


def _build_divergence(
    *,
    spec: ContextBuilderSpecV1,
    series: AlignedIndicatorSeries,
    candles: CandleArrays,
    index: int,
) -> EvaluationContextV1 | None:
    record = series.record_at(index)
    if record is None:
        return None
    raw_divergences = record.get("divergence")
    confirmed: list[str] = []
    if isinstance(raw_divergences, (list, tuple)):
        for item in raw_divergences:
            if not isinstance(item, Mapping):
                continue
            divergence_type = str(item.get("type", "")).strip().lower()
            indicator = item.get("indicator")
            if divergence_type == _PENDING_DIVERGENCE_TYPE or not isinstance(indicator, str):
                continue
            confirmed.append(indicator)
    return _context(
        kind=CONTEXT_KIND_DIVERGENCE,
        index=index,
        values={
            "has_divergence": record.get("hasDivergence") is True,
            "confirmed": tuple(confirmed),
            "price": _close(candles=candles, index=index),
        },
    )


def _build_price_range(
    *,
    spec: ContextBuilderSpecV1,
    series: AlignedIndicatorSeries,
    candles: CandleArrays,
    index: int,
) -> EvaluationContextV1 | None:
    window = slice(index - spec.lookback + 1, index + 1)
    return _context(
        kind=CONTEXT_KIND_DERIVED,
        index=index,
        values={
            "high": float(np.max(candles.high[window])),
            "low": float(np.min(candles.low[window])),
            "price": _close(candles=candles, index=index),
        },
    )


def _build_price_channel(
    *,
    spec: ContextBuilderSpecV1,
    series: AlignedIndicatorSeries,
    candles: CandleArrays,
    index: int,
) -> EvaluationContextV1 | None:
    # Канал строится по предыдущим барам, текущий бар в окно не входит.
    window = slice(index - spec.lookback, index)
    values: dict[str, Any] = {
        "upper": float(np.max(candles.high[window])),
        "lower": float(np.min(candles.low[window])),
    }
    values.update(_price_fields(candles=candles, index=index))
    return _context(kind=CONTEXT_KIND_BANDED, index=index, values=values)


def _build_volume_average(
    *,
    spec: ContextBuilderSpecV1,
    series: AlignedIndicatorSeries,
    candles: CandleArrays,
    index: int,
) -> EvaluationContextV1 | None:
    window = slice(index - spec.lookback, index)
    return _context(
        kind=CONTEXT_KIND_DERIVED,
        index=index,
        values={
            "volume": float(candles.volume[index]),
            "average_volume": float(np.mean(candles.volume[window])),
            "price": _close(candles=candles, index=index),
        },
    )


def _close(*, candles: CandleArrays, index: int) -> float:
    if index < 0:
        return math.nan
    return float(candles.close[index])


def _price_fields(*, candles: CandleArrays, index: int) -> dict[str, float]:
    return {
        "price": _close(candles=candles, index=index),
        "previous_price": _close(candles=candles, index=index - 1),
        "high": float(candles.high[index]),
        "low": float(candles.low[index]),
    }


def _context(*, kind: str, index: int, values: Mapping[str, Any]) -> EvaluationContextV1:
    return EvaluationContextV1(kind=kind, index=index, values=values)


_BUILDERS: Mapping[str, ContextBuilderFn] = MappingProxyType(
    {
        BUILDER_THRESHOLD: _build_threshold,
        BUILDER_PRICE: _build_price,
        BUILDER_ROLLING_AVERAGE: _build_rolling_average,
        BUILDER_CROSSOVER: _build_crossover,
        BUILDER_MULTI_BAR: _build_multi_bar,
        BUILDER_CATEGORICAL: _build_categorical,
        BUILDER_BANDED: _build_banded,
        BUILDER_PIVOT: _build_pivot,
        BUILDER_COMPOSITE: _build_composite,
        BUILDER_DIVERGENCE: _build_divergence,
        BUILDER_PRICE_RANGE: _build_price_range,
        BUILDER_PRICE_CHANNEL: _build_price_channel,
        BUILDER_VOLUME_AVERAGE: _build_volume_average,
    }
)

_BUILDER_CONTEXT_KIND: Mapping[str, str] = MappingProxyType(
    {
        BUILDER_THRESHOLD: CONTEXT_KIND_THRESHOLD,
        BUILDER_PRICE: CONTEXT_KIND_THRESHOLD,
        BUILDER_ROLLING_AVERAGE: CONTEXT_KIND_THRESHOLD,
        BUILDER_CROSSOVER: CONTEXT_KIND_CROSSOVER,
        BUILDER_MULTI_BAR: CONTEXT_KIND_MULTI_BAR,
        BUILDER_CATEGORICAL: CONTEXT_KIND_CATEGORICAL,
        BUILDER_BANDED: CONTEXT_KIND_BANDED,
        BUILDER_PIVOT: CONTEXT_KIND_PIVOT,
        BUILDER_COMPOSITE: CONTEXT_KIND_COMPOSITE,
        BUILDER_DIVERGENCE: CONTEXT_KIND_DIVERGENCE,
        BUILDER_PRICE_RANGE: CONTEXT_KIND_DERIVED,
        BUILDER_PRICE_CHANNEL: CONTEXT_KIND_BANDED,
        BUILDER_VOLUME_AVERAGE: CONTEXT_KIND_DERIVED,
    }
)

_WINDOWED_BUILDERS = frozenset(
    {
        BUILDER_ROLLING_AVERAGE,
        BUILDER_PRICE_RANGE,
        BUILDER_PRICE_CHANNEL,
        BUILDER_VOLUME_AVERAGE,
    }
)

_CANDLE_ONLY_BUILDERS = frozenset(
    {
        BUILDER_PRICE,
        BUILDER_PRICE_RANGE,
        BUILDER_PRICE_CHANNEL,
        BUILDER_VOLUME_AVERAGE,
    }
)
