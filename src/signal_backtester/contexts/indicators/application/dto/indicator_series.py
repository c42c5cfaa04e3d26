from __future__ import annotations

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Sequence

import numpy as np

SERIES_SHAPE_FLAT = "flat"
SERIES_SHAPE_RECORDS = "records"
SERIES_SHAPE_BUNDLE = "bundle"

_ALLOWED_SHAPES = (SERIES_SHAPE_FLAT, SERIES_SHAPE_RECORDS, SERIES_SHAPE_BUNDLE)
_FLAT_FIELD = "value"
_EMPTY_RECORD: Mapping[str, Any] = MappingProxyType({})


def as_float(value: Any) -> float:
    """
    Coerce one raw indicator value into float with NaN for missing/non-numeric input.

    Args:
        value: Raw indicator value (number, numpy scalar, None, or anything else).
    Returns:
        float: Numeric value or `nan`.
    Assumptions:
        Booleans are categorical flags, not numbers.
    Raises:
        None.
    Side Effects:
        None.
    """
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float, np.integer, np.floating)):
        return float(value)
    return math.nan


@dataclass(frozen=True, slots=True)
class IndicatorSeries:
    """
    Output of the indicator library for one configured indicator.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/indicators/application/ports/indicator_library.py
      - src/signal_backtester/contexts/backtest/application/services/signal_context_builders_v1.py
      - tests/unit/contexts/indicators/application/dto/test_indicator_series.py

    Three shapes are supported:
      - `flat`: numeric sequence, each step exposed as `{"value": v}`;
      - `records`: sequence of composite mappings (e.g. `{"MACD": .., "signal": ..}`);
      - `bundle`: named parallel sequences that may differ in length.
    """

    shape: str
    items: tuple[Any, ...] = ()
    fields: Mapping[str, tuple[Any, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __post_init__(self) -> None:
        """
        Validate shape literal and freeze payload containers.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Factory methods are the public construction path.
        Raises:
            ValueError: If shape is unsupported or payload does not match the shape.
        Side Effects:
            Normalizes nested containers into tuples and read-only mappings.
        """
        if self.shape not in _ALLOWED_SHAPES:
            raise ValueError(f"IndicatorSeries.shape must be one of {_ALLOWED_SHAPES}")
        if self.shape == SERIES_SHAPE_BUNDLE:
            if len(self.items) != 0:
                raise ValueError("bundle IndicatorSeries must not carry items")
            frozen_fields = {
                str(name): tuple(values) for name, values in sorted(self.fields.items())
            }
            object.__setattr__(self, "fields", MappingProxyType(frozen_fields))
            return
        if len(self.fields) != 0:
            raise ValueError(f"{self.shape} IndicatorSeries must not carry bundle fields")
        object.__setattr__(self, "items", tuple(self.items))

    @classmethod
    def flat(cls, values: Sequence[Any]) -> IndicatorSeries:
        return cls(shape=SERIES_SHAPE_FLAT, items=tuple(values))

    @classmethod
    def records(cls, items: Sequence[Mapping[str, Any] | None]) -> IndicatorSeries:
        normalized: list[Mapping[str, Any]] = []
        for item in items:
            if item is None:
                normalized.append(_EMPTY_RECORD)
            elif isinstance(item, Mapping):
                normalized.append(MappingProxyType(dict(item)))
            else:
                # Скалярная запись внутри records трактуется как flat-значение.
                normalized.append(MappingProxyType({_FLAT_FIELD: item}))
        return cls(shape=SERIES_SHAPE_RECORDS, items=tuple(normalized))

    @classmethod
    def bundle(cls, fields: Mapping[str, Sequence[Any]]) -> IndicatorSeries:
        return cls(shape=SERIES_SHAPE_BUNDLE, fields=dict(fields))

    @classmethod
    def empty(cls) -> IndicatorSeries:
        """Series used by families that read candles only."""
        return cls(shape=SERIES_SHAPE_FLAT)

    @property
    def length(self) -> int:
        """Series length; for bundles the longest sub-series."""
        if self.shape == SERIES_SHAPE_BUNDLE:
            return max((len(values) for values in self.fields.values()), default=0)
        return len(self.items)

    def align(self, *, candle_count: int) -> AlignedIndicatorSeries:
        """
        Compute leading offsets once and return candle-indexed accessor.

        Args:
            candle_count: Number of candles in the simulated series.
        Returns:
            AlignedIndicatorSeries: Accessor mapping candle index to series index.
        Assumptions:
            Indicator output is missing only its leading warm-up steps.
        Raises:
            ValueError: If candle count is negative or any series is longer than candles.
        Side Effects:
            None.
        """
        if candle_count < 0:
            raise ValueError("candle_count must be >= 0")
        if self.shape == SERIES_SHAPE_BUNDLE:
            offsets = {
                name: _leading_offset(name=name, length=len(values), candle_count=candle_count)
                for name, values in self.fields.items()
            }
        else:
            offsets = {
                _FLAT_FIELD: _leading_offset(
                    name=_FLAT_FIELD,
                    length=len(self.items),
                    candle_count=candle_count,
                )
            }
        return AlignedIndicatorSeries(
            series=self,
            candle_count=candle_count,
            offsets=MappingProxyType(offsets),
        )


@dataclass(frozen=True, slots=True)
class AlignedIndicatorSeries:
    """
    Candle-indexed view over one `IndicatorSeries` with precomputed offsets.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/signal_context_builders_v1.py
      - src/signal_backtester/contexts/backtest/application/services/trade_simulator_v1.py
    """

    series: IndicatorSeries
    candle_count: int
    offsets: Mapping[str, int]

    @property
    def offset(self) -> int:
        """Smallest leading offset across sub-series (the earliest index with any data)."""
        return min(self.offsets.values(), default=self.candle_count)

    def record_at(self, candle_index: int) -> Mapping[str, Any] | None:
        """
        Return indicator record for one candle index or None when out of range.

        Args:
            candle_index: Index in the oldest-to-newest candle series.
        Returns:
            Mapping[str, Any] | None: Step record; bundles contribute only in-range fields.
        Assumptions:
            Flat series expose their value under `value`.
        Raises:
            None.
        Side Effects:
            None.
        """
        if candle_index < 0 or candle_index >= self.candle_count:
            return None

        series = self.series
        if series.shape == SERIES_SHAPE_BUNDLE:
            record: dict[str, Any] = {}
            for name, values in series.fields.items():
                mapped_index = candle_index - self.offsets[name]
                if 0 <= mapped_index < len(values):
                    record[name] = values[mapped_index]
            if not record:
                return None
            return MappingProxyType(record)

        mapped_index = candle_index - self.offsets[_FLAT_FIELD]
        if mapped_index < 0 or mapped_index >= len(series.items):
            return None
        if series.shape == SERIES_SHAPE_FLAT:
            return MappingProxyType({_FLAT_FIELD: series.items[mapped_index]})
        return series.items[mapped_index]

    def value_at(self, candle_index: int, field_name: str = _FLAT_FIELD) -> float:
        """Return one numeric field at candle index, `nan` when unavailable."""
        record = self.record_at(candle_index)
        if record is None:
            return math.nan
        return as_float(record.get(field_name))


def _leading_offset(*, name: str, length: int, candle_count: int) -> int:
    if length > candle_count:
        raise ValueError(
            f"indicator series {name!r} length {length} exceeds candle count {candle_count}"
        )
    return candle_count - length
