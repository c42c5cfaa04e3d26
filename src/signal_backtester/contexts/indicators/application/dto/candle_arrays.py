from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
import numpy.typing as npt

from signal_backtester.shared_kernel.primitives import Candle, Symbol, Timeframe, UtcTimestamp


@dataclass(frozen=True, slots=True)
class CandleArrays:
    """
    Dense oldest-to-newest candle arrays consumed by the signal backtest loop.

    Docs: docs/architecture/signal-backtest-engine-v1.md
    Related: ..ports.indicator_library, market_data.application.ports.historical_candle_loader
    """

    symbol: Symbol
    timeframe: Timeframe
    ts_open: np.ndarray
    open: np.ndarray
    high: np.ndarray
    low: np.ndarray
    close: np.ndarray
    volume: np.ndarray

    def __post_init__(self) -> None:
        """
        Validate array contracts for dense OHLCV transport.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            All arrays represent the same dense timeline and are already aligned by index.
        Raises:
            ValueError: If metadata is missing or array shape, dtype,
                length, or ordering invariants are violated.
        Side Effects:
            None.
        """
        if self.symbol is None:  # type: ignore[truthy-bool]
            raise ValueError("CandleArrays requires symbol")
        if self.timeframe is None:  # type: ignore[truthy-bool]
            raise ValueError("CandleArrays requires timeframe")

        length = self._validate_array("ts_open", self.ts_open, np.int64, None)
        self._validate_array("open", self.open, np.float64, length)
        self._validate_array("high", self.high, np.float64, length)
        self._validate_array("low", self.low, np.float64, length)
        self._validate_array("close", self.close, np.float64, length)
        self._validate_array("volume", self.volume, np.float64, length)
        self._validate_timestamp_order()

    @classmethod
    def from_candles(
        cls,
        *,
        symbol: Symbol,
        timeframe: Timeframe,
        candles: Sequence[Candle],
    ) -> CandleArrays:
        """
        Build dense arrays from loader candles, reversing newest-first delivery.

        Args:
            symbol: Instrument symbol the candles belong to.
            timeframe: Candle interval.
            candles: Candles in either oldest-to-newest or newest-to-oldest order.
        Returns:
            CandleArrays: Arrays ordered oldest-to-newest.
        Assumptions:
            Exchange REST sources return the newest candle first; a decreasing
            first/last pair is treated as newest-first delivery.
        Raises:
            ValueError: If candles are empty or ordering is still invalid after reversal.
        Side Effects:
            None.
        """
        if len(candles) == 0:
            raise ValueError("CandleArrays requires at least one candle")

        ordered = list(candles)
        if ordered[0].ts_open.value > ordered[-1].ts_open.value:
            ordered.reverse()

        return cls(
            symbol=symbol,
            timeframe=timeframe,
            ts_open=np.array([item.ts_open.epoch_ms for item in ordered], dtype=np.int64),
            open=np.array([item.open for item in ordered], dtype=np.float64),
            high=np.array([item.high for item in ordered], dtype=np.float64),
            low=np.array([item.low for item in ordered], dtype=np.float64),
            close=np.array([item.close for item in ordered], dtype=np.float64),
            volume=np.array([item.volume for item in ordered], dtype=np.float64),
        )

    @property
    def bar_count(self) -> int:
        return int(self.close.shape[0])

    def timestamp_at(self, index: int) -> UtcTimestamp:
        """Return open timestamp of one bar as `UtcTimestamp`."""
        return UtcTimestamp.from_epoch_ms(int(self.ts_open[index]))

    def _validate_array(
        self,
        name: str,
        values: np.ndarray,
        expected_dtype: npt.DTypeLike,
        expected_length: int | None,
    ) -> int:
        """
        Validate one ndarray shape/dtype contract and optional expected length.

        Args:
            name: Human-readable field name for diagnostics.
            values: Candidate numpy array.
            expected_dtype: Required dtype for the array.
            expected_length: Expected array length, or None when this array
                defines the baseline length.
        Returns:
            int: Validated array length.
        Assumptions:
            Arrays are one-dimensional vectors.
        Raises:
            ValueError: If array is not ndarray-like, not 1D, has unexpected
                dtype, or has a length mismatch.
        Side Effects:
            None.
        """
        normalized_expected_dtype = np.dtype(expected_dtype)
        try:
            if values.ndim != 1:
                raise ValueError(f"{name} must be a 1D array")
            if values.dtype != normalized_expected_dtype:
                raise ValueError(
                    f"{name} must have dtype {normalized_expected_dtype}, got {values.dtype}"
                )
        except AttributeError as error:
            raise ValueError(f"{name} must be a numpy ndarray") from error

        length = values.shape[0]
        if expected_length is not None and length != expected_length:
            raise ValueError(
                f"{name} length must match baseline length {expected_length}, got {length}"
            )
        return length

    def _validate_timestamp_order(self) -> None:
        """
        Validate contiguous oldest-to-newest ordering.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            `ts_open` stores epoch milliseconds.
        Raises:
            ValueError: If timestamps are not monotonically non-decreasing.
        Side Effects:
            None.
        """
        if self.ts_open.shape[0] <= 1:
            return
        if not np.all(self.ts_open[1:] >= self.ts_open[:-1]):
            raise ValueError("ts_open must be ordered oldest-to-newest (non-decreasing)")
