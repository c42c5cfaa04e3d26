from __future__ import annotations

from typing import Any, Mapping, Protocol

from signal_backtester.contexts.indicators.application.dto import CandleArrays, IndicatorSeries


class IndicatorLibrary(Protocol):
    """
    Port for computing raw indicator output for one signal specification.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/indicators/application/dto/indicator_series.py
      - src/signal_backtester/contexts/backtest/application/use_cases/run_backtest.py
      - src/signal_backtester/contexts/indicators/domain/errors/unknown_indicator_error.py
    """

    def compute(
        self,
        *,
        indicator_name: str,
        candles: CandleArrays,
        args: Mapping[str, Any],
    ) -> IndicatorSeries:
        """
        Compute indicator output over oldest-to-newest candle arrays.

        Args:
            indicator_name: Registry key of the indicator (e.g. `RsiIndicator`).
            candles: Dense oldest-to-newest OHLCV arrays.
            args: Indicator-specific named parameters.
        Returns:
            IndicatorSeries: Flat, records, or bundle output; length <= candle count.
        Assumptions:
            Missing warm-up output is omitted from the head of the series.
        Raises:
            UnknownIndicatorError: If indicator name is not registered.
        Side Effects:
            None.
        """
        ...
