from __future__ import annotations

from typing import Protocol, Sequence

from signal_backtester.shared_kernel.primitives import Candle, Symbol, Timeframe


class HistoricalCandleLoader(Protocol):
    """
    Port for fetching historical candles ahead of one backtest run.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/use_cases/run_backtest.py
      - src/signal_backtester/contexts/indicators/application/dto/candle_arrays.py
      - tests/unit/contexts/backtest/application/use_cases/test_run_backtest.py
    """

    async def load_candles(
        self,
        *,
        symbol: Symbol,
        timeframe: Timeframe,
        iterations: int,
        candles_per_iteration: int,
    ) -> Sequence[Candle]:
        """
        Load up to `iterations * candles_per_iteration` most recent candles.

        Args:
            symbol: Instrument symbol.
            timeframe: Candle interval.
            iterations: Number of paged requests issued against the source.
            candles_per_iteration: Page size of one request.
        Returns:
            Sequence[Candle]: Candles, possibly newest-first as delivered by exchange REST APIs.
        Assumptions:
            This is the only suspension point of a backtest run.
        Raises:
            Exception: Transport errors are propagated to the caller unchanged.
        Side Effects:
            Performs network or storage I/O in concrete adapters.
        """
        ...
