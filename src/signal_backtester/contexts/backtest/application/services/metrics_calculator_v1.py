from __future__ import annotations

from signal_backtester.contexts.backtest.domain.entities import (
    BacktestPerformanceV1,
    BacktestPeriodV1,
    BacktestResultV1,
    BacktestTradeStatsV1,
    SimulationStateV1,
)
from signal_backtester.contexts.backtest.domain.value_objects import SignalSpecV1
from signal_backtester.contexts.indicators.application.dto import CandleArrays


class BacktestMetricsCalculatorV1:
    """
    Aggregate final simulation state into the read-only backtest result.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/domain/entities/backtest_result_v1.py
      - src/signal_backtester/contexts/backtest/application/services/reporting_service_v1.py
      - tests/unit/contexts/backtest/application/services/test_metrics_calculator_v1.py
    """

    def calculate(
        self,
        *,
        state: SimulationStateV1,
        initial_capital: float,
        candles: CandleArrays,
        spec: SignalSpecV1,
    ) -> BacktestResultV1:
        """
        Build deterministic result figures from final accumulators.

        Args:
            state: Final simulation state.
            initial_capital: Capital the run started with.
            candles: Oldest-to-newest candle arrays of the run.
            spec: Signal specification that drove the run.
        Returns:
            BacktestResultV1: Numeric result aggregate.
        Assumptions:
            Ratios with zero denominators are reported as `0.0`, including profit factor
            for runs without losing trades.
        Raises:
            ValueError: If candle arrays are empty or capital is non-positive.
        Side Effects:
            None.
        """
        if initial_capital <= 0.0:
            raise ValueError("initial_capital must be > 0")
        if candles.bar_count == 0:
            raise ValueError("candles must contain at least one bar")

        total = state.total_trades
        net_profit = state.capital - initial_capital
        return BacktestResultV1(
            symbol=spec.symbol,
            timeframe=spec.timeframe,
            family_tag=spec.family_tag,
            period=BacktestPeriodV1(
                start=candles.timestamp_at(0),
                end=candles.timestamp_at(candles.bar_count - 1),
                candle_count=candles.bar_count,
            ),
            performance=BacktestPerformanceV1(
                initial_capital=initial_capital,
                final_capital=state.capital,
                net_profit=net_profit,
                return_percent=net_profit / initial_capital * 100.0,
                max_drawdown_percent=state.max_drawdown_percent,
            ),
            trade_stats=BacktestTradeStatsV1(
                total=total,
                wins=state.wins,
                losses=state.losses,
                win_rate=_ratio(state.wins, total) * 100.0,
                avg_win=_ratio(state.total_profit, state.wins),
                avg_loss=_ratio(state.total_loss, state.losses),
                profit_factor=_ratio(state.total_profit, state.total_loss),
                signal_triggers=state.signal_triggers,
            ),
            trades=state.trades,
        )


def _ratio(numerator: float, denominator: float) -> float:
    if denominator <= 0:
        return 0.0
    return numerator / denominator
