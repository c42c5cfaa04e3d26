from __future__ import annotations

from datetime import datetime, timezone

import numpy as np
import pytest

from signal_backtester.contexts.backtest.application.services import (
    BacktestMetricsCalculatorV1,
    build_signal_spec_v1,
)
from signal_backtester.contexts.backtest.domain.entities import SimulationStateV1, TradeV1
from signal_backtester.contexts.backtest.domain.value_objects import (
    ExitReasonV1,
    SignalSpecV1,
    TradeDirectionV1,
)
from signal_backtester.contexts.indicators.application.dto import CandleArrays
from signal_backtester.shared_kernel.primitives import Symbol, Timeframe, UtcTimestamp

_DAY_MS = 86_400_000


@pytest.fixture(name="calculator")
def _calculator() -> BacktestMetricsCalculatorV1:
    return BacktestMetricsCalculatorV1()


def _candles(bar_count: int) -> CandleArrays:
    close = np.full(bar_count, 100.0, dtype=np.float64)
    start_ms = UtcTimestamp(datetime(2024, 1, 1, tzinfo=timezone.utc)).epoch_ms
    return CandleArrays(
        symbol=Symbol("BTCUSDT"),
        timeframe=Timeframe("1d"),
        ts_open=start_ms + np.arange(bar_count, dtype=np.int64) * _DAY_MS,
        open=close.copy(),
        high=close.copy(),
        low=close.copy(),
        close=close,
        volume=np.ones(bar_count, dtype=np.float64),
    )


def _spec() -> SignalSpecV1:
    return build_signal_spec_v1(
        symbol=Symbol("BTCUSDT"),
        timeframe=Timeframe("1d"),
        family_tag="rsi-os",
    )


def _trade(
    *,
    trade_id: int,
    entry_index: int,
    exit_index: int,
    profit_loss: float,
    capital_before: float,
) -> TradeV1:
    """
    Build one closed long trade with the requested realized P&L.

    Args:
        trade_id: One-based trade number.
        entry_index: Entry bar index.
        exit_index: Exit bar index.
        profit_loss: Realized profit/loss.
        capital_before: Capital before the trade.
    Returns:
        TradeV1: Closed trade snapshot.
    Assumptions:
        Prices are synthetic; only P&L figures matter for aggregation.
    Raises:
        ValueError: If trade invariants are violated.
    Side Effects:
        None.
    """
    return TradeV1(
        trade_id=trade_id,
        direction=TradeDirectionV1.LONG,
        entry_bar_index=entry_index,
        entry_timestamp=UtcTimestamp.from_epoch_ms(entry_index * _DAY_MS),
        entry_price=100.0,
        stop_loss=98.0,
        take_profit=105.0,
        position_size=10000.0,
        exit_bar_index=exit_index,
        exit_timestamp=UtcTimestamp.from_epoch_ms(exit_index * _DAY_MS),
        exit_price=100.0 + profit_loss / 100.0,
        exit_reason=ExitReasonV1.TAKE_PROFIT if profit_loss > 0 else ExitReasonV1.STOP_LOSS,
        profit_loss=profit_loss,
        profit_loss_percent=profit_loss / 100.0,
        capital_after=capital_before + profit_loss,
    )


def _state_with(*profits: float) -> SimulationStateV1:
    state = SimulationStateV1.initial(initial_capital=10000.0)
    for position, profit in enumerate(profits):
        state = state.record_trigger()
        state = state.apply_trade(
            trade=_trade(
                trade_id=position + 1,
                entry_index=position * 2,
                exit_index=position * 2 + 1,
                profit_loss=profit,
                capital_before=state.capital,
            )
        )
    return state


def test_metrics_calculator_v1_aggregates_mixed_trades(
    calculator: BacktestMetricsCalculatorV1,
) -> None:
    """
    Verify win rate, averages, profit factor, and drawdown for a win/loss/win sequence.

    Args:
        calculator: Metrics calculator fixture.
    Returns:
        None.
    Assumptions:
        Drawdown is measured from the 10500 peak down to 10300.
    Raises:
        AssertionError: If aggregated figures differ.
    Side Effects:
        None.
    """
    state = _state_with(500.0, -200.0, 500.0)

    result = calculator.calculate(
        state=state,
        initial_capital=10000.0,
        candles=_candles(10),
        spec=_spec(),
    )

    assert result.family_tag == "rsi-os"
    assert result.performance.final_capital == pytest.approx(10800.0)
    assert result.performance.net_profit == pytest.approx(800.0)
    assert result.performance.return_percent == pytest.approx(8.0)
    assert result.performance.max_drawdown_percent == pytest.approx(200.0 / 10500.0 * 100.0)
    assert result.trade_stats.total == 3
    assert result.trade_stats.wins == 2
    assert result.trade_stats.losses == 1
    assert result.trade_stats.win_rate == pytest.approx(200.0 / 3.0)
    assert result.trade_stats.avg_win == pytest.approx(500.0)
    assert result.trade_stats.avg_loss == pytest.approx(200.0)
    assert result.trade_stats.profit_factor == pytest.approx(5.0)
    assert result.trade_stats.signal_triggers == 3
    assert len(result.trades) == 3


def test_metrics_calculator_v1_reports_zero_profit_factor_without_losses(
    calculator: BacktestMetricsCalculatorV1,
) -> None:
    result = calculator.calculate(
        state=_state_with(500.0, 250.0),
        initial_capital=10000.0,
        candles=_candles(10),
        spec=_spec(),
    )

    assert result.trade_stats.losses == 0
    assert result.trade_stats.avg_loss == 0.0
    assert result.trade_stats.profit_factor == 0.0
    assert result.performance.max_drawdown_percent == 0.0


def test_metrics_calculator_v1_handles_run_without_trades(
    calculator: BacktestMetricsCalculatorV1,
) -> None:
    result = calculator.calculate(
        state=SimulationStateV1.initial(initial_capital=5000.0),
        initial_capital=5000.0,
        candles=_candles(31),
        spec=_spec(),
    )

    assert result.trade_stats.total == 0
    assert result.trade_stats.win_rate == 0.0
    assert result.trade_stats.avg_win == 0.0
    assert result.performance.net_profit == 0.0
    assert result.performance.return_percent == 0.0
    assert result.period.candle_count == 31
    assert str(result.period.start) == "2024-01-01T00:00:00.000Z"
    assert str(result.period.end) == "2024-01-31T00:00:00.000Z"
    assert result.period.duration_days == pytest.approx(30.0)


def test_metrics_calculator_v1_rejects_non_positive_capital(
    calculator: BacktestMetricsCalculatorV1,
) -> None:
    with pytest.raises(ValueError, match="initial_capital"):
        calculator.calculate(
            state=SimulationStateV1.initial(initial_capital=1.0),
            initial_capital=0.0,
            candles=_candles(3),
            spec=_spec(),
        )
