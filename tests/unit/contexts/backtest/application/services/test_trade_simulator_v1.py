from __future__ import annotations

import math
from typing import Mapping, Sequence

import numpy as np
import pytest

from signal_backtester.contexts.backtest.application.services import (
    PreparedSignalV1,
    SignalPredicateSpecV1,
    SignalTradeSimulatorV1,
    build_signal_spec_v1,
    prepare_signal_v1,
    signal_family_spec_v1,
)
from signal_backtester.contexts.backtest.domain.entities import SimulationStateV1
from signal_backtester.contexts.backtest.domain.value_objects import (
    CONTEXT_KIND_THRESHOLD,
    BacktestRunParamsV1,
    EvaluationContextV1,
    ExitReasonV1,
    SignalEvaluationV1,
    SignalSpecV1,
    TradeDirectionV1,
)
from signal_backtester.contexts.indicators.application.dto import CandleArrays, IndicatorSeries
from signal_backtester.shared_kernel.primitives import Symbol, Timeframe

_BASE_TS_MS = 1_700_000_000_000
_ONE_MINUTE_MS = 60_000


@pytest.fixture(name="simulator")
def _simulator() -> SignalTradeSimulatorV1:
    """
    Build stateless simulator fixture.

    Args:
        None.
    Returns:
        SignalTradeSimulatorV1: Simulator instance.
    Assumptions:
        Simulator keeps no state between runs.
    Raises:
        None.
    Side Effects:
        None.
    """
    return SignalTradeSimulatorV1()


def _candles(
    closes: Sequence[float],
    *,
    highs: Mapping[int, float] | None = None,
    lows: Mapping[int, float] | None = None,
) -> CandleArrays:
    """
    Build 1m candle arrays from closes with optional per-bar high/low overrides.

    Args:
        closes: Close prices oldest-to-newest.
        highs: Optional `index -> high` overrides.
        lows: Optional `index -> low` overrides.
    Returns:
        CandleArrays: Dense arrays where untouched bars have `high == low == close`.
    Assumptions:
        Overrides keep `low <= close <= high`.
    Raises:
        ValueError: If arrays violate CandleArrays invariants.
    Side Effects:
        None.
    """
    close = np.array(closes, dtype=np.float64)
    high = close.copy()
    low = close.copy()
    for index, value in (highs or {}).items():
        high[index] = value
    for index, value in (lows or {}).items():
        low[index] = value
    return CandleArrays(
        symbol=Symbol("BTCUSDT"),
        timeframe=Timeframe("1m"),
        ts_open=_BASE_TS_MS + np.arange(close.shape[0], dtype=np.int64) * _ONE_MINUTE_MS,
        open=close.copy(),
        high=high,
        low=low,
        close=close,
        volume=np.ones(close.shape[0], dtype=np.float64),
    )


def _params(**overrides: float) -> BacktestRunParamsV1:
    values: dict[str, float] = {
        "risk_percent": 2.0,
        "reward_percent": 5.0,
        "initial_capital": 10000.0,
    }
    values.update(overrides)
    return BacktestRunParamsV1(**values)  # type: ignore[arg-type]


def _prepared(family_tag: str, comparison_value: float) -> PreparedSignalV1:
    return prepare_signal_v1(
        spec=build_signal_spec_v1(
            symbol=Symbol("BTCUSDT"),
            timeframe=Timeframe("1m"),
            family_tag=family_tag,
            comparison_value=comparison_value,
        )
    )


def _run(
    simulator: SignalTradeSimulatorV1,
    *,
    prepared: PreparedSignalV1,
    candles: CandleArrays,
    params: BacktestRunParamsV1 | None = None,
) -> SimulationStateV1:
    return simulator.run(
        prepared=prepared,
        candles=candles,
        series=IndicatorSeries.empty().align(candle_count=candles.bar_count),
        params=params or _params(),
    )


def test_trade_simulator_v1_stop_loss_wins_tie_with_take_profit(
    simulator: SignalTradeSimulatorV1,
) -> None:
    """
    Verify a bar touching both levels closes the long at the stop-loss price.

    Args:
        simulator: Simulator fixture.
    Returns:
        None.
    Assumptions:
        Entry at close 100 with 2% risk / 5% reward gives SL=98 and TP=105.
    Raises:
        AssertionError: If tie-break or sizing differs.
    Side Effects:
        None.
    """
    closes = [90.0] * 30
    closes[10] = 100.0
    closes[11] = 100.0
    candles = _candles(closes, highs={11: 106.0}, lows={11: 97.0})

    state = _run(simulator, prepared=_prepared("price-gt", 99.0), candles=candles)

    assert len(state.trades) == 1
    trade = state.trades[0]
    assert trade.direction is TradeDirectionV1.LONG
    assert trade.entry_bar_index == 10
    assert trade.exit_bar_index == 11
    assert trade.exit_reason is ExitReasonV1.STOP_LOSS
    assert trade.stop_loss == pytest.approx(98.0)
    assert trade.take_profit == pytest.approx(105.0)
    assert trade.position_size == pytest.approx(10000.0)
    assert trade.exit_price == pytest.approx(98.0)
    assert trade.profit_loss == pytest.approx(-200.0)
    assert trade.profit_loss_percent == pytest.approx(-2.0)
    assert state.capital == pytest.approx(9800.0)
    assert state.losses == 1
    assert state.max_drawdown_percent == pytest.approx(2.0)


def test_trade_simulator_v1_take_profit_fill(simulator: SignalTradeSimulatorV1) -> None:
    closes = [90.0] * 30
    closes[10] = 100.0
    closes[11] = 105.0
    candles = _candles(closes, highs={11: 105.5}, lows={11: 99.5})

    state = _run(simulator, prepared=_prepared("price-gt", 99.0), candles=candles)

    assert len(state.trades) == 1
    trade = state.trades[0]
    assert trade.exit_reason is ExitReasonV1.TAKE_PROFIT
    assert trade.exit_price == pytest.approx(105.0)
    assert trade.profit_loss == pytest.approx(500.0)
    assert trade.capital_after == pytest.approx(10500.0)
    assert state.wins == 1
    assert state.max_drawdown_percent == 0.0


def test_trade_simulator_v1_time_exit_after_configured_bars(
    simulator: SignalTradeSimulatorV1,
) -> None:
    """
    Verify untouched levels close the trade at `entry + time_exit_bars` close.

    Args:
        simulator: Simulator fixture.
    Returns:
        None.
    Assumptions:
        Close 99 after entry never touches SL=98 or TP=105 and never re-triggers `> 99`.
    Raises:
        AssertionError: If time-exit bar or price differs.
    Side Effects:
        None.
    """
    closes = [90.0] * 20 + [100.0] + [99.0] * 59
    candles = _candles(closes)

    state = _run(simulator, prepared=_prepared("price-gt", 99.0), candles=candles)

    assert len(state.trades) == 1
    trade = state.trades[0]
    assert trade.exit_reason is ExitReasonV1.TIME_EXIT
    assert trade.exit_bar_index == 70
    assert trade.exit_price == pytest.approx(99.0)
    assert trade.profit_loss == pytest.approx(-100.0)
    assert str(trade.exit_timestamp) == str(candles.timestamp_at(70))


def test_trade_simulator_v1_time_exit_is_clamped_to_last_bar(
    simulator: SignalTradeSimulatorV1,
) -> None:
    closes = [90.0] * 25 + [100.0] + [99.0] * 4
    candles = _candles(closes)

    state = _run(simulator, prepared=_prepared("price-gt", 99.0), candles=candles)

    assert len(state.trades) == 1
    assert state.trades[0].entry_bar_index == 25
    assert state.trades[0].exit_bar_index == 29
    assert state.trades[0].exit_reason is ExitReasonV1.TIME_EXIT


def test_trade_simulator_v1_short_stop_loss_and_take_profit(
    simulator: SignalTradeSimulatorV1,
) -> None:
    """
    Verify short positions mirror level placement and P&L sign.

    Args:
        simulator: Simulator fixture.
    Returns:
        None.
    Assumptions:
        Short entry at 100 gives SL=102 and TP=95.
    Raises:
        AssertionError: If short levels, tie-break, or P&L differ.
    Side Effects:
        None.
    """
    closes = [110.0] * 30
    closes[10] = 100.0
    closes[11] = 100.0
    losing = _run(
        simulator,
        prepared=_prepared("price-lt", 101.0),
        candles=_candles(closes, highs={11: 103.0}, lows={11: 94.0}),
    )
    winning = _run(
        simulator,
        prepared=_prepared("price-lt", 101.0),
        candles=_candles(closes, highs={11: 101.0}, lows={11: 94.0}),
    )

    loss_trade = losing.trades[0]
    assert loss_trade.direction is TradeDirectionV1.SHORT
    assert loss_trade.stop_loss == pytest.approx(102.0)
    assert loss_trade.take_profit == pytest.approx(95.0)
    assert loss_trade.exit_reason is ExitReasonV1.STOP_LOSS
    assert loss_trade.profit_loss == pytest.approx(-200.0)

    win_trade = winning.trades[0]
    assert win_trade.exit_reason is ExitReasonV1.TAKE_PROFIT
    assert win_trade.exit_price == pytest.approx(95.0)
    assert win_trade.profit_loss == pytest.approx(500.0)


def test_trade_simulator_v1_trades_never_overlap_and_conserve_equity(
    simulator: SignalTradeSimulatorV1,
) -> None:
    """
    Verify sequential trades resume after exit and capital equals initial plus realized P&L.

    Args:
        simulator: Simulator fixture.
    Returns:
        None.
    Assumptions:
        Every bar triggers and every next bar hits TP, so trades open on every other bar.
    Raises:
        AssertionError: If trades overlap or equity drifts.
    Side Effects:
        None.
    """
    closes = [100.0] * 60
    candles = _candles(closes, highs={index: 106.0 for index in range(60)})

    state = _run(simulator, prepared=_prepared("price-gt", 99.0), candles=candles)

    entries = [trade.entry_bar_index for trade in state.trades]
    assert entries == list(range(15, 58, 2))
    assert state.signal_triggers == len(state.trades) == 22
    for previous, current in zip(state.trades, state.trades[1:]):
        assert current.entry_bar_index > previous.exit_bar_index
        assert current.trade_id == previous.trade_id + 1
        assert previous.capital_after == pytest.approx(
            current.capital_after - current.profit_loss
        )
    realized = math.fsum(trade.profit_loss for trade in state.trades)
    assert state.capital == pytest.approx(10000.0 + realized)
    assert state.capital == pytest.approx(10000.0 * 1.05**22)
    assert state.losses == 0
    assert state.total_loss == 0.0


def test_trade_simulator_v1_is_deterministic_across_runs(
    simulator: SignalTradeSimulatorV1,
) -> None:
    closes = [100.0 + (index % 7) - 3.0 for index in range(120)]
    candles = _candles(
        closes,
        highs={index: closes[index] + 4.0 for index in range(120)},
        lows={index: closes[index] - 4.0 for index in range(120)},
    )
    prepared = _prepared("price-gt", 101.0)

    first = _run(simulator, prepared=prepared, candles=candles)
    second = _run(SignalTradeSimulatorV1(), prepared=prepared, candles=candles)

    assert first == second
    assert len(first.trades) > 0


def test_trade_simulator_v1_no_trigger_keeps_initial_capital(
    simulator: SignalTradeSimulatorV1,
) -> None:
    candles = _candles([90.0] * 40)

    state = _run(simulator, prepared=_prepared("price-gt", 99.0), candles=candles)

    assert state.trades == ()
    assert state.signal_triggers == 0
    assert state.capital == 10000.0
    assert state.max_drawdown_percent == 0.0


def test_trade_simulator_v1_skips_faulted_steps(simulator: SignalTradeSimulatorV1) -> None:
    """
    Verify one failing evaluation is counted and skipped without aborting the run.

    Args:
        simulator: Simulator fixture.
    Returns:
        None.
    Assumptions:
        Predicate raises on bar 12 and triggers on bar 14.
    Raises:
        AssertionError: If the fault aborts the run or is not counted.
    Side Effects:
        None.
    """

    def exploding(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
        if context.index == 12:
            raise ZeroDivisionError("broken indicator step")
        return SignalEvaluationV1(triggered=context.number("value") > spec.comparison_number)

    base = _prepared("price-gt", 99.0)
    prepared = PreparedSignalV1(
        spec=base.spec,
        family=signal_family_spec_v1(family_tag="price-gt"),
        predicate=SignalPredicateSpecV1(
            name="exploding",
            context_kind=CONTEXT_KIND_THRESHOLD,
            evaluate=exploding,
        ),
    )
    closes = [90.0] * 30
    closes[12] = 100.0
    closes[14] = 100.0

    state = _run(simulator, prepared=prepared, candles=_candles(closes))

    assert state.faulted_steps == 1
    assert state.signal_triggers == 1
    assert [trade.entry_bar_index for trade in state.trades] == [14]


def test_trade_simulator_v1_starts_after_first_quarter(
    simulator: SignalTradeSimulatorV1,
) -> None:
    closes = [100.0] * 100
    candles = _candles(closes, highs={index: 106.0 for index in range(100)})

    state = _run(simulator, prepared=_prepared("price-gt", 99.0), candles=candles)

    assert state.trades[0].entry_bar_index == 25


def test_trade_simulator_v1_rejects_misaligned_series(
    simulator: SignalTradeSimulatorV1,
) -> None:
    candles = _candles([100.0] * 20)

    with pytest.raises(ValueError, match="candle_count"):
        simulator.run(
            prepared=_prepared("price-gt", 99.0),
            candles=candles,
            series=IndicatorSeries.empty().align(candle_count=19),
            params=_params(),
        )


def test_trade_simulator_v1_woodies_reads_nested_pivot_levels(
    simulator: SignalTradeSimulatorV1,
) -> None:
    """
    Verify `woodies` triggers on levels nested under the `woodies` key of each record.

    Args:
        simulator: Simulator fixture.
    Returns:
        None.
    Assumptions:
        Close 90 sits below s2=96, so the first scanned bar opens a long in strong support.
    Raises:
        AssertionError: If nested levels are not read or direction differs.
    Side Effects:
        None.
    """
    candles = _candles([90.0] * 40)
    levels = {"pivot": 100.0, "r1": 102.0, "r2": 104.0, "s1": 98.0, "s2": 96.0}
    series = IndicatorSeries.records([{"woodies": levels}] * 40)

    state = simulator.run(
        prepared=_prepared("woodies", 0.0),
        candles=candles,
        series=series.align(candle_count=candles.bar_count),
        params=_params(),
    )

    assert state.signal_triggers == 1
    assert len(state.trades) == 1
    trade = state.trades[0]
    assert trade.entry_bar_index == 10
    assert trade.direction is TradeDirectionV1.LONG
    assert trade.exit_reason is ExitReasonV1.TIME_EXIT
    assert trade.exit_bar_index == 39
