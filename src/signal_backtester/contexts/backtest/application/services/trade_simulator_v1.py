from __future__ import annotations

import logging
from dataclasses import dataclass

from signal_backtester.contexts.backtest.domain.entities import SimulationStateV1, TradeV1
from signal_backtester.contexts.backtest.domain.value_objects import (
    BacktestRunParamsV1,
    ExitReasonV1,
    TradeDirectionV1,
)
from signal_backtester.contexts.indicators.application.dto import (
    AlignedIndicatorSeries,
    CandleArrays,
)

from .signal_context_builders_v1 import build_evaluation_context_v1
from .signal_families_v1 import PreparedSignalV1

_LOG = logging.getLogger(__name__)

_LOGGED_TRIGGERS_LIMIT = 3


@dataclass(frozen=True, slots=True)
class _ExitFill:
    """
    Internal exit decision found by the forward scan.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/trade_simulator_v1.py
    """

    bar_index: int
    price: float
    reason: ExitReasonV1


class SignalTradeSimulatorV1:
    """
    Sequential one-position-at-a-time trade simulator driven by signal triggers.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/signal_families_v1.py
      - src/signal_backtester/contexts/backtest/domain/entities/execution_v1.py
      - tests/unit/contexts/backtest/application/services/test_trade_simulator_v1.py
    """

    def run(
        self,
        *,
        prepared: PreparedSignalV1,
        candles: CandleArrays,
        series: AlignedIndicatorSeries,
        params: BacktestRunParamsV1,
    ) -> SimulationStateV1:
        """
        Walk candles oldest-to-newest, open trades on triggers, and book each closed trade.

        Args:
            prepared: Signal spec bound to family and predicate.
            candles: Oldest-to-newest candle arrays.
            series: Indicator output aligned to `candles`.
            params: Sizing and simulation parameters.
        Returns:
            SimulationStateV1: Final accumulators including closed trades.
        Assumptions:
            At most one position is open; after an exit the scan resumes on the next bar.
        Raises:
            ValueError: If aligned series length does not match candle count.
        Side Effects:
            Emits structured log lines for the first triggers and for faulted steps.
        """
        bar_count = candles.bar_count
        if series.candle_count != bar_count:
            raise ValueError(
                f"aligned series candle_count={series.candle_count} must equal "
                f"candles bar_count={bar_count}"
            )

        state = SimulationStateV1.initial(initial_capital=params.initial_capital)
        last_index = bar_count - 1
        family = prepared.family
        index = max(params.min_warmup_bars, bar_count // 4, family.min_lookback)

        while index < last_index:
            try:
                context = build_evaluation_context_v1(
                    builder_spec=family.builder,
                    series=series,
                    candles=candles,
                    index=index,
                )
                if context is None:
                    index += 1
                    continue
                evaluation = prepared.evaluate(context=context)
                if not evaluation.triggered:
                    index += 1
                    continue
                direction = prepared.direction_for(evaluation=evaluation)
            except Exception:  # noqa: BLE001
                _LOG.warning(
                    "event=signal_step_faulted family=%s index=%s",
                    family.tag,
                    index,
                    exc_info=True,
                )
                state = state.record_fault()
                index += 1
                continue

            state = state.record_trigger()
            if state.signal_triggers <= _LOGGED_TRIGGERS_LIMIT:
                _LOG.info(
                    "event=signal_triggered family=%s trigger=%s index=%s price=%s ts=%s "
                    "direction=%s metadata=%s",
                    family.tag,
                    state.signal_triggers,
                    index,
                    float(candles.close[index]),
                    candles.timestamp_at(index),
                    direction.name,
                    dict(evaluation.metadata),
                )

            trade = self._open_and_close(
                trade_id=state.total_trades + 1,
                candles=candles,
                entry_index=index,
                direction=direction,
                capital=state.capital,
                params=params,
            )
            state = state.apply_trade(trade=trade)
            index = trade.exit_bar_index + 1

        return state

    def _open_and_close(
        self,
        *,
        trade_id: int,
        candles: CandleArrays,
        entry_index: int,
        direction: TradeDirectionV1,
        capital: float,
        params: BacktestRunParamsV1,
    ) -> TradeV1:
        """
        Size one position at entry close, find its exit, and compute realized P&L.

        Args:
            trade_id: One-based trade sequence number.
            candles: Oldest-to-newest candle arrays.
            entry_index: Trigger bar index; entry fills at its close.
            direction: Position direction.
            capital: Capital before the trade.
            params: Sizing and simulation parameters.
        Returns:
            TradeV1: Closed trade snapshot.
        Assumptions:
            `entry_index` is strictly below the last candle index.
        Raises:
            ValueError: If resulting trade violates snapshot invariants.
        Side Effects:
            None.
        """
        entry_price = float(candles.close[entry_index])
        is_long = direction is TradeDirectionV1.LONG
        if is_long:
            stop_loss = entry_price * (1.0 - params.risk_rate)
            take_profit = entry_price * (1.0 + params.reward_rate)
        else:
            stop_loss = entry_price * (1.0 + params.risk_rate)
            take_profit = entry_price * (1.0 - params.reward_rate)

        risk_amount = capital * params.risk_rate
        position_size = risk_amount / (abs(entry_price - stop_loss) / entry_price)

        fill = _find_exit(
            candles=candles,
            entry_index=entry_index,
            is_long=is_long,
            stop_loss=stop_loss,
            take_profit=take_profit,
            params=params,
        )

        price_diff = fill.price - entry_price if is_long else entry_price - fill.price
        profit_loss = price_diff / entry_price * position_size
        return TradeV1(
            trade_id=trade_id,
            direction=direction,
            entry_bar_index=entry_index,
            entry_timestamp=candles.timestamp_at(entry_index),
            entry_price=entry_price,
            stop_loss=stop_loss,
            take_profit=take_profit,
            position_size=position_size,
            exit_bar_index=fill.bar_index,
            exit_timestamp=candles.timestamp_at(fill.bar_index),
            exit_price=fill.price,
            exit_reason=fill.reason,
            profit_loss=profit_loss,
            profit_loss_percent=price_diff / entry_price * 100.0,
            capital_after=capital + profit_loss,
        )


def _find_exit(
    *,
    candles: CandleArrays,
    entry_index: int,
    is_long: bool,
    stop_loss: float,
    take_profit: float,
    params: BacktestRunParamsV1,
) -> _ExitFill:
    """
    Scan forward bars for the first stop-loss or take-profit touch, else time exit.

    Args:
        candles: Oldest-to-newest candle arrays.
        entry_index: Entry bar index.
        is_long: Position direction flag.
        stop_loss: Stop-loss price level.
        take_profit: Take-profit price level.
        params: Lookahead and time-exit settings.
    Returns:
        _ExitFill: Exit bar, fill price, and reason.
    Assumptions:
        Stop-loss is checked before take-profit within the same bar.
    Raises:
        None.
    Side Effects:
        None.
    """
    bar_count = candles.bar_count
    scan_end = min(entry_index + 1 + params.exit_lookahead_bars, bar_count)
    for bar_index in range(entry_index + 1, scan_end):
        high = float(candles.high[bar_index])
        low = float(candles.low[bar_index])
        if is_long:
            if low <= stop_loss:
                return _ExitFill(bar_index, stop_loss, ExitReasonV1.STOP_LOSS)
            if high >= take_profit:
                return _ExitFill(bar_index, take_profit, ExitReasonV1.TAKE_PROFIT)
        else:
            if high >= stop_loss:
                return _ExitFill(bar_index, stop_loss, ExitReasonV1.STOP_LOSS)
            if low <= take_profit:
                return _ExitFill(bar_index, take_profit, ExitReasonV1.TAKE_PROFIT)

    exit_index = min(entry_index + params.time_exit_bars, bar_count - 1)
    return _ExitFill(exit_index, float(candles.close[exit_index]), ExitReasonV1.TIME_EXIT)
