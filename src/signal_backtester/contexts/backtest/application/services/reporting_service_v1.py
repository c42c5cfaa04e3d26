from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from signal_backtester.contexts.backtest.domain.entities import BacktestResultV1, TradeV1

_MONEY_PRECISION = 2


@dataclass(frozen=True, slots=True)
class BacktestSummaryRowV1:
    """One `|Metric|Value|` row of the rendered backtest summary."""

    metric: str
    value: str


@dataclass(frozen=True, slots=True)
class BacktestReportingServiceV1:
    """
    Render numeric backtest results into the camelCase payload and a markdown summary.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/domain/entities/backtest_result_v1.py
      - src/signal_backtester/contexts/backtest/application/services/metrics_calculator_v1.py
      - tests/unit/contexts/backtest/application/services/test_reporting_service_v1.py
    """

    def build_payload(self, *, result: BacktestResultV1) -> dict[str, Any]:
        """
        Build deterministic JSON-compatible payload for one backtest result.

        Args:
            result: Numeric result aggregate.
        Returns:
            dict[str, Any]: Payload with ISO timestamps and two-decimal strings.
        Assumptions:
            `initialCapital` keeps the caller-supplied number; derived figures are strings.
        Raises:
            None.
        Side Effects:
            None.
        """
        performance = result.performance
        stats = result.trade_stats
        return {
            "signal": {
                "symbol": str(result.symbol),
                "timeframe": str(result.timeframe),
                "type": result.family_tag,
            },
            "period": {
                "start": str(result.period.start),
                "end": str(result.period.end),
                "candleCount": result.period.candle_count,
                "durationDays": _fixed(result.period.duration_days, precision=1),
            },
            "performance": {
                "initialCapital": performance.initial_capital,
                "finalCapital": _fixed(performance.final_capital),
                "netProfit": _fixed(performance.net_profit),
                "returnPercent": _fixed(performance.return_percent),
                "maxDrawdownPercent": _fixed(performance.max_drawdown_percent),
            },
            "trades": {
                "total": stats.total,
                "wins": stats.wins,
                "losses": stats.losses,
                "winRate": _fixed(stats.win_rate),
                "avgWin": _fixed(stats.avg_win),
                "avgLoss": _fixed(stats.avg_loss),
                "profitFactor": _fixed(stats.profit_factor),
                "signalTriggers": stats.signal_triggers,
            },
            "tradeHistory": [_trade_payload(trade) for trade in result.trades],
        }

    def summary_rows(self, *, result: BacktestResultV1) -> tuple[BacktestSummaryRowV1, ...]:
        """
        Build fixed-order summary rows for console or markdown rendering.

        Args:
            result: Numeric result aggregate.
        Returns:
            tuple[BacktestSummaryRowV1, ...]: Deterministic ordered rows.
        Assumptions:
            Row order is part of the rendered contract.
        Raises:
            None.
        Side Effects:
            None.
        """
        performance = result.performance
        stats = result.trade_stats
        rows = (
            ("Symbol", str(result.symbol)),
            ("Timeframe", str(result.timeframe)),
            ("Type", result.family_tag),
            ("Start", str(result.period.start)),
            ("End", str(result.period.end)),
            ("Candles Analyzed", str(result.period.candle_count)),
            ("Initial Capital", _fixed(performance.initial_capital)),
            ("Final Capital", _fixed(performance.final_capital)),
            ("Net Profit", _fixed(performance.net_profit)),
            ("Return [%]", _fixed(performance.return_percent)),
            ("Max. Drawdown [%]", _fixed(performance.max_drawdown_percent)),
            ("Signal Triggers", str(stats.signal_triggers)),
            ("Total Trades", str(stats.total)),
            ("Wins", str(stats.wins)),
            ("Losses", str(stats.losses)),
            ("Win Rate [%]", _fixed(stats.win_rate)),
            ("Avg. Win", _fixed(stats.avg_win)),
            ("Avg. Loss", _fixed(stats.avg_loss)),
            ("Profit Factor", _fixed(stats.profit_factor)),
        )
        return tuple(BacktestSummaryRowV1(metric=metric, value=value) for metric, value in rows)

    def markdown_table(self, *, result: BacktestResultV1) -> str:
        lines = ["|Metric|Value|", "|---|---|"]
        for row in self.summary_rows(result=result):
            lines.append(f"|{row.metric}|{row.value}|")
        return "\n".join(lines)


def _trade_payload(trade: TradeV1) -> dict[str, Any]:
    """
    Render one closed trade with flat trade fields plus `entry`/`exit` views.

    Args:
        trade: Closed trade snapshot.
    Returns:
        dict[str, Any]: JSON-compatible trade mapping.
    Assumptions:
        Price levels stay numeric to keep sub-cent precision; money amounts are
        two-decimal strings.
    Raises:
        None.
    Side Effects:
        None.
    """
    return {
        "entryIndex": trade.entry_bar_index,
        "entryTimestamp": str(trade.entry_timestamp),
        "entryPrice": trade.entry_price,
        "direction": trade.direction.value,
        "stopLoss": trade.stop_loss,
        "takeProfit": trade.take_profit,
        "positionSize": _fixed(trade.position_size),
        "exitIndex": trade.exit_bar_index,
        "exitTimestamp": str(trade.exit_timestamp),
        "exitPrice": trade.exit_price,
        "exitReason": trade.exit_reason.value,
        "entry": {
            "timestamp": str(trade.entry_timestamp),
            "price": trade.entry_price,
            "position": trade.direction.name,
        },
        "exit": {
            "timestamp": str(trade.exit_timestamp),
            "price": trade.exit_price,
            "reason": trade.exit_reason.value,
        },
        "profitLoss": _fixed(trade.profit_loss),
        "profitLossPercent": _fixed(trade.profit_loss_percent),
        "capitalAfter": _fixed(trade.capital_after),
    }


def _fixed(value: float, *, precision: int = _MONEY_PRECISION) -> str:
    text = f"{value:.{precision}f}"
    # -0.00 -> 0.00
    if float(text) == 0.0:
        return f"{0.0:.{precision}f}"
    return text


__all__ = [
    "BacktestReportingServiceV1",
    "BacktestSummaryRowV1",
]
