from __future__ import annotations

from dataclasses import dataclass

from signal_backtester.shared_kernel.primitives import Symbol, Timeframe, UtcTimestamp

from .execution_v1 import TradeV1


@dataclass(frozen=True, slots=True)
class BacktestPeriodV1:
    """
    Candle-period bounds of one run (first and last candle open time).

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/metrics_calculator_v1.py
      - src/signal_backtester/contexts/backtest/application/services/reporting_service_v1.py
    """

    start: UtcTimestamp
    end: UtcTimestamp
    candle_count: int

    def __post_init__(self) -> None:
        if self.candle_count < 0:
            raise ValueError("BacktestPeriodV1.candle_count must be >= 0")
        if self.end.value < self.start.value:
            raise ValueError("BacktestPeriodV1.end must be >= start")

    @property
    def duration_days(self) -> float:
        return (self.end.value - self.start.value).total_seconds() / 86400.0


@dataclass(frozen=True, slots=True)
class BacktestPerformanceV1:
    """
    Equity-level performance figures of one run.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/metrics_calculator_v1.py
      - src/signal_backtester/contexts/backtest/application/services/reporting_service_v1.py
    """

    initial_capital: float
    final_capital: float
    net_profit: float
    return_percent: float
    max_drawdown_percent: float


@dataclass(frozen=True, slots=True)
class BacktestTradeStatsV1:
    """
    Trade-level statistics of one run.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/metrics_calculator_v1.py
      - src/signal_backtester/contexts/backtest/application/services/reporting_service_v1.py
    """

    total: int
    wins: int
    losses: int
    win_rate: float
    avg_win: float
    avg_loss: float
    profit_factor: float
    signal_triggers: int

    def __post_init__(self) -> None:
        if self.wins + self.losses != self.total:
            raise ValueError("BacktestTradeStatsV1 requires wins + losses == total")


@dataclass(frozen=True, slots=True)
class BacktestResultV1:
    """
    Read-only aggregate produced once at the end of a signal backtest run.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/metrics_calculator_v1.py
      - src/signal_backtester/contexts/backtest/application/services/reporting_service_v1.py
      - src/signal_backtester/contexts/backtest/application/use_cases/run_backtest.py
    """

    symbol: Symbol
    timeframe: Timeframe
    family_tag: str
    period: BacktestPeriodV1
    performance: BacktestPerformanceV1
    trade_stats: BacktestTradeStatsV1
    trades: tuple[TradeV1, ...]
