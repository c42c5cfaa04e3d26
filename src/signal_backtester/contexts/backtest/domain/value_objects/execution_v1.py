from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TradeDirectionV1(str, Enum):
    """
    Position direction literal for simulated trades.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/signal_families_v1.py
      - src/signal_backtester/contexts/backtest/application/services/trade_simulator_v1.py
    """

    LONG = "long"
    SHORT = "short"


class ExitReasonV1(str, Enum):
    """
    Exit reason literal rendered into trade history.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/trade_simulator_v1.py
      - src/signal_backtester/contexts/backtest/application/services/reporting_service_v1.py
    """

    STOP_LOSS = "Stop Loss"
    TAKE_PROFIT = "Take Profit"
    TIME_EXIT = "Time Exit"


@dataclass(frozen=True, slots=True)
class BacktestRunParamsV1:
    """
    Immutable sizing and simulation parameters for one signal backtest run.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/trade_simulator_v1.py
      - src/signal_backtester/contexts/backtest/adapters/outbound/config/backtest_runtime_config.py
      - tests/unit/contexts/backtest/application/services/test_trade_simulator_v1.py
    """

    risk_percent: float
    reward_percent: float
    initial_capital: float
    exit_lookahead_bars: int = 100
    time_exit_bars: int = 50
    min_warmup_bars: int = 10

    def __post_init__(self) -> None:
        """
        Validate run-parameter invariants used by the trade simulator.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Percent parameters use human percent units (`2.0 == 2%`).
        Raises:
            ValueError: If one numeric bound is invalid.
        Side Effects:
            None.
        """
        if self.risk_percent <= 0.0 or self.risk_percent >= 100.0:
            raise ValueError("BacktestRunParamsV1.risk_percent must be in (0, 100)")
        if self.reward_percent <= 0.0:
            raise ValueError("BacktestRunParamsV1.reward_percent must be > 0")
        if self.initial_capital <= 0.0:
            raise ValueError("BacktestRunParamsV1.initial_capital must be > 0")
        if self.exit_lookahead_bars <= 0:
            raise ValueError("BacktestRunParamsV1.exit_lookahead_bars must be > 0")
        if self.time_exit_bars <= 0:
            raise ValueError("BacktestRunParamsV1.time_exit_bars must be > 0")
        if self.min_warmup_bars < 0:
            raise ValueError("BacktestRunParamsV1.min_warmup_bars must be >= 0")

    @property
    def risk_rate(self) -> float:
        """
        Return risk as decimal fraction.

        Args:
            None.
        Returns:
            float: Decimal risk rate (`0.02 == 2%`).
        Assumptions:
            `risk_percent` is expressed in human percent units.
        Raises:
            None.
        Side Effects:
            None.
        """
        return self.risk_percent / 100.0

    @property
    def reward_rate(self) -> float:
        return self.reward_percent / 100.0
