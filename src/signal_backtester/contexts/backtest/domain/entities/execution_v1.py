from __future__ import annotations

from dataclasses import dataclass, replace

from signal_backtester.contexts.backtest.domain.value_objects import (
    ExitReasonV1,
    TradeDirectionV1,
)
from signal_backtester.shared_kernel.primitives import UtcTimestamp


@dataclass(frozen=True, slots=True)
class TradeV1:
    """
    Closed trade snapshot emitted by the signal trade simulator.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/trade_simulator_v1.py
      - src/signal_backtester/contexts/backtest/application/services/reporting_service_v1.py
      - tests/unit/contexts/backtest/application/services/test_trade_simulator_v1.py
    """

    trade_id: int
    direction: TradeDirectionV1
    entry_bar_index: int
    entry_timestamp: UtcTimestamp
    entry_price: float
    stop_loss: float
    take_profit: float
    position_size: float
    exit_bar_index: int
    exit_timestamp: UtcTimestamp
    exit_price: float
    exit_reason: ExitReasonV1
    profit_loss: float
    profit_loss_percent: float
    capital_after: float

    def __post_init__(self) -> None:
        """
        Validate closed trade snapshot invariants.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Exit happens strictly after entry; same-bar exits are not simulated.
        Raises:
            ValueError: If one numeric invariant or literal field is invalid.
        Side Effects:
            Normalizes `direction` and `exit_reason` into enum members.
        """
        if self.trade_id <= 0:
            raise ValueError("TradeV1.trade_id must be > 0")
        object.__setattr__(self, "direction", TradeDirectionV1(self.direction))
        object.__setattr__(self, "exit_reason", ExitReasonV1(self.exit_reason))

        if self.entry_bar_index < 0:
            raise ValueError("TradeV1.entry_bar_index must be >= 0")
        if self.exit_bar_index <= self.entry_bar_index:
            raise ValueError("TradeV1.exit_bar_index must be > entry_bar_index")
        if self.entry_price <= 0.0:
            raise ValueError("TradeV1.entry_price must be > 0")
        if self.exit_price <= 0.0:
            raise ValueError("TradeV1.exit_price must be > 0")
        if self.position_size <= 0.0:
            raise ValueError("TradeV1.position_size must be > 0")

    @property
    def is_win(self) -> bool:
        # Нулевой результат считается убытком.
        return self.profit_loss > 0.0


@dataclass(frozen=True, slots=True)
class SimulationStateV1:
    """
    Run-scoped accumulators threaded explicitly through the simulation loop.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/trade_simulator_v1.py
      - src/signal_backtester/contexts/backtest/application/services/metrics_calculator_v1.py
      - tests/unit/contexts/backtest/domain/entities/test_simulation_state_v1.py
    """

    capital: float
    peak_capital: float
    max_drawdown_percent: float = 0.0
    wins: int = 0
    losses: int = 0
    total_profit: float = 0.0
    total_loss: float = 0.0
    trades: tuple[TradeV1, ...] = ()
    signal_triggers: int = 0
    faulted_steps: int = 0

    def __post_init__(self) -> None:
        """
        Validate state accumulator bounds.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Capital may go below zero only through pathological sizing and is not clamped.
        Raises:
            ValueError: If counters are negative or peak is below current capital.
        Side Effects:
            None.
        """
        if self.peak_capital < self.capital:
            raise ValueError("SimulationStateV1.peak_capital must be >= capital")
        if self.max_drawdown_percent < 0.0:
            raise ValueError("SimulationStateV1.max_drawdown_percent must be >= 0")
        if self.wins < 0 or self.losses < 0:
            raise ValueError("SimulationStateV1 win/loss counters must be >= 0")
        if self.total_profit < 0.0 or self.total_loss < 0.0:
            raise ValueError("SimulationStateV1 profit/loss sums must be >= 0")
        if self.signal_triggers < 0 or self.faulted_steps < 0:
            raise ValueError("SimulationStateV1 step counters must be >= 0")

    @classmethod
    def initial(cls, *, initial_capital: float) -> SimulationStateV1:
        return cls(capital=initial_capital, peak_capital=initial_capital)

    @property
    def total_trades(self) -> int:
        return self.wins + self.losses

    def record_trigger(self) -> SimulationStateV1:
        return replace(self, signal_triggers=self.signal_triggers + 1)

    def record_fault(self) -> SimulationStateV1:
        return replace(self, faulted_steps=self.faulted_steps + 1)

    def apply_trade(self, *, trade: TradeV1) -> SimulationStateV1:
        """
        Return new state after booking one closed trade.

        Args:
            trade: Closed trade with realized profit/loss.
        Returns:
            SimulationStateV1: Updated accumulators and equity figures.
        Assumptions:
            Trades are applied in chronological order without overlap.
        Raises:
            ValueError: If trade entry does not follow previous trade exit.
        Side Effects:
            None.
        """
        if self.trades and trade.entry_bar_index <= self.trades[-1].exit_bar_index:
            raise ValueError("trade entry must follow previous trade exit")

        capital = self.capital + trade.profit_loss
        peak_capital = max(self.peak_capital, capital)
        drawdown_percent = (peak_capital - capital) / peak_capital * 100.0
        if trade.is_win:
            wins, losses = self.wins + 1, self.losses
            total_profit, total_loss = self.total_profit + trade.profit_loss, self.total_loss
        else:
            wins, losses = self.wins, self.losses + 1
            total_profit, total_loss = self.total_profit, self.total_loss + abs(trade.profit_loss)

        return replace(
            self,
            capital=capital,
            peak_capital=peak_capital,
            max_drawdown_percent=max(self.max_drawdown_percent, drawdown_percent),
            wins=wins,
            losses=losses,
            total_profit=total_profit,
            total_loss=total_loss,
            trades=self.trades + (trade,),
        )
