from .backtest_result_v1 import (
    BacktestPerformanceV1,
    BacktestPeriodV1,
    BacktestResultV1,
    BacktestTradeStatsV1,
)
from .execution_v1 import SimulationStateV1, TradeV1

__all__ = [
    "BacktestPerformanceV1",
    "BacktestPeriodV1",
    "BacktestResultV1",
    "BacktestTradeStatsV1",
    "SimulationStateV1",
    "TradeV1",
]
