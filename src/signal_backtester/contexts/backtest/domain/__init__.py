from .entities import (
    BacktestPerformanceV1,
    BacktestPeriodV1,
    BacktestResultV1,
    BacktestTradeStatsV1,
    SimulationStateV1,
    TradeV1,
)
from .errors import (
    BacktestConfigurationError,
    BacktestDomainError,
    BacktestValidationError,
)
from .value_objects import (
    BacktestRunParamsV1,
    EvaluationContextV1,
    ExitReasonV1,
    SignalEvaluationV1,
    SignalSpecV1,
    TradeDirectionV1,
)

__all__ = [
    "BacktestConfigurationError",
    "BacktestDomainError",
    "BacktestPerformanceV1",
    "BacktestPeriodV1",
    "BacktestResultV1",
    "BacktestRunParamsV1",
    "BacktestTradeStatsV1",
    "BacktestValidationError",
    "EvaluationContextV1",
    "ExitReasonV1",
    "SignalEvaluationV1",
    "SignalSpecV1",
    "SimulationStateV1",
    "TradeDirectionV1",
    "TradeV1",
]
