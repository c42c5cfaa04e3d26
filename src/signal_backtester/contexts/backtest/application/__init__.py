from .dto import BacktestRequestScalar, RunSignalBacktestRequest
from .services import (
    BacktestMetricsCalculatorV1,
    BacktestReportingServiceV1,
    PreparedSignalV1,
    SignalTradeSimulatorV1,
    build_signal_spec_v1,
    prepare_signal_v1,
    supported_family_tags_v1,
)
from .use_cases import (
    RunSignalBacktestUseCase,
    configuration_error,
    map_backtest_exception,
    validation_error,
)

__all__ = [
    "BacktestMetricsCalculatorV1",
    "BacktestReportingServiceV1",
    "BacktestRequestScalar",
    "PreparedSignalV1",
    "RunSignalBacktestRequest",
    "RunSignalBacktestUseCase",
    "SignalTradeSimulatorV1",
    "build_signal_spec_v1",
    "configuration_error",
    "map_backtest_exception",
    "prepare_signal_v1",
    "supported_family_tags_v1",
    "validation_error",
]
