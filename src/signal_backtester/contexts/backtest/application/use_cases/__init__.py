from .errors import configuration_error, map_backtest_exception, validation_error
from .run_backtest import BacktestBatchItem, RunSignalBacktestUseCase

__all__ = [
    "BacktestBatchItem",
    "RunSignalBacktestUseCase",
    "configuration_error",
    "map_backtest_exception",
    "validation_error",
]
