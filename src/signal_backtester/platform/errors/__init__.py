from .backtester_error import (
    BACKTEST_ERROR_CODES,
    CONFIGURATION_ERROR,
    UNEXPECTED_ERROR,
    UNKNOWN_INDICATOR,
    VALIDATION_ERROR,
    BacktesterError,
)

__all__ = [
    "BACKTEST_ERROR_CODES",
    "BacktesterError",
    "CONFIGURATION_ERROR",
    "UNEXPECTED_ERROR",
    "UNKNOWN_INDICATOR",
    "VALIDATION_ERROR",
]
