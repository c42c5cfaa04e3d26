from .backtest_errors import (
    BacktestConfigurationError,
    BacktestDomainError,
    BacktestValidationError,
)

__all__ = [
    "BacktestConfigurationError",
    "BacktestDomainError",
    "BacktestValidationError",
]
