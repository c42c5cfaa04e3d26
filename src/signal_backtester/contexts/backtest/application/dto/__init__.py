from .run_backtest import BacktestRequestScalar, RunSignalBacktestRequest

__all__ = [
    "BacktestRequestScalar",
    "RunSignalBacktestRequest",
]
