from .backtest import build_run_signal_backtest_use_case, build_use_case_from_config

__all__ = [
    "build_run_signal_backtest_use_case",
    "build_use_case_from_config",
]
