from .config import (
    BacktestRunRuntimeConfig,
    BacktestRuntimeConfig,
    BacktestSimulationRuntimeConfig,
    build_backtest_runtime_config_hash,
    load_backtest_runtime_config,
    resolve_backtest_config_path,
)

__all__ = [
    "BacktestRunRuntimeConfig",
    "BacktestRuntimeConfig",
    "BacktestSimulationRuntimeConfig",
    "build_backtest_runtime_config_hash",
    "load_backtest_runtime_config",
    "resolve_backtest_config_path",
]
