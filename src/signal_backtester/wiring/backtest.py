"""
Composition helpers for the signal backtest engine.

Docs:
  - docs/architecture/signal-backtest-engine-v1.md
"""

from __future__ import annotations

import logging
from typing import Mapping

from signal_backtester.contexts.backtest.adapters.outbound import (
    BacktestRuntimeConfig,
    build_backtest_runtime_config_hash,
    load_backtest_runtime_config,
    resolve_backtest_config_path,
)
from signal_backtester.contexts.backtest.application.use_cases import RunSignalBacktestUseCase
from signal_backtester.contexts.indicators.application.ports import IndicatorLibrary
from signal_backtester.contexts.market_data.application.ports import HistoricalCandleLoader

_LOG = logging.getLogger(__name__)


def build_run_signal_backtest_use_case(
    *,
    environ: Mapping[str, str],
    candle_loader: HistoricalCandleLoader,
    indicator_library: IndicatorLibrary,
) -> RunSignalBacktestUseCase:
    """
    Build fully wired signal backtest use case with fail-fast runtime configuration.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/adapters/outbound/config/backtest_runtime_config.py
      - src/signal_backtester/contexts/backtest/application/use_cases/run_backtest.py
      - configs/dev/backtest.yaml

    Args:
        environ: Runtime environment mapping.
        candle_loader: Market-data adapter implementing `HistoricalCandleLoader`.
        indicator_library: Indicators adapter implementing `IndicatorLibrary`.
    Returns:
        RunSignalBacktestUseCase: Use case with defaults taken from `backtest.yaml`.
    Assumptions:
        Config is validated on startup, before the first request.
    Raises:
        ValueError: If environment or config values are invalid.
        FileNotFoundError: If `backtest.yaml` cannot be resolved.
    Side Effects:
        Reads runtime YAML file and logs the resolved config hash.
    """
    config_path = resolve_backtest_config_path(environ=environ)
    config = load_backtest_runtime_config(config_path)
    _LOG.info(
        "event=backtest_config_loaded path=%s config_hash=%s",
        config_path,
        build_backtest_runtime_config_hash(config=config),
    )
    return build_use_case_from_config(
        config=config,
        candle_loader=candle_loader,
        indicator_library=indicator_library,
    )


def build_use_case_from_config(
    *,
    config: BacktestRuntimeConfig,
    candle_loader: HistoricalCandleLoader,
    indicator_library: IndicatorLibrary,
) -> RunSignalBacktestUseCase:
    return RunSignalBacktestUseCase(
        candle_loader=candle_loader,
        indicator_library=indicator_library,
        risk_percent_default=config.run.risk_percent,
        reward_percent_default=config.run.reward_percent,
        initial_capital_default=config.run.initial_capital,
        iterations_default=config.run.iterations,
        candles_per_iteration_default=config.run.candles_per_iteration,
        exit_lookahead_bars=config.simulation.exit_lookahead_bars,
        time_exit_bars=config.simulation.time_exit_bars,
        min_warmup_bars=config.simulation.min_warmup_bars,
    )
