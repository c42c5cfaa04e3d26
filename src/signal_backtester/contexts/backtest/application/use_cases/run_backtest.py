from __future__ import annotations

import logging
from time import perf_counter
from typing import Sequence

from signal_backtester.contexts.backtest.application.dto import RunSignalBacktestRequest
from signal_backtester.contexts.backtest.application.services import (
    BacktestMetricsCalculatorV1,
    PreparedSignalV1,
    SignalTradeSimulatorV1,
    build_signal_spec_v1,
    prepare_signal_v1,
)
from signal_backtester.contexts.backtest.application.use_cases.errors import (
    map_backtest_exception,
)
from signal_backtester.contexts.backtest.domain.entities import BacktestResultV1
from signal_backtester.contexts.backtest.domain.errors import BacktestValidationError
from signal_backtester.contexts.backtest.domain.value_objects import BacktestRunParamsV1
from signal_backtester.contexts.indicators.application.dto import (
    AlignedIndicatorSeries,
    CandleArrays,
    IndicatorSeries,
)
from signal_backtester.contexts.indicators.application.ports import IndicatorLibrary
from signal_backtester.contexts.market_data.application.ports import HistoricalCandleLoader
from signal_backtester.platform.errors import BacktesterError

_LOG = logging.getLogger(__name__)

BacktestBatchItem = tuple[RunSignalBacktestRequest, BacktestResultV1 | BacktesterError]


class RunSignalBacktestUseCase:
    """
    RunSignalBacktestUseCase: load candles, compute indicator output, simulate, aggregate.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/dto/run_backtest.py
      - src/signal_backtester/contexts/backtest/application/services/trade_simulator_v1.py
      - src/signal_backtester/wiring/backtest.py
    """

    def __init__(
        self,
        *,
        candle_loader: HistoricalCandleLoader,
        indicator_library: IndicatorLibrary,
        simulator: SignalTradeSimulatorV1 | None = None,
        metrics_calculator: BacktestMetricsCalculatorV1 | None = None,
        risk_percent_default: float = 2.0,
        reward_percent_default: float = 5.0,
        initial_capital_default: float = 10000.0,
        iterations_default: int = 10,
        candles_per_iteration_default: int = 200,
        exit_lookahead_bars: int = 100,
        time_exit_bars: int = 50,
        min_warmup_bars: int = 10,
    ) -> None:
        """
        Initialize use-case dependencies and runtime defaults.

        Args:
            candle_loader: Market-data port loading historical candles.
            indicator_library: Indicators port computing raw indicator output.
            simulator: Optional custom trade simulator.
            metrics_calculator: Optional custom metrics aggregator.
            risk_percent_default: Default risk per trade in percent.
            reward_percent_default: Default reward per trade in percent.
            initial_capital_default: Default starting capital.
            iterations_default: Default number of paged candle requests.
            candles_per_iteration_default: Default candle page size.
            exit_lookahead_bars: Forward bars scanned for SL/TP exits.
            time_exit_bars: Bars after entry used for the time exit.
            min_warmup_bars: Minimum first evaluated bar index.
        Returns:
            None.
        Assumptions:
            Runtime defaults come from fail-fast `configs/<env>/backtest.yaml` loader.
        Raises:
            ValueError: If dependencies are missing or scalar defaults are non-positive.
        Side Effects:
            None.
        """
        if candle_loader is None:  # type: ignore[truthy-bool]
            raise ValueError("RunSignalBacktestUseCase requires candle_loader")
        if indicator_library is None:  # type: ignore[truthy-bool]
            raise ValueError("RunSignalBacktestUseCase requires indicator_library")
        if iterations_default <= 0:
            raise ValueError("RunSignalBacktestUseCase.iterations_default must be > 0")
        if candles_per_iteration_default <= 0:
            raise ValueError("RunSignalBacktestUseCase.candles_per_iteration_default must be > 0")
        # Проверяем остальные значения по умолчанию сразу, а не на первом запросе.
        BacktestRunParamsV1(
            risk_percent=risk_percent_default,
            reward_percent=reward_percent_default,
            initial_capital=initial_capital_default,
            exit_lookahead_bars=exit_lookahead_bars,
            time_exit_bars=time_exit_bars,
            min_warmup_bars=min_warmup_bars,
        )

        self._candle_loader = candle_loader
        self._indicator_library = indicator_library
        self._simulator = simulator or SignalTradeSimulatorV1()
        self._metrics_calculator = metrics_calculator or BacktestMetricsCalculatorV1()
        self._risk_percent_default = risk_percent_default
        self._reward_percent_default = reward_percent_default
        self._initial_capital_default = initial_capital_default
        self._iterations_default = iterations_default
        self._candles_per_iteration_default = candles_per_iteration_default
        self._exit_lookahead_bars = exit_lookahead_bars
        self._time_exit_bars = time_exit_bars
        self._min_warmup_bars = min_warmup_bars

    async def execute(self, *, request: RunSignalBacktestRequest) -> BacktestResultV1:
        """
        Execute one signal backtest run end-to-end.

        Docs:
          - docs/architecture/signal-backtest-engine-v1.md
        Related:
          - src/signal_backtester/contexts/backtest/application/services/signal_families_v1.py
          - src/signal_backtester/contexts/backtest/application/services/metrics_calculator_v1.py
          - src/signal_backtester/contexts/backtest/application/use_cases/errors.py

        Args:
            request: Signal backtest request.
        Returns:
            BacktestResultV1: Numeric result aggregate (possibly with zero trades).
        Assumptions:
            Family and predicate are resolved before any candle is loaded.
        Raises:
            BacktesterError: Canonical mapped error for validation/configuration/
                unknown-indicator/unexpected failures.
        Side Effects:
            Awaits the candle loader once and calls the indicator library once.
        """
        try:
            if request is None:  # type: ignore[truthy-bool]
                raise BacktestValidationError("RunSignalBacktestUseCase.execute requires request")

            prepared = prepare_signal_v1(
                spec=build_signal_spec_v1(
                    symbol=request.symbol,
                    timeframe=request.timeframe,
                    family_tag=request.family_tag,
                    indicator_name=request.indicator_name,
                    indicator_args=request.indicator_args,
                    comparison_value=request.comparison_value,
                    predicate_ref=request.predicate_ref,
                )
            )
            params = self._resolve_params(request=request)
            iterations = request.iterations or self._iterations_default
            candles_per_iteration = (
                request.candles_per_iteration or self._candles_per_iteration_default
            )
            _LOG.info(
                "event=backtest_started family=%s symbol=%s timeframe=%s predicate=%s "
                "iterations=%s candles_per_iteration=%s",
                prepared.family.tag,
                prepared.spec.symbol,
                prepared.spec.timeframe,
                prepared.predicate.name,
                iterations,
                candles_per_iteration,
            )
            started_at = perf_counter()

            loaded = await self._candle_loader.load_candles(
                symbol=prepared.spec.symbol,
                timeframe=prepared.spec.timeframe,
                iterations=iterations,
                candles_per_iteration=candles_per_iteration,
            )
            if len(loaded) == 0:
                raise BacktestValidationError(
                    "No candles loaded for backtest",
                    errors=[
                        {
                            "path": "candles",
                            "code": "empty",
                            "message": "candle loader returned no candles",
                        }
                    ],
                )
            candles = CandleArrays.from_candles(
                symbol=prepared.spec.symbol,
                timeframe=prepared.spec.timeframe,
                candles=loaded,
            )
            series = self._compute_series(prepared=prepared, candles=candles)
            state = self._simulator.run(
                prepared=prepared,
                candles=candles,
                series=series,
                params=params,
            )
            result = self._metrics_calculator.calculate(
                state=state,
                initial_capital=params.initial_capital,
                candles=candles,
                spec=prepared.spec,
            )
            _LOG.info(
                "event=backtest_finished family=%s symbol=%s candles=%s triggers=%s trades=%s "
                "faulted_steps=%s return_percent=%.2f duration_seconds=%.3f",
                prepared.family.tag,
                prepared.spec.symbol,
                candles.bar_count,
                state.signal_triggers,
                state.total_trades,
                state.faulted_steps,
                result.performance.return_percent,
                perf_counter() - started_at,
            )
            return result
        except BacktesterError:
            raise
        except Exception as error:  # noqa: BLE001
            raise map_backtest_exception(error=error) from error

    async def execute_many(
        self,
        *,
        requests: Sequence[RunSignalBacktestRequest],
    ) -> tuple[BacktestBatchItem, ...]:
        """
        Run several independent requests sequentially, isolating per-request failures.

        Args:
            requests: Requests in caller order.
        Returns:
            tuple[BacktestBatchItem, ...]: `(request, result | error)` pairs in input order.
        Assumptions:
            Runs share no mutable state; one failed request does not abort the batch.
        Raises:
            None.
        Side Effects:
            Same as `execute` for every request.
        """
        outcomes: list[BacktestBatchItem] = []
        for position, request in enumerate(requests):
            try:
                outcome: BacktestResultV1 | BacktesterError = await self.execute(request=request)
            except BacktesterError as error:
                _LOG.warning(
                    "event=backtest_batch_item_failed position=%s family=%s code=%s message=%s",
                    position,
                    getattr(request, "family_tag", None),
                    error.code,
                    error.message,
                )
                outcome = error
            outcomes.append((request, outcome))
        return tuple(outcomes)

    def _resolve_params(self, *, request: RunSignalBacktestRequest) -> BacktestRunParamsV1:
        return BacktestRunParamsV1(
            risk_percent=_with_default(request.risk_percent, self._risk_percent_default),
            reward_percent=_with_default(request.reward_percent, self._reward_percent_default),
            initial_capital=_with_default(request.initial_capital, self._initial_capital_default),
            exit_lookahead_bars=self._exit_lookahead_bars,
            time_exit_bars=self._time_exit_bars,
            min_warmup_bars=self._min_warmup_bars,
        )

    def _compute_series(
        self,
        *,
        prepared: PreparedSignalV1,
        candles: CandleArrays,
    ) -> AlignedIndicatorSeries:
        """
        Compute and align indicator output once per run.

        Args:
            prepared: Prepared signal with family metadata.
            candles: Oldest-to-newest candle arrays.
        Returns:
            AlignedIndicatorSeries: Series aligned to candle indexes (empty for price families).
        Assumptions:
            Candle-only families never call the indicator library.
        Raises:
            UnknownIndicatorError: Propagated from the indicator library.
            ValueError: If indicator output is longer than the candle series.
        Side Effects:
            Calls the indicator library at most once.
        """
        if not prepared.family.requires_indicator:
            return IndicatorSeries.empty().align(candle_count=candles.bar_count)

        raw = self._indicator_library.compute(
            indicator_name=prepared.spec.indicator_name,
            candles=candles,
            args=prepared.spec.indicator_args,
        )
        aligned = raw.align(candle_count=candles.bar_count)
        _LOG.debug(
            "event=indicator_series_aligned indicator=%s shape=%s length=%s offset=%s",
            prepared.spec.indicator_name,
            raw.shape,
            raw.length,
            aligned.offset,
        )
        return aligned


def _with_default(value: float | None, default: float) -> float:
    if value is None:
        return default
    return float(value)
