from __future__ import annotations

import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping

from signal_backtester.contexts.backtest.domain.errors import BacktestValidationError
from signal_backtester.shared_kernel.primitives import Symbol, Timeframe

BacktestRequestScalar = int | float | str | bool | None


@dataclass(frozen=True, slots=True)
class RunSignalBacktestRequest:
    """
    Request payload for one signal backtest run.

    Omitted run parameters fall back to runtime config defaults; omitted signal fields fall
    back to family registry defaults.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/use_cases/run_backtest.py
      - src/signal_backtester/contexts/backtest/application/services/signal_families_v1.py
      - src/signal_backtester/contexts/backtest/adapters/outbound/config/backtest_runtime_config.py
    """

    symbol: Symbol
    timeframe: Timeframe
    family_tag: str
    indicator_name: str | None = None
    indicator_args: Mapping[str, Any] | None = None
    comparison_value: BacktestRequestScalar = None
    predicate_ref: str | None = None
    risk_percent: float | None = None
    reward_percent: float | None = None
    initial_capital: float | None = None
    iterations: int | None = None
    candles_per_iteration: int | None = None

    def __post_init__(self) -> None:
        """
        Validate request fields and collect every violation into one validation error.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Percent values use human percent units (`2.0 == 2%`).
        Raises:
            BacktestValidationError: If one or more fields are invalid.
        Side Effects:
            Normalizes family tag and freezes indicator args.
        """
        errors: list[dict[str, str]] = []
        if self.symbol is None:  # type: ignore[truthy-bool]
            errors.append(_item(path="symbol", code="required", message="symbol is required"))
        if self.timeframe is None:  # type: ignore[truthy-bool]
            errors.append(
                _item(path="timeframe", code="required", message="timeframe is required")
            )

        normalized_tag = self.family_tag.strip().lower() if isinstance(self.family_tag, str) else ""
        if not normalized_tag:
            errors.append(
                _item(path="family_tag", code="required", message="family_tag must be non-empty")
            )
        else:
            object.__setattr__(self, "family_tag", normalized_tag)

        _check_positive_number(
            errors=errors, path="risk_percent", value=self.risk_percent, upper=100.0
        )
        _check_positive_number(errors=errors, path="reward_percent", value=self.reward_percent)
        _check_positive_number(errors=errors, path="initial_capital", value=self.initial_capital)
        _check_positive_int(errors=errors, path="iterations", value=self.iterations)
        _check_positive_int(
            errors=errors, path="candles_per_iteration", value=self.candles_per_iteration
        )

        if errors:
            raise BacktestValidationError("Invalid backtest request", errors=errors)

        object.__setattr__(
            self,
            "indicator_args",
            MappingProxyType(dict(sorted((self.indicator_args or {}).items()))),
        )


def _item(*, path: str, code: str, message: str) -> dict[str, str]:
    return {"path": path, "code": code, "message": message}


def _check_positive_number(
    *,
    errors: list[dict[str, str]],
    path: str,
    value: Any,
    upper: float | None = None,
) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int | float) or not math.isfinite(value):
        errors.append(_item(path=path, code="type_error", message=f"{path} must be a number"))
        return
    if value <= 0:
        errors.append(_item(path=path, code="out_of_range", message=f"{path} must be > 0"))
        return
    if upper is not None and value >= upper:
        errors.append(
            _item(path=path, code="out_of_range", message=f"{path} must be < {upper:g}")
        )


def _check_positive_int(*, errors: list[dict[str, str]], path: str, value: Any) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int):
        errors.append(_item(path=path, code="type_error", message=f"{path} must be an integer"))
        return
    if value <= 0:
        errors.append(_item(path=path, code="out_of_range", message=f"{path} must be > 0"))
