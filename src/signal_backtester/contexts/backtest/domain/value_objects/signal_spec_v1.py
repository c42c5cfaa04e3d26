from __future__ import annotations

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from signal_backtester.shared_kernel.primitives import Symbol, Timeframe

ComparisonValue = float | str | None


@dataclass(frozen=True, slots=True)
class SignalSpecV1:
    """
    Immutable declarative signal specification evaluated by one backtest run.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/signal_families_v1.py
      - src/signal_backtester/contexts/backtest/application/services/trade_simulator_v1.py
      - tests/unit/contexts/backtest/domain/value_objects/test_signal_spec_v1.py
    """

    symbol: Symbol
    timeframe: Timeframe
    family_tag: str
    indicator_name: str
    predicate_ref: str
    comparison_value: ComparisonValue = None
    indicator_args: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        """
        Validate and normalize signal specification fields.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Family tags are kebab-case literals (`rsi-os`, `golden-cross`).
        Raises:
            ValueError: If identifiers are blank or comparison value has unsupported type.
        Side Effects:
            Normalizes tag/reference literals and freezes indicator args.
        """
        if self.symbol is None:  # type: ignore[truthy-bool]
            raise ValueError("SignalSpecV1 requires symbol")
        if self.timeframe is None:  # type: ignore[truthy-bool]
            raise ValueError("SignalSpecV1 requires timeframe")

        normalized_tag = self.family_tag.strip().lower()
        if not normalized_tag:
            raise ValueError("SignalSpecV1.family_tag must be non-empty")
        object.__setattr__(self, "family_tag", normalized_tag)

        normalized_indicator_name = self.indicator_name.strip()
        if not normalized_indicator_name:
            raise ValueError("SignalSpecV1.indicator_name must be non-empty")
        object.__setattr__(self, "indicator_name", normalized_indicator_name)

        normalized_predicate_ref = self.predicate_ref.strip().lower()
        if not normalized_predicate_ref:
            raise ValueError("SignalSpecV1.predicate_ref must be non-empty")
        object.__setattr__(self, "predicate_ref", normalized_predicate_ref)

        object.__setattr__(
            self,
            "comparison_value",
            _normalize_comparison_value(value=self.comparison_value),
        )
        object.__setattr__(
            self,
            "indicator_args",
            MappingProxyType(dict(sorted(self.indicator_args.items()))),
        )

    @property
    def comparison_number(self) -> float:
        """
        Return comparison value as float, `nan` when it is categorical or absent.

        Args:
            None.
        Returns:
            float: Numeric threshold.
        Assumptions:
            NaN thresholds make every numeric comparison evaluate to False.
        Raises:
            None.
        Side Effects:
            None.
        """
        if isinstance(self.comparison_value, float):
            return self.comparison_value
        return math.nan

    @property
    def comparison_text(self) -> str | None:
        """Return comparison value as normalized lowercase token, None when numeric or absent."""
        if isinstance(self.comparison_value, str):
            return self.comparison_value
        return None


def _normalize_comparison_value(*, value: Any) -> ComparisonValue:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("SignalSpecV1.comparison_value must be number, token, or None")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        return normalized or None
    raise ValueError("SignalSpecV1.comparison_value must be number, token, or None")
