from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from signal_backtester.contexts.indicators.application.dto import as_float

CONTEXT_KIND_THRESHOLD = "threshold"
CONTEXT_KIND_CROSSOVER = "crossover"
CONTEXT_KIND_MULTI_BAR = "multi_bar"
CONTEXT_KIND_CATEGORICAL = "categorical"
CONTEXT_KIND_BANDED = "banded"
CONTEXT_KIND_PIVOT = "pivot"
CONTEXT_KIND_COMPOSITE = "composite"
CONTEXT_KIND_DIVERGENCE = "divergence"
CONTEXT_KIND_DERIVED = "derived"


@dataclass(frozen=True, slots=True)
class EvaluationContextV1:
    """
    Per-step evaluation record assembled by a context builder.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/signal_context_builders_v1.py
      - src/signal_backtester/contexts/backtest/application/services/signal_predicates_v1.py
      - tests/unit/contexts/backtest/application/services/test_signal_context_builders_v1.py

    Field accessors never raise for missing keys: numbers degrade to `nan`,
    tokens to `None`, and sequences to an empty tuple.
    """

    kind: str
    index: int
    values: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        if not self.kind.strip():
            raise ValueError("EvaluationContextV1.kind must be non-empty")
        if self.index < 0:
            raise ValueError("EvaluationContextV1.index must be >= 0")
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def number(self, name: str) -> float:
        return as_float(self.values.get(name))

    def text(self, name: str) -> str | None:
        value = self.values.get(name)
        if isinstance(value, str):
            return value.strip().lower()
        return None

    def flag(self, name: str) -> bool:
        return self.values.get(name) is True

    def numbers(self, name: str) -> tuple[float, ...]:
        value = self.values.get(name)
        if not isinstance(value, (tuple, list)):
            return ()
        return tuple(as_float(item) for item in value)

    def items(self, name: str) -> tuple[Any, ...]:
        value = self.values.get(name)
        if not isinstance(value, (tuple, list)):
            return ()
        return tuple(value)


@dataclass(frozen=True, slots=True)
class SignalEvaluationV1:
    """
    Trigger decision with family-specific metadata (detected trend, confirmed names, ...).

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/signal_predicates_v1.py
      - src/signal_backtester/contexts/backtest/application/services/signal_families_v1.py
    """

    triggered: bool
    metadata: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        object.__setattr__(self, "triggered", bool(self.triggered))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))
