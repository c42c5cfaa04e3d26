from .evaluation_v1 import (
    CONTEXT_KIND_BANDED,
    CONTEXT_KIND_CATEGORICAL,
    CONTEXT_KIND_COMPOSITE,
    CONTEXT_KIND_CROSSOVER,
    CONTEXT_KIND_DERIVED,
    CONTEXT_KIND_DIVERGENCE,
    CONTEXT_KIND_MULTI_BAR,
    CONTEXT_KIND_PIVOT,
    CONTEXT_KIND_THRESHOLD,
    EvaluationContextV1,
    SignalEvaluationV1,
)
from .execution_v1 import BacktestRunParamsV1, ExitReasonV1, TradeDirectionV1
from .signal_spec_v1 import ComparisonValue, SignalSpecV1

__all__ = [
    "BacktestRunParamsV1",
    "CONTEXT_KIND_BANDED",
    "CONTEXT_KIND_CATEGORICAL",
    "CONTEXT_KIND_COMPOSITE",
    "CONTEXT_KIND_CROSSOVER",
    "CONTEXT_KIND_DERIVED",
    "CONTEXT_KIND_DIVERGENCE",
    "CONTEXT_KIND_MULTI_BAR",
    "CONTEXT_KIND_PIVOT",
    "CONTEXT_KIND_THRESHOLD",
    "ComparisonValue",
    "EvaluationContextV1",
    "ExitReasonV1",
    "SignalEvaluationV1",
    "SignalSpecV1",
    "TradeDirectionV1",
]
