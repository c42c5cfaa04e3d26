from .metrics_calculator_v1 import BacktestMetricsCalculatorV1
from .reporting_service_v1 import BacktestReportingServiceV1, BacktestSummaryRowV1
from .signal_context_builders_v1 import (
    BUILDER_BANDED,
    BUILDER_CATEGORICAL,
    BUILDER_COMPOSITE,
    BUILDER_CROSSOVER,
    BUILDER_DIVERGENCE,
    BUILDER_MULTI_BAR,
    BUILDER_PIVOT,
    BUILDER_PRICE,
    BUILDER_PRICE_CHANNEL,
    BUILDER_PRICE_RANGE,
    BUILDER_ROLLING_AVERAGE,
    BUILDER_THRESHOLD,
    BUILDER_VOLUME_AVERAGE,
    ContextBuilderSpecV1,
    build_evaluation_context_v1,
)
from .signal_families_v1 import (
    DIRECTION_POLICY_DIVERGENCE,
    DIRECTION_POLICY_LONG,
    DIRECTION_POLICY_PIVOT_ZONE,
    DIRECTION_POLICY_REPORTED_TREND,
    DIRECTION_POLICY_SHORT,
    PreparedSignalV1,
    SignalFamilySpecV1,
    build_signal_spec_v1,
    list_signal_family_registry_v1,
    prepare_signal_v1,
    resolve_trade_direction_v1,
    signal_family_spec_v1,
    supported_family_tags_v1,
)
from .signal_predicates_v1 import (
    SignalPredicateFn,
    SignalPredicateSpecV1,
    signal_predicate_spec_v1,
    supported_predicate_refs_v1,
)
from .trade_simulator_v1 import SignalTradeSimulatorV1

__all__ = [
    "BUILDER_BANDED",
    "BUILDER_CATEGORICAL",
    "BUILDER_COMPOSITE",
    "BUILDER_CROSSOVER",
    "BUILDER_DIVERGENCE",
    "BUILDER_MULTI_BAR",
    "BUILDER_PIVOT",
    "BUILDER_PRICE",
    "BUILDER_PRICE_CHANNEL",
    "BUILDER_PRICE_RANGE",
    "BUILDER_ROLLING_AVERAGE",
    "BUILDER_THRESHOLD",
    "BUILDER_VOLUME_AVERAGE",
    "BacktestMetricsCalculatorV1",
    "BacktestReportingServiceV1",
    "BacktestSummaryRowV1",
    "ContextBuilderSpecV1",
    "DIRECTION_POLICY_DIVERGENCE",
    "DIRECTION_POLICY_LONG",
    "DIRECTION_POLICY_PIVOT_ZONE",
    "DIRECTION_POLICY_REPORTED_TREND",
    "DIRECTION_POLICY_SHORT",
    "PreparedSignalV1",
    "SignalFamilySpecV1",
    "SignalPredicateFn",
    "SignalPredicateSpecV1",
    "SignalTradeSimulatorV1",
    "build_evaluation_context_v1",
    "build_signal_spec_v1",
    "list_signal_family_registry_v1",
    "prepare_signal_v1",
    "resolve_trade_direction_v1",
    "signal_family_spec_v1",
    "signal_predicate_spec_v1",
    "supported_family_tags_v1",
    "supported_predicate_refs_v1",
]
