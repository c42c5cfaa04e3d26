from __future__ import annotations

import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable

from signal_backtester.contexts.backtest.domain.errors import BacktestConfigurationError
from signal_backtester.contexts.backtest.domain.value_objects import (
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
    SignalSpecV1,
)

SignalPredicateFn = Callable[[EvaluationContextV1, SignalSpecV1], SignalEvaluationV1]

BANDWIDTH_SQUEEZE_THRESHOLD = 0.05
BANDWIDTH_EXPANSION_THRESHOLD = 0.15
RETRACEMENT_LEVELS = (0.382, 0.5, 0.618)
RETRACEMENT_TOLERANCE = 0.02
VOLUME_SPIKE_MULTIPLIER = 2.0
SUPPORT_BREAKOUT_BUFFER = 1.005

_NOT_TRIGGERED = SignalEvaluationV1(triggered=False)


@dataclass(frozen=True, slots=True)
class SignalPredicateSpecV1:
    """
    Registry entry binding a predicate name to its function and accepted context shape.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/signal_families_v1.py
      - src/signal_backtester/contexts/backtest/application/services/signal_context_builders_v1.py
      - tests/unit/contexts/backtest/application/services/test_signal_predicates_v1.py
    """

    name: str
    context_kind: str
    evaluate: SignalPredicateFn


def _verdict(triggered: bool, **metadata: object) -> SignalEvaluationV1:
    if not triggered:
        return _NOT_TRIGGERED
    return SignalEvaluationV1(triggered=True, metadata=metadata)


# Threshold family: {value, previous_value[, average]}


def _value_above(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    return _verdict(context.number("value") > spec.comparison_number)


def _value_below(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    return _verdict(context.number("value") < spec.comparison_number)


def _value_at_or_above(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    return _verdict(context.number("value") >= spec.comparison_number)


def _value_at_or_below(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    return _verdict(context.number("value") <= spec.comparison_number)


def _value_equals(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    return _verdict(context.number("value") == spec.comparison_number)


def _crosses_above_level(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    level = spec.comparison_number
    return _verdict(
        context.number("value") > level and context.number("previous_value") <= level
    )


def _crosses_below_level(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    level = spec.comparison_number
    return _verdict(
        context.number("value") < level and context.number("previous_value") >= level
    )


def _value_above_average(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    return _verdict(context.number("value") > context.number("average"))


# Crossover family: {fast, slow, previous_fast, previous_slow}


def _bullish_crossover(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    return _verdict(
        context.number("fast") > context.number("slow")
        and context.number("previous_fast") <= context.number("previous_slow")
    )


def _bearish_crossover(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    return _verdict(
        context.number("fast") < context.number("slow")
        and context.number("previous_fast") >= context.number("previous_slow")
    )


# Multi-bar family: {all: (v[i-1], v[i-2], v[i-3]), current}


def _all_prior_above_current(
    context: EvaluationContextV1,
    spec: SignalSpecV1,
) -> SignalEvaluationV1:
    prior = context.numbers("all")
    current = context.number("current")
    return _verdict(bool(prior) and all(value > current for value in prior))


def _all_prior_below_current(
    context: EvaluationContextV1,
    spec: SignalSpecV1,
) -> SignalEvaluationV1:
    prior = context.numbers("all")
    current = context.number("current")
    return _verdict(bool(prior) and all(value < current for value in prior))


# Categorical family: {trend, value, price}


def _trend_matches(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    trend = context.text("trend")
    return _verdict(trend is not None and trend == spec.comparison_text, trend=trend)


def _price_above_level(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    return _verdict(context.number("price") > context.number("value"))


def _price_below_level(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    return _verdict(context.number("price") < context.number("value"))


# Banded family: indicator fields + {price, previous_price, high, low}


def _ema_stack_bullish(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    return _verdict(
        context.number("ema2") > context.number("ema3")
        and context.number("ema1") > context.number("ema2")
    )


def _ema_stack_bearish(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    return _verdict(
        context.number("ema2") < context.number("ema3")
        and context.number("ema1") < context.number("ema2")
    )


def _price_at_or_above_upper(
    context: EvaluationContextV1,
    spec: SignalSpecV1,
) -> SignalEvaluationV1:
    return _verdict(context.number("price") >= context.number("upper"))


def _price_at_or_below_lower(
    context: EvaluationContextV1,
    spec: SignalSpecV1,
) -> SignalEvaluationV1:
    return _verdict(context.number("price") <= context.number("lower"))


def _price_above_upper(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    return _verdict(context.number("price") > context.number("upper"))


def _price_below_lower(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    return _verdict(context.number("price") < context.number("lower"))


def _bandwidth(context: EvaluationContextV1) -> float:
    middle = context.number("middle")
    if middle == 0.0:
        return math.nan
    return (context.number("upper") - context.number("lower")) / middle


def _bandwidth_squeeze(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    bandwidth = _bandwidth(context)
    return _verdict(bandwidth < BANDWIDTH_SQUEEZE_THRESHOLD, bandwidth=bandwidth)


def _bandwidth_expansion(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    bandwidth = _bandwidth(context)
    return _verdict(bandwidth > BANDWIDTH_EXPANSION_THRESHOLD, bandwidth=bandwidth)


def _ma_support(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    average = context.number("value")
    return _verdict(context.number("price") > average and context.number("low") <= average)


def _ma_resistance(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    average = context.number("value")
    return _verdict(context.number("price") < average and context.number("high") >= average)


def _breaks_above_support(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    support = context.number("lower") * SUPPORT_BREAKOUT_BUFFER
    return _verdict(
        context.number("previous_price") <= support and context.number("price") > support,
        support=support,
    )


def _breaks_above_resistance(
    context: EvaluationContextV1,
    spec: SignalSpecV1,
) -> SignalEvaluationV1:
    resistance = context.number("upper")
    return _verdict(
        context.number("previous_price") <= resistance and context.number("price") > resistance,
        resistance=resistance,
    )


# Pivot family: {pivot, r1, r2, s1, s2, price}


def _pivot_zone(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    price = context.number("price")
    if price <= context.number("s2"):
        return _verdict(True, zone="strong support")
    if price <= context.number("s1"):
        return _verdict(True, zone="first support")
    if price >= context.number("r2"):
        return _verdict(True, zone="strong resistance")
    if price >= context.number("r1"):
        return _verdict(True, zone="first resistance")
    return _NOT_TRIGGERED


# Composite family: fields + previous_<field> + price fields


def _cloud_bullish(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    price = context.number("price")
    return _verdict(
        price > context.number("spanA")
        and price > context.number("spanB")
        and context.number("conversion") > context.number("base")
    )


def _cloud_bearish(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    price = context.number("price")
    return _verdict(
        price < context.number("spanA")
        and price < context.number("spanB")
        and context.number("conversion") < context.number("base")
    )


def _impulse_slopes(context: EvaluationContextV1) -> tuple[float, float]:
    return (
        context.number("ema") - context.number("previous_ema"),
        context.number("histogram") - context.number("previous_histogram"),
    )


def _impulse_bull(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    ema_slope, histogram_slope = _impulse_slopes(context)
    return _verdict(ema_slope > 0.0 and histogram_slope > 0.0, impulse="bull")


def _impulse_bear(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    ema_slope, histogram_slope = _impulse_slopes(context)
    return _verdict(ema_slope < 0.0 and histogram_slope < 0.0, impulse="bear")


def _impulse_blue(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    ema_slope, histogram_slope = _impulse_slopes(context)
    if math.isnan(ema_slope) or math.isnan(histogram_slope):
        return _NOT_TRIGGERED
    is_bull = ema_slope > 0.0 and histogram_slope > 0.0
    is_bear = ema_slope < 0.0 and histogram_slope < 0.0
    return _verdict(not is_bull and not is_bear, impulse="blue")


def _obv_confirms_rise(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    return _verdict(
        context.number("value") > context.number("previous_value")
        and context.number("price") > context.number("previous_price")
    )


def _obv_confirms_fall(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    return _verdict(
        context.number("value") < context.number("previous_value")
        and context.number("price") < context.number("previous_price")
    )


# Divergence family: {has_divergence, confirmed, price}


def _confirmed_divergence(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    confirmed = tuple(str(name) for name in context.items("confirmed"))
    # Срабатывает по флагу даже без подтверждённых имён; направление тогда short.
    return _verdict(context.flag("has_divergence"), divergence=confirmed)


# Derived family: rolling windows computed from candles


def _near_retracement_level(
    context: EvaluationContextV1,
    spec: SignalSpecV1,
) -> SignalEvaluationV1:
    high = context.number("high")
    low = context.number("low")
    price_range = high - low
    if not price_range > 0.0:
        return _NOT_TRIGGERED
    retracement = (high - context.number("price")) / price_range
    for level in RETRACEMENT_LEVELS:
        if abs(retracement - level) <= RETRACEMENT_TOLERANCE:
            return _verdict(True, level=level)
    return _NOT_TRIGGERED


def _volume_spike(context: EvaluationContextV1, spec: SignalSpecV1) -> SignalEvaluationV1:
    return _verdict(
        context.number("volume") > context.number("average_volume") * VOLUME_SPIKE_MULTIPLIER
    )


def _build_signal_predicate_registry_v1() -> dict[str, SignalPredicateSpecV1]:
    """
    Build predicate name -> predicate spec registry.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/signal_families_v1.py
      - tests/unit/contexts/backtest/application/services/test_signal_predicates_v1.py

    Args:
        None.
    Returns:
        dict[str, SignalPredicateSpecV1]: Deterministic sorted registry payload.
    Assumptions:
        Every predicate is pure and total over contexts of its declared kind.
    Raises:
        None.
    Side Effects:
        None.
    """
    entries: dict[str, tuple[str, SignalPredicateFn]] = {
        "value_above": (CONTEXT_KIND_THRESHOLD, _value_above),
        "value_below": (CONTEXT_KIND_THRESHOLD, _value_below),
        "value_at_or_above": (CONTEXT_KIND_THRESHOLD, _value_at_or_above),
        "value_at_or_below": (CONTEXT_KIND_THRESHOLD, _value_at_or_below),
        "value_equals": (CONTEXT_KIND_THRESHOLD, _value_equals),
        "crosses_above_level": (CONTEXT_KIND_THRESHOLD, _crosses_above_level),
        "crosses_below_level": (CONTEXT_KIND_THRESHOLD, _crosses_below_level),
        "value_above_average": (CONTEXT_KIND_THRESHOLD, _value_above_average),
        "bullish_crossover": (CONTEXT_KIND_CROSSOVER, _bullish_crossover),
        "bearish_crossover": (CONTEXT_KIND_CROSSOVER, _bearish_crossover),
        "all_prior_above_current": (CONTEXT_KIND_MULTI_BAR, _all_prior_above_current),
        "all_prior_below_current": (CONTEXT_KIND_MULTI_BAR, _all_prior_below_current),
        "trend_matches": (CONTEXT_KIND_CATEGORICAL, _trend_matches),
        "price_above_level": (CONTEXT_KIND_CATEGORICAL, _price_above_level),
        "price_below_level": (CONTEXT_KIND_CATEGORICAL, _price_below_level),
        "ema_stack_bullish": (CONTEXT_KIND_BANDED, _ema_stack_bullish),
        "ema_stack_bearish": (CONTEXT_KIND_BANDED, _ema_stack_bearish),
        "price_at_or_above_upper": (CONTEXT_KIND_BANDED, _price_at_or_above_upper),
        "price_at_or_below_lower": (CONTEXT_KIND_BANDED, _price_at_or_below_lower),
        "price_above_upper": (CONTEXT_KIND_BANDED, _price_above_upper),
        "price_below_lower": (CONTEXT_KIND_BANDED, _price_below_lower),
        "bandwidth_squeeze": (CONTEXT_KIND_BANDED, _bandwidth_squeeze),
        "bandwidth_expansion": (CONTEXT_KIND_BANDED, _bandwidth_expansion),
        "ma_support": (CONTEXT_KIND_BANDED, _ma_support),
        "ma_resistance": (CONTEXT_KIND_BANDED, _ma_resistance),
        "breaks_above_support": (CONTEXT_KIND_BANDED, _breaks_above_support),
        "breaks_above_resistance": (CONTEXT_KIND_BANDED, _breaks_above_resistance),
        "pivot_zone": (CONTEXT_KIND_PIVOT, _pivot_zone),
        "cloud_bullish": (CONTEXT_KIND_COMPOSITE, _cloud_bullish),
        "cloud_bearish": (CONTEXT_KIND_COMPOSITE, _cloud_bearish),
        "impulse_bull": (CONTEXT_KIND_COMPOSITE, _impulse_bull),
        "impulse_bear": (CONTEXT_KIND_COMPOSITE, _impulse_bear),
        "impulse_blue": (CONTEXT_KIND_COMPOSITE, _impulse_blue),
        "obv_confirms_rise": (CONTEXT_KIND_COMPOSITE, _obv_confirms_rise),
        "obv_confirms_fall": (CONTEXT_KIND_COMPOSITE, _obv_confirms_fall),
        "confirmed_divergence": (CONTEXT_KIND_DIVERGENCE, _confirmed_divergence),
        "near_retracement_level": (CONTEXT_KIND_DERIVED, _near_retracement_level),
        "volume_spike": (CONTEXT_KIND_DERIVED, _volume_spike),
    }
    return {
        name: SignalPredicateSpecV1(name=name, context_kind=kind, evaluate=fn)
        for name, (kind, fn) in sorted(entries.items())
    }


_SIGNAL_PREDICATE_REGISTRY_V1 = MappingProxyType(_build_signal_predicate_registry_v1())


def supported_predicate_refs_v1() -> tuple[str, ...]:
    """Return deterministic ordered predicate names."""
    return tuple(_SIGNAL_PREDICATE_REGISTRY_V1.keys())


def signal_predicate_spec_v1(*, predicate_ref: str) -> SignalPredicateSpecV1:
    """
    Resolve one predicate by reference.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/signal_families_v1.py

    Args:
        predicate_ref: Predicate name (`value_above`, `bullish_crossover`, ...).
    Returns:
        SignalPredicateSpecV1: Bound predicate entry.
    Assumptions:
        Reference case/spacing are normalized at lookup.
    Raises:
        BacktestConfigurationError: If reference is blank or unknown.
    Side Effects:
        None.
    """
    normalized_ref = predicate_ref.strip().lower()
    if not normalized_ref:
        raise BacktestConfigurationError("predicate_ref must be non-empty")
    predicate = _SIGNAL_PREDICATE_REGISTRY_V1.get(normalized_ref)
    if predicate is None:
        raise BacktestConfigurationError(
            f"Unknown predicate_ref: {normalized_ref!r}",
            predicate_ref=normalized_ref,
        )
    return predicate
