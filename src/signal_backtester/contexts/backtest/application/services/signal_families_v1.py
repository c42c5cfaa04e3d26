from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping

from signal_backtester.contexts.backtest.domain.errors import BacktestConfigurationError
from signal_backtester.contexts.backtest.domain.value_objects import (
    ComparisonValue,
    EvaluationContextV1,
    SignalEvaluationV1,
    SignalSpecV1,
    TradeDirectionV1,
)
from signal_backtester.shared_kernel.primitives import Symbol, Timeframe

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
)
from .signal_predicates_v1 import SignalPredicateSpecV1, signal_predicate_spec_v1

DIRECTION_POLICY_LONG = "long"
DIRECTION_POLICY_SHORT = "short"
DIRECTION_POLICY_REPORTED_TREND = "reported_trend"
DIRECTION_POLICY_PIVOT_ZONE = "pivot_zone"
DIRECTION_POLICY_DIVERGENCE = "divergence"

_ALLOWED_DIRECTION_POLICIES = (
    DIRECTION_POLICY_LONG,
    DIRECTION_POLICY_SHORT,
    DIRECTION_POLICY_REPORTED_TREND,
    DIRECTION_POLICY_PIVOT_ZONE,
    DIRECTION_POLICY_DIVERGENCE,
)
_LONG_TREND_TOKENS = frozenset({"long", "uptrend"})
_PRICE_INDICATOR = "price"
_DERIVED_WINDOW_BARS = 20
_ATR_AVERAGE_BARS = 10


@dataclass(frozen=True, slots=True)
class SignalFamilySpecV1:
    """
    Registry entry describing how one signal family is built, evaluated, and traded.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/signal_context_builders_v1.py
      - src/signal_backtester/contexts/backtest/application/services/signal_predicates_v1.py
      - tests/unit/contexts/backtest/application/services/test_signal_families_v1.py
    """

    tag: str
    builder: ContextBuilderSpecV1
    default_predicate_ref: str
    default_indicator: str
    direction_policy: str
    default_comparison_value: ComparisonValue = 0.0

    def __post_init__(self) -> None:
        """
        Validate family metadata against builder and predicate registries.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Registry is built once at import time; failures here are programming errors.
        Raises:
            ValueError: If tag or policy is invalid, or default predicate shape mismatches.
        Side Effects:
            Normalizes tag literal.
        """
        normalized_tag = self.tag.strip().lower()
        if not normalized_tag:
            raise ValueError("SignalFamilySpecV1.tag must be non-empty")
        object.__setattr__(self, "tag", normalized_tag)
        if self.direction_policy not in _ALLOWED_DIRECTION_POLICIES:
            raise ValueError(
                f"SignalFamilySpecV1.direction_policy must be one of {_ALLOWED_DIRECTION_POLICIES}"
            )
        predicate = signal_predicate_spec_v1(predicate_ref=self.default_predicate_ref)
        if predicate.context_kind != self.builder.context_kind:
            raise ValueError(
                f"family {normalized_tag!r} builds {self.builder.context_kind!r} contexts, "
                f"default predicate expects {predicate.context_kind!r}"
            )

    @property
    def min_lookback(self) -> int:
        return self.builder.min_lookback

    @property
    def requires_indicator(self) -> bool:
        return self.builder.requires_indicator


@dataclass(frozen=True, slots=True)
class PreparedSignalV1:
    """
    Signal spec bound to its family and resolved predicate before the loop starts.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/trade_simulator_v1.py
      - src/signal_backtester/contexts/backtest/application/use_cases/run_backtest.py
    """

    spec: SignalSpecV1
    family: SignalFamilySpecV1
    predicate: SignalPredicateSpecV1

    def evaluate(self, *, context: EvaluationContextV1) -> SignalEvaluationV1:
        return self.predicate.evaluate(context, self.spec)

    def direction_for(self, *, evaluation: SignalEvaluationV1) -> TradeDirectionV1:
        return resolve_trade_direction_v1(
            direction_policy=self.family.direction_policy,
            evaluation=evaluation,
            spec=self.spec,
        )


def _family(
    tag: str,
    builder: ContextBuilderSpecV1,
    predicate_ref: str,
    indicator: str,
    direction: str,
    comparison_value: ComparisonValue = 0.0,
) -> SignalFamilySpecV1:
    return SignalFamilySpecV1(
        tag=tag,
        builder=builder,
        default_predicate_ref=predicate_ref,
        default_indicator=indicator,
        direction_policy=direction,
        default_comparison_value=comparison_value,
    )


def _build_signal_family_registry_v1() -> dict[str, SignalFamilySpecV1]:
    """
    Build family tag -> family spec registry.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/signal_predicates_v1.py
      - tests/unit/contexts/backtest/application/services/test_signal_families_v1.py

    Args:
        None.
    Returns:
        dict[str, SignalFamilySpecV1]: Deterministic sorted registry payload.
    Assumptions:
        Field names follow the indicator library output keys
        (`MACD`/`signal`/`histogram`, `k`/`d`, `conversion`/`base`/`spanA`/`spanB`).
    Raises:
        ValueError: If one family spec is inconsistent.
    Side Effects:
        None.
    """
    long_, short_ = DIRECTION_POLICY_LONG, DIRECTION_POLICY_SHORT
    value = ContextBuilderSpecV1(builder=BUILDER_THRESHOLD)
    stochastic_k = ContextBuilderSpecV1(builder=BUILDER_THRESHOLD, value_field="k")
    adx = ContextBuilderSpecV1(builder=BUILDER_THRESHOLD, value_field="adx")
    histogram = ContextBuilderSpecV1(builder=BUILDER_THRESHOLD, value_field="histogram")
    price = ContextBuilderSpecV1(builder=BUILDER_PRICE)
    banded = ContextBuilderSpecV1(builder=BUILDER_BANDED)
    categorical = ContextBuilderSpecV1(builder=BUILDER_CATEGORICAL)
    macd_cross = ContextBuilderSpecV1(
        builder=BUILDER_CROSSOVER, fast_field="MACD", slow_field="signal"
    )
    stochastic_cross = ContextBuilderSpecV1(
        builder=BUILDER_CROSSOVER, fast_field="k", slow_field="d"
    )
    ema_cross = ContextBuilderSpecV1(
        builder=BUILDER_CROSSOVER, fast_field="ema2", slow_field="ema3"
    )
    tk_cross = ContextBuilderSpecV1(
        builder=BUILDER_CROSSOVER, fast_field="conversion", slow_field="base"
    )
    cloud = ContextBuilderSpecV1(
        builder=BUILDER_COMPOSITE, fields=("base", "conversion", "spanA", "spanB")
    )
    impulse = ContextBuilderSpecV1(builder=BUILDER_COMPOSITE, fields=("ema", "histogram"))
    obv = ContextBuilderSpecV1(builder=BUILDER_COMPOSITE, fields=("value",))
    channel = ContextBuilderSpecV1(builder=BUILDER_PRICE_CHANNEL, lookback=_DERIVED_WINDOW_BARS)

    families = (
        _family("rsi-ob", value, "value_above", "RsiIndicator", short_, 70.0),
        _family("rsi-os", value, "value_below", "RsiIndicator", long_, 30.0),
        _family("stochastic-overbought", stochastic_k, "value_above", "StochasticIndicator",
                short_, 80.0),
        _family("stochastic-oversold", stochastic_k, "value_below", "StochasticIndicator",
                long_, 20.0),
        _family("williams-overbought", value, "value_above", "WilliamsRIndicator", short_, -20.0),
        _family("williams-oversold", value, "value_below", "WilliamsRIndicator", long_, -80.0),
        _family("mfi-overbought", value, "value_above", "MfiIndicator", short_, 80.0),
        _family("mfi-oversold", value, "value_below", "MfiIndicator", long_, 20.0),
        _family("cci-overbought", value, "value_above", "CciIndicator", short_, 100.0),
        _family("cci-oversold", value, "value_below", "CciIndicator", long_, -100.0),
        _family("adx-strong-trend", adx, "value_above", "AdxIndicator", long_, 25.0),
        _family("adx-weak-trend", adx, "value_below", "AdxIndicator", long_, 20.0),
        _family("macd-histogram-positive", histogram, "crosses_above_level", "MacdIndicator",
                long_),
        _family("macd-histogram-negative", histogram, "crosses_below_level", "MacdIndicator",
                short_),
        _family("tema-bullish", value, "crosses_above_level", "TrixIndicator", long_),
        _family("tema-bearish", value, "crosses_below_level", "TrixIndicator", short_),
        _family("atr-high-volatility",
                ContextBuilderSpecV1(builder=BUILDER_ROLLING_AVERAGE, lookback=_ATR_AVERAGE_BARS),
                "value_above_average", "AtrIndicator", long_),
        _family("price-gt", price, "value_above", _PRICE_INDICATOR, long_),
        _family("price-lt", price, "value_below", _PRICE_INDICATOR, short_),
        _family("price-gte", price, "value_at_or_above", _PRICE_INDICATOR, long_),
        _family("price-lte", price, "value_at_or_below", _PRICE_INDICATOR, short_),
        _family("price-eq", price, "value_equals", _PRICE_INDICATOR, long_),
        _family("macd-bullish", macd_cross, "bullish_crossover", "MacdIndicator", long_),
        _family("macd-bearish", macd_cross, "bearish_crossover", "MacdIndicator", short_),
        _family("stochastic-bullish-cross", stochastic_cross, "bullish_crossover",
                "StochasticIndicator", long_),
        _family("stochastic-bearish-cross", stochastic_cross, "bearish_crossover",
                "StochasticIndicator", short_),
        _family("golden-cross", ema_cross, "bullish_crossover", "Ema3Indicator", long_),
        _family("death-cross", ema_cross, "bearish_crossover", "Ema3Indicator", short_),
        _family("ichimoku-tk-cross-bullish", tk_cross, "bullish_crossover",
                "IchimokuCloudIndicator", long_),
        _family("ichimoku-tk-cross-bearish", tk_cross, "bearish_crossover",
                "IchimokuCloudIndicator", short_),
        _family("cross-up", ContextBuilderSpecV1(builder=BUILDER_MULTI_BAR),
                "all_prior_above_current", "EMAIndicator", long_),
        _family("cross-down", ContextBuilderSpecV1(builder=BUILDER_MULTI_BAR),
                "all_prior_below_current", "EMAIndicator", short_),
        _family("supertrend-long", categorical, "trend_matches", "SuperTrendIndicator",
                DIRECTION_POLICY_REPORTED_TREND, "long"),
        _family("supertrend-short", categorical, "trend_matches", "SuperTrendIndicator",
                DIRECTION_POLICY_REPORTED_TREND, "short"),
        _family("uptrend", categorical, "price_above_level", "SuperTrendIndicator", long_,
                "long"),
        _family("downtrend", categorical, "price_below_level", "SuperTrendIndicator", short_,
                "short"),
        _family("parabolic-sar-bullish", categorical, "price_above_level", "PsarIndicator",
                long_),
        _family("parabolic-sar-bearish", categorical, "price_below_level", "PsarIndicator",
                short_),
        _family("crocodile", banded, "ema_stack_bullish", "Ema3Indicator", long_),
        _family("crocodile-dive", banded, "ema_stack_bearish", "Ema3Indicator", short_),
        _family("bollinger-upper-touch", banded, "price_at_or_above_upper",
                "BollingerIndicator", short_),
        _family("bollinger-lower-touch", banded, "price_at_or_below_lower",
                "BollingerIndicator", long_),
        _family("bollinger-squeeze", banded, "bandwidth_squeeze", "BollingerIndicator", long_),
        _family("bollinger-expansion", banded, "bandwidth_expansion", "BollingerIndicator",
                long_),
        _family("keltner-upper-breakout", banded, "price_above_upper",
                "KeltnerChannelsIndicator", long_),
        _family("keltner-lower-breakout", banded, "price_below_lower",
                "KeltnerChannelsIndicator", short_),
        _family("ma-support", banded, "ma_support", "EMAIndicator", long_),
        _family("ma-resistance", banded, "ma_resistance", "EMAIndicator", short_),
        _family("woodies", ContextBuilderSpecV1(builder=BUILDER_PIVOT, record_field="woodies"),
                "pivot_zone", "Woodies", DIRECTION_POLICY_PIVOT_ZONE),
        _family("ichimoku-bullish", cloud, "cloud_bullish", "IchimokuCloudIndicator", long_),
        _family("ichimoku-bearish", cloud, "cloud_bearish", "IchimokuCloudIndicator", short_),
        _family("elder-impulse-bull", impulse, "impulse_bull", "ElderImpulseIndicator", long_),
        _family("elder-impulse-bear", impulse, "impulse_bear", "ElderImpulseIndicator", short_),
        _family("elder-impulse-blue", impulse, "impulse_blue", "ElderImpulseIndicator", long_),
        _family("obv-bullish", obv, "obv_confirms_rise", "ObvIndicator", long_),
        _family("obv-bearish", obv, "obv_confirms_fall", "ObvIndicator", short_),
        _family("multi-div", ContextBuilderSpecV1(builder=BUILDER_DIVERGENCE),
                "confirmed_divergence", "MultiDivergenceDetector", DIRECTION_POLICY_DIVERGENCE),
        _family("fibonacci-retracement",
                ContextBuilderSpecV1(builder=BUILDER_PRICE_RANGE, lookback=_DERIVED_WINDOW_BARS),
                "near_retracement_level", _PRICE_INDICATOR, long_),
        _family("support-breakout", channel, "breaks_above_support", _PRICE_INDICATOR, long_),
        _family("resistance-breakout", channel, "breaks_above_resistance", _PRICE_INDICATOR,
                long_),
        _family("donchian-upper-breakout", channel, "price_above_upper", _PRICE_INDICATOR,
                long_),
        _family("donchian-lower-breakout", channel, "price_below_lower", _PRICE_INDICATOR,
                short_),
        _family("volume-spike",
                ContextBuilderSpecV1(builder=BUILDER_VOLUME_AVERAGE,
                                     lookback=_DERIVED_WINDOW_BARS),
                "volume_spike", _PRICE_INDICATOR, long_),
    )
    entries: dict[str, SignalFamilySpecV1] = {}
    for family in families:
        if family.tag in entries:
            raise ValueError(f"duplicate signal family tag: {family.tag!r}")
        entries[family.tag] = family
    return dict(sorted(entries.items(), key=lambda item: item[0]))


_SIGNAL_FAMILY_REGISTRY_V1 = MappingProxyType(_build_signal_family_registry_v1())


def supported_family_tags_v1() -> tuple[str, ...]:
    """
    Return deterministic ordered list of supported family tags.

    Args:
        None.
    Returns:
        tuple[str, ...]: Stable sorted family tags.
    Assumptions:
        Registry is initialized at module import and remains immutable.
    Raises:
        None.
    Side Effects:
        None.
    """
    return tuple(_SIGNAL_FAMILY_REGISTRY_V1.keys())


def list_signal_family_registry_v1() -> tuple[tuple[str, str, str], ...]:
    """Return `(tag, context_kind, default_predicate_ref)` triples for introspection."""
    return tuple(
        (tag, family.builder.context_kind, family.default_predicate_ref)
        for tag, family in _SIGNAL_FAMILY_REGISTRY_V1.items()
    )


def signal_family_spec_v1(*, family_tag: str) -> SignalFamilySpecV1:
    """
    Resolve one family spec by tag.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/use_cases/run_backtest.py
      - tests/unit/contexts/backtest/application/services/test_signal_families_v1.py

    Args:
        family_tag: Requested family tag.
    Returns:
        SignalFamilySpecV1: Registry entry.
    Assumptions:
        Tag case/spacing are normalized at lookup; there is no fallback family.
    Raises:
        BacktestConfigurationError: If tag is blank or unknown.
    Side Effects:
        None.
    """
    normalized_tag = family_tag.strip().lower()
    if not normalized_tag:
        raise BacktestConfigurationError("family_tag must be non-empty")
    family = _SIGNAL_FAMILY_REGISTRY_V1.get(normalized_tag)
    if family is None:
        raise BacktestConfigurationError(
            f"Unknown signal family tag: {normalized_tag!r}",
            family_tag=normalized_tag,
        )
    return family


def build_signal_spec_v1(
    *,
    symbol: Symbol,
    timeframe: Timeframe,
    family_tag: str,
    indicator_name: str | None = None,
    indicator_args: Mapping[str, Any] | None = None,
    comparison_value: Any = None,
    predicate_ref: str | None = None,
) -> SignalSpecV1:
    """
    Build a complete `SignalSpecV1`, filling omitted fields from family defaults.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/dto/run_backtest.py
      - src/signal_backtester/contexts/backtest/application/use_cases/run_backtest.py

    Args:
        symbol: Instrument symbol.
        timeframe: Candle interval.
        family_tag: Family tag from the registry.
        indicator_name: Indicator library key, default from family.
        indicator_args: Indicator parameters, default empty.
        comparison_value: Threshold or token, default from family.
        predicate_ref: Predicate reference, default from family.
    Returns:
        SignalSpecV1: Fully populated immutable spec.
    Assumptions:
        Explicit values always win over family defaults.
    Raises:
        BacktestConfigurationError: If family tag is unknown.
        ValueError: If resulting spec violates its invariants.
    Side Effects:
        None.
    """
    family = signal_family_spec_v1(family_tag=family_tag)
    return SignalSpecV1(
        symbol=symbol,
        timeframe=timeframe,
        family_tag=family.tag,
        indicator_name=indicator_name or family.default_indicator,
        predicate_ref=predicate_ref or family.default_predicate_ref,
        comparison_value=(
            family.default_comparison_value if comparison_value is None else comparison_value
        ),
        indicator_args=dict(indicator_args or {}),
    )


def prepare_signal_v1(*, spec: SignalSpecV1) -> PreparedSignalV1:
    """
    Resolve family and predicate references once, before simulation starts.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/trade_simulator_v1.py
      - tests/unit/contexts/backtest/application/services/test_signal_families_v1.py

    Args:
        spec: Signal specification.
    Returns:
        PreparedSignalV1: Spec bound to family and predicate.
    Assumptions:
        Per-step evaluation never performs string lookups.
    Raises:
        BacktestConfigurationError: If tag/reference is unknown or predicate shape
            does not match the family context shape.
    Side Effects:
        None.
    """
    family = signal_family_spec_v1(family_tag=spec.family_tag)
    predicate = signal_predicate_spec_v1(predicate_ref=spec.predicate_ref)
    if predicate.context_kind != family.builder.context_kind:
        raise BacktestConfigurationError(
            f"Predicate {predicate.name!r} expects {predicate.context_kind!r} contexts, "
            f"family {family.tag!r} builds {family.builder.context_kind!r}",
            family_tag=family.tag,
            predicate_ref=predicate.name,
        )
    return PreparedSignalV1(spec=spec, family=family, predicate=predicate)


def resolve_trade_direction_v1(
    *,
    direction_policy: str,
    evaluation: SignalEvaluationV1,
    spec: SignalSpecV1,
) -> TradeDirectionV1:
    """
    Derive trade direction for one trigger from family policy and evaluator metadata.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/trade_simulator_v1.py
      - tests/unit/contexts/backtest/application/services/test_signal_families_v1.py

    Args:
        direction_policy: Family direction policy literal.
        evaluation: Triggered evaluation with family metadata.
        spec: Signal specification (comparison token fallback for trend policy).
    Returns:
        TradeDirectionV1: Position direction.
    Assumptions:
        Policies lacking the metadata they need fall back to long.
    Raises:
        ValueError: If direction policy is unknown.
    Side Effects:
        None.
    """
    if direction_policy == DIRECTION_POLICY_LONG:
        return TradeDirectionV1.LONG
    if direction_policy == DIRECTION_POLICY_SHORT:
        return TradeDirectionV1.SHORT
    if direction_policy == DIRECTION_POLICY_REPORTED_TREND:
        trend = evaluation.metadata.get("trend")
        if isinstance(trend, str) and trend:
            return _direction(is_long=trend.lower() in _LONG_TREND_TOKENS)
        if spec.comparison_text is not None:
            return _direction(is_long=spec.comparison_text == "long")
        return TradeDirectionV1.LONG
    if direction_policy == DIRECTION_POLICY_PIVOT_ZONE:
        zone = evaluation.metadata.get("zone")
        if isinstance(zone, str):
            return _direction(is_long="support" in zone.lower())
        return TradeDirectionV1.LONG
    if direction_policy == DIRECTION_POLICY_DIVERGENCE:
        confirmed = evaluation.metadata.get("divergence", ())
        return _direction(
            is_long=any(isinstance(name, str) and "bullish" in name.lower() for name in confirmed)
        )
    raise ValueError(f"Unknown direction policy: {direction_policy!r}")


def _direction(*, is_long: bool) -> TradeDirectionV1:
    return TradeDirectionV1.LONG if is_long else TradeDirectionV1.SHORT
