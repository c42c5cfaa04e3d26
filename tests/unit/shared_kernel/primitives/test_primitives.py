from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from signal_backtester.shared_kernel.primitives import Candle, Symbol, Timeframe, UtcTimestamp


def test_utc_timestamp_normalizes_to_utc_milliseconds() -> None:
    plus_three = timezone(timedelta(hours=3))
    ts = UtcTimestamp(datetime(2024, 5, 1, 15, 0, 0, 123987, tzinfo=plus_three))

    assert ts.value.tzinfo == timezone.utc
    assert ts.value.hour == 12
    assert ts.value.microsecond == 123000
    assert str(ts) == "2024-05-01T12:00:00.123Z"


def test_utc_timestamp_round_trips_epoch_milliseconds() -> None:
    ts = UtcTimestamp.from_epoch_ms(1_700_000_000_123)

    assert ts.epoch_ms == 1_700_000_000_123
    assert str(ts) == "2023-11-14T22:13:20.123Z"


def test_utc_timestamp_rejects_naive_datetime() -> None:
    with pytest.raises(ValueError, match="timezone-aware"):
        UtcTimestamp(datetime(2024, 1, 1))


def test_symbol_is_stripped_and_uppercased() -> None:
    assert str(Symbol("  ethusdt ")) == "ETHUSDT"
    with pytest.raises(ValueError):
        Symbol("   ")


def test_timeframe_supports_known_codes_only() -> None:
    assert Timeframe(" 4H ").code == "4h"
    assert Timeframe("1d").duration() == timedelta(days=1)
    assert str(Timeframe("15m")) == "15m"
    with pytest.raises(ValueError, match="Unsupported timeframe"):
        Timeframe("7m")


@pytest.mark.parametrize(
    ("open_", "high", "low", "close", "volume", "message"),
    (
        (10.0, 9.0, 8.0, 9.5, 1.0, "high"),
        (10.0, 11.0, 10.5, 10.8, 1.0, "low"),
        (10.0, 11.0, 9.0, 10.5, -1.0, "volume"),
        (0.0, 1.0, 0.0, 0.0, 1.0, "positive prices"),
        (1.0, 2.0, -0.5, 0.5, 1.0, "positive prices"),
    ),
)
def test_candle_rejects_inconsistent_ohlcv(
    open_: float,
    high: float,
    low: float,
    close: float,
    volume: float,
    message: str,
) -> None:
    with pytest.raises(ValueError, match=message):
        Candle(
            ts_open=UtcTimestamp.from_epoch_ms(0),
            open=open_,
            high=high,
            low=low,
            close=close,
            volume=volume,
        )
