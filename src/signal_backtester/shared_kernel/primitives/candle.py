from __future__ import annotations

from dataclasses import dataclass

from .utc_timestamp import UtcTimestamp


@dataclass(frozen=True, slots=True)
class Candle:
    """
    Candle: одна OHLCV-свеча в том виде, в котором её отдаёт загрузчик истории.

    Поля:
    - ts_open: время открытия свечи
    - OHLC
    - volume: объём в базовой валюте
    """

    ts_open: UtcTimestamp

    open: float
    high: float
    low: float
    close: float

    volume: float

    def __post_init__(self) -> None:
        # OHLC инварианты
        if self.high < max(self.open, self.close):
            raise ValueError("Candle requires high >= max(open, close)")

        if self.low > min(self.open, self.close):
            raise ValueError("Candle requires low <= min(open, close)")

        # low минимальна среди OHLC, значит все цены > 0
        if self.low <= 0:
            raise ValueError("Candle requires positive prices (low > 0)")

        if self.volume < 0:
            raise ValueError("Candle requires volume >= 0")
