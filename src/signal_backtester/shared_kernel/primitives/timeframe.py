from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

# Поддерживаемые токены интервалов свечей.
# Значения: длительность в секундах.
_SUPPORTED_SECONDS = {
    "1m": 60,
    "3m": 3 * 60,
    "5m": 5 * 60,
    "15m": 15 * 60,
    "30m": 30 * 60,
    "1h": 60 * 60,
    "2h": 2 * 60 * 60,
    "4h": 4 * 60 * 60,
    "6h": 6 * 60 * 60,
    "12h": 12 * 60 * 60,
    "1d": 24 * 60 * 60,
    "1w": 7 * 24 * 60 * 60,
}


@dataclass(frozen=True, slots=True)
class Timeframe:
    """
    Timeframe: интервал свечей, на котором прогоняется сигнал.

    Representation:
    - code: "1m", "15m", "4h", ...
    """

    code: str

    def __post_init__(self) -> None:
        normalized = self.code.strip().lower()
        object.__setattr__(self, "code", normalized)

        if normalized not in _SUPPORTED_SECONDS:
            raise ValueError(
                f"Unsupported timeframe={normalized!r}. Supported: {sorted(_SUPPORTED_SECONDS.keys())}"  # noqa: E501
            )

    def duration(self) -> timedelta:
        """Длительность таймфрейма как timedelta."""
        return timedelta(seconds=_SUPPORTED_SECONDS[self.code])

    def __str__(self) -> str:
        return self.code
