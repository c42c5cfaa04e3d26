from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

_EPOCH_UTC = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True, slots=True)
class UtcTimestamp:
    """
    UtcTimestamp: единый тип времени в системе с жёстким требованием UTC.

    Правила:
    - входной datetime должен быть timezone-aware (naive запрещён)
    - храним время в UTC
    - точность приводим к миллисекундам (биржевые свечи приходят в epoch ms)
    """

    value: datetime

    def __post_init__(self) -> None:
        dt = self.value

        # Запрещаем naive datetime.
        if dt.tzinfo is None or dt.utcoffset() is None:
            raise ValueError("UtcTimestamp requires a timezone-aware datetime (naive datetime is forbidden)")  # noqa: E501

        # Внутри всегда UTC, микросекунды обрезаем вниз до миллисекунд.
        dt_utc = dt.astimezone(timezone.utc)
        ms = (dt_utc.microsecond // 1000) * 1000
        object.__setattr__(self, "value", dt_utc.replace(microsecond=ms))

    @classmethod
    def from_epoch_ms(cls, epoch_ms: int) -> UtcTimestamp:
        """Построить timestamp из epoch milliseconds (формат open time у биржевых свечей)."""
        return cls(_EPOCH_UTC + timedelta(milliseconds=int(epoch_ms)))

    @property
    def epoch_ms(self) -> int:
        """Обратное преобразование в epoch milliseconds."""
        return (self.value - _EPOCH_UTC) // timedelta(milliseconds=1)

    def __str__(self) -> str:
        """
        Сериализация "как строка" даёт ISO в UTC с миллисекундами и суффиксом Z.
        Пример: 2026-02-04T12:34:56.789Z
        """
        s = self.value.isoformat(timespec="milliseconds")
        if s.endswith("+00:00"):
            s = s[:-6] + "Z"
        return s
