from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Symbol:
    """
    Symbol: обозначение торгуемого инструмента (например "BTCUSDT").

    Правила:
    - нормализация: strip + upper
    - инвариант: после нормализации строка не пустая
    """

    value: str

    def __post_init__(self) -> None:
        normalized = self.value.strip().upper()
        object.__setattr__(self, "value", normalized)

        if not normalized:
            raise ValueError("Symbol must be non-empty after normalization")

    def __str__(self) -> str:
        return self.value
