from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Mapping

VALIDATION_ERROR = "validation_error"
CONFIGURATION_ERROR = "configuration_error"
UNKNOWN_INDICATOR = "unknown_indicator"
UNEXPECTED_ERROR = "unexpected_error"

BACKTEST_ERROR_CODES = (
    CONFIGURATION_ERROR,
    UNEXPECTED_ERROR,
    UNKNOWN_INDICATOR,
    VALIDATION_ERROR,
)


@dataclass(frozen=True, slots=True)
class BacktesterError(Exception):
    """
    Error surfaced by backtest use cases; `code` is one of `BACKTEST_ERROR_CODES`.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/use_cases/errors.py
      - tests/unit/platform/errors/test_backtester_error.py
    """

    code: str
    message: str
    details: Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        """
        Normalize code and message, and turn details into sorted JSON-safe data.

        Args:
            None.
        Returns:
            None.
        Assumptions:
            Callers branch on `code`, so unknown codes are rejected at construction.
        Raises:
            ValueError: If code is unknown or message is blank.
        Side Effects:
            Replaces `details` with a normalized plain copy.
        """
        code = self.code.strip().lower()
        if code not in BACKTEST_ERROR_CODES:
            raise ValueError(
                f"BacktesterError.code must be one of {BACKTEST_ERROR_CODES}, got {self.code!r}"
            )
        message = self.message.strip()
        if not message:
            raise ValueError("BacktesterError.message must be non-empty")
        object.__setattr__(self, "code", code)
        object.__setattr__(self, "message", message)
        if self.details is not None:
            object.__setattr__(self, "details", _json_safe(dict(self.details)))

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    def to_payload(self) -> dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": dict(self.details or {}),
            }
        }


def _json_safe(details: Mapping[str, Any]) -> dict[str, Any]:
    # Кортежи становятся списками, неизвестные объекты строками, ключи сортируются.
    return json.loads(json.dumps(details, sort_keys=True, default=str))


__all__ = [
    "BACKTEST_ERROR_CODES",
    "BacktesterError",
    "CONFIGURATION_ERROR",
    "UNEXPECTED_ERROR",
    "UNKNOWN_INDICATOR",
    "VALIDATION_ERROR",
]
