from __future__ import annotations

from typing import Any, Mapping, Sequence

from signal_backtester.contexts.backtest.domain.errors import (
    BacktestConfigurationError,
    BacktestValidationError,
)
from signal_backtester.contexts.indicators.domain.errors import UnknownIndicatorError
from signal_backtester.platform.errors import (
    CONFIGURATION_ERROR,
    UNEXPECTED_ERROR,
    UNKNOWN_INDICATOR,
    VALIDATION_ERROR,
    BacktesterError,
)


def validation_error(
    *,
    message: str,
    errors: Sequence[Mapping[str, str]] | None = None,
) -> BacktesterError:
    """
    Build canonical `validation_error` BacktesterError with deterministic item ordering.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/domain/errors/backtest_errors.py
      - src/signal_backtester/platform/errors/backtester_error.py

    Args:
        message: Human-readable validation failure message.
        errors: Optional validation items list.
    Returns:
        BacktesterError: Canonical deterministic validation error.
    Assumptions:
        Validation item entries contain `path`, `code`, and `message`.
    Raises:
        None.
    Side Effects:
        None.
    """
    details: dict[str, Any] = {}
    if errors is not None:
        details["errors"] = _sorted_validation_items(items=errors)
    return BacktesterError(
        code=VALIDATION_ERROR,
        message=message,
        details=details,
    )


def configuration_error(
    *,
    message: str,
    family_tag: str | None = None,
    predicate_ref: str | None = None,
) -> BacktesterError:
    """
    Build canonical `configuration_error` for unknown family tags or predicate references.

    Args:
        message: Human-readable configuration failure message.
        family_tag: Offending family tag, when known.
        predicate_ref: Offending predicate reference, when known.
    Returns:
        BacktesterError: Canonical configuration fault.
    Assumptions:
        Configuration faults are raised before any candle is loaded.
    Raises:
        None.
    Side Effects:
        None.
    """
    details: dict[str, Any] = {}
    if family_tag is not None:
        details["family_tag"] = family_tag
    if predicate_ref is not None:
        details["predicate_ref"] = predicate_ref
    return BacktesterError(
        code=CONFIGURATION_ERROR,
        message=message,
        details=details,
    )


def map_backtest_exception(*, error: Exception) -> BacktesterError:
    """
    Map known backtest/indicator exceptions to canonical BacktesterError contract.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/use_cases/run_backtest.py
      - src/signal_backtester/contexts/backtest/domain/errors/backtest_errors.py
      - src/signal_backtester/contexts/indicators/domain/errors/unknown_indicator_error.py

    Args:
        error: Caught exception.
    Returns:
        BacktesterError: Canonical mapped error.
    Assumptions:
        Unknown exceptions are mapped to generic `unexpected_error`.
    Raises:
        None.
    Side Effects:
        None.
    """
    if isinstance(error, BacktesterError):
        return error

    if isinstance(error, BacktestValidationError):
        normalized_errors = error.errors if len(error.errors) > 0 else None
        return validation_error(message=str(error), errors=normalized_errors)

    if isinstance(error, BacktestConfigurationError):
        return configuration_error(
            message=str(error),
            family_tag=error.family_tag,
            predicate_ref=error.predicate_ref,
        )

    if isinstance(error, UnknownIndicatorError):
        return BacktesterError(
            code=UNKNOWN_INDICATOR,
            message=str(error) or "Unknown indicator",
            details={},
        )

    if isinstance(error, ValueError):
        return validation_error(message=str(error))

    return BacktesterError(
        code=UNEXPECTED_ERROR,
        message="Unexpected backtest operation error",
        details={"reason": str(error)},
    )


def _sorted_validation_items(*, items: Sequence[Mapping[str, str]]) -> list[dict[str, str]]:
    """
    Normalize and deterministically sort validation item list by path/code/message.

    Args:
        items: Validation item sequence.
    Returns:
        list[dict[str, str]]: Deterministically sorted normalized list.
    Assumptions:
        Missing fields are replaced with deterministic fallback literals.
    Raises:
        None.
    Side Effects:
        None.
    """
    normalized_items: list[dict[str, str]] = []
    for item in items:
        normalized_items.append(
            {
                "path": str(item.get("path", "unknown")),
                "code": str(item.get("code", "validation_error")),
                "message": str(item.get("message", "Validation error")),
            }
        )

    return sorted(
        normalized_items,
        key=lambda row: (row["path"], row["code"], row["message"]),
    )
