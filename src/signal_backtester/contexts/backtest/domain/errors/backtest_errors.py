from __future__ import annotations

from typing import Mapping, Sequence


class BacktestDomainError(ValueError):
    """
    Base deterministic domain error for the signal backtest bounded context.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/use_cases/errors.py
      - src/signal_backtester/platform/errors/backtester_error.py
    """


class BacktestValidationError(BacktestDomainError):
    """
    Raised when backtest request/domain invariants are violated.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/dto/run_backtest.py
      - src/signal_backtester/contexts/backtest/application/use_cases/errors.py
    """

    def __init__(
        self,
        message: str,
        *,
        errors: Sequence[Mapping[str, str]] | None = None,
    ) -> None:
        """
        Build validation error with optional deterministic item payload.

        Args:
            message: Human-readable validation failure description.
            errors: Optional detailed validation items (`path`, `code`, `message`).
        Returns:
            None.
        Assumptions:
            Missing fields are normalized to deterministic fallback values.
        Raises:
            None.
        Side Effects:
            Stores normalized immutable validation items for the error mapping layer.
        """
        super().__init__(message)
        normalized_errors: list[dict[str, str]] = []
        if errors is not None:
            for item in errors:
                normalized_errors.append(
                    {
                        "path": str(item.get("path", "unknown")),
                        "code": str(item.get("code", "validation_error")),
                        "message": str(item.get("message", "Validation error")),
                    }
                )
        self._errors = tuple(normalized_errors)

    @property
    def errors(self) -> tuple[Mapping[str, str], ...]:
        """
        Return immutable normalized validation details.

        Args:
            None.
        Returns:
            tuple[Mapping[str, str], ...]: Stable normalized validation details.
        Assumptions:
            Items were normalized during initialization.
        Raises:
            None.
        Side Effects:
            None.
        """
        return self._errors


class BacktestConfigurationError(BacktestDomainError):
    """
    Raised at spec-preparation time for unknown family tags or predicate references.

    Docs:
      - docs/architecture/signal-backtest-engine-v1.md
    Related:
      - src/signal_backtester/contexts/backtest/application/services/signal_families_v1.py
      - src/signal_backtester/contexts/backtest/application/services/signal_predicates_v1.py
      - src/signal_backtester/contexts/backtest/application/use_cases/errors.py
    """

    def __init__(
        self,
        message: str,
        *,
        family_tag: str | None = None,
        predicate_ref: str | None = None,
    ) -> None:
        """
        Build configuration fault carrying the offending identifiers.

        Args:
            message: Human-readable configuration failure description.
            family_tag: Family tag involved in the failure, when known.
            predicate_ref: Predicate reference involved in the failure, when known.
        Returns:
            None.
        Assumptions:
            Raised before the simulation loop starts.
        Raises:
            None.
        Side Effects:
            None.
        """
        super().__init__(message)
        self._family_tag = family_tag
        self._predicate_ref = predicate_ref

    @property
    def family_tag(self) -> str | None:
        return self._family_tag

    @property
    def predicate_ref(self) -> str | None:
        return self._predicate_ref
