from __future__ import annotations


class UnknownIndicatorError(LookupError):
    """
    Raised when an indicator name is not available in the indicator library.

    Docs: docs/architecture/signal-backtest-engine-v1.md
    Related: ...application.ports.indicator_library, backtest.application.use_cases.errors
    """
