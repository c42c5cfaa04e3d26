"""
Shared Kernel primitives.

This package re-exports the minimal set of domain primitives so that other
modules can import them from one place:

    from signal_backtester.shared_kernel.primitives import Candle, Symbol, Timeframe
"""

from .candle import Candle
from .symbol import Symbol
from .timeframe import Timeframe
from .utc_timestamp import UtcTimestamp

__all__ = [
    "Candle",
    "Symbol",
    "Timeframe",
    "UtcTimestamp",
]
