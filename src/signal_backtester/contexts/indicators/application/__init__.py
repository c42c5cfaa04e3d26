from .dto import AlignedIndicatorSeries, CandleArrays, IndicatorSeries
from .ports import IndicatorLibrary

__all__ = [
    "AlignedIndicatorSeries",
    "CandleArrays",
    "IndicatorLibrary",
    "IndicatorSeries",
]
