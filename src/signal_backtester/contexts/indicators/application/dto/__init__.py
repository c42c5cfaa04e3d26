from .candle_arrays import CandleArrays
from .indicator_series import (
    SERIES_SHAPE_BUNDLE,
    SERIES_SHAPE_FLAT,
    SERIES_SHAPE_RECORDS,
    AlignedIndicatorSeries,
    IndicatorSeries,
    as_float,
)

__all__ = [
    "AlignedIndicatorSeries",
    "CandleArrays",
    "IndicatorSeries",
    "SERIES_SHAPE_BUNDLE",
    "SERIES_SHAPE_FLAT",
    "SERIES_SHAPE_RECORDS",
    "as_float",
]
