from .historical_candle_loader import HistoricalCandleLoader

__all__ = ["HistoricalCandleLoader"]
