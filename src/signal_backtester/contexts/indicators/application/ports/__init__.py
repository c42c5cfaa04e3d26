from .indicator_library import IndicatorLibrary

__all__ = ["IndicatorLibrary"]
