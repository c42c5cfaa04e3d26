from .unknown_indicator_error import UnknownIndicatorError

__all__ = ["UnknownIndicatorError"]
