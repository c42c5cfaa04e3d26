from .errors import UnknownIndicatorError

__all__ = ["UnknownIndicatorError"]
