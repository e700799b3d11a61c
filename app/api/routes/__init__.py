from . import attempts

__all__ = ["attempts"]
