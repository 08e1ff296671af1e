from .loop import QueryLoop

__all__ = ["QueryLoop"]
