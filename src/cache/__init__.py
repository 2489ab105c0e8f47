from .decorator import cached, invalidate_cache

__all__ = [
    "cached",
    "invalidate_cache",
]
