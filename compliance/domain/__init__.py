"""Domain layer definitions."""

from .evaluation import CacheKey, EvaluationPass

__all__ = [
    "CacheKey",
    "EvaluationPass",
]
