"""
Fast cache tier for analysis results.
"""
from skillgap.cache.result_cache import ResultCache

__all__ = ["ResultCache"]
