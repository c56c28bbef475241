"""
errors.py – Exceptions raised by the analysis pipeline.
"""


class ForensicsError(Exception):
    """Base class for all analysis errors."""


class EmptyDatasetError(ForensicsError, ValueError):
    """Detection was requested on zero transactions."""


class RingIntegrityError(ForensicsError, RuntimeError):
    """A ring carries other than exactly one pattern type (deduplication bug)."""


class AnalysisCancelled(ForensicsError):
    """The run was cancelled at a chunk or stage boundary."""


class AnalysisTimeout(AnalysisCancelled):
    """The run exceeded its time budget."""
