"""
Exception hierarchy for the fragmentation engine.

Numerical and per-segment failures are recovered locally by the fitters;
only template errors reach the caller as exceptions.
"""


class FragmentationError(Exception):
    """Base class for all fragmentation errors."""


class TemplateError(FragmentationError, ValueError):
    """Malformed template string or negative segment counts."""


class InfeasibleTemplateError(FragmentationError):
    """The template cannot be laid out over the given strokes."""


class InsufficientPointsError(FragmentationError, ValueError):
    """A segment has fewer points than its primitive type needs."""

    def __init__(self, kind, count, minimum):
        super().__init__(f"{kind} fit needs at least {minimum} points, got {count}")
        self.kind = kind
        self.count = count
        self.minimum = minimum


class NumericalError(FragmentationError, ArithmeticError):
    """A matrix routine hit a degenerate system."""


class SingularMatrixError(NumericalError):
    """Best pivot candidate fell below the singularity threshold."""


class NotPositiveDefiniteError(NumericalError):
    """Cholesky factorization met a non-positive pivot."""

    def __init__(self, pivot):
        super().__init__(f"matrix is not positive definite (pivot {pivot})")
        self.pivot = pivot


class SearchExhaustedError(FragmentationError):
    """Every branch of the search failed."""


class SearchTimeoutError(FragmentationError):
    """The search ran past its time budget."""
