"""
Exceptions and warnings raised by ndmorph.

Every error subclasses both ``MorphologyError`` and the builtin exception a
caller would naturally expect (``TypeError`` for element types,
``ValueError`` for everything shape- or argument-related), so plain
``except ValueError`` handlers keep working.
"""
from __future__ import annotations


class MorphologyError(Exception):
    """Base class for all ndmorph errors."""


class UnsupportedElementType(MorphologyError, TypeError):
    """Element type has no total order (e.g. multi-channel / colour records)."""


class DimensionMismatch(MorphologyError, ValueError):
    """Structuring element rank or ``dims`` do not fit the array."""


class ShapeMismatch(DimensionMismatch):
    """Two arrays that must share a shape do not."""


class InvalidShape(MorphologyError, ValueError):
    """Malformed structuring element (even extent, ragged offsets, ...)."""


class UnsupportedOperation(MorphologyError, ValueError):
    """Operation not supported by reconstruction."""


class AsymmetricStructuringElement(MorphologyError, ValueError):
    """Operator requires an SE that is symmetric about its centre."""


class StructuringElementWarning(UserWarning):
    """Structuring element was normalized before use."""


class ConvergenceWarning(UserWarning):
    """Iterative procedure stopped at its iteration cap."""
