"""
ndmorph — N-dimensional mathematical morphology on numpy arrays.

Quick start:
    import numpy as np
    from ndmorph import strel, dilate, erode, opening, mgradient, underbuild

    image = np.random.default_rng(0).integers(0, 255, (64, 64), dtype=np.uint8)
    dilated = dilate(image)                             # 3x3 box
    eroded = erode(image, dims=(0,), r=2)               # 5-pixel vertical window
    opened = opening(image, strel.diamond(2, r=2))
    edges = mgradient(image, mode="internal")           # int16 result
    rec = underbuild(marker, image)                     # reconstruction by dilation

Every operator is a thin composition over ``extreme_filter``, which folds a
select function (max, min, ...) over each pixel's neighbourhood.
"""

__version__ = "0.1.0"

from . import strel
from .config import MorphologyConfig
from .dtypes import complement
from .errors import (
    AsymmetricStructuringElement,
    ConvergenceWarning,
    DimensionMismatch,
    InvalidShape,
    MorphologyError,
    ShapeMismatch,
    StructuringElementWarning,
    UnsupportedElementType,
    UnsupportedOperation,
)
from .extreme_filter import extreme_filter
from .ops import bothat, closing, dilate, erode, mgradient, mlaplacian, opening, tophat
from .reconstruct import (
    fillhole,
    hmaxima,
    hminima,
    mreconstruct,
    overbuild,
    regional_maxima,
    regional_minima,
    underbuild,
)

__all__ = [
    "strel",
    "MorphologyConfig",
    "complement",
    "extreme_filter",
    "erode",
    "dilate",
    "opening",
    "closing",
    "tophat",
    "bothat",
    "mgradient",
    "mlaplacian",
    "mreconstruct",
    "underbuild",
    "overbuild",
    "hmaxima",
    "hminima",
    "regional_maxima",
    "regional_minima",
    "fillhole",
    "MorphologyError",
    "UnsupportedElementType",
    "DimensionMismatch",
    "ShapeMismatch",
    "InvalidShape",
    "UnsupportedOperation",
    "AsymmetricStructuringElement",
    "StructuringElementWarning",
    "ConvergenceWarning",
    "__version__",
]
