"""
Morphological reconstruction and the geodesic operators built on it.

Reconstruction by dilation repeatedly dilates a marker image and clips it
from above by a mask image until nothing changes:

    out = min(marker, mask)
    repeat:  out' = min(dilate(out), mask)   until out' == out

Reconstruction by erosion is the dual (erode, clip from below with max).
Each iteration is monotone and values are bounded, so the loop reaches a
fixed point; ``MorphologyConfig.max_iterations`` caps it anyway.  Reaching
the cap returns the current, not yet stable, image with a
``ConvergenceWarning``.

Only the 3**N neighbourhood matters for a repeat-until-stable process, so
structuring elements wider than half-width 1 are cropped to their offsets
inside [-1, 1]**N with a ``StructuringElementWarning``.

Also here: h-maxima / h-minima, regional maxima / minima and hole filling,
which are all single reconstructions of a derived marker.

References
----------
.. [1] L. Vincent, "Morphological grayscale reconstruction in image analysis:
   applications and efficient algorithms", IEEE Trans. Image Process. 2(2),
   176-201, 1993.
.. [2] P. Soille, "Morphological Image Analysis", Springer, 2004.
"""
from __future__ import annotations

import warnings
from typing import Callable, Optional, Tuple

import numpy as np

from . import strel
from .config import DEFAULT_CONFIG, MorphologyConfig
from .dtypes import require_ordered, saturating_add, saturating_sub, type_max, type_min
from .errors import (
    ConvergenceWarning,
    ShapeMismatch,
    StructuringElementWarning,
    UnsupportedOperation,
)
from .extreme_filter import extreme_filter
from .ops import dilate, erode


def mreconstruct(
    op,
    marker,
    mask,
    se=None,
    *,
    dims=None,
    out: Optional[np.ndarray] = None,
    cfg: Optional[MorphologyConfig] = None,
    verbose: bool = False,
) -> np.ndarray:
    """
    Reconstruct ``marker`` under ``mask`` by repeated ``op``.

    Parameters
    ----------
    op : {ndmorph.dilate, ndmorph.erode, "dilate", "erode"}
        Propagation operator.  Dilation clips with ``min`` (the result lies
        between ``min(marker, mask)`` and ``mask``), erosion with ``max``.
    marker, mask : array_like
        Same shape.  ``marker <= mask`` is the classical setting for
        dilation but is not required.
    se : StructuringElement or bool array, optional
        Connectivity.  Default: ``strel.box(mask.ndim, dims)``.  Half-widths
        above 1 are cropped (with a warning).
    dims : int or iterable of int, optional
        Box shorthand, the dimensions to propagate along.
    out : ndarray, optional
        Output buffer with the shape of ``mask``.
    cfg : MorphologyConfig, optional
        ``max_iterations`` bounds the loop (default: element count).
    verbose : bool
        Print the number of iterations.

    Returns
    -------
    out : ndarray
        dtype ``np.result_type(marker, mask)`` unless ``out`` is given.
    """
    return _reconstruct(op, marker, mask, se, dims=dims, out=out, cfg=cfg, verbose=verbose)


# Every public entry point calls _reconstruct directly, so warnings raised
# here are always two frames (plus one for _crop_to_unit) below user code.

def _reconstruct(op, marker, mask, se=None, *, dims=None, out=None, cfg=None, verbose=False):
    select_se, select_marker = _prepare_reconstruct_ops(op)
    marker = np.asarray(marker)
    mask = np.asarray(mask)
    require_ordered(marker, "marker")
    require_ordered(mask, "mask")
    if marker.shape != mask.shape:
        raise ShapeMismatch(
            f"marker and mask must have the same shape, got {marker.shape} and {mask.shape}"
        )
    if out is not None and out.shape != mask.shape:
        raise ShapeMismatch(f"out has shape {out.shape}, expected {mask.shape}")
    if se is None:
        se = strel.box(mask.ndim, dims)
    elif dims is not None:
        raise ValueError("pass either `se` or `dims`, not both")
    se = _crop_to_unit(strel.as_strel(se, mask.ndim))
    cfg = cfg or DEFAULT_CONFIG

    dtype = np.result_type(marker, mask)
    equal_nan = dtype.kind == "f"
    cap = cfg.iteration_cap(mask.shape)

    cur = select_marker(marker, mask).astype(dtype, copy=False)
    nxt = np.empty_like(cur)
    for n_iter in range(1, cap + 1):
        extreme_filter(select_se, cur, se, out=nxt, cfg=cfg)
        select_marker(nxt, mask, out=nxt)
        if np.array_equal(nxt, cur, equal_nan=equal_nan):
            if verbose:
                print(f"mreconstruct: converged after {n_iter} iteration(s)")
            break
        cur, nxt = nxt, cur
    else:
        warnings.warn(
            f"reconstruction did not converge within {cap} iterations; "
            "returning the last iterate",
            ConvergenceWarning,
            stacklevel=3,
        )
        if verbose:
            print(f"mreconstruct: stopped at the iteration cap ({cap})")

    if out is None:
        return cur
    out[...] = cur
    return out


def underbuild(marker, mask, se=None, **kwargs) -> np.ndarray:
    """Reconstruction by dilation: ``mreconstruct(dilate, marker, mask, se)``."""
    return _reconstruct(dilate, marker, mask, se, **kwargs)


def overbuild(marker, mask, se=None, **kwargs) -> np.ndarray:
    """Reconstruction by erosion: ``mreconstruct(erode, marker, mask, se)``."""
    return _reconstruct(erode, marker, mask, se, **kwargs)


def hmaxima(image, h, se=None, **kwargs) -> np.ndarray:
    """
    Suppress regional maxima whose height above their surroundings is below ``h``.

    ``underbuild(image - h, image)``; the subtraction saturates at the
    dtype minimum.
    """
    image = _prepare(image, h)
    return _reconstruct(dilate, saturating_sub(image, h), image, se, **kwargs)


def hminima(image, h, se=None, **kwargs) -> np.ndarray:
    """Suppress regional minima shallower than ``h``: ``overbuild(image + h, image)``."""
    image = _prepare(image, h)
    return _reconstruct(erode, saturating_add(image, h), image, se, **kwargs)


def regional_maxima(image, se=None, **kwargs) -> np.ndarray:
    """
    Boolean mask of all regional maxima.

    A regional maximum is a connected plateau strictly higher than every
    pixel bordering it.  Each pixel's marker is the next lower value present
    in the image, so the test is exact for floats as well as integers.
    """
    image = _prepare(image)
    values = np.unique(image)
    idx = np.searchsorted(values, image)
    lower = np.where(idx > 0, values[np.maximum(idx - 1, 0)], type_min(image.dtype))
    rec = _reconstruct(dilate, lower.astype(image.dtype), image, se, **kwargs)
    return image > rec


def regional_minima(image, se=None, **kwargs) -> np.ndarray:
    """Boolean mask of all regional minima (dual of :func:`regional_maxima`)."""
    image = _prepare(image)
    values = np.unique(image)
    idx = np.searchsorted(values, image)
    last = values.size - 1
    higher = np.where(idx < last, values[np.minimum(idx + 1, last)], type_max(image.dtype))
    rec = _reconstruct(erode, higher.astype(image.dtype), image, se, **kwargs)
    return image < rec


def fillhole(image, se=None, **kwargs) -> np.ndarray:
    """
    Fill holes: dark regions not connected to the array border.

    Works for binary and grey-level images.  The marker is the image on the
    border and the dtype maximum everywhere else; reconstruction by erosion
    under the image then floods inward from the border.
    """
    image = _prepare(image)
    marker = np.full(image.shape, type_max(image.dtype), dtype=image.dtype)
    for axis in range(image.ndim):
        for edge in (0, -1):
            sl = (slice(None),) * axis + (edge,)
            marker[sl] = image[sl]
    return _reconstruct(erode, marker, image, se, **kwargs)


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #

def _prepare_reconstruct_ops(op) -> Tuple[Callable, Callable]:
    """(select function for propagation, select function against the mask)."""
    if op is dilate or (isinstance(op, str) and op == "dilate"):
        return np.maximum, np.minimum
    if op is erode or (isinstance(op, str) and op == "erode"):
        return np.minimum, np.maximum
    name = getattr(op, "__name__", repr(op))
    raise UnsupportedOperation(
        f"operation `{name}` is not supported for mreconstruct; use dilate or erode"
    )


def _crop_to_unit(se: strel.StructuringElement) -> strel.StructuringElement:
    if all(se.radius(d) <= 1 for d in range(se.ndim)):
        return se
    window = "×".join("3" * se.ndim)
    warnings.warn(
        "structuring element with half-size larger than 1 is invalid for "
        f"reconstruction, only the center {window} values are used",
        StructuringElementWarning,
        stacklevel=4,
    )
    if isinstance(se, strel.SEBox):
        return strel.SEBox(tuple(min(r, 1) for r in se.radii))
    offsets = se.offsets
    keep = np.all(np.abs(offsets) <= 1, axis=1)
    return strel.SEMask(offsets[keep], ndim=se.ndim)


def _prepare(image, h=None) -> np.ndarray:
    image = np.asarray(image)
    require_ordered(image)
    if h is not None and h < 0:
        raise ValueError("h must be non-negative")
    return image
