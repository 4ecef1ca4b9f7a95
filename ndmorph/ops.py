"""
Morphological operators built on the extreme filter.

  erode       min-filter
  dilate      max-filter
  opening     dilate(erode(A))
  closing     erode(dilate(A))
  tophat      A - opening(A)
  bothat      closing(A) - A
  mgradient   dilate - erode (beucher), dilate - A (external), A - erode (internal)
  mlaplacian  dilate + erode - 2A

Each operator takes either a structuring element ``se`` or the box
shorthand ``dims=..., r=...`` (default: every dimension, half-width 1).

In-place use: ``out=`` receives the result and ``buffer=`` the intermediate
of two-pass operators; both must match the input shape and are validated
before anything is written.  Gradients and the laplacian return a signed
dtype (see ``dtypes.signed_dtype``); top-hat and bottom-hat are
non-negative and keep the input dtype.
"""
from __future__ import annotations

from typing import Optional

import numpy as np

from . import strel
from .config import MorphologyConfig
from .dtypes import require_ordered, signed_dtype
from .errors import ShapeMismatch
from .extreme_filter import extreme_filter


_GRADIENT_MODES = ("beucher", "external", "internal")


def erode(
    image,
    se=None,
    *,
    dims=None,
    r=None,
    out: Optional[np.ndarray] = None,
    cfg: Optional[MorphologyConfig] = None,
) -> np.ndarray:
    """
    Min-filter over the neighbourhood given by ``se`` (or ``dims`` / ``r``).

    Dual of :func:`dilate`: ``complement(dilate(A)) == erode(complement(A))``.
    """
    image = _prepare(image)
    se = _resolve_se(image, se, dims, r)
    return extreme_filter(np.minimum, image, se, out=out, cfg=cfg)


def dilate(
    image,
    se=None,
    *,
    dims=None,
    r=None,
    out: Optional[np.ndarray] = None,
    cfg: Optional[MorphologyConfig] = None,
) -> np.ndarray:
    """
    Max-filter over the neighbourhood given by ``se`` (or ``dims`` / ``r``).

    For a symmetric SE this is the Minkowski sum of the image and the SE.
    """
    image = _prepare(image)
    se = _resolve_se(image, se, dims, r)
    return extreme_filter(np.maximum, image, se, out=out, cfg=cfg)


def opening(image, se=None, *, dims=None, r=None, out=None, buffer=None, cfg=None):
    """
    Erosion followed by dilation with the same SE.

    Removes bright details smaller than the SE; idempotent and
    anti-extensive (``opening(A) <= A``).  The erosion is stored in
    ``buffer``.
    """
    image = _prepare(image)
    se = _resolve_se(image, se, dims, r)
    out = _alloc(out, image, image.dtype, "out")
    buffer = _alloc(buffer, image, image.dtype, "buffer")
    _require_distinct(buffer, image, out)
    erode(image, se, out=buffer, cfg=cfg)
    dilate(buffer, se, out=out, cfg=cfg)
    return out


def closing(image, se=None, *, dims=None, r=None, out=None, buffer=None, cfg=None):
    """
    Dilation followed by erosion with the same SE.

    Fills dark details smaller than the SE; idempotent and extensive
    (``closing(A) >= A``).  The dilation is stored in ``buffer``.
    """
    image = _prepare(image)
    se = _resolve_se(image, se, dims, r)
    out = _alloc(out, image, image.dtype, "out")
    buffer = _alloc(buffer, image, image.dtype, "buffer")
    _require_distinct(buffer, image, out)
    dilate(image, se, out=buffer, cfg=cfg)
    erode(buffer, se, out=out, cfg=cfg)
    return out


def tophat(image, se=None, *, dims=None, r=None, out=None, buffer=None, cfg=None):
    """White top-hat ``A - opening(A)``: bright details smaller than the SE."""
    image = _prepare(image)
    se = _resolve_se(image, se, dims, r)
    out = _alloc(out, image, image.dtype, "out")
    if np.shares_memory(out, image):
        image = image.copy()
    opening(image, se, out=out, buffer=buffer, cfg=cfg)
    return _difference(image, out, out)


def bothat(image, se=None, *, dims=None, r=None, out=None, buffer=None, cfg=None):
    """Black top-hat ``closing(A) - A``: dark details smaller than the SE."""
    image = _prepare(image)
    se = _resolve_se(image, se, dims, r)
    out = _alloc(out, image, image.dtype, "out")
    if np.shares_memory(out, image):
        image = image.copy()
    closing(image, se, out=out, buffer=buffer, cfg=cfg)
    return _difference(out, image, out)


def mgradient(
    image,
    se=None,
    *,
    mode: str = "beucher",
    dims=None,
    r=None,
    out=None,
    buffer=None,
    cfg=None,
):
    """
    Morphological gradient.

    Parameters
    ----------
    mode : {"beucher", "external", "internal"}
        ``"beucher"``: ``dilate(A) - erode(A)``, needs a symmetric SE.
        ``"external"``: ``dilate(A) - A``.
        ``"internal"``: ``A - erode(A)``.

    Returns
    -------
    out : ndarray
        Signed dtype, e.g. int16 for uint8 input and float32 for bool input.
    """
    if mode not in _GRADIENT_MODES:
        raise ValueError(f"mode must be one of {_GRADIENT_MODES}, got {mode!r}")
    image = _prepare(image)
    se = _resolve_se(image, se, dims, r)
    if mode == "beucher":
        strel.require_symmetric(se)
    dtype = signed_dtype(image.dtype)
    out = _alloc(out, image, dtype, "out")
    buffer = _alloc(buffer, image, dtype, "buffer")
    if np.shares_memory(out, image):
        image = image.copy()
    _require_distinct(buffer, image, out)

    if mode == "external":
        dilate(image, se, out=out, cfg=cfg)
        np.subtract(out, image.astype(out.dtype), out=out)
        return out

    erode(image, se, out=buffer, cfg=cfg)
    if mode == "internal":
        np.subtract(image.astype(out.dtype), buffer, out=out)
    else:
        dilate(image, se, out=out, cfg=cfg)
        np.subtract(out, buffer, out=out)
    return out


def mlaplacian(image, se=None, *, dims=None, r=None, out=None, buffer=None, cfg=None):
    """
    Morphological laplacian: external minus internal gradient.

    ``(dilate(A) - A) - (A - erode(A)) == dilate(A) + erode(A) - 2A``.
    Positive on the dark side of an edge, negative on the bright side.
    Needs a symmetric SE; the result has a signed dtype.
    """
    image = _prepare(image)
    se = _resolve_se(image, se, dims, r)
    strel.require_symmetric(se)
    dtype = signed_dtype(image.dtype)
    out = _alloc(out, image, dtype, "out")
    buffer = _alloc(buffer, image, dtype, "buffer")
    if np.shares_memory(out, image):
        image = image.copy()
    _require_distinct(buffer, image, out)

    dilate(image, se, out=out, cfg=cfg)
    erode(image, se, out=buffer, cfg=cfg)
    np.add(out, buffer, out=out)
    np.subtract(out, 2 * image.astype(out.dtype), out=out)
    return out


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #

def _prepare(image) -> np.ndarray:
    image = np.asarray(image)
    require_ordered(image)
    return image


def _resolve_se(image: np.ndarray, se, dims, r) -> strel.StructuringElement:
    if se is None:
        return strel.box(image.ndim, dims, r=1 if r is None else r)
    if dims is not None or r is not None:
        raise ValueError("pass either `se` or `dims`/`r`, not both")
    return strel.as_strel(se, image.ndim)


def _alloc(buf: Optional[np.ndarray], image: np.ndarray, dtype, name: str) -> np.ndarray:
    if buf is None:
        return np.empty(image.shape, dtype=dtype)
    if not isinstance(buf, np.ndarray):
        raise TypeError(f"{name} must be a numpy array, got {type(buf).__name__}")
    if buf.shape != image.shape:
        raise ShapeMismatch(f"{name} has shape {buf.shape}, expected {image.shape}")
    return buf


def _require_distinct(buffer: np.ndarray, *others: np.ndarray) -> None:
    if any(np.shares_memory(buffer, o) for o in others):
        raise ValueError("buffer must not share memory with the input or output")


def _difference(a: np.ndarray, b: np.ndarray, out: np.ndarray) -> np.ndarray:
    """``a - b`` for pointwise ``a >= b``; bool arrays use and-not."""
    if out.dtype.kind == "b":
        return np.logical_and(a, np.logical_not(b), out=out)
    return np.subtract(a, b, out=out, casting="unsafe")
