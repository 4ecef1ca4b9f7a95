"""
Extreme filter: the neighbourhood-reduction engine behind every operator.

For each pixel p the select function f is folded over its neighbourhood,
starting from the pixel itself:

    out[p] = f(...f(f(A[p], A[p + o_1]), A[p + o_2])..., A[p + o_K])

Offsets whose target lies outside the array are skipped: there is no
padding value and no wrap-around.  With f = max this is dilation, with
f = min erosion.

Three algorithms, selected by structuring-element type:

  SEBox      separable scan, one dimension at a time, each pass reading the
             result of the previous one.  Half-width r > 1 repeats the r = 1
             pass r times, which equals a radius-r window only when f is
             associative and idempotent (max, min).
  SEDiamond  r rounds; within a round every active dimension reads the
             snapshot taken at the start of the round while the centre value
             accumulates, which yields the city-block ball.
  anything   generic fold over the offset list, in enumeration order.

The r = 1 scan along one dimension uses a (prev, curr, next) window:
first index f(curr, next), last index f(prev, curr), interior
f(f(prev, curr), next).  This order is observable for non-commutative f.

f is any binary function over single values.  numpy ufuncs and the builtins
max / min (mapped to np.maximum / np.minimum) are applied to whole array
slices; any other callable is vectorized with np.frompyfunc and its results
are cast back to the output dtype.
"""
from __future__ import annotations

from multiprocessing.pool import ThreadPool
from typing import Callable, List, Optional, Tuple

import numpy as np

from . import strel
from .config import DEFAULT_CONFIG, MorphologyConfig
from .dtypes import require_ordered
from .errors import ShapeMismatch


def extreme_filter(
    f: Callable,
    image,
    se=None,
    *,
    dims=None,
    out: Optional[np.ndarray] = None,
    cfg: Optional[MorphologyConfig] = None,
) -> np.ndarray:
    """
    Fold the select function ``f`` over each pixel's neighbourhood.

    Parameters
    ----------
    f : callable
        Binary select function over single values, e.g. ``max``, ``min``,
        ``np.maximum`` or ``lambda a, b: a if a > b else b``.
    image : array_like
        Input of any rank with an ordered scalar dtype.  Not modified unless
        passed as ``out`` as well.
    se : StructuringElement or bool array, optional
        Neighbourhood.  Default: ``strel.box(image.ndim, dims, r=1)``.
    dims : int or iterable of int, optional
        Shorthand for the default box: the dimensions to filter along.
    out : ndarray, optional
        Output buffer with the shape of ``image``; may be ``image`` itself.
        Its dtype is used for the computation.
    cfg : MorphologyConfig, optional
        Thread settings for the generic path.

    Returns
    -------
    out : ndarray
    """
    image = np.asarray(image)
    require_ordered(image)
    se = _resolve_se(image, se, dims)
    out = _check_out(out, image)
    return _dispatch(_as_elementwise(f, out.dtype), out, image, se, cfg or DEFAULT_CONFIG)


def _resolve_se(image: np.ndarray, se, dims) -> strel.StructuringElement:
    if se is None:
        return strel.box(image.ndim, dims)
    if dims is not None:
        raise ValueError("pass either `se` or `dims`, not both")
    return strel.as_strel(se, image.ndim)


def _check_out(out: Optional[np.ndarray], image: np.ndarray) -> np.ndarray:
    if out is None:
        return np.empty_like(image)
    if not isinstance(out, np.ndarray):
        raise TypeError(f"out must be a numpy array, got {type(out).__name__}")
    if out.shape != image.shape:
        raise ShapeMismatch(f"out has shape {out.shape}, expected {image.shape}")
    return out


def _as_elementwise(f: Callable, dtype: np.dtype) -> Callable:
    if f is max:
        return np.maximum
    if f is min:
        return np.minimum
    if isinstance(f, np.ufunc):
        return f
    scalar_f = np.frompyfunc(f, 2, 1)

    def elementwise(a, b):
        return np.asarray(scalar_f(a, b)).astype(dtype, copy=False)

    return elementwise


def _dispatch(f, out, src, se, cfg) -> np.ndarray:
    if isinstance(se, strel.SEBox):
        return _extreme_filter_box(f, out, src, se)
    if isinstance(se, strel.SEDiamond):
        return _extreme_filter_diamond(f, out, src, se)
    if isinstance(se, strel.SEChain):
        return _extreme_filter_chain(f, out, src, se, cfg)
    return _extreme_filter_generic(f, out, src, se, cfg)


# ------------------------------------------------------------------ #
# Separable paths
# ------------------------------------------------------------------ #

def _extreme_filter_box(f, out, src, se: strel.SEBox) -> np.ndarray:
    # ping-pong buffers: a pass never reads values it has already written
    cur = src.astype(out.dtype, copy=True)
    nxt = np.empty_like(cur)
    for axis, r in enumerate(se.radii):
        if cur.shape[axis] < 2:
            continue
        for _ in range(r):
            _scan_c2(f, nxt, cur, cur, axis)
            cur, nxt = nxt, cur
    out[...] = cur
    return out


def _extreme_filter_diamond(f, out, src, se: strel.SEDiamond) -> np.ndarray:
    axes = [d for d in se.dims if src.shape[d] > 1]
    snapshot = src.astype(out.dtype, copy=True)
    acc = snapshot.copy()
    for i in range(se.r):
        for axis in axes:
            _scan_c2(f, acc, snapshot, acc, axis)
        if i < se.r - 1:
            snapshot[...] = acc
    out[...] = acc
    return out


def _scan_c2(f, dst, src, center, axis: int) -> None:
    """
    One r = 1 pass along ``axis``: neighbours come from ``src``, the
    centre value from ``center`` (``src`` itself, or ``dst`` when the
    centre accumulates across dimensions).
    """
    n = src.shape[axis]
    lo = _along(axis, slice(0, n - 2))
    mid = _along(axis, slice(1, n - 1))
    hi = _along(axis, slice(2, n))
    first = _along(axis, slice(0, 1))
    second = _along(axis, slice(1, 2))
    penult = _along(axis, slice(n - 2, n - 1))
    last = _along(axis, slice(n - 1, n))

    interior = f(f(src[lo], center[mid]), src[hi])
    head = f(center[first], src[second])
    tail = f(src[penult], center[last])
    dst[mid] = interior
    dst[first] = head
    dst[last] = tail


def _along(axis: int, sl: slice) -> Tuple[slice, ...]:
    return (slice(None),) * axis + (sl,)


# ------------------------------------------------------------------ #
# Composite path
# ------------------------------------------------------------------ #

def _extreme_filter_chain(f, out, src, se: strel.SEChain, cfg) -> np.ndarray:
    cur = src
    for member in se.members:
        cur = _dispatch(f, np.empty(out.shape, dtype=out.dtype), cur, member, cfg)
    out[...] = cur
    return out


# ------------------------------------------------------------------ #
# Generic path
# ------------------------------------------------------------------ #

def _extreme_filter_generic(f, out, src, se, cfg: MorphologyConfig) -> np.ndarray:
    values = src.astype(out.dtype, copy=True)
    acc = values.copy()
    offsets = se.offsets
    n_rows = src.shape[0] if src.ndim else 1

    blocks = _split_rows(n_rows, cfg)
    if len(blocks) == 1:
        _fold_block(f, acc, values, offsets, 0, n_rows)
    else:
        with ThreadPool(len(blocks)) as pool:
            pool.starmap(
                _fold_block,
                [(f, acc, values, offsets, start, stop) for start, stop in blocks],
            )
    out[...] = acc
    return out


def _split_rows(n_rows: int, cfg: MorphologyConfig) -> List[Tuple[int, int]]:
    """
    Contiguous ``[start, stop)`` row blocks along axis 0, one per worker.

    >>> _split_rows(10, MorphologyConfig(workers=3, min_rows_per_worker=1))
    [(0, 4), (4, 7), (7, 10)]
    """
    n_blocks = min(cfg.workers, max(1, n_rows // cfg.min_rows_per_worker))
    if n_blocks <= 1:
        return [(0, n_rows)]
    base, extra = divmod(n_rows, n_blocks)
    sizes = [base + (1 if i < extra else 0) for i in range(n_blocks)]
    blocks = []
    start = 0
    for size in sizes:
        blocks.append((start, start + size))
        start += size
    return blocks


def _fold_block(f, acc, values, offsets, start: int, stop: int) -> None:
    """Fold every offset into rows ``start:stop`` of ``acc``, in offset order."""
    shape = values.shape
    for o in offsets:
        dst = []
        src = []
        for d, (n, od) in enumerate(zip(shape, o)):
            lo = max(0, -od)
            hi = min(n, n - od)
            if d == 0:
                lo = max(lo, start)
                hi = min(hi, stop)
            if hi <= lo:
                break
            dst.append(slice(lo, hi))
            src.append(slice(lo + od, hi + od))
        else:
            dst = tuple(dst)
            acc[dst] = f(acc[dst], values[tuple(src)])
