"""
Structuring elements (SE): the neighbourhood shapes morphology operates over.

An SE is a finite set of integer offsets relative to a centre pixel, the
zero offset excluded.  Five concrete shapes are provided:

  SEBox      Cartesian product of [-r_d, r_d] per dimension (separable)
  SEDiamond  L1 ball sum(|o_d|) <= r over the active dimensions (separable)
  SEMask     arbitrary offsets, from a boolean mask or an explicit list
  SEChain    members applied one after the other
  SEProduct  Cartesian product of members living in disjoint dimensions

The filter engine dispatches on these types: box and diamond get a separable
fast path, chains are applied member by member, everything else goes through
the generic offset fold.

Rank broadcasting follows numpy: dimensions are aligned at the trailing end.
A lower-rank SE gains leading singleton dimensions; a higher-rank SE may drop
leading dimensions along which its half-width is 0.

Quick start:
    from ndmorph import strel

    se = strel.box(2, r=1)                     # 3x3 square
    se = strel.diamond(3, dims=(1, 2), r=2)    # in-plane diamond of a 3-D volume
    se = strel.from_mask([[0, 1, 0],
                          [1, 1, 1],
                          [0, 1, 0]])
    strel.to_mask(strel.chain(se, se))         # 5x5 diamond
"""
from __future__ import annotations

from functools import cached_property
from typing import Iterable, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.ndimage import generate_binary_structure

from .errors import (
    AsymmetricStructuringElement,
    DimensionMismatch,
    InvalidShape,
)


RadiusLike = Union[int, Sequence[int]]


# ------------------------------------------------------------------ #
# Structuring element types
# ------------------------------------------------------------------ #

class StructuringElement:
    """Base class; subclasses define ``ndim`` and ``_compute_offsets``."""

    ndim: int

    @cached_property
    def offsets(self) -> np.ndarray:
        """Offsets as an int array of shape ``(K, ndim)``, in enumeration order."""
        offsets = self._compute_offsets()
        offsets.setflags(write=False)
        return offsets

    def _compute_offsets(self) -> np.ndarray:
        raise NotImplementedError

    @property
    def size(self) -> Tuple[int, ...]:
        return tuple(2 * self.radius(d) + 1 for d in range(self.ndim))

    def radius(self, dim: int) -> int:
        if self.offsets.shape[0] == 0:
            return 0
        return int(np.abs(self.offsets[:, dim]).max())

    def is_symmetric(self) -> bool:
        fwd = {tuple(o) for o in self.offsets.tolist()}
        return fwd == {tuple(-v for v in o) for o in fwd}

    def is_separable(self) -> bool:
        return False

    def _expand(self, k: int) -> "StructuringElement":
        """Prepend ``k`` singleton dimensions."""
        pad = np.zeros((self.offsets.shape[0], k), dtype=np.intp)
        return SEMask(np.hstack([pad, self.offsets]), ndim=self.ndim + k)

    def _squeeze(self, k: int) -> "StructuringElement":
        """Drop ``k`` leading dimensions (all offsets are 0 along them)."""
        return SEMask(self.offsets[:, k:], ndim=self.ndim - k)


class SEBox(StructuringElement):
    """Rectangular neighbourhood with per-dimension half-widths ``radii``."""

    def __init__(self, radii: Sequence[int]):
        radii = tuple(int(r) for r in radii)
        if any(r < 0 for r in radii):
            raise InvalidShape(f"half-widths must be non-negative, got {radii}")
        self.radii = radii
        self.ndim = len(radii)

    def _compute_offsets(self) -> np.ndarray:
        return _grid_offsets(self.radii)

    def radius(self, dim: int) -> int:
        return self.radii[dim]

    def is_symmetric(self) -> bool:
        return True

    def is_separable(self) -> bool:
        return True

    def _expand(self, k: int) -> "SEBox":
        return SEBox((0,) * k + self.radii)

    def _squeeze(self, k: int) -> "SEBox":
        return SEBox(self.radii[k:])

    def __repr__(self) -> str:
        return f"SEBox(radii={self.radii})"


class SEDiamond(StructuringElement):
    """City-block ball of radius ``r`` over ``dims``; a single point elsewhere."""

    def __init__(self, ndim: int, dims: Sequence[int], r: int):
        if r < 0:
            raise InvalidShape(f"radius must be non-negative, got {r}")
        self.ndim = int(ndim)
        self.dims = _normalize_dims(dims, self.ndim)
        self.r = int(r)

    def _compute_offsets(self) -> np.ndarray:
        radii = tuple(self.r if d in self.dims else 0 for d in range(self.ndim))
        grid = _grid_offsets(radii)
        return grid[np.abs(grid).sum(axis=1) <= self.r]

    def radius(self, dim: int) -> int:
        return self.r if dim in self.dims else 0

    def is_symmetric(self) -> bool:
        return True

    def is_separable(self) -> bool:
        return True

    def _expand(self, k: int) -> "SEDiamond":
        return SEDiamond(self.ndim + k, [d + k for d in self.dims], self.r)

    def _squeeze(self, k: int) -> "SEDiamond":
        return SEDiamond(self.ndim - k, [d - k for d in self.dims if d >= k], self.r)

    def __repr__(self) -> str:
        return f"SEDiamond(ndim={self.ndim}, dims={self.dims}, r={self.r})"


class SEMask(StructuringElement):
    """Arbitrary neighbourhood given as an explicit offset list."""

    def __init__(self, offsets: np.ndarray, ndim: int):
        self.ndim = int(ndim)
        offsets = np.asarray(offsets, dtype=np.intp)
        if offsets.size == 0:
            self._offsets = np.empty((0, self.ndim), dtype=np.intp)
        else:
            self._offsets = offsets.reshape(-1, self.ndim)

    def _compute_offsets(self) -> np.ndarray:
        return self._offsets.copy()

    def __repr__(self) -> str:
        return f"SEMask(ndim={self.ndim}, n_offsets={self.offsets.shape[0]})"


class SEProduct(SEMask):
    """Cartesian product of ``members``; rank is the sum of member ranks."""

    def __init__(self, members: Sequence[StructuringElement]):
        self.members = tuple(members)
        ndim = sum(m.ndim for m in self.members)
        embedded = []
        start = 0
        for m in self.members:
            emb = np.zeros((m.offsets.shape[0], ndim), dtype=np.intp)
            emb[:, start:start + m.ndim] = m.offsets
            embedded.append(emb)
            start += m.ndim
        super().__init__(_minkowski_sum(embedded, ndim), ndim)

    def __repr__(self) -> str:
        return f"SEProduct({', '.join(repr(m) for m in self.members)})"


class SEChain(StructuringElement):
    """
    Members applied in sequence: ``f(img, chain(a, b)) == f(f(img, a), b)``.

    The offset set is the Minkowski sum of the members' neighbourhoods.  For
    max / min the sequential application equals a single pass over that set
    everywhere except near the array border, where a chained path may not
    leave the domain half-way.
    """

    def __init__(self, members: Sequence[StructuringElement]):
        self.members = tuple(members)
        ndims = {m.ndim for m in self.members}
        if len(ndims) != 1:
            raise DimensionMismatch(
                f"chained structuring elements must share a rank, got {sorted(ndims)}"
            )
        self.ndim = ndims.pop()

    def _compute_offsets(self) -> np.ndarray:
        return _minkowski_sum([m.offsets for m in self.members], self.ndim)

    def _expand(self, k: int) -> "SEChain":
        return SEChain([m._expand(k) for m in self.members])

    def _squeeze(self, k: int) -> "SEChain":
        return SEChain([m._squeeze(k) for m in self.members])

    def __repr__(self) -> str:
        return f"SEChain({', '.join(repr(m) for m in self.members)})"


# ------------------------------------------------------------------ #
# Constructors
# ------------------------------------------------------------------ #

def box(ndim, dims: Optional[Iterable[int]] = None, *, r: RadiusLike = 1) -> SEBox:
    """
    Box-shaped SE.

    Parameters
    ----------
    ndim : int or ndarray
        Rank of the SE; an array stands for its own ``ndim``.
    dims : int or iterable of int, optional
        Active dimensions (negative values count from the end).  Default:
        all dimensions.  Inactive dimensions get half-width 0.
    r : int or sequence of int
        Half-width, either shared or one value per dimension.

    Returns
    -------
    SEBox
    """
    ndim = _to_ndim(ndim)
    dims = _normalize_dims(dims, ndim)
    if np.ndim(r) == 0:
        radii = tuple(int(r) if d in dims else 0 for d in range(ndim))
    else:
        r = tuple(int(v) for v in r)
        if len(r) != ndim:
            raise DimensionMismatch(f"r has {len(r)} entries for a rank-{ndim} SE")
        radii = tuple(r[d] if d in dims else 0 for d in range(ndim))
    return SEBox(radii)


def diamond(ndim, dims: Optional[Iterable[int]] = None, *, r: RadiusLike = 1) -> SEDiamond:
    """
    Diamond-shaped (city-block ball) SE over ``dims``.

    A per-dimension ``r`` collapses to ``max(r)``.
    """
    ndim = _to_ndim(ndim)
    if np.ndim(r) != 0:
        r = max(int(v) for v in r) if len(r) else 0
    return SEDiamond(ndim, _normalize_dims(dims, ndim), int(r))


def from_mask(mask) -> SEMask:
    """
    Generic SE from a boolean (or 0/1) mask whose centre is the origin.

    Every extent must be odd.  An all-False mask is the identity SE.
    """
    mask = np.asarray(mask).astype(bool)
    if any(n % 2 == 0 for n in mask.shape):
        raise InvalidShape(
            f"mask must have odd extent along every dimension, got shape {mask.shape}"
        )
    center = np.array(mask.shape, dtype=np.intp) // 2
    offsets = np.argwhere(mask) - center
    offsets = offsets[np.any(offsets != 0, axis=1)]
    return SEMask(offsets, ndim=mask.ndim)


def from_offsets(offsets, ndim: Optional[int] = None) -> SEMask:
    """
    Generic SE from explicit offsets, enumerated in the given order.

    Duplicates and the zero offset are dropped.  A flat sequence of ints is
    read as 1-D offsets.  ``ndim`` is required for an empty offset list.
    """
    try:
        arr = np.asarray(offsets, dtype=np.intp)
    except ValueError as e:
        raise InvalidShape(f"offsets must be a rectangular integer array: {e}") from e
    if arr.size == 0:
        if ndim is None:
            raise InvalidShape("ndim is required for an empty offset list")
        return SEMask(np.empty((0, ndim), dtype=np.intp), ndim=ndim)
    if arr.ndim == 1:
        arr = arr.reshape(-1, 1)
    if arr.ndim != 2:
        raise InvalidShape(f"offsets must have shape (K, ndim), got {arr.shape}")
    if ndim is not None and arr.shape[1] != ndim:
        raise DimensionMismatch(f"offsets are {arr.shape[1]}-D, expected {ndim}-D")

    seen = set()
    keep = []
    for i, o in enumerate(map(tuple, arr.tolist())):
        if o in seen or not any(o):
            continue
        seen.add(o)
        keep.append(i)
    return SEMask(arr[keep], ndim=arr.shape[1])


def chain(*ses) -> StructuringElement:
    """Sequential composition: apply ``ses[0]``, then ``ses[1]``, ..."""
    ses = [_coerce(se) for se in _flatten(ses)]
    if not ses:
        raise InvalidShape("chain needs at least one structuring element")
    if len(ses) == 1:
        return ses[0]
    return SEChain(ses)


def product(*ses) -> SEProduct:
    """Cartesian product of SEs living in consecutive, disjoint dimensions."""
    ses = [_coerce(se) for se in _flatten(ses)]
    if not ses:
        raise InvalidShape("product needs at least one structuring element")
    return SEProduct(ses)


def ball(ndim, r: int) -> SEMask:
    """Euclidean ball ``sum(o_d**2) <= r**2`` (a disk in 2-D)."""
    ndim = _to_ndim(ndim)
    if r < 0:
        raise InvalidShape(f"radius must be non-negative, got {r}")
    grids = np.ogrid[tuple(slice(-r, r + 1) for _ in range(ndim))]
    dist2 = sum(g * g for g in grids)
    return from_mask(dist2 <= r * r)


def connectivity(ndim, k: int = 1) -> SEMask:
    """
    Classic pixel connectivity: neighbours at squared distance <= ``k``.

    ``k=1`` gives face neighbours (C4 in 2-D, C6 in 3-D); ``k=ndim`` gives
    the full 3**ndim box (C8, C26).
    """
    ndim = _to_ndim(ndim)
    return from_mask(generate_binary_structure(ndim, k))


# ------------------------------------------------------------------ #
# Queries
# ------------------------------------------------------------------ #

def rank(se) -> int:
    return _coerce(se).ndim


def radius(se, dim: int) -> int:
    """Half-width of the minimal enclosing box along ``dim``."""
    se = _coerce(se)
    return se.radius(_normalize_dims(dim, se.ndim)[0])


def size(se) -> Tuple[int, ...]:
    """Odd extents of the minimal box enclosing the SE."""
    return _coerce(se).size


def is_symmetric(se) -> bool:
    """True iff the offset set is closed under negation."""
    return _coerce(se).is_symmetric()


def is_separable(se) -> bool:
    """True for the shapes the engine filters one dimension at a time."""
    return _coerce(se).is_separable()


def require_symmetric(se) -> None:
    if not is_symmetric(se):
        raise AsymmetricStructuringElement(
            "structuring element must be symmetric with respect to its center"
        )


def to_offsets(se) -> np.ndarray:
    return np.array(_coerce(se).offsets)


def to_mask(se) -> np.ndarray:
    """Centred, odd-sized boolean mask of the SE; the centre is always True."""
    se = _coerce(se)
    shape = se.size
    center = np.array(shape, dtype=np.intp) // 2
    mask = np.zeros(shape, dtype=bool)
    if se.offsets.shape[0]:
        mask[tuple((se.offsets + center).T)] = True
    mask[tuple(center)] = True
    return mask


def split(se) -> Tuple[SEMask, SEMask]:
    """
    Split a symmetric SE into the halves before and after its centre.

    Halves follow C (row-major) order of the mask, so ``lower`` holds
    exactly the negated offsets of ``upper``.  Used by raster-scan
    algorithms that sweep forward with ``upper`` and backward with ``lower``.
    """
    se = _coerce(se)
    require_symmetric(se)
    offsets = np.argwhere(to_mask(se)) - np.array(se.size, dtype=np.intp) // 2
    nonzero = offsets != 0
    first = nonzero.argmax(axis=1)
    has_any = nonzero.any(axis=1)
    lead = offsets[np.arange(offsets.shape[0]), first]
    upper = offsets[has_any & (lead < 0)]
    lower = offsets[has_any & (lead > 0)]
    return SEMask(upper, ndim=se.ndim), SEMask(lower, ndim=se.ndim)


def as_strel(se, ndim: int) -> StructuringElement:
    """Coerce ``se`` (SE object or boolean mask) and broadcast it to rank ``ndim``."""
    se = _coerce(se)
    if se.ndim == ndim:
        return se
    if se.ndim < ndim:
        return se._expand(ndim - se.ndim)
    extra = se.ndim - ndim
    if any(se.radius(d) != 0 for d in range(extra)):
        raise DimensionMismatch(
            f"a rank-{se.ndim} structuring element cannot be applied to a "
            f"{ndim}-dimensional array"
        )
    return se._squeeze(extra)


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #

def _coerce(se) -> StructuringElement:
    if isinstance(se, StructuringElement):
        return se
    return from_mask(se)


def _flatten(ses) -> list:
    if len(ses) == 1 and isinstance(ses[0], (list, tuple)):
        return list(ses[0])
    return list(ses)


def _to_ndim(ndim) -> int:
    if hasattr(ndim, "ndim"):
        return int(ndim.ndim)
    return int(ndim)


def _normalize_dims(dims, ndim: int) -> Tuple[int, ...]:
    """Validate ``dims`` against ``ndim``; returns sorted non-negative dims."""
    if dims is None:
        return tuple(range(ndim))
    if np.ndim(dims) == 0:
        dims = (dims,)
    out = []
    for d in dims:
        d = int(d)
        if not -ndim <= d < ndim:
            raise DimensionMismatch(f"dimension {d} is out of range for rank {ndim}")
        out.append(d % ndim)
    if len(set(out)) != len(out):
        raise DimensionMismatch(f"dims should be unique, got {tuple(dims)}")
    return tuple(sorted(out))


def _grid_offsets(radii: Tuple[int, ...]) -> np.ndarray:
    """All offsets of the box with ``radii`` in C order, zero excluded."""
    ndim = len(radii)
    if ndim == 0:
        return np.empty((0, 0), dtype=np.intp)
    grid = np.indices(tuple(2 * r + 1 for r in radii)).reshape(ndim, -1).T
    grid = grid - np.array(radii, dtype=np.intp)
    return grid[np.any(grid != 0, axis=1)].astype(np.intp)


def _minkowski_sum(offset_sets: Sequence[np.ndarray], ndim: int) -> np.ndarray:
    """Minkowski sum of neighbourhoods (each implicitly containing 0), C order."""
    acc = np.zeros((1, ndim), dtype=np.intp)
    for offsets in offset_sets:
        step = np.vstack([np.zeros((1, ndim), dtype=np.intp), offsets])
        acc = (acc[:, None, :] + step[None, :, :]).reshape(-1, ndim)
        acc = np.unique(acc, axis=0)
    # lexicographic row order of np.unique is C order of the mask
    return acc[np.any(acc != 0, axis=1)]
