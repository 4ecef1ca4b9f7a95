"""
Element-type capabilities for morphological operators.

Morphology needs three things from an element type:

  * a total order (max / min are meaningful),
  * a range (for complements and for "fill with the largest value" markers),
  * a signed type that can hold differences of two values.

Only bool, integer and floating dtypes provide all three.  Structured
(multi-channel, e.g. packed RGB records), complex, object, string and
datetime dtypes are rejected up front rather than reinterpreted.
"""
from __future__ import annotations

import numpy as np

from .errors import UnsupportedElementType


_ORDERED_KINDS = ("b", "i", "u", "f")

# integer → smallest signed type holding the difference of two values
_SIGNED_PROMOTION = {
    np.dtype(np.int8): np.dtype(np.int16),
    np.dtype(np.int16): np.dtype(np.int32),
    np.dtype(np.int32): np.dtype(np.int64),
    np.dtype(np.int64): np.dtype(np.float64),
    np.dtype(np.uint8): np.dtype(np.int16),
    np.dtype(np.uint16): np.dtype(np.int32),
    np.dtype(np.uint32): np.dtype(np.int64),
    np.dtype(np.uint64): np.dtype(np.float64),
}


def is_ordered(dtype) -> bool:
    dtype = np.dtype(dtype)
    return dtype.fields is None and dtype.subdtype is None and dtype.kind in _ORDERED_KINDS


def require_ordered(image: np.ndarray, name: str = "image") -> None:
    """Raise ``UnsupportedElementType`` unless ``image`` has an ordered scalar dtype."""
    if not is_ordered(image.dtype):
        raise UnsupportedElementType(
            f"{name} has element type {image.dtype!r}; morphological operators "
            "need an ordered scalar type (bool, integer or floating point)"
        )


def signed_dtype(dtype) -> np.dtype:
    """
    Return a dtype able to hold ``a - b`` for any two values of ``dtype``.

    bool → float32, integers → next wider signed integer (int64 and uint64 →
    float64); floats are returned unchanged.
    """
    dtype = np.dtype(dtype)
    if dtype.kind == "b":
        return np.dtype(np.float32)
    return _SIGNED_PROMOTION.get(dtype, dtype)


def type_max(dtype):
    """Largest value of ``dtype`` (``+inf`` for floats)."""
    dtype = np.dtype(dtype)
    if dtype.kind == "b":
        return True
    if dtype.kind in "iu":
        return np.iinfo(dtype).max
    return np.inf


def type_min(dtype):
    """Smallest value of ``dtype`` (``-inf`` for floats)."""
    dtype = np.dtype(dtype)
    if dtype.kind == "b":
        return False
    if dtype.kind in "iu":
        return np.iinfo(dtype).min
    return -np.inf


def complement(image: np.ndarray) -> np.ndarray:
    """
    Order-reversing complement within the element type's range.

    bool: logical not.  Integers: bitwise not, which is ``max - x`` for
    unsigned types and ``-1 - x`` for signed ones (both stay in range).
    Floats: ``1 - x``, the complement for images normalized to [0, 1].
    """
    image = np.asarray(image)
    require_ordered(image)
    if image.dtype.kind in "bui":
        return np.invert(image)
    return (1 - image).astype(image.dtype, copy=False)


def _wrap_scalar(h: int, dtype: np.dtype):
    """``h`` reduced modulo 2**bits and reinterpreted as ``dtype``."""
    bits = 8 * dtype.itemsize
    return np.array(h % (1 << bits), dtype=np.uint64).astype(dtype)


def saturating_sub(image: np.ndarray, h) -> np.ndarray:
    """``image - h`` clipped to the dtype range; result keeps ``image.dtype``."""
    image = np.asarray(image)
    if image.dtype.kind == "b":
        return image & ~np.bool_(h)
    if image.dtype.kind in "iu":
        h = int(h)
        if h < 0:
            return saturating_add(image, -h)
        info = np.iinfo(image.dtype)
        out = np.full_like(image, info.min)
        if info.min + h <= info.max:
            keep = image >= info.min + h
            # modular subtraction is exact wherever the true result is in range
            out[keep] = image[keep] - _wrap_scalar(h, image.dtype)
        return out
    return (image - h).astype(image.dtype, copy=False)


def saturating_add(image: np.ndarray, h) -> np.ndarray:
    """``image + h`` clipped to the dtype range; result keeps ``image.dtype``."""
    image = np.asarray(image)
    if image.dtype.kind == "b":
        return image | np.bool_(h)
    if image.dtype.kind in "iu":
        h = int(h)
        if h < 0:
            return saturating_sub(image, -h)
        info = np.iinfo(image.dtype)
        out = np.full_like(image, info.max)
        if info.max - h >= info.min:
            keep = image <= info.max - h
            out[keep] = image[keep] + _wrap_scalar(h, image.dtype)
        return out
    return (image + h).astype(image.dtype, copy=False)
