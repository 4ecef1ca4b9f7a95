"""
Tests for the derived morphological operators (ndmorph.ops).
"""
from __future__ import annotations

import numpy as np
import pytest
from scipy import ndimage as ndi

from ndmorph import strel
from ndmorph.dtypes import complement
from ndmorph.errors import (
    AsymmetricStructuringElement,
    ShapeMismatch,
    UnsupportedElementType,
)
from ndmorph.ops import (
    bothat,
    closing,
    dilate,
    erode,
    mgradient,
    mlaplacian,
    opening,
    tophat,
)

from conftest import random_image


SYMMETRIC_SES = [strel.box(2), strel.diamond(2, r=2), strel.ball(2, 2)]

OMEGA = np.array([
    [1, 1, 0],
    [1, 1, 0],
    [1, 0, 0],
], dtype=bool)


def _spike_and_block():
    """Single bright pixel (removed by a 3×3 opening) plus a 3×3 block (kept)."""
    img = np.zeros((7, 7), dtype=np.uint8)
    img[1, 1] = 5
    img[3:6, 3:6] = 7
    return img


# ──────────────────────────────────────────────────────────────────────
# Erosion / dilation
# ──────────────────────────────────────────────────────────────────────

class TestErodeDilate:
    """Tests for erode and dilate."""

    def test_binary_dilate(self):
        img = np.zeros((5, 5), dtype=bool)
        img[2, [1, 3]] = True

        expected = np.zeros((5, 5), dtype=bool)
        expected[1:4, :] = True
        np.testing.assert_array_equal(dilate(img), expected)

        expected = np.zeros((5, 5), dtype=bool)
        expected[1:4, [1, 3]] = True
        np.testing.assert_array_equal(dilate(img, dims=(0,)), expected)

    def test_binary_erode_is_dual(self):
        img = np.ones((5, 5), dtype=bool)
        img[2, [1, 3]] = False
        expected = np.ones((5, 5), dtype=bool)
        expected[1:4, :] = False
        np.testing.assert_array_equal(erode(img), expected)

    def test_radius_shorthand(self, rng):
        img = random_image(rng, (12, 13))
        np.testing.assert_array_equal(
            dilate(img, dims=(1,), r=2),
            ndi.maximum_filter(img, size=(1, 5), mode="nearest"),
        )
        np.testing.assert_array_equal(
            erode(img, r=2), ndi.minimum_filter(img, size=5, mode="nearest")
        )

    @pytest.mark.parametrize("se", SYMMETRIC_SES + [OMEGA])
    def test_bounds(self, rng, se):
        img = random_image(rng, (10, 11))
        assert np.all(erode(img, se) <= img)
        assert np.all(img <= dilate(img, se))

    @pytest.mark.parametrize("dtype", [np.uint8, np.int16, bool])
    def test_duality(self, rng, dtype):
        img = random_image(rng, (10, 11), dtype)
        for se in SYMMETRIC_SES + [OMEGA]:
            np.testing.assert_array_equal(
                complement(dilate(img, se)), erode(complement(img), se)
            )

    def test_dtype_preserved(self, rng):
        img = random_image(rng, (6, 6), np.float32)
        assert dilate(img).dtype == np.float32
        assert erode(img).dtype == np.float32

    def test_se_and_shorthand_exclusive(self):
        with pytest.raises(ValueError, match="either"):
            dilate(np.zeros((3, 3)), strel.box(2), dims=(0,))
        with pytest.raises(ValueError, match="either"):
            erode(np.zeros((3, 3)), strel.box(2), r=2)

    def test_structured_dtype_rejected(self):
        rgb = np.zeros((3, 3), dtype=[("r", "u1"), ("g", "u1"), ("b", "u1")])
        with pytest.raises(UnsupportedElementType):
            erode(rgb)
        with pytest.raises(UnsupportedElementType):
            mgradient(rgb)


# ──────────────────────────────────────────────────────────────────────
# Opening / closing / top-hats
# ──────────────────────────────────────────────────────────────────────

class TestOpeningClosing:
    """Tests for opening and closing."""

    def test_opening_removes_small_bright_detail(self):
        img = _spike_and_block()
        expected = np.zeros_like(img)
        expected[3:6, 3:6] = 7
        np.testing.assert_array_equal(opening(img), expected)

    def test_closing_fills_small_dark_detail(self):
        img = np.full((7, 7), 9, dtype=np.uint8)
        img[3, 3] = 0
        np.testing.assert_array_equal(closing(img), np.full((7, 7), 9, dtype=np.uint8))

    @pytest.mark.parametrize("se", SYMMETRIC_SES)
    def test_idempotent(self, rng, se):
        img = random_image(rng, (12, 12))
        once = opening(img, se)
        np.testing.assert_array_equal(opening(once, se), once)
        once = closing(img, se)
        np.testing.assert_array_equal(closing(once, se), once)

    @pytest.mark.parametrize("se", SYMMETRIC_SES)
    def test_ordering(self, rng, se):
        img = random_image(rng, (12, 12))
        assert np.all(opening(img, se) <= img)
        assert np.all(img <= closing(img, se))

    def test_duality(self, rng):
        img = random_image(rng, (12, 12))
        se = strel.diamond(2, r=2)
        np.testing.assert_array_equal(
            complement(opening(img, se)), closing(complement(img), se)
        )

    def test_buffers(self, rng):
        img = random_image(rng, (9, 9))
        expected = opening(img)
        out = np.empty_like(img)
        buf = np.empty_like(img)
        result = opening(img, out=out, buffer=buf)
        assert result is out
        np.testing.assert_array_equal(out, expected)

    def test_in_place(self, rng):
        img = random_image(rng, (9, 9))
        expected = closing(img, strel.ball(2, 2))
        closing(img, strel.ball(2, 2), out=img)
        np.testing.assert_array_equal(img, expected)

    def test_buffer_shape_checked_before_writing(self):
        img = np.zeros((4, 4), dtype=np.uint8)
        out = np.full((4, 4), 77, dtype=np.uint8)
        with pytest.raises(ShapeMismatch):
            opening(img, out=out, buffer=np.empty((4, 3), dtype=np.uint8))
        assert np.all(out == 77)

    def test_buffer_must_not_alias(self):
        img = np.zeros((4, 4), dtype=np.uint8)
        with pytest.raises(ValueError, match="share memory"):
            closing(img, buffer=img)


class TestTopHat:

    def test_tophat_keeps_small_bright_detail(self):
        img = _spike_and_block()
        expected = np.zeros_like(img)
        expected[1, 1] = 5
        out = tophat(img)
        assert out.dtype == np.uint8
        np.testing.assert_array_equal(out, expected)

    def test_bothat_keeps_small_dark_detail(self):
        img = np.full((7, 7), 9, dtype=np.uint8)
        img[3, 3] = 0
        expected = np.zeros_like(img)
        expected[3, 3] = 9
        np.testing.assert_array_equal(bothat(img), expected)

    def test_binary(self):
        img = _spike_and_block() > 0
        out = tophat(img)
        assert out.dtype == bool
        assert out.sum() == 1 and out[1, 1]

    def test_in_place(self, rng):
        img = random_image(rng, (10, 10))
        expected = tophat(img, strel.diamond(2))
        tophat(img, strel.diamond(2), out=img)
        np.testing.assert_array_equal(img, expected)

    def test_duality(self, rng):
        img = random_image(rng, (10, 10))
        np.testing.assert_array_equal(tophat(img), bothat(complement(img)))


# ──────────────────────────────────────────────────────────────────────
# Gradients and laplacian
# ──────────────────────────────────────────────────────────────────────

class TestGradient:
    """Tests for mgradient."""

    step = np.array([0, 0, 5, 5], dtype=np.uint8)

    def test_modes_on_step_edge(self):
        np.testing.assert_array_equal(mgradient(self.step), [0, 5, 5, 0])
        np.testing.assert_array_equal(mgradient(self.step, mode="external"), [0, 5, 0, 0])
        np.testing.assert_array_equal(mgradient(self.step, mode="internal"), [0, 0, 5, 0])

    def test_signed_dtype(self):
        assert mgradient(self.step).dtype == np.int16
        assert mgradient(self.step > 0).dtype == np.float32
        assert mgradient(self.step.astype(np.float64)).dtype == np.float64

    def test_beucher_is_sum_of_halves(self, rng):
        img = random_image(rng, (10, 12))
        ext = mgradient(img, mode="external")
        inner = mgradient(img, mode="internal")
        np.testing.assert_array_equal(mgradient(img), ext + inner)

    def test_non_negative(self, rng):
        img = random_image(rng, (10, 12))
        for mode in ("beucher", "external", "internal"):
            assert np.all(mgradient(img, mode=mode) >= 0), mode

    def test_self_complementary(self, rng):
        img = random_image(rng, (10, 12))
        np.testing.assert_array_equal(mgradient(complement(img)), mgradient(img))

    def test_asymmetric_se(self):
        img = np.zeros((5, 5), dtype=np.uint8)
        with pytest.raises(AsymmetricStructuringElement):
            mgradient(img, OMEGA)
        # one-sided gradients do not need symmetry
        mgradient(img, OMEGA, mode="external")
        mgradient(img, OMEGA, mode="internal")

    def test_unknown_mode(self):
        with pytest.raises(ValueError, match="mode"):
            mgradient(self.step, mode="sobel")

    def test_out_buffer(self):
        out = np.empty(4, dtype=np.int16)
        assert mgradient(self.step, out=out) is out
        np.testing.assert_array_equal(out, [0, 5, 5, 0])

    def test_full_range_signed_input(self):
        img = np.array([-128, 127, 0], dtype=np.int8)
        out = mgradient(img)
        assert out.dtype == np.int16
        np.testing.assert_array_equal(out, [255, 255, 127])
        np.testing.assert_array_equal(mgradient(img, mode="external"), [255, 0, 127])
        np.testing.assert_array_equal(mgradient(img, mode="internal"), [0, 255, 0])

    def test_int64_widens_to_float(self):
        img = np.array([np.iinfo(np.int64).min, 0], dtype=np.int64)
        out = mgradient(img)
        assert out.dtype == np.float64
        assert np.all(out > 0)

    def test_external_mode_checks_buffer(self):
        with pytest.raises(ShapeMismatch, match="buffer"):
            mgradient(self.step, mode="external", buffer=np.empty(3, dtype=np.int16))
        with pytest.raises(TypeError, match="buffer"):
            mgradient(self.step, mode="external", buffer=[0, 0, 0, 0])


class TestLaplacian:

    def test_step_edge(self):
        img = np.array([0, 0, 5, 5], dtype=np.uint8)
        out = mlaplacian(img)
        assert out.dtype == np.int16
        np.testing.assert_array_equal(out, [0, 5, -5, 0])

    def test_binary(self):
        img = np.array([False, False, True, True])
        out = mlaplacian(img)
        assert out.dtype == np.float32
        np.testing.assert_array_equal(out, [0.0, 1.0, -1.0, 0.0])

    def test_full_range_signed_input(self):
        out = mlaplacian(np.array([100, 100, -100], dtype=np.int8))
        assert out.dtype == np.int16
        np.testing.assert_array_equal(out, [0, -200, 200])

    def test_external_minus_internal(self, rng):
        img = random_image(rng, (10, 12))
        se = strel.diamond(2, r=2)
        np.testing.assert_array_equal(
            mlaplacian(img, se),
            mgradient(img, se, mode="external") - mgradient(img, se, mode="internal"),
        )

    def test_asymmetric_se(self):
        with pytest.raises(AsymmetricStructuringElement):
            mlaplacian(np.zeros((5, 5)), OMEGA)
