# This file is part of ccd-misc.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

import os
import tempfile
import unittest

import numpy as np
from PIL import Image as PILImage

from ccdmisc import Box, DegenerateDataError, Interval, UnsupportedShapeError
from ccdmisc._targa import write_greyscale_targa
from ccdmisc.processing import (
    FULL_RANGE,
    crop,
    flip,
    mean_excluding_borders,
    median_combine,
    normalise,
    percentile_limits,
    reinterpret_sign,
    rescale_to_full_range,
    scale_to_bytes,
    subtract_clamped,
    value_range,
)


class SubtractClampedTestCase(unittest.TestCase):
    """Tests for subtract_clamped."""

    def test_scalar_underflow(self) -> None:
        result = subtract_clamped(10, 20)
        self.assertEqual(int(result.values), 0)
        self.assertEqual(result.n_underflow, 1)
        self.assertEqual(result.n_overflow, 0)
        self.assertEqual(result.events(), [(0, 0, -10)])

    def test_images(self) -> None:
        minuend = np.array([[5, 65535, 100], [0, 30000, 65535]], dtype=np.uint16)
        subtrahend = np.array([[10, 0, 100], [1, -40000, 65535]], dtype=np.int64)
        result = subtract_clamped(minuend, subtrahend)
        self.assertEqual(result.values.dtype, np.uint16)
        np.testing.assert_array_equal(result.values, [[0, 65535, 0], [0, 65535, 0]])
        self.assertEqual(result.n_underflow, 2)
        self.assertEqual(result.n_overflow, 1)
        self.assertEqual(result.events(), [(0, 0, -5), (0, 1, -1), (1, 1, 70000)])

    def test_no_clamping(self) -> None:
        row = np.arange(1000, 1010, dtype=np.uint16)
        result = subtract_clamped(row, 1000)
        np.testing.assert_array_equal(result.values, np.arange(10))
        self.assertEqual(result.events(), [])


class StatisticsTestCase(unittest.TestCase):
    """Tests for mean_excluding_borders, normalise and value_range."""

    def test_mean_excluding_borders(self) -> None:
        row = np.arange(1, 11)
        self.assertEqual(mean_excluding_borders(row, 2, 3), 5.0)
        self.assertEqual(mean_excluding_borders(row, 0, 0), 5.5)
        image = np.array([[100, 1, 2, 100], [100, 3, 4, 100]], dtype=np.uint16)
        self.assertEqual(mean_excluding_borders(image, 1, 1), 2.5)

    def test_mean_no_columns(self) -> None:
        row = np.arange(5)
        with self.assertRaises(DegenerateDataError):
            mean_excluding_borders(row, 3, 2)
        with self.assertRaises(DegenerateDataError):
            mean_excluding_borders(row, 4, 4)
        with self.assertRaises(DegenerateDataError):
            mean_excluding_borders(row, -1, 0)

    def test_normalise(self) -> None:
        image = np.array([[1.0, 2.0], [3.0, 6.0]])
        normalised, mean = normalise(image)
        self.assertEqual(mean, 3.0)
        self.assertEqual(normalised.dtype, np.float32)
        np.testing.assert_allclose(normalised, image / 3.0, rtol=1e-6)
        self.assertAlmostEqual(float(np.mean(normalised, dtype=np.float64)), 1.0, places=6)

    def test_normalise_degenerate(self) -> None:
        with self.assertRaises(DegenerateDataError):
            normalise(np.zeros((2, 2)))
        with self.assertRaises(DegenerateDataError):
            normalise(np.array([[1.0, -1.0]]))
        with self.assertRaises(DegenerateDataError):
            normalise(np.zeros((0, 3)))

    def test_value_range(self) -> None:
        self.assertEqual(value_range(np.array([[3, -2], [7, 0]], dtype=np.int16)), (-2, 7))
        with self.assertRaises(DegenerateDataError):
            value_range(np.array([]))


class GeometryTestCase(unittest.TestCase):
    """Tests for crop, flip and median_combine."""

    def setUp(self) -> None:
        self.rng = np.random.default_rng(42)
        self.image = self.rng.integers(0, 1000, size=(6, 8))

    def test_crop(self) -> None:
        box = Box.from_corners(2, 1, 5, 4)
        region = crop(self.image, box)
        self.assertEqual(region.shape, (3, 3))
        for j in range(3):
            for i in range(3):
                self.assertEqual(region[j, i], self.image[1 + j, 2 + i])
        region[0, 0] = -1
        self.assertNotEqual(self.image[1, 2], -1)
        np.testing.assert_array_equal(crop(self.image, Box.from_shape(self.image.shape)), self.image)

    def test_crop_outside(self) -> None:
        with self.assertRaises(UnsupportedShapeError):
            crop(self.image, Box(Interval(0, 7), Interval(0, 8)))
        with self.assertRaises(UnsupportedShapeError):
            crop(self.image, Box(Interval(0, 6), Interval(-1, 3)))

    def test_flip(self) -> None:
        image = np.array([[1, 2, 3], [4, 5, 6]])
        np.testing.assert_array_equal(flip(image, x=True), [[3, 2, 1], [6, 5, 4]])
        np.testing.assert_array_equal(flip(image, y=True), [[4, 5, 6], [1, 2, 3]])
        np.testing.assert_array_equal(flip(image, x=True, y=True), [[6, 5, 4], [3, 2, 1]])
        np.testing.assert_array_equal(flip(image), image)
        for x, y in [(True, False), (False, True), (True, True)]:
            np.testing.assert_array_equal(flip(flip(self.image, x, y), x, y), self.image)

    def test_median_combine(self) -> None:
        images = [np.full((2, 3), 1.0), np.full((2, 3), 5.0), np.full((2, 3), 3.0)]
        images[1][0, 0] = -4.0
        median = median_combine(images)
        self.assertEqual(median.dtype, np.float32)
        np.testing.assert_array_equal(median, [[1.0, 3.0, 3.0], [3.0, 3.0, 3.0]])
        # Upper of the two middle values.
        np.testing.assert_array_equal(median_combine(images[:2]), [[1.0, 5.0, 5.0], [5.0, 5.0, 5.0]])
        np.testing.assert_array_equal(median_combine(images[2:]), images[2])

    def test_median_combine_errors(self) -> None:
        with self.assertRaises(DegenerateDataError):
            median_combine([])
        with self.assertRaises(UnsupportedShapeError):
            median_combine([np.zeros((2, 3)), np.zeros((3, 2))])


class SignTestCase(unittest.TestCase):
    """Tests for reinterpret_sign."""

    def test_16_bit(self) -> None:
        signed = np.array([-32768, -1, 0, 1, 32767], dtype=">i2")
        unsigned = reinterpret_sign(signed, unsigned=True)
        self.assertEqual(unsigned.dtype, np.dtype(np.uint16))
        np.testing.assert_array_equal(unsigned, [32768, 65535, 0, 1, 32767])
        np.testing.assert_array_equal(reinterpret_sign(unsigned, unsigned=False), signed)
        np.testing.assert_array_equal(reinterpret_sign(unsigned, unsigned=True), unsigned)
        unsigned[0] = 7
        self.assertEqual(signed[0], -32768)

    def test_not_integer(self) -> None:
        with self.assertRaises(UnsupportedShapeError):
            reinterpret_sign(np.zeros(3, dtype=np.float32), unsigned=True)


class ByteScalingTestCase(unittest.TestCase):
    """Tests for the 8-bit scaling pipeline."""

    def test_rescale_to_full_range(self) -> None:
        np.testing.assert_array_equal(rescale_to_full_range([[10, 20, 30]]), [[0.0, FULL_RANGE / 2, FULL_RANGE]])
        np.testing.assert_array_equal(rescale_to_full_range(np.full((2, 2), 9)), np.zeros((2, 2)))

    def test_percentile_limits(self) -> None:
        image = np.arange(100, dtype=np.float64).reshape(10, 10)
        self.assertEqual(percentile_limits(image, 0.0, 100.0), (0.0, 100.0))
        self.assertEqual(percentile_limits(image, 10.0, 90.0), (10.0, 90.0))
        self.assertEqual(percentile_limits(image + 0.5, 25.0, 75.0), (25.0, 75.0))

    def test_percentile_limits_full_range(self) -> None:
        image = rescale_to_full_range(np.array([0.0, 1.0]))
        # Values equal to FULL_RANGE share the last bin.
        self.assertEqual(percentile_limits(image, 50.0, 100.0), (1.0, float(FULL_RANGE)))
        with self.assertRaises(DegenerateDataError):
            percentile_limits(np.array([]), 0.0, 100.0)

    def test_scale_to_bytes(self) -> None:
        scaled = scale_to_bytes(np.array([[0.0, 50.0, 100.0, 150.0, 200.0]]), 50.0, 150.0)
        self.assertEqual(scaled.dtype, np.uint8)
        np.testing.assert_array_equal(scaled, [[0, 0, 127, 255, 255]])
        with self.assertRaises(DegenerateDataError):
            scale_to_bytes(np.zeros(3), 5.0, 5.0)


class TargaTestCase(unittest.TestCase):
    """Tests for write_greyscale_targa."""

    def setUp(self) -> None:
        self.tmpdir = self.enterContext(tempfile.TemporaryDirectory())

    def test_write(self) -> None:
        pixels = np.arange(12, dtype=np.uint8).reshape(3, 4) * 20
        filename = os.path.join(self.tmpdir, "picture.tga")
        write_greyscale_targa(filename, pixels)
        with PILImage.open(filename) as picture:
            self.assertEqual(picture.format, "TGA")
            self.assertEqual(picture.mode, "L")
            self.assertEqual(picture.size, (4, 3))
            np.testing.assert_array_equal(np.asarray(picture), pixels[::-1, :])

    def test_bad_input(self) -> None:
        filename = os.path.join(self.tmpdir, "picture.tga")
        with self.assertRaises(UnsupportedShapeError):
            write_greyscale_targa(filename, np.zeros((2, 2), dtype=np.uint16))
        with self.assertRaises(UnsupportedShapeError):
            write_greyscale_targa(filename, np.zeros(4, dtype=np.uint8))


if __name__ == "__main__":
    unittest.main()
