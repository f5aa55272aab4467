# This file is part of ccd-misc.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Pixel transformations used by the command-line tools.

These functions operate on in-memory numpy arrays only; they never touch
files, so they can be tested without any FITS I/O.
"""

from __future__ import annotations

__all__ = (
    "FULL_RANGE",
    "UINT16_MAX",
    "ClampResult",
    "crop",
    "flip",
    "mean_excluding_borders",
    "median_combine",
    "normalise",
    "percentile_limits",
    "reinterpret_sign",
    "rescale_to_full_range",
    "scale_to_bytes",
    "subtract_clamped",
    "value_range",
)

import dataclasses
from collections.abc import Sequence
from logging import getLogger

import numpy as np
import numpy.typing as npt

from ._errors import DegenerateDataError, UnsupportedShapeError
from ._geom import Box, Interval

_LOG = getLogger(__name__)

UINT16_MAX = 65535

FULL_RANGE = 65536
"""Number of histogram bins used when scaling to 8 bits; images are first
stretched to span ``[0, FULL_RANGE]``.
"""


@dataclasses.dataclass(frozen=True)
class ClampResult:
    """Result of `subtract_clamped`."""

    values: np.ndarray
    """Clamped differences, as `numpy.uint16`."""

    difference: np.ndarray
    """Unclamped differences, as `numpy.int64`."""

    underflow: np.ndarray
    """Boolean mask of pixels whose difference was below zero."""

    overflow: np.ndarray
    """Boolean mask of pixels whose difference was above `UINT16_MAX`."""

    @property
    def n_underflow(self) -> int:
        """Number of pixels clamped to zero."""
        return int(np.count_nonzero(self.underflow))

    @property
    def n_overflow(self) -> int:
        """Number of pixels clamped to `UINT16_MAX`."""
        return int(np.count_nonzero(self.overflow))

    def events(self) -> list[tuple[int, int, int]]:
        """Return ``(x, y, unclamped)`` for every clamped pixel, in row-major
        order.

        One-dimensional results are treated as a single row.
        """
        mask = np.atleast_2d(self.underflow | self.overflow)
        difference = np.atleast_2d(self.difference)
        return [(int(x), int(y), int(difference[y, x])) for y, x in zip(*np.nonzero(mask))]


def subtract_clamped(minuend: npt.ArrayLike, subtrahend: npt.ArrayLike) -> ClampResult:
    """Subtract two arrays (or an array and a constant) and clamp the result
    to the unsigned 16-bit range.

    Parameters
    ----------
    minuend
        Values to subtract from.
    subtrahend
        Values to subtract; broadcast against ``minuend``.

    Returns
    -------
    result
        Clamped values plus masks of the pixels that fell outside
        ``[0, 65535]`` before clamping.
    """
    difference = np.asarray(minuend, dtype=np.int64) - np.asarray(subtrahend, dtype=np.int64)
    underflow = difference < 0
    overflow = difference > UINT16_MAX
    values = np.clip(difference, 0, UINT16_MAX).astype(np.uint16)
    return ClampResult(values=values, difference=difference, underflow=underflow, overflow=overflow)


def mean_excluding_borders(image: npt.ArrayLike, prescan: int, postscan: int) -> float:
    """Compute the mean of an image, ignoring columns at both ends of every
    row.

    Parameters
    ----------
    image
        1-d row or 2-d ``(height, width)`` array.
    prescan
        Number of leading columns to ignore.
    postscan
        Number of trailing columns to ignore.

    Returns
    -------
    mean
        Mean over columns ``[prescan, width - postscan)`` of all rows.

    Raises
    ------
    DegenerateDataError
        Raised if no columns remain.
    """
    array = np.atleast_2d(np.asarray(image))
    width = array.shape[-1]
    if prescan < 0 or postscan < 0:
        raise DegenerateDataError(f"Prescan ({prescan}) and postscan ({postscan}) must not be negative.")
    try:
        columns = Interval(prescan, width - postscan)
    except ValueError:
        raise DegenerateDataError(
            f"Prescan ({prescan}) and postscan ({postscan}) leave no columns of a {width}-pixel row."
        ) from None
    region = Box(Interval.from_size(array.shape[0]), columns)
    return float(np.mean(array[region.slice_within(Box.from_shape(array.shape))], dtype=np.float64))


def normalise(image: npt.ArrayLike) -> tuple[np.ndarray, float]:
    """Divide an image by its mean.

    Returns
    -------
    normalised
        ``image / mean`` as `numpy.float32`.
    mean
        Mean of the input image.

    Raises
    ------
    DegenerateDataError
        Raised if the image is empty or its mean is zero.
    """
    array = np.asarray(image, dtype=np.float64)
    if not array.size:
        raise DegenerateDataError("Cannot normalise an empty image.")
    mean = float(np.mean(array))
    if mean == 0.0:
        raise DegenerateDataError("Cannot normalise an image whose mean is zero.")
    return (array / mean).astype(np.float32), mean


def crop(image: np.ndarray, box: Box) -> np.ndarray:
    """Return a copy of the region of ``image`` covered by ``box``.

    Raises
    ------
    UnsupportedShapeError
        Raised if ``box`` is not entirely inside the image.
    """
    bbox = Box.from_shape(image.shape)
    if not bbox.contains(box):
        raise UnsupportedShapeError(f"Region {box} is not contained by the image bounds {bbox}.")
    return image[box.slice_within(bbox)].copy()


def flip(image: np.ndarray, x: bool = False, y: bool = False) -> np.ndarray:
    """Return a copy of ``image`` reversed along its columns (``x``) and/or
    rows (``y``).
    """
    result = image
    if y:
        result = result[::-1, :]
    if x:
        result = result[:, ::-1]
    return np.array(result, copy=True)


def median_combine(images: Sequence[np.ndarray]) -> np.ndarray:
    """Combine images by taking the per-pixel median.

    Parameters
    ----------
    images
        Images with identical shapes.

    Returns
    -------
    median
        `numpy.float32` image.  With an even number of inputs the upper of
        the two middle values is used.

    Raises
    ------
    DegenerateDataError
        Raised if there are no images.
    UnsupportedShapeError
        Raised if the shapes differ.
    """
    if not images:
        raise DegenerateDataError("No images to combine.")
    shape = images[0].shape
    for n, image in enumerate(images):
        if image.shape != shape:
            raise UnsupportedShapeError(f"Image {n} has shape {image.shape}; expected {shape}.")
    stack = np.sort(np.stack(images).astype(np.float32), axis=0)
    return stack[len(images) // 2]


def reinterpret_sign(values: np.ndarray, unsigned: bool) -> np.ndarray:
    """Reinterpret the bits of an integer array as the signed or unsigned
    type of the same width, without changing them.

    Parameters
    ----------
    values
        Integer array.
    unsigned
        Whether the result should be unsigned.

    Returns
    -------
    reinterpreted
        Native-endian array sharing no memory with ``values``.
    """
    if values.dtype.kind not in "iu":
        raise UnsupportedShapeError(f"Cannot reinterpret the sign of {values.dtype} values.")
    target = np.dtype(f"{'u' if unsigned else 'i'}{values.dtype.itemsize}")
    native = values.astype(values.dtype.newbyteorder("="), copy=True)
    return native.view(target)


def value_range(values: npt.ArrayLike) -> tuple[float, float]:
    """Return the minimum and maximum of an array."""
    array = np.asarray(values)
    if not array.size:
        raise DegenerateDataError("Cannot compute the range of an empty array.")
    return (array.min().item(), array.max().item())


def rescale_to_full_range(image: npt.ArrayLike) -> np.ndarray:
    """Linearly stretch an image so its minimum maps to zero and its maximum
    to `FULL_RANGE`.

    A constant image maps to zero everywhere.
    """
    array = np.asarray(image, dtype=np.float64)
    lo, hi = value_range(array)
    if hi == lo:
        return np.zeros_like(array)
    return (array - lo) / (hi - lo) * FULL_RANGE


def percentile_limits(image: npt.ArrayLike, low: float, high: float) -> tuple[float, float]:
    """Find the values below which given percentages of an image's pixels
    lie.

    Parameters
    ----------
    image
        Image already stretched to ``[0, FULL_RANGE]``, e.g. by
        `rescale_to_full_range`.
    low
        Lower percentile, in ``[0, 100]``.
    high
        Upper percentile, in ``[low, 100]``.

    Returns
    -------
    limits
        Smallest integer pixel values ``v`` such that the fraction of pixels
        with integer part below ``v`` reaches ``low`` and ``high`` percent.

    Notes
    -----
    Pixels are binned on their truncated integer values into `FULL_RANGE`
    bins; values at the very top of the range share the last bin.
    """
    array = np.asarray(image, dtype=np.float64).reshape(-1)
    if not array.size:
        raise DegenerateDataError("Cannot compute percentiles of an empty image.")
    bins = np.clip(array.astype(np.int64), 0, FULL_RANGE - 1)
    frequency = np.bincount(bins, minlength=FULL_RANGE)
    # below[i] is the number of pixels in bins [0, i).
    below = np.concatenate([[0], np.cumsum(frequency)]) * 100.0 / array.size

    def first_reaching(percent: float) -> int:
        reached = below[:FULL_RANGE] >= percent
        return int(np.argmax(reached)) if reached.any() else FULL_RANGE

    return (float(first_reaching(low)), float(first_reaching(high)))


def scale_to_bytes(image: npt.ArrayLike, low: float, high: float) -> np.ndarray:
    """Map ``[low, high]`` linearly onto ``[0, 255]``, clipping values outside
    it.

    Raises
    ------
    DegenerateDataError
        Raised if ``high <= low``.
    """
    if high <= low:
        raise DegenerateDataError(f"Scaling range [{low}, {high}] is empty.")
    array = np.clip(np.asarray(image, dtype=np.float64), low, high)
    _LOG.debug("Scaling [%s, %s] to 8 bits.", low, high)
    return ((array - low) / (high - low) * 255.0).astype(np.uint8)
