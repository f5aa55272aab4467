# This file is part of ccd-misc.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

__all__ = (
    "Bitpix",
    "PixelType",
    "allocate_pixels",
)

import enum
from typing import Literal, TypeAlias

import numpy as np
import numpy.typing as npt

from ._errors import AllocationError, UnsupportedShapeError

Bitpix: TypeAlias = Literal[8, 16, 32, 64, -32, -64]

_PHYSICAL_NAMES: dict[int, str] = {
    8: "uint8",
    16: "int16",
    32: "int32",
    64: "int64",
    -32: "float32",
    -64: "float64",
}


class PixelType(enum.StrEnum):
    """Enumeration of the logical pixel types a caller may declare when
    reading or writing image data.

    Notes
    -----
    Each logical type maps to one FITS physical storage type (``BITPIX``).
    The unsigned 16- and 32-bit types have no FITS storage of their own and
    are stored as signed integers offset by ``BZERO`` (see `unsigned_offset`).
    """

    uint8 = enum.auto()
    int16 = enum.auto()
    uint16 = enum.auto()
    int32 = enum.auto()
    uint32 = enum.auto()
    int64 = enum.auto()
    float32 = enum.auto()
    float64 = enum.auto()

    def to_numpy(self) -> type:
        """Convert an enumeration member to the corresponding numpy scalar
        type object.
        """
        return getattr(np, self.value)

    @classmethod
    def from_numpy(cls, dtype: npt.DTypeLike) -> PixelType:
        """Construct an enumeration member from anything that can be coerced
        to `numpy.dtype`.

        Raises
        ------
        UnsupportedShapeError
            Raised if the dtype has no FITS representation.
        """
        name = np.dtype(dtype).name
        try:
            return cls(name)
        except ValueError:
            raise UnsupportedShapeError(f"Pixel type {name!r} cannot be stored in a FITS image.") from None

    @classmethod
    def from_bitpix(cls, bitpix: int, bzero: float = 0.0, bscale: float = 1.0) -> PixelType:
        """Return the natural logical type of an image with the given storage
        type and scaling.

        Parameters
        ----------
        bitpix
            FITS ``BITPIX`` value.
        bzero
            FITS ``BZERO`` value.
        bscale
            FITS ``BSCALE`` value.

        Returns
        -------
        pixel_type
            The matching pseudo-unsigned type when ``bzero`` is the unsigned
            offset and ``bscale`` is one, `float64` for any other non-trivial
            scaling of integer storage, and the physical type otherwise.
        """
        try:
            physical = cls(_PHYSICAL_NAMES[bitpix])
        except KeyError:
            raise UnsupportedShapeError(f"Invalid BITPIX value {bitpix}.") from None
        if bscale == 1.0 and bzero == 0.0:
            return physical
        if physical.is_integer and bscale == 1.0:
            for candidate in (cls.uint16, cls.uint32):
                if candidate.bitpix == bitpix and candidate.unsigned_offset == bzero:
                    return candidate
        return cls.float64 if physical.is_integer else physical

    @property
    def bitpix(self) -> Bitpix:
        """The FITS ``BITPIX`` value used to store this type."""
        match self:
            case PixelType.uint8:
                return 8
            case PixelType.int16 | PixelType.uint16:
                return 16
            case PixelType.int32 | PixelType.uint32:
                return 32
            case PixelType.int64:
                return 64
            case PixelType.float32:
                return -32
            case PixelType.float64:
                return -64
        raise AssertionError(self)

    @property
    def physical(self) -> PixelType:
        """The type of the raw values actually stored in the file."""
        return PixelType(_PHYSICAL_NAMES[self.bitpix])

    @property
    def unsigned_offset(self) -> int:
        """The ``BZERO`` needed to store this type in its physical type, or
        zero if no offset is needed.
        """
        match self:
            case PixelType.uint16:
                return 1 << 15
            case PixelType.uint32:
                return 1 << 31
        return 0

    @property
    def is_integer(self) -> bool:
        """Whether this is an integer type."""
        return np.dtype(self.to_numpy()).kind in "iu"

    @property
    def limits(self) -> tuple[float, float]:
        """Minimum and maximum representable values."""
        dtype = np.dtype(self.to_numpy())
        if self.is_integer:
            info = np.iinfo(dtype)
            return (info.min, info.max)
        finfo = np.finfo(dtype)
        return (float(finfo.min), float(finfo.max))


def allocate_pixels(pixel_type: PixelType, count: int) -> np.ndarray:
    """Allocate a zero-filled flat pixel buffer.

    Parameters
    ----------
    pixel_type
        Logical type of the buffer's values.
    count
        Number of samples.

    Returns
    -------
    buffer
        New 1-d array owned by the caller.

    Raises
    ------
    AllocationError
        Raised if the count is negative or memory cannot be obtained.
    """
    if count < 0:
        raise AllocationError(f"Cannot allocate a buffer of {count} pixels.")
    try:
        return np.zeros(count, dtype=pixel_type.to_numpy())
    except MemoryError as err:
        raise AllocationError(f"Failed to allocate {count} {pixel_type} pixels.") from err
