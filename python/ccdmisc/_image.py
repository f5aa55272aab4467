# This file is part of ccd-misc.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

__all__ = ("ImageDescriptor",)

from typing import Any

import astropy.io.fits
import pydantic

from ._dtypes import Bitpix, PixelType
from ._errors import MissingKeywordError, UnsupportedShapeError


def _require(header: astropy.io.fits.Header, key: str) -> Any:
    try:
        return header[key]
    except KeyError:
        raise MissingKeywordError(f"Required keyword {key} is missing from the header.") from None


class ImageDescriptor(pydantic.BaseModel):
    """Pydantic model describing the layout of a 2-d scalar FITS image, as
    derived from its primary header.
    """

    model_config = pydantic.ConfigDict(frozen=True)

    bitpix: Bitpix
    """FITS physical storage type."""

    width: int = pydantic.Field(gt=0)
    """Number of columns (``NAXIS1``)."""

    height: int = pydantic.Field(gt=0)
    """Number of rows (``NAXIS2``)."""

    bzero: float = 0.0
    """Offset added to stored values (``BZERO``)."""

    bscale: float = 1.0
    """Factor applied to stored values (``BSCALE``)."""

    @classmethod
    def from_header(cls, header: astropy.io.fits.Header, expected_bitpix: int | None = None) -> ImageDescriptor:
        """Construct a descriptor from a primary header, checking that it
        describes a simple 2-d image.

        Parameters
        ----------
        header
            Primary header to inspect.
        expected_bitpix, optional
            If not `None`, the ``BITPIX`` value the image is required to have.

        Returns
        -------
        descriptor
            Validated image descriptor.

        Raises
        ------
        MissingKeywordError
            Raised if ``BITPIX``, ``NAXIS``, ``NAXIS1`` or ``NAXIS2`` is
            missing.
        UnsupportedShapeError
            Raised if ``NAXIS`` is not 2, if ``BITPIX`` is invalid, or if it
            does not match ``expected_bitpix``.
        """
        bitpix = _require(header, "BITPIX")
        naxis = _require(header, "NAXIS")
        if naxis != 2:
            raise UnsupportedShapeError(f"Image has NAXIS={naxis}; only 2-d images are supported.")
        if expected_bitpix is not None and bitpix != expected_bitpix:
            raise UnsupportedShapeError(f"Image has BITPIX={bitpix}; expected BITPIX={expected_bitpix}.")
        try:
            return cls(
                bitpix=bitpix,
                width=_require(header, "NAXIS1"),
                height=_require(header, "NAXIS2"),
                bzero=header.get("BZERO", 0.0),
                bscale=header.get("BSCALE", 1.0),
            )
        except pydantic.ValidationError as err:
            raise UnsupportedShapeError(f"Header does not describe a valid image: {err}") from err

    @classmethod
    def for_pixel_type(cls, pixel_type: PixelType, width: int, height: int) -> ImageDescriptor:
        """Construct the descriptor of a new image that stores ``pixel_type``
        values.
        """
        try:
            return cls(
                bitpix=pixel_type.bitpix,
                width=width,
                height=height,
                bzero=float(pixel_type.unsigned_offset),
            )
        except pydantic.ValidationError as err:
            raise UnsupportedShapeError(f"Invalid image dimensions {width}x{height}.") from err

    @property
    def pixel_type(self) -> PixelType:
        """The natural logical type of the image's pixels."""
        return PixelType.from_bitpix(self.bitpix, self.bzero, self.bscale)

    @property
    def physical_type(self) -> PixelType:
        """The type of the raw stored values."""
        return PixelType.from_bitpix(self.bitpix)

    @property
    def size(self) -> int:
        """Total number of pixels."""
        return self.width * self.height

    @property
    def shape(self) -> tuple[int, int]:
        """Numpy shape of the image, ``(height, width)``."""
        return (self.height, self.width)

    @property
    def is_scaled(self) -> bool:
        """Whether ``BZERO`` or ``BSCALE`` change stored values."""
        return self.bzero != 0.0 or self.bscale != 1.0
