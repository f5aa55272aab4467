# This file is part of ccd-misc.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

__all__ = (
    "AllocationError",
    "ArgumentError",
    "DegenerateDataError",
    "FitsToolError",
    "KeywordNotFoundError",
    "MissingKeywordError",
    "OpenError",
    "ReadError",
    "TypeMismatchError",
    "UnsupportedShapeError",
    "WriteError",
)


class FitsToolError(RuntimeError):
    """Base class for all errors raised by this package."""


class OpenError(FitsToolError):
    """Exception raised when a FITS file cannot be opened or created.

    This covers missing paths, permission problems, files that are not valid
    FITS, and attempts to create a file over an existing one.
    """


class UnsupportedShapeError(FitsToolError):
    """Exception raised when an image is not a 2-d scalar image of the
    expected pixel type, or when a requested region or buffer does not fit
    the image.
    """


class MissingKeywordError(FitsToolError):
    """Exception raised when a structural or tool-required header keyword
    (e.g. ``NAXIS1`` or ``PRESCAN``) is absent.
    """


class KeywordNotFoundError(FitsToolError):
    """Exception raised when a user-requested header keyword is absent."""


class TypeMismatchError(FitsToolError):
    """Exception raised when a header value cannot be coerced to the
    requested keyword type.
    """


class ReadError(FitsToolError):
    """Exception raised when pixel data cannot be read."""


class WriteError(FitsToolError):
    """Exception raised when pixel data or header cards cannot be written."""


class AllocationError(FitsToolError):
    """Exception raised when a pixel buffer cannot be allocated."""


class ArgumentError(FitsToolError):
    """Exception raised for invalid command-line input."""


class DegenerateDataError(FitsToolError):
    """Exception raised when pixel values cannot support a statistic, such as
    normalizing an image whose mean is zero.
    """
