# This file is part of ccd-misc.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

__all__ = ("write_greyscale_targa",)

import os
from logging import getLogger

import numpy as np
from PIL import Image as PILImage

from ._errors import UnsupportedShapeError, WriteError

_LOG = getLogger(__name__)


def write_greyscale_targa(path: str | os.PathLike[str], pixels: np.ndarray) -> None:
    """Write an 8-bit greyscale Targa file.

    Parameters
    ----------
    path
        Name of the file to write.
    pixels
        ``(height, width)`` `numpy.uint8` array in FITS row order; row zero
        ends up at the bottom of the picture.

    Raises
    ------
    WriteError
        Raised if the file cannot be written.
    """
    if pixels.ndim != 2 or pixels.dtype != np.uint8:
        raise UnsupportedShapeError(f"Expected a 2-d uint8 array; got {pixels.ndim}-d {pixels.dtype}.")
    # PIL rows run top to bottom.
    picture = PILImage.fromarray(np.ascontiguousarray(pixels[::-1, :]))
    try:
        picture.save(path, format="TGA")
    except (OSError, ValueError) as err:
        raise WriteError(f"Could not write {os.fspath(path)!r}: {err}") from err
    _LOG.debug("Wrote %dx%d Targa image %s.", pixels.shape[1], pixels.shape[0], path)
