# This file is part of ccd-misc.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Utilities for inspecting and editing the primary image of FITS files.

The package is organized around `FitsImageFile`, a scoped handle on a FITS
file's primary HDU that provides typed keyword access, card deletion sweeps,
and pixel reads and writes with ``BZERO``/``BSCALE`` applied.  Pure pixel
transformations live in `ccdmisc.processing`, and the command-line tools that
combine the two live in `ccdmisc.cli`.
"""

from ._errors import *
from ._dtypes import *
from ._geom import *
from ._image import *
from ._header import *
from .fits import *
