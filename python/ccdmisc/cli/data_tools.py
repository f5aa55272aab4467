# This file is part of ccd-misc.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Tools that read, transform, or write pixel data."""

from __future__ import annotations

__all__ = (
    "create_blank",
    "flip",
    "get_data",
    "get_mean",
    "median",
    "normalise",
    "signed_to_unsigned",
    "sub",
    "sub_image",
    "sub_value",
    "to_targa",
)

from logging import getLogger

import click
import numpy as np

from .. import processing
from .._dtypes import PixelType
from .._errors import (
    AllocationError,
    ArgumentError,
    DegenerateDataError,
    FitsToolError,
    MissingKeywordError,
    OpenError,
    ReadError,
    UnsupportedShapeError,
    WriteError,
)
from .._geom import Box
from .._header import KeywordType
from .._targa import write_greyscale_targa
from ..fits import FitsImageFile, OpenMode
from ._common import fits_tool

_LOG = getLogger(__name__)

_INPUT = click.Path(dir_okay=False)
_OUTPUT = click.Path(dir_okay=False)


def _log_clamping(result: processing.ClampResult, first_row: int = 0) -> None:
    for x, y, unclamped in result.events():
        kind = "Underflow" if unclamped < 0 else "Overflow"
        _LOG.info("%s at (%d,%d) from %d.", kind, x, first_row + y, unclamped)


def _echo_clamp_summary(n_underflow: int, n_overflow: int) -> None:
    if n_underflow or n_overflow:
        click.echo(f"Clamped {n_underflow} underflow(s) and {n_overflow} overflow(s).", err=True)


@fits_tool(
    "fits_get_data",
    exit_codes={
        ArgumentError: 1,
        OpenError: 2,
        MissingKeywordError: 3,
        UnsupportedShapeError: 4,
        AllocationError: 9,
        ReadError: 10,
        FitsToolError: 11,
    },
)
@click.argument("filename", type=_INPUT)
def get_data(filename: str) -> None:
    """Print the pixel values of the 16-bit image in FILENAME.

    The first line is ``width,height``; each following line holds one row
    of unsigned 16-bit values, each followed by a comma.
    """
    with FitsImageFile.open(filename) as fits_file:
        descriptor = fits_file.validate_simple_2d(expected_bitpix=16)
        image = fits_file.read_image(PixelType.uint16)
    click.echo(f"{descriptor.width},{descriptor.height}")
    for row in image:
        click.echo("".join(f"{value}," for value in row.tolist()))


@fits_tool(
    "fits_get_mean",
    exit_codes={
        ArgumentError: 1,
        OpenError: 2,
        MissingKeywordError: 3,
        UnsupportedShapeError: 3,
        DegenerateDataError: 4,
        FitsToolError: 3,
    },
)
@click.option(
    "-prescan",
    "--prescan",
    type=click.IntRange(min=0),
    default=None,
    help="Leading columns to ignore [default: the PRESCAN keyword].",
)
@click.option(
    "-postscan",
    "--postscan",
    type=click.IntRange(min=0),
    default=None,
    help="Trailing columns to ignore [default: the POSTSCAN keyword].",
)
@click.argument("filename", type=_INPUT)
def get_mean(filename: str, prescan: int | None, postscan: int | None) -> None:
    """Print the mean pixel value of FILENAME, excluding the bias strips.

    The prescan and postscan column counts are read from the PRESCAN and
    POSTSCAN header keywords unless given as options.
    """
    with FitsImageFile.open(filename) as fits_file:
        fits_file.validate_simple_2d()
        counts: dict[str, int] = {}
        for name, given in (("PRESCAN", prescan), ("POSTSCAN", postscan)):
            if given is not None:
                counts[name] = given
                continue
            if name not in fits_file.header:
                raise MissingKeywordError(f"Keyword {name} not found in {filename}; pass -{name.lower()}.")
            value, _ = fits_file.read_keyword(name, KeywordType.INT)
            counts[name] = int(value)
        image = fits_file.read_image(PixelType.float64)
    mean = processing.mean_excluding_borders(image, counts["PRESCAN"], counts["POSTSCAN"])
    click.echo(f"{mean:.2f}")


@fits_tool(
    "fits_sub_value",
    exit_codes={
        ArgumentError: 1,
        OpenError: 2,
        MissingKeywordError: 4,
        UnsupportedShapeError: 4,
        AllocationError: 5,
        ReadError: 7,
        WriteError: 9,
        FitsToolError: 11,
    },
)
@click.argument("filename", type=_INPUT)
@click.argument("value", type=int)
def sub_value(filename: str, value: int) -> None:
    """Subtract VALUE from every pixel of FILENAME in place.

    Results are clamped to the unsigned 16-bit range; the number of clamped
    pixels is reported on standard error (run with ``--log-level INFO`` to
    see each one).

    Images not already stored as unsigned 16-bit are rewritten with
    ``BZERO = 32768``.
    """
    n_underflow = n_overflow = 0
    with FitsImageFile.open(filename, OpenMode.READWRITE) as fits_file:
        descriptor = fits_file.validate_simple_2d()
        image = None
        if descriptor.pixel_type is not PixelType.uint16:
            # Results are unsigned 16-bit; re-store the image with BZERO=32768.
            image = fits_file.read_image(PixelType.int64)
            fits_file.create_image(PixelType.uint16, descriptor.width, descriptor.height)
        for row in range(descriptor.height):
            pixels = image[row] if image is not None else fits_file.read_row(PixelType.int64, row)
            result = processing.subtract_clamped(pixels, value)
            _log_clamping(result, first_row=row)
            n_underflow += result.n_underflow
            n_overflow += result.n_overflow
            fits_file.write_row(PixelType.uint16, row, result.values)
    _echo_clamp_summary(n_underflow, n_overflow)


@fits_tool(
    "fits_sub",
    exit_codes={
        ArgumentError: 1,
        OpenError: 2,
        MissingKeywordError: 4,
        UnsupportedShapeError: 5,
        AllocationError: 6,
        ReadError: 7,
        WriteError: 9,
        FitsToolError: 11,
    },
)
@click.argument("input_filename", metavar="INPUT", type=_INPUT)
@click.argument("subtract_filename", metavar="SUBTRACT", type=_INPUT)
@click.argument("output_filename", metavar="OUTPUT", type=_OUTPUT)
def sub(input_filename: str, subtract_filename: str, output_filename: str) -> None:
    """Write INPUT minus SUBTRACT to the new file OUTPUT.

    Both images must have the same dimensions.  The output inherits the
    header of INPUT and holds unsigned 16-bit values clamped to
    ``[0, 65535]``.
    """
    with (
        FitsImageFile.open(input_filename) as input_file,
        FitsImageFile.open(subtract_filename) as subtract_file,
    ):
        descriptor = input_file.validate_simple_2d()
        if subtract_file.validate_simple_2d().shape != descriptor.shape:
            raise UnsupportedShapeError(
                f"{subtract_filename} is {subtract_file.get_dimensions()}; "
                f"{input_filename} is {input_file.get_dimensions()}."
            )
        result = processing.subtract_clamped(
            input_file.read_image(PixelType.int64), subtract_file.read_image(PixelType.int64)
        )
        with FitsImageFile.open(output_filename, OpenMode.CREATE) as output_file:
            output_file.copy_header(input_file)
            output_file.create_image(PixelType.uint16, descriptor.width, descriptor.height)
            output_file.write_image(PixelType.uint16, result.values)
    _log_clamping(result)
    _echo_clamp_summary(result.n_underflow, result.n_overflow)


@fits_tool(
    "fits_sub_image",
    exit_codes={
        ArgumentError: 1,
        OpenError: 4,
        MissingKeywordError: 9,
        UnsupportedShapeError: 8,
        AllocationError: 11,
        ReadError: 12,
        WriteError: 16,
        FitsToolError: 16,
    },
)
@click.argument("input_filename", metavar="INPUT", type=_INPUT)
@click.argument("x0", type=int)
@click.argument("y0", type=int)
@click.argument("x1", type=int)
@click.argument("y1", type=int)
@click.argument("output_filename", metavar="OUTPUT", type=_OUTPUT)
def sub_image(input_filename: str, x0: int, y0: int, x1: int, y1: int, output_filename: str) -> None:
    """Copy the region of INPUT with columns [X0, X1) and rows [Y0, Y1)
    (0-based) to the new file OUTPUT as a 64-bit floating-point image.
    """
    try:
        box = Box.from_corners(x0, y0, x1, y1)
    except ValueError as err:
        raise ArgumentError(f"Invalid region: {err}") from None
    with FitsImageFile.open(input_filename) as input_file:
        input_file.validate_simple_2d()
        image = input_file.read_image(PixelType.float64)
    cutout = processing.crop(image, box)
    with FitsImageFile.open(output_filename, OpenMode.CREATE) as output_file:
        output_file.create_image(PixelType.float64, box.x.size, box.y.size)
        output_file.write_image(PixelType.float64, cutout)
    _LOG.info("Wrote %s region of %s to %s.", box, input_filename, output_filename)


@fits_tool(
    "fits16_signed_to_unsigned",
    exit_codes={
        ArgumentError: 1,
        OpenError: 2,
        MissingKeywordError: 4,
        UnsupportedShapeError: 5,
        AllocationError: 7,
        ReadError: 9,
        WriteError: 10,
        FitsToolError: 11,
    },
)
@click.argument("input_filename", metavar="INPUT", type=_INPUT)
@click.argument("output_filename", metavar="OUTPUT", type=_OUTPUT)
def signed_to_unsigned(input_filename: str, output_filename: str) -> None:
    """Reinterpret the signed 16-bit pixels of INPUT as unsigned and write
    them to the new file OUTPUT.

    The bits of each pixel are unchanged; OUTPUT inherits the header of
    INPUT with BZERO set to 32768 and BSCALE to 1.
    """
    with FitsImageFile.open(input_filename) as input_file:
        descriptor = input_file.validate_simple_2d(expected_bitpix=16)
        signed = input_file.read_image(PixelType.int16)
        unsigned = processing.reinterpret_sign(signed, unsigned=True)
        with FitsImageFile.open(output_filename, OpenMode.CREATE) as output_file:
            output_file.copy_header(input_file)
            output_file.create_image(PixelType.uint16, descriptor.width, descriptor.height)
            output_file.write_image(PixelType.uint16, unsigned)
    lo, hi = processing.value_range(signed)
    click.echo(f"Data Range (Signed):{lo} to {hi}")
    lo, hi = processing.value_range(unsigned)
    click.echo(f"Data Range (UnSigned):{lo} to {hi}")


@fits_tool(
    "fits_create_blank",
    exit_codes={ArgumentError: 1, OpenError: 2, UnsupportedShapeError: 1, FitsToolError: 7},
)
@click.option("-c", "-columns", "columns", type=int, required=True, help="Number of columns.")
@click.option("-r", "-rows", "rows", type=int, required=True, help="Number of rows.")
@click.option("-o", "-output", "output_filename", type=_OUTPUT, required=True, help="File to create.")
@click.option("-v", "-value", "value", type=float, default=0.0, show_default=True, help="Pixel value.")
def create_blank(columns: int, rows: int, output_filename: str, value: float) -> None:
    """Create a 32-bit floating-point image with every pixel set to a
    value.
    """
    if columns < 1 or rows < 1:
        raise ArgumentError(f"Image dimensions must be positive; got {columns}x{rows}.")
    with FitsImageFile.open(output_filename, OpenMode.CREATE) as output_file:
        output_file.create_image(PixelType.float32, columns, rows)
        row = np.full(columns, value, dtype=np.float32)
        for y in range(rows):
            output_file.write_row(PixelType.float32, y, row)


@fits_tool(
    "fits_flip",
    exit_codes={
        ArgumentError: 1,
        OpenError: 2,
        MissingKeywordError: 4,
        UnsupportedShapeError: 5,
        AllocationError: 7,
        ReadError: 8,
        WriteError: 9,
        FitsToolError: 11,
    },
)
@click.option("-i", "-input", "input_filename", type=_INPUT, required=True, help="Image to flip.")
@click.option("-o", "-output", "output_filename", type=_OUTPUT, required=True, help="File to create.")
@click.option("-x", "flip_x", is_flag=True, help="Reverse the order of the columns.")
@click.option("-y", "flip_y", is_flag=True, help="Reverse the order of the rows.")
def flip(input_filename: str, output_filename: str, flip_x: bool, flip_y: bool) -> None:
    """Flip the image in INPUT about one or both axes.

    The output inherits the input header and holds unsigned 16-bit values.
    """
    with FitsImageFile.open(input_filename) as input_file:
        descriptor = input_file.validate_simple_2d()
        flipped = processing.flip(input_file.read_image(PixelType.uint16), x=flip_x, y=flip_y)
        with FitsImageFile.open(output_filename, OpenMode.CREATE) as output_file:
            output_file.copy_header(input_file)
            output_file.create_image(PixelType.uint16, descriptor.width, descriptor.height)
            output_file.write_image(PixelType.uint16, flipped)


@fits_tool(
    "fits_normalise",
    exit_codes={
        ArgumentError: 1,
        OpenError: 2,
        UnsupportedShapeError: 3,
        MissingKeywordError: 3,
        ReadError: 3,
        DegenerateDataError: 4,
        WriteError: 5,
        FitsToolError: 6,
    },
)
@click.option("-i", "-input", "input_filename", type=_INPUT, required=True, help="Image to normalise.")
@click.option("-o", "-output", "output_filename", type=_OUTPUT, required=True, help="File to create.")
def normalise(input_filename: str, output_filename: str) -> None:
    """Scale an image so its mean pixel value is one, writing the result as
    a 32-bit floating-point image.
    """
    with FitsImageFile.open(input_filename) as input_file:
        descriptor = input_file.validate_simple_2d()
        image = input_file.read_image(PixelType.float32)
    normalised, mean = processing.normalise(image)
    click.echo(f"Input mean {mean:.2f}")
    with FitsImageFile.open(output_filename, OpenMode.CREATE) as output_file:
        output_file.create_image(PixelType.float32, descriptor.width, descriptor.height)
        output_file.write_image(PixelType.float32, normalised)


@fits_tool(
    "fits_median",
    exit_codes={
        ArgumentError: 1,
        OpenError: 2,
        MissingKeywordError: 3,
        UnsupportedShapeError: 4,
        AllocationError: 5,
        ReadError: 6,
        WriteError: 7,
        FitsToolError: 9,
    },
)
@click.option(
    "-i", "-input", "input_filenames", type=_INPUT, multiple=True, required=True, help="Image to combine."
)
@click.option("-o", "-output", "output_filename", type=_OUTPUT, required=True, help="File to create.")
def median(input_filenames: tuple[str, ...], output_filename: str) -> None:
    """Write the per-pixel median of the input images as a 32-bit
    floating-point image.

    All inputs must have the same dimensions.  With an even number of inputs
    the upper of the two middle values is used.
    """
    images: list[np.ndarray] = []
    for filename in input_filenames:
        with FitsImageFile.open(filename) as input_file:
            input_file.validate_simple_2d()
            images.append(input_file.read_image(PixelType.float32))
    combined = processing.median_combine(images)
    height, width = combined.shape
    with FitsImageFile.open(output_filename, OpenMode.CREATE) as output_file:
        output_file.create_image(PixelType.float32, width, height)
        output_file.write_image(PixelType.float32, combined)


@fits_tool(
    "fits_to_targa",
    exit_codes={
        ArgumentError: 1,
        OpenError: 2,
        MissingKeywordError: 3,
        UnsupportedShapeError: 6,
        AllocationError: 9,
        ReadError: 10,
        DegenerateDataError: 13,
        WriteError: 12,
        FitsToolError: 12,
    },
)
@click.option("-i", "-input", "input_filename", type=_INPUT, required=True, help="Image to convert.")
@click.option("-o", "-output", "output_filename", type=_OUTPUT, required=True, help="Targa file to write.")
@click.option(
    "-p",
    "-percentile_scaling",
    "percentiles",
    type=(float, float),
    default=None,
    help="Map the given lower and upper percentiles to black and white.",
)
@click.option(
    "-v",
    "-value_scaling",
    "values",
    type=(int, int),
    default=None,
    help="Map the given values of the stretched image to black and white.",
)
def to_targa(
    input_filename: str,
    output_filename: str,
    percentiles: tuple[float, float] | None,
    values: tuple[int, int] | None,
) -> None:
    """Convert an image to an 8-bit greyscale Targa file.

    The image is first stretched linearly so its minimum and maximum span
    [0, 65536].  The range of the stretched image that maps to black and
    white is then given by percentiles (-p), by explicit values (-v), or is
    [0, 65535] by default.  Percentile scaling takes precedence.
    """
    if percentiles is not None:
        low, high = percentiles
        if not (0.0 <= low <= high <= 100.0):
            raise ArgumentError(f"Percentile scaling error ({low:.2f},{high:.2f}).")
    if values is not None:
        low, high = values
        if not (0 <= low < high <= processing.UINT16_MAX):
            raise ArgumentError(f"Value scaling error ({low},{high}).")
    with FitsImageFile.open(input_filename) as input_file:
        descriptor = input_file.validate_simple_2d()
        image = input_file.read_image(PixelType.float64)
    stretched = processing.rescale_to_full_range(image)
    if percentiles is not None:
        low, high = processing.percentile_limits(stretched, *percentiles)
    elif values is not None:
        low, high = values
    else:
        low, high = 0.0, float(processing.UINT16_MAX)
    click.echo(
        f"width:{descriptor.width},height:{descriptor.height},min_value:{low:.2f},max_value={high:.2f}"
    )
    write_greyscale_targa(output_filename, processing.scale_to_bytes(stretched, low, high))
