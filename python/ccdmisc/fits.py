# This file is part of ccd-misc.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Access to the primary image of a FITS file.

Everything the command-line tools do to a file goes through `FitsImageFile`:
opening and closing, validating that the primary HDU is a simple 2-d image,
typed keyword access, card deletion sweeps, and reading or writing flat
ranges of pixels with ``BZERO``/``BSCALE`` applied.

Files are read with ``do_not_scale_image_data=True`` so that astropy hands
back the physical (stored) values; the conversion to and from the logical
values a caller asks for is done here, following the usual FITS reader
conventions:

- logical = physical * BSCALE + BZERO;
- integer results are truncated toward zero when read and rounded to the
  nearest integer when written;
- a value that does not fit in the destination type is an error rather than
  being wrapped or clipped.
"""

from __future__ import annotations

__all__ = (
    "FitsImageFile",
    "OpenMode",
)

import enum
import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from logging import getLogger
from typing import Self

import astropy.io.fits
import numpy as np
import numpy.typing as npt

from ._dtypes import PixelType, allocate_pixels
from ._errors import (
    KeywordNotFoundError,
    MissingKeywordError,
    OpenError,
    ReadError,
    UnsupportedShapeError,
    WriteError,
)
from ._header import (
    CARD_LENGTH,
    KeywordType,
    KeywordValue,
    check_end_card,
    coerce_value,
    is_blank_card,
    make_fixed_card,
    purge_cards,
    strip_structural_cards,
)
from ._image import ImageDescriptor

_LOG = getLogger(__name__)


class OpenMode(enum.StrEnum):
    """Ways a FITS file can be opened."""

    READONLY = "readonly"
    """Open an existing file for reading only."""

    READWRITE = "readwrite"
    """Open an existing file; changes are written back on close."""

    CREATE = "create"
    """Create a new file, which must not already exist."""


def _convert(
    values: np.ndarray,
    pixel_type: PixelType,
    error: type[ReadError] | type[WriteError],
    rounding: Callable[[np.ndarray], np.ndarray],
) -> np.ndarray:
    """Convert an array to ``pixel_type``, raising ``error`` instead of
    silently wrapping out-of-range integers.
    """
    if pixel_type.is_integer:
        if values.dtype.kind == "f":
            if not np.all(np.isfinite(values)):
                raise error(f"Non-finite value cannot be converted to {pixel_type}.")
            values = rounding(values)
        lo, hi = pixel_type.limits
        # Python scalars compare ints and floats exactly.
        if values.size and (values.min().item() < lo or values.max().item() > hi):
            raise error(
                f"Value range [{values.min()}, {values.max()}] overflows {pixel_type} "
                f"(limits [{lo}, {hi}])."
            )
    return values.astype(pixel_type.to_numpy())


_INT64 = np.iinfo(np.int64)


def _can_offset_exactly(descriptor: ImageDescriptor, physical: np.dtype) -> bool:
    return (
        physical.kind in "iu"
        and descriptor.bscale == 1.0
        and float(descriptor.bzero).is_integer()
        and _INT64.min <= int(descriptor.bzero) <= _INT64.max
    )


def _offset(
    values: np.ndarray, offset: int, error: type[ReadError] | type[WriteError]
) -> np.ndarray:
    """Add an integer offset in 64-bit integer arithmetic, raising ``error``
    if the result would wrap.
    """
    values = values.astype(np.int64)
    if values.size and (
        values.min().item() + offset < _INT64.min or values.max().item() + offset > _INT64.max
    ):
        raise error(f"Offset {offset} overflows 64-bit integer arithmetic.")
    return values + offset


def _to_logical(raw: np.ndarray, descriptor: ImageDescriptor, pixel_type: PixelType) -> np.ndarray:
    if pixel_type.is_integer and _can_offset_exactly(descriptor, raw.dtype):
        values = _offset(raw, int(descriptor.bzero), ReadError)
    else:
        values = raw.astype(np.float64) * descriptor.bscale + descriptor.bzero
    return _convert(values, pixel_type, ReadError, np.trunc)


def _to_physical(values: np.ndarray, descriptor: ImageDescriptor, pixel_type: PixelType) -> np.ndarray:
    logical = _convert(values, pixel_type, WriteError, np.rint)
    physical = descriptor.physical_type
    if logical.dtype.kind in "iu" and _can_offset_exactly(descriptor, np.dtype(physical.to_numpy())):
        stored = _offset(logical, -int(descriptor.bzero), WriteError)
    else:
        stored = (logical.astype(np.float64) - descriptor.bzero) / descriptor.bscale
    return _convert(stored, physical, WriteError, np.rint)


class FitsImageFile:
    """An open FITS file whose primary HDU holds (or will hold) a 2-d image.

    Instances should only be obtained from the `open` context manager, which
    guarantees that they are closed.

    Parameters
    ----------
    path
        Name of the file.
    mode
        How the file was opened.
    hdu_list
        The file's HDUs.  For `OpenMode.READONLY` this is still attached to
        the file; for the other modes it is entirely in memory.
    """

    def __init__(self, path: str, mode: OpenMode, hdu_list: astropy.io.fits.HDUList):
        self._path = path
        self._mode = mode
        self._hdu_list = hdu_list
        self._has_image = mode is not OpenMode.CREATE
        self._dirty = mode is OpenMode.CREATE
        self._closed = False

    @classmethod
    @contextmanager
    def open(cls, path: str | os.PathLike[str], mode: OpenMode = OpenMode.READONLY) -> Iterator[Self]:
        """Open a FITS file.

        Parameters
        ----------
        path
            Name of the file.
        mode, optional
            Whether to open an existing file read-only or for update, or to
            create a new one.

        Returns
        -------
        context
            A context manager that yields the open file and closes it on
            exit.  If the ``with`` block raises, changes made through a
            writable handle are discarded rather than saved.

        Raises
        ------
        OpenError
            Raised if the file is missing, unreadable or not FITS, or (for
            `OpenMode.CREATE`) if it already exists.
        """
        handle = cls._acquire(os.fspath(path), OpenMode(mode))
        try:
            yield handle
        except BaseException:
            handle.close(discard=True)
            raise
        handle.close()

    @classmethod
    def _acquire(cls, path: str, mode: OpenMode) -> Self:
        if mode is OpenMode.CREATE:
            if os.path.exists(path):
                raise OpenError(f"File {path!r} already exists.")
            directory = os.path.dirname(os.path.abspath(path))
            if not os.path.isdir(directory):
                raise OpenError(f"Directory {directory!r} does not exist.")
            _LOG.debug("Creating %s.", path)
            return cls(path, mode, astropy.io.fits.HDUList([astropy.io.fits.PrimaryHDU()]))
        try:
            hdu_list = astropy.io.fits.open(path, mode="readonly", memmap=False, do_not_scale_image_data=True)
        except (OSError, ValueError, astropy.io.fits.VerifyError) as err:
            raise OpenError(f"Could not open {path!r}: {err}") from err
        if not len(hdu_list):
            hdu_list.close()
            raise OpenError(f"File {path!r} has no HDUs.")
        if mode is OpenMode.READWRITE:
            # Everything is read up front so the file can be rewritten in
            # place on close.
            try:
                hdu_list.readall()
                for hdu in hdu_list:
                    hdu.data
            except (OSError, ValueError, TypeError) as err:
                raise ReadError(f"Could not read {path!r}: {err}") from err
            finally:
                hdu_list.close()
            hdu_list = astropy.io.fits.HDUList(list(hdu_list))
        _LOG.debug("Opened %s (%s).", path, mode)
        return cls(path, mode, hdu_list)

    @property
    def path(self) -> str:
        """Name of the file."""
        return self._path

    @property
    def mode(self) -> OpenMode:
        """How the file was opened."""
        return self._mode

    @property
    def header(self) -> astropy.io.fits.Header:
        """The primary header.

        This should be treated as read-only; use the methods of this class to
        modify it so changes are saved.
        """
        return self._primary.header

    @property
    def _primary(self) -> astropy.io.fits.PrimaryHDU:
        if self._closed:
            raise ValueError(f"File {self._path!r} has been closed.")
        return self._hdu_list[0]

    def _require_writable(self) -> None:
        if self._mode is OpenMode.READONLY:
            raise WriteError(f"File {self._path!r} was opened read-only.")
        self._dirty = True

    # Image layout.

    def validate_simple_2d(self, expected_bitpix: int | None = None) -> ImageDescriptor:
        """Check that the primary HDU is a 2-d image.

        Parameters
        ----------
        expected_bitpix, optional
            If not `None`, the ``BITPIX`` value the image must have.

        Returns
        -------
        descriptor
            Layout of the image.

        Raises
        ------
        MissingKeywordError
            Raised if a structural keyword is absent.
        UnsupportedShapeError
            Raised if ``NAXIS`` is not 2 or ``BITPIX`` is not as expected.
        """
        return ImageDescriptor.from_header(self.header, expected_bitpix)

    def get_dimensions(self) -> tuple[int, int]:
        """Return the ``(width, height)`` of the image from ``NAXIS1`` and
        ``NAXIS2``.
        """
        header = self.header
        try:
            return (header["NAXIS1"], header["NAXIS2"])
        except KeyError as err:
            raise MissingKeywordError(f"{self._path}: {err.args[0]}") from None

    # Keywords.

    def read_keyword(self, name: str, as_type: KeywordType) -> tuple[KeywordValue, str]:
        """Read the value and comment of a keyword.

        Parameters
        ----------
        name
            Keyword name (case-insensitive).  If it is repeated, the first
            card is used.
        as_type
            Type to convert the value to.

        Returns
        -------
        value
            Converted value.
        comment
            Card comment; empty if there is none.

        Raises
        ------
        KeywordNotFoundError
            Raised if there is no such keyword.
        TypeMismatchError
            Raised if the value cannot be converted.
        """
        card = self._find_card(name)
        return coerce_value(card.keyword, card.value, as_type), card.comment

    def read_card(self, name: str) -> str:
        """Return the full 80-column text of a keyword's first card."""
        return self._find_card(name).image

    def _find_card(self, name: str) -> astropy.io.fits.Card:
        try:
            return self.header.cards[name]
        except KeyError:
            raise KeywordNotFoundError(f"Keyword {name} not found in {self._path}.") from None

    def write_keyword(
        self,
        name: str,
        value: KeywordValue,
        comment: str | None = None,
        decimals: int | None = None,
    ) -> None:
        """Update a keyword, or append it if it is not present.

        Parameters
        ----------
        name
            Keyword name.
        value
            New value.
        comment, optional
            New comment; if `None` an existing comment is kept.
        decimals, optional
            If given, write the (floating-point) value in fixed notation with
            this many decimal places.

        Raises
        ------
        WriteError
            Raised if the file is read-only or the card cannot be formed.
        """
        self._require_writable()
        header = self.header
        if comment is None and name in header:
            comment = header.cards[name].comment
        try:
            if decimals is not None:
                card = make_fixed_card(name, float(value), comment, decimals)
            else:
                card = astropy.io.fits.Card(name, value, comment)
        except (ValueError, TypeError) as err:
            raise WriteError(f"Cannot write {name}={value!r}: {err}") from err
        self._replace_or_append(card)

    def write_card(self, card_text: str) -> None:
        """Update or append a card given as its 80-column text."""
        self._require_writable()
        try:
            card = astropy.io.fits.Card.fromstring(card_text)
        except (ValueError, TypeError) as err:
            raise WriteError(f"Invalid card {card_text!r}: {err}") from err
        self._replace_or_append(card)

    def _replace_or_append(self, card: astropy.io.fits.Card) -> None:
        header = self.header
        if card.keyword and card.keyword in header:
            index = header.index(card.keyword)
            del header[index]
            header.insert(index, card)
            _LOG.debug("Updated card %d: %r.", index + 1, card.image.rstrip())
        else:
            header.append(card, useblanks=False, end=True)
            _LOG.debug("Appended card %r.", card.image.rstrip())

    def modify_comment(self, name: str, comment: str) -> None:
        """Replace the comment of a keyword's first card."""
        card = self._find_card(name)
        self._require_writable()
        card.comment = comment

    def delete_keyword(self, name: str) -> bool:
        """Delete the first card with the given keyword.

        Returns
        -------
        deleted
            Whether a card was found; a missing keyword is not an error.
        """
        self._require_writable()
        header = self.header
        if name not in header:
            return False
        index = header.index(name.upper())
        _LOG.info("Deleting card %d: %r.", index + 1, header.cards[index].image.rstrip())
        del header[index]
        return True

    def delete_cards(self, predicate: Callable[[astropy.io.fits.Card], bool]) -> int:
        """Delete every card for which ``predicate`` returns `True`, keeping
        the order of the rest.

        Returns
        -------
        n_deleted
            Number of cards removed.
        """
        self._require_writable()
        n_deleted = purge_cards(self.header, predicate)
        check_end_card(self.header)
        return n_deleted

    def delete_all_keyword(self, name: str) -> int:
        """Delete every card with the given keyword."""
        keyword = name.upper()
        return self.delete_cards(lambda card: card.keyword == keyword)

    def delete_blank_cards(self) -> int:
        """Delete every blank card.

        A card is blank if its whole record is spaces or its keyword field is
        eight spaces.
        """
        return self.delete_cards(is_blank_card)

    def records(self) -> list[str]:
        """Return the header as a list of 80-column records, ending with the
        END card.
        """
        text = self.header.tostring(sep="", endcard=True, padding=False)
        return [text[i : i + CARD_LENGTH] for i in range(0, len(text), CARD_LENGTH)]

    # Whole-HDU construction.

    def _install(self, header: astropy.io.fits.Header, raw: np.ndarray | None) -> astropy.io.fits.Header:
        """Replace the primary HDU with one holding ``raw`` and the
        non-structural cards of ``header``, in order.
        """
        body = header.copy()
        strip_structural_cards(body)
        hdu = astropy.io.fits.PrimaryHDU(data=raw)
        hdu.header.extend(body, strip=False, useblanks=False, end=True)
        self._hdu_list[0] = hdu
        self._has_image = raw is not None
        return hdu.header

    def copy_header(self, src: FitsImageFile) -> None:
        """Copy every card of another file's primary header into this one.

        The image of this file is replaced by a zero-filled one with the same
        layout as ``src``'s, so structural keywords stay consistent.

        Raises
        ------
        WriteError
            Raised if this file is read-only.
        UnsupportedShapeError
            Raised if ``src`` is not a 2-d image.
        """
        self._require_writable()
        descriptor = src.validate_simple_2d()
        raw = allocate_pixels(descriptor.physical_type, descriptor.size).reshape(descriptor.shape)
        self._install(src.header, raw)
        _LOG.debug("Copied %d cards from %s to %s.", len(src.header), src.path, self._path)

    def create_image(self, pixel_type: PixelType, width: int, height: int) -> ImageDescriptor:
        """Initialize a zero-filled image for values of ``pixel_type``.

        Non-structural cards already in the header are kept.  ``BZERO`` and
        ``BSCALE`` are always rewritten: set to the unsigned offset and one
        (in fixed notation) for pseudo-unsigned types, and removed otherwise.

        Returns
        -------
        descriptor
            Layout of the new image.
        """
        self._require_writable()
        descriptor = ImageDescriptor.for_pixel_type(pixel_type, width, height)
        header = self.header.copy()
        for key in ("BZERO", "BSCALE"):
            header.remove(key, ignore_missing=True, remove_all=True)
        raw = allocate_pixels(pixel_type.physical, descriptor.size).reshape(descriptor.shape)
        header = self._install(header, raw)
        if offset := pixel_type.unsigned_offset:
            anchor = "EXTEND" if "EXTEND" in header else "NAXIS2"
            header.insert(anchor, make_fixed_card("BSCALE", 1.0, "default scaling factor"), after=True)
            header.insert(
                anchor, make_fixed_card("BZERO", offset, "offset data range to that of unsigned"), after=True
            )
        _LOG.debug("Created %dx%d %s image in %s.", width, height, pixel_type, self._path)
        return descriptor

    # Pixels.

    def _raw_flat(self, error: type[ReadError] | type[WriteError]) -> tuple[ImageDescriptor, np.ndarray]:
        if not self._has_image:
            raise error(f"No image has been created in {self._path}.")
        descriptor = self.validate_simple_2d()
        try:
            data = self._primary.data
        except (OSError, ValueError, TypeError) as err:
            raise error(f"Could not load pixel data from {self._path}: {err}") from err
        if data is None or data.size < descriptor.size:
            raise error(
                f"Pixel data in {self._path} is shorter than its declared "
                f"{descriptor.width}x{descriptor.height}."
            )
        return descriptor, data.reshape(-1)

    @staticmethod
    def _check_range(
        descriptor: ImageDescriptor, offset: int, count: int, error: type[ReadError] | type[WriteError]
    ) -> slice:
        if offset < 1 or count < 0 or offset - 1 + count > descriptor.size:
            raise error(
                f"Pixel range [{offset}, {offset + count}) is outside the image's {descriptor.size} pixels."
            )
        return slice(offset - 1, offset - 1 + count)

    def read_pixels(self, pixel_type: PixelType, offset: int, count: int) -> np.ndarray:
        """Read a range of pixels from the flattened (row-major) image.

        Parameters
        ----------
        pixel_type
            Logical type of the returned values.
        offset
            1-based index of the first pixel.
        count
            Number of pixels.

        Returns
        -------
        buffer
            New 1-d array of ``count`` values owned by the caller.

        Raises
        ------
        ReadError
            Raised if the range is outside the image, the stored data is
            too short, or a value does not fit in ``pixel_type``.
        """
        descriptor, flat = self._raw_flat(ReadError)
        return _to_logical(flat[self._check_range(descriptor, offset, count, ReadError)], descriptor, pixel_type)

    def write_pixels(self, pixel_type: PixelType, offset: int, buffer: npt.ArrayLike) -> None:
        """Write a range of pixels into the flattened (row-major) image.

        Parameters
        ----------
        pixel_type
            Logical type of the values in ``buffer``.
        offset
            1-based index of the first pixel.
        buffer
            Values to write.

        Raises
        ------
        WriteError
            Raised if the file is read-only, the range is outside the image,
            or a value does not fit the declared or stored type.
        """
        self._require_writable()
        descriptor, flat = self._raw_flat(WriteError)
        values = np.asarray(buffer).reshape(-1)
        target = self._check_range(descriptor, offset, values.size, WriteError)
        flat[target] = _to_physical(values, descriptor, pixel_type)

    def read_row(self, pixel_type: PixelType, row: int) -> np.ndarray:
        """Read one row (0-based) of the image."""
        width = self.validate_simple_2d().width
        return self.read_pixels(pixel_type, row * width + 1, width)

    def write_row(self, pixel_type: PixelType, row: int, buffer: npt.ArrayLike) -> None:
        """Write one row (0-based) of the image."""
        width = self.validate_simple_2d().width
        values = np.asarray(buffer)
        if values.size != width:
            raise WriteError(f"Row buffer has {values.size} values; the image is {width} pixels wide.")
        self.write_pixels(pixel_type, row * width + 1, values)

    def read_image(self, pixel_type: PixelType) -> np.ndarray:
        """Read the whole image as a ``(height, width)`` array."""
        descriptor = self.validate_simple_2d()
        return self.read_pixels(pixel_type, 1, descriptor.size).reshape(descriptor.shape)

    def write_image(self, pixel_type: PixelType, array: npt.ArrayLike) -> None:
        """Write the whole image from a ``(height, width)`` array."""
        values = np.asarray(array)
        descriptor = self.validate_simple_2d()
        if values.shape != descriptor.shape:
            raise UnsupportedShapeError(
                f"Array has shape {values.shape}; the image has shape {descriptor.shape}."
            )
        self.write_pixels(pixel_type, 1, values)

    # Lifecycle.

    def close(self, discard: bool = False) -> None:
        """Save any changes and release the file.

        Parameters
        ----------
        discard, optional
            If `True`, release the file without saving changes.

        Raises
        ------
        WriteError
            Raised if the file cannot be written.

        Notes
        -----
        Closing an already-closed file does nothing.
        """
        if self._closed:
            return
        try:
            if self._dirty and not discard:
                check_end_card(self.header)
                try:
                    self._hdu_list.writeto(
                        self._path, overwrite=self._mode is OpenMode.READWRITE, output_verify="ignore"
                    )
                except (OSError, ValueError, TypeError) as err:
                    raise WriteError(f"Could not write {self._path!r}: {err}") from err
                _LOG.debug("Wrote %s.", self._path)
        finally:
            self._closed = True
            if self._mode is OpenMode.READONLY:
                self._hdu_list.close()
            _LOG.debug("Closed %s.", self._path)
