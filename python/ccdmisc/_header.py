# This file is part of ccd-misc.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Helpers for typed header keyword values and card-level header edits."""

from __future__ import annotations

__all__ = (
    "CARD_LENGTH",
    "KeywordType",
    "KeywordValue",
    "check_end_card",
    "coerce_value",
    "is_blank_card",
    "make_fixed_card",
    "parse_boolean",
    "parse_value",
    "purge_cards",
    "strip_structural_cards",
)

import enum
from collections.abc import Callable
from logging import getLogger
from typing import TypeAlias

import astropy.io.fits

from ._errors import TypeMismatchError, WriteError

_LOG = getLogger(__name__)

CARD_LENGTH = 80

KeywordValue: TypeAlias = str | bool | int | float

_TRUE_STRINGS = frozenset({"TRUE", "True", "true", "T"})
_FALSE_STRINGS = frozenset({"FALSE", "False", "false", "F"})

_STRUCTURAL_KEYWORDS = frozenset(
    {"SIMPLE", "XTENSION", "BITPIX", "NAXIS", "EXTEND", "PCOUNT", "GCOUNT", "GROUPS", "CHECKSUM", "DATASUM"}
)


class KeywordType(enum.StrEnum):
    """Types a header keyword value can be read or written as."""

    STRING = "STRING"
    BOOLEAN = "BOOLEAN"
    INT = "INT"
    DOUBLE = "DOUBLE"
    FIXDOUBLE = "FIXDOUBLE"
    """A floating-point value written in fixed notation with six decimal
    places and no exponent.
    """


def parse_boolean(text: str) -> bool:
    """Parse a command-line boolean.

    Parameters
    ----------
    text
        One of ``TRUE``, ``True``, ``true``, ``T`` or ``FALSE``, ``False``,
        ``false``, ``F``.

    Raises
    ------
    TypeMismatchError
        Raised for any other string.
    """
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise TypeMismatchError(f"Illegal boolean value {text!r}.")


def parse_value(text: str, kw_type: KeywordType) -> KeywordValue:
    """Convert a command-line string to a value of the given keyword type.

    Raises
    ------
    TypeMismatchError
        Raised if ``text`` does not represent a value of the type.
    """
    match kw_type:
        case KeywordType.STRING:
            return text
        case KeywordType.BOOLEAN:
            return parse_boolean(text)
        case KeywordType.INT:
            try:
                return int(text)
            except ValueError:
                raise TypeMismatchError(f"Illegal integer value {text!r}.") from None
        case KeywordType.DOUBLE | KeywordType.FIXDOUBLE:
            try:
                return float(text)
            except ValueError:
                raise TypeMismatchError(f"Illegal floating-point value {text!r}.") from None
    raise AssertionError(kw_type)


def coerce_value(name: str, value: object, kw_type: KeywordType) -> KeywordValue:
    """Convert a value read from a header card to the given keyword type.

    Parameters
    ----------
    name
        Keyword name, for error messages.
    value
        Value as parsed by `astropy.io.fits`.
    kw_type
        Requested type.

    Returns
    -------
    value
        Converted value.  Floating-point values read as `KeywordType.INT`
        are truncated toward zero.

    Raises
    ------
    TypeMismatchError
        Raised if the value cannot be represented as ``kw_type``; undefined
        values never can.
    """
    if isinstance(value, astropy.io.fits.card.Undefined) or isinstance(value, complex):
        raise TypeMismatchError(f"Keyword {name} has no value that can be read as {kw_type}.")
    match kw_type:
        case KeywordType.STRING:
            if isinstance(value, bool):
                return "T" if value else "F"
            return str(value)
        case KeywordType.BOOLEAN:
            if isinstance(value, bool):
                return value
        case KeywordType.INT:
            if isinstance(value, int) and not isinstance(value, bool):
                return value
            if isinstance(value, float):
                return int(value)
        case KeywordType.DOUBLE | KeywordType.FIXDOUBLE:
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return float(value)
    raise TypeMismatchError(f"Value {value!r} of keyword {name} cannot be read as {kw_type}.")


def make_fixed_card(
    name: str, value: float, comment: str | None = None, decimals: int = 6
) -> astropy.io.fits.Card:
    """Make a card holding a floating-point value in fixed notation.

    Parameters
    ----------
    name
        Keyword; at most 8 characters.
    value
        Value to write.
    comment, optional
        Card comment.
    decimals, optional
        Number of digits after the decimal point.

    Returns
    -------
    card
        New card whose image will be written verbatim.

    Raises
    ------
    WriteError
        Raised if the keyword is too long or the card would not fit in a
        single 80-character record.
    """
    name = name.upper()
    if len(name) > 8:
        raise WriteError(f"Keyword {name!r} is too long for a fixed-notation card.")
    image = f"{name:<8}= {value:>20.{decimals}f}"
    if comment:
        image = f"{image} / {comment}"
    if len(image) > CARD_LENGTH:
        # Only the comment may be truncated.
        if len(image.split(" / ", 1)[0]) > CARD_LENGTH:
            raise WriteError(f"Value {value} does not fit in a single card.")
        image = image[:CARD_LENGTH]
    return astropy.io.fits.Card.fromstring(image)


def is_blank_card(card: astropy.io.fits.Card) -> bool:
    """Test whether a card is blank.

    A card is blank if its whole record is empty or its keyword field is
    eight spaces.
    """
    image = card.image
    return not image.strip() or image[:8] == " " * 8


def purge_cards(header: astropy.io.fits.Header, predicate: Callable[[astropy.io.fits.Card], bool]) -> int:
    """Delete every card for which a predicate is true.

    Parameters
    ----------
    header
        Header to modify in place.
    predicate
        Callable that returns `True` for cards that should be deleted.

    Returns
    -------
    n_deleted
        Number of cards removed.

    Notes
    -----
    Matching positions are collected in a first pass and deleted from the
    highest index down in a second, so no deletion shifts a position that
    is still to be visited.  Surviving cards keep their relative order.
    """
    doomed = [index for index, card in enumerate(header.cards) if predicate(card)]
    for index in reversed(doomed):
        _LOG.info("Deleting card %d: %r.", index + 1, header.cards[index].image.rstrip())
        del header[index]
    return len(doomed)


def strip_structural_cards(header: astropy.io.fits.Header) -> None:
    """Remove the cards that describe the data layout of an HDU, keeping
    every other card (including ``BZERO`` and ``BSCALE``) in order.
    """
    doomed = []
    for index, card in enumerate(header.cards):
        keyword = card.keyword
        if keyword in _STRUCTURAL_KEYWORDS or (keyword.startswith("NAXIS") and keyword[5:].isdigit()):
            doomed.append(index)
    for index in reversed(doomed):
        del header[index]


def check_end_card(header: astropy.io.fits.Header) -> None:
    """Check that a header serializes with exactly one END card, and that it
    is the last record.

    Raises
    ------
    WriteError
        Raised if the check fails.
    """
    text = header.tostring(sep="", endcard=True, padding=False)
    records = [text[i : i + CARD_LENGTH] for i in range(0, len(text), CARD_LENGTH)]
    n_end = sum(1 for record in records if record.rstrip() == "END")
    if n_end != 1 or not records or records[-1].rstrip() != "END":
        raise WriteError(f"Header has {n_end} END cards; expected exactly one as the last record.")
