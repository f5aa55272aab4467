# This file is part of ccd-misc.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Tools that read or edit primary header cards."""

from __future__ import annotations

__all__ = (
    "add_keyword_value",
    "copy_keyword_card",
    "delete_blank_header",
    "delete_keyword_value",
    "get_header",
    "get_keyword_comment",
    "get_keyword_value",
    "modify_comment",
)

import click

from .._errors import (
    ArgumentError,
    FitsToolError,
    KeywordNotFoundError,
    OpenError,
    TypeMismatchError,
    WriteError,
)
from .._header import KeywordType, parse_value
from ..fits import FitsImageFile, OpenMode
from ._common import fits_tool, format_keyword_value

_KEYWORD_TYPES = click.Choice([t.value for t in KeywordType])


@fits_tool(
    "fits_add_keyword_value",
    exit_codes={ArgumentError: 1, OpenError: 2, TypeMismatchError: 3, WriteError: 5, FitsToolError: 6},
)
@click.argument("filename", type=click.Path(dir_okay=False))
@click.argument("keyword")
@click.argument("type_name", metavar="TYPE", type=_KEYWORD_TYPES)
@click.argument("value")
def add_keyword_value(filename: str, keyword: str, type_name: str, value: str) -> None:
    """Set KEYWORD to VALUE in the primary header of FILENAME, adding the
    card if it is not already present.

    TYPE is one of STRING, BOOLEAN, INT, DOUBLE, or FIXDOUBLE.  Booleans are
    given as TRUE/True/true/T or FALSE/False/false/F; FIXDOUBLE values are
    written in fixed notation with six decimal places.  An existing comment
    is kept.
    """
    kw_type = KeywordType(type_name)
    parsed = parse_value(value, kw_type)
    decimals = 6 if kw_type is KeywordType.FIXDOUBLE else None
    with FitsImageFile.open(filename, OpenMode.READWRITE) as fits_file:
        fits_file.write_keyword(keyword, parsed, decimals=decimals)


@fits_tool(
    "fits_get_keyword_value",
    exit_codes={ArgumentError: 1, OpenError: 2, KeywordNotFoundError: 3, TypeMismatchError: 4, FitsToolError: 7},
)
@click.argument("filename", type=click.Path(dir_okay=False))
@click.argument("keyword")
@click.argument("type_name", metavar="TYPE", type=_KEYWORD_TYPES)
def get_keyword_value(filename: str, keyword: str, type_name: str) -> None:
    """Print the value of KEYWORD in the primary header of FILENAME, read
    as TYPE (STRING, BOOLEAN, INT, DOUBLE, or FIXDOUBLE).
    """
    kw_type = KeywordType(type_name)
    with FitsImageFile.open(filename) as fits_file:
        value, _ = fits_file.read_keyword(keyword, kw_type)
    click.echo(format_keyword_value(value, kw_type))


@fits_tool(
    "fits_get_keyword_comment",
    exit_codes={ArgumentError: 1, OpenError: 2, KeywordNotFoundError: 3, FitsToolError: 7},
)
@click.argument("filename", type=click.Path(dir_okay=False))
@click.argument("keyword")
def get_keyword_comment(filename: str, keyword: str) -> None:
    """Print the comment of KEYWORD in the primary header of FILENAME."""
    with FitsImageFile.open(filename) as fits_file:
        _, comment = fits_file.read_keyword(keyword, KeywordType.STRING)
    click.echo(comment)


@fits_tool(
    "fits_modify_comment",
    exit_codes={ArgumentError: 1, OpenError: 2, KeywordNotFoundError: 3, FitsToolError: 6},
)
@click.argument("filename", type=click.Path(dir_okay=False))
@click.argument("keyword")
@click.argument("comment")
def modify_comment(filename: str, keyword: str, comment: str) -> None:
    """Replace the comment of KEYWORD in the primary header of FILENAME."""
    with FitsImageFile.open(filename, OpenMode.READWRITE) as fits_file:
        fits_file.modify_comment(keyword, comment)


@fits_tool(
    "fits_copy_keyword_card",
    exit_codes={ArgumentError: 1, OpenError: 2, KeywordNotFoundError: 5, FitsToolError: 6},
)
@click.argument("input_filename", metavar="INPUT", type=click.Path(dir_okay=False))
@click.argument("keyword")
@click.argument("output_filename", metavar="OUTPUT", type=click.Path(dir_okay=False))
def copy_keyword_card(input_filename: str, keyword: str, output_filename: str) -> None:
    """Copy the KEYWORD card verbatim from INPUT to OUTPUT, replacing the
    output's card if it already has one.
    """
    with FitsImageFile.open(input_filename) as input_file:
        card = input_file.read_card(keyword)
    with FitsImageFile.open(output_filename, OpenMode.READWRITE) as output_file:
        output_file.write_card(card)


@fits_tool(
    "fits_delete_keyword_value",
    exit_codes={ArgumentError: 1, OpenError: 2, KeywordNotFoundError: 3, FitsToolError: 4},
)
@click.argument("filename", type=click.Path(dir_okay=False))
@click.argument("keyword")
def delete_keyword_value(filename: str, keyword: str) -> None:
    """Delete every KEYWORD card from the primary header of FILENAME."""
    with FitsImageFile.open(filename, OpenMode.READWRITE) as fits_file:
        if not fits_file.delete_all_keyword(keyword):
            raise KeywordNotFoundError(f"Keyword {keyword} not found in {filename}.")


@fits_tool(
    "fits_delete_blank_header",
    exit_codes={ArgumentError: 1, OpenError: 2, WriteError: 5, FitsToolError: 6},
)
@click.argument("filename", type=click.Path(dir_okay=False))
def delete_blank_header(filename: str) -> None:
    """Delete every blank card from the primary header of FILENAME.

    A card is blank if it is entirely spaces or its keyword field is eight
    spaces.  Run with ``--log-level INFO`` to list the deleted cards.
    """
    with FitsImageFile.open(filename, OpenMode.READWRITE) as fits_file:
        n_deleted = fits_file.delete_blank_cards()
    click.echo(f"Deleted {n_deleted} blank card(s).")


@fits_tool(
    "fits_get_header",
    exit_codes={ArgumentError: 1, OpenError: 2, FitsToolError: 5},
)
@click.argument("filename", type=click.Path(dir_okay=False))
def get_header(filename: str) -> None:
    """Print every card of the primary header of FILENAME, one per line,
    ending with END.
    """
    with FitsImageFile.open(filename) as fits_file:
        records = fits_file.records()
    for record in records:
        click.echo(record.rstrip())
