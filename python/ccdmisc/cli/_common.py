# This file is part of ccd-misc.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

from __future__ import annotations

__all__ = (
    "CONTEXT_SETTINGS",
    "FitsTool",
    "fits_tool",
    "format_keyword_value",
)

import logging
from collections.abc import Callable, Mapping
from typing import Any

import click

from .._errors import ArgumentError, FitsToolError
from .._header import KeywordType, KeywordValue

CONTEXT_SETTINGS: dict[str, Any] = {"help_option_names": ["-h", "-help", "--help"]}

_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def _configure_logging(ctx: click.Context, param: click.Parameter, value: str) -> str:
    logging.basicConfig(format="%(name)s: %(levelname)s: %(message)s", force=True)
    logging.getLogger("ccdmisc").setLevel(value.upper())
    return value


class FitsTool(click.Command):
    """A `click.Command` that turns `FitsToolError` exceptions into a
    one-line diagnostic on standard error and a tool-specific exit code.

    Parameters
    ----------
    *args
        Forwarded to `click.Command`.
    exit_codes
        Mapping from exception type to exit code.  The most derived type in
        an exception's MRO that appears in the mapping wins; `FitsToolError`
        should be present as the fallback.  Command-line parsing errors use
        the code for `ArgumentError`.
    **kwargs
        Forwarded to `click.Command`.
    """

    def __init__(self, *args: Any, exit_codes: Mapping[type[FitsToolError], int], **kwargs: Any):
        kwargs.setdefault("context_settings", CONTEXT_SETTINGS)
        super().__init__(*args, **kwargs)
        self.exit_codes = dict(exit_codes)
        self.params.append(
            click.Option(
                ["--log-level"],
                type=click.Choice(_LOG_LEVELS, case_sensitive=False),
                default="WARNING",
                envvar="CCDMISC_LOG_LEVEL",
                show_default=True,
                is_eager=True,
                expose_value=False,
                callback=_configure_logging,
                help="Verbosity of diagnostics written to standard error.",
            )
        )

    def exit_code_for(self, err: FitsToolError) -> int:
        """Return the exit code for an exception."""
        for cls in type(err).__mro__:
            if cls in self.exit_codes:
                return self.exit_codes[cls]
        return 1

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        try:
            return super().parse_args(ctx, args)
        except click.UsageError as err:
            err.exit_code = self.exit_code_for(ArgumentError(err.format_message()))
            raise

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except FitsToolError as err:
            click.echo(f"{self.name}: {err}", err=True)
            ctx.exit(self.exit_code_for(err))


def fits_tool(
    name: str, exit_codes: Mapping[type[FitsToolError], int]
) -> Callable[[Callable[..., Any]], FitsTool]:
    """Return a decorator that makes a function into a `FitsTool`.

    Parameters
    ----------
    name
        Name of the tool, as installed on the command line.
    exit_codes
        Mapping from exception type to exit code; see `FitsTool`.
    """
    return click.command(name, cls=FitsTool, exit_codes=exit_codes)


def format_keyword_value(value: KeywordValue, kw_type: KeywordType) -> str:
    """Format a keyword value for printing.

    Strings are printed as-is, integers in decimal, floating-point values with
    six decimal places, and booleans as ``T`` or ``F``.
    """
    match kw_type:
        case KeywordType.STRING:
            return str(value)
        case KeywordType.BOOLEAN:
            return "T" if value else "F"
        case KeywordType.INT:
            return f"{value:d}"
        case KeywordType.DOUBLE | KeywordType.FIXDOUBLE:
            return f"{value:.6f}"
    raise AssertionError(kw_type)
