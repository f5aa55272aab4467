# This file is part of ccd-misc.
#
# See the COPYRIGHT file at the top-level directory of this distribution
# for details of code ownership.
#
# Use of this source code is governed by a 3-clause BSD-style
# license that can be found in the LICENSE file.

"""Command-line tools.

Each tool is a `click` command installed as its own console script (see
``pyproject.toml``).  The commands parse their arguments, open files with
`ccdmisc.FitsImageFile`, apply at most one function from
`ccdmisc.processing`, and translate `ccdmisc.FitsToolError` subclasses into
a one-line diagnostic and the tool's exit code.
"""
