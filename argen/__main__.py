#!/usr/bin/env python3

# please leave this copyright notice in binary distributions.
license = """
argen/__main__.py
part of the Argen software package
Copyright (C) 2017 Matt Lee <matt@kynelee.com>, Lucas Morales <lucas@lucasem.com>

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program.  If not, see <http://www.gnu.org/licenses/>.
"""

import appeal
import functools
import sys

from . import ArgenBaseException, Generator, load


app = appeal.Appeal(
    name="argen",
    usage_max_columns=80,
    )


@app.global_command()
def argen(spec, *, output=None, format=None, max_columns=80, verbose=False):
    """
    Generate getopt_long argument parsing code in C.

    [[arguments]]
    {spec} Specification file, TOML (.toml) or Perky (.pky).
    [[end]]

    [[options]]
    {output} Write the generated C here instead of stdout.
    {format} Format of the specification file, "toml" or "perky".  Inferred from its suffix by default.
    {max_columns} Word-wrap help descriptions to this width.
    {verbose} Print the event log to stderr.
    [[end]]
    """
    generator = None
    try:
        s = load(spec, format=format)
        generator = Generator(s, usage_max_columns=max_columns, log_events=verbose)
        code = generator.generate()
    except (ArgenBaseException, OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    finally:
        if generator and generator.log is not None:
            generator.log.print(print=functools.partial(print, file=sys.stderr))

    if output:
        with open(output, "wt", encoding="utf-8") as f:
            f.write(code)
    else:
        sys.stdout.write(code)
    return 0


def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]
    try:
        return app.process(list(argv))
    except appeal.UsageError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
