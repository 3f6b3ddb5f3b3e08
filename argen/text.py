# please leave this copyright notice in binary distributions.
license = """
argen/text.py
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


_c_escapes = {
    '\\': '\\\\',
    '"': '\\"',
    '\n': '\\n',
    '\t': '\\t',
    }

def c_quote(s):
    """
    Escapes s for use inside a C string literal.
    Doesn't add the surrounding double-quotes.
    """
    return "".join(_c_escapes.get(c, c) for c in s)


def presplit_textwrap(words, margin=79):
    """
    Combines "words" into lines and returns the result as a list of lines.

    "words" should be an iterator containing pre-split text.

    "margin" specifies the maximum length of each line.  A word longer
    than the margin gets a line to itself; it's never broken.
    """

    col = 0
    lines = []
    line = []

    for word in words:
        l = len(word)
        if not l:
            continue

        if (l + 1 + col) > margin:
            if col:
                lines.append("".join(line))
                line.clear()
                col = 0
        elif col:
            line.append(" ")
            col += 1

        line.append(word)
        col += l

    if line:
        lines.append("".join(line))
    return lines


def wrap_paragraphs(s, margin=79):
    """
    Word-wraps s to margin.  Explicit newlines in s start
    a new paragraph; blank lines are preserved.
    """
    lines = []
    for paragraph in s.split("\n"):
        wrapped = presplit_textwrap(paragraph.split(), margin)
        lines.extend(wrapped or [''])
    return lines


def c_string_lines(lines, prefix, indent):
    """
    Renders each line in lines as one line of a concatenated
    C string literal.  Every literal starts with indent,
    then a double-quote, then prefix, and ends with an escaped
    newline.  Returns the joined text, one literal per line.
    """
    return "".join(f'{indent}"{prefix}{c_quote(line)}\\n"\n' for line in lines)
