#!/usr/bin/env python3

"Generates getopt_long argument parsing code in C from a declarative spec."
__version__ = "0.3.0"


# please leave this copyright notice in binary distributions.
license = """
argen/__init__.py
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


import big.all as big
from collections.abc import Mapping
import enum
import os.path
import re

import perky
import tomli

from . import text
from .text import c_quote


class ArgenBaseException(Exception):
    pass

class MalformedSpecError(ArgenBaseException):
    """
    Raised when a decoded specification doesn't have the
    expected shape: missing fields, unknown fields, values
    of the wrong type, or text the decoder couldn't parse.
    """
    pass


class ErrorKind(enum.Enum):
    bad_identifier = 1
    required_with_default = 2
    multi_not_string = 3
    multi_not_last = 4
    required_after_optional = 5
    invalid_long = 6
    invalid_alias = 7
    invalid_short = 8
    flag_must_be_int = 9
    flag_has_default = 10
    flag_cannot_be_required = 11
    default_not_integer = 12
    reserved_short = 13
    reserved_long = 14
    duplicate_name = 15


class SpecificationError(ArgenBaseException):
    """
    Raised when a specification breaks one of the rules
    that must hold before code can be generated.

    kind is the ErrorKind of the rule that was broken.
    item is the c_var (or option name) of the offending item.
    """
    def __init__(self, kind, item, message):
        super().__init__(f"{item}: {message}")
        self.kind = kind
        self.item = item
        self.message = message


class GenerationError(ArgenBaseException):
    """
    Raised when a valid specification still can't be
    turned into C.
    """
    pass

class SelectorPoolExhaustedError(GenerationError):
    pass


##
## Names and tokens.
##

_identifier_re = re.compile(r"[_a-zA-Z][_a-zA-Z0-9]*")
# decimal only, no leading zeros: C would read "010" as octal, and
# the generated code reads command-line values with atoi().
_int_literal_re = re.compile(r"-?(?:0|[1-9][0-9]*)")

def _default_str(default):
    if isinstance(default, int) and not isinstance(default, bool):
        return str(default)
    return default

def is_identifier(s):
    return isinstance(s, str) and bool(_identifier_re.fullmatch(s))

def is_long_name(s):
    """
    Long names (and aliases) can't be empty, and can't contain
    whitespace or '=' (getopt splits "--name=value" on it).
    """
    return bool(s) and not any(c.isspace() or (c == '=') for c in s)

def is_short_name(s):
    """
    A short name is exactly one printable ASCII character;
    its byte value doubles as its selector.
    """
    return (len(s) == 1) and s.isascii() and s.isprintable() and (not s.isspace())


HELP_SHORT = 'h'
HELP_LONG = 'help'

# getopt_long returns '?' for unrecognized options and ':'
# for a missing oparg, so neither can ever identify an option.
reserved_shorts = frozenset((HELP_SHORT, '?', ':', '-'))
reserved_selectors = frozenset(ord(c) for c in (HELP_SHORT, '?', ':'))

SELECTOR_MIN = 2
SELECTOR_MAX = 254

# identifiers used by the generated code itself.
generated_names = frozenset((
    'argc',
    'argv',
    'ch',
    'longopts',
    'main',
    'optarg',
    'optind',
    'parse_args',
    'usage',
    ))

INCLUDES = ("stdlib", "stdio", "string", "getopt")

CALL_YOUR_CODE_HERE = "/* call your code here */"


class CType(enum.Enum):
    chars = "char*"
    int = "int"

    def __str__(self):
        return self.value

    @property
    def zero(self):
        return "NULL" if self is CType.chars else "0"

    def literal(self, value):
        if self is CType.chars:
            return f'"{c_quote(value)}"'
        return value.strip()


##
## Items.
##
## Positional and Option share a protocol: validate(), plus
## the code fragments the emitter stitches together.
## The fragment methods assume validate() already passed.
##

class Positional:
    __slots__ = [
        'c_var',
        'c_type',
        'help_name',
        'help_descr',
        'required',
        'default',
        'multi',
        ]

    def __init__(self, c_var, c_type, help_name, help_descr=None, *, required=False, default=None, multi=False):
        self.c_var = c_var
        self.c_type = CType(c_type)
        self.help_name = help_name
        self.help_descr = help_descr
        self.required = required
        self.default = _default_str(default)
        self.multi = multi

    def __repr__(self):
        required_str = "+" if self.required else "-"
        multi_str = " multi" if self.multi else ""
        default_str = f" default={self.default!r}" if self.default is not None else ""
        return f"<Positional {self.c_var} {self.c_type}{required_str}{default_str}{multi_str}>"

    @property
    def has_isset(self):
        return (not self.required) and (self.default is not None)

    def validate(self):
        c_var = self.c_var
        if not is_identifier(c_var):
            raise SpecificationError(ErrorKind.bad_identifier, c_var, f"invalid C variable name {c_var!r}")
        if self.required and (self.default is not None):
            raise SpecificationError(ErrorKind.required_with_default, c_var, "required positional arguments can't have a default value")
        if self.multi and (self.c_type != CType.chars):
            raise SpecificationError(ErrorKind.multi_not_string, c_var, "multi-valued positional arguments must be of c_type char* (they're stored in a char**)")
        if (self.default is not None) and (self.c_type == CType.int) and (not _int_literal_re.fullmatch(self.default.strip())):
            raise SpecificationError(ErrorKind.default_not_integer, c_var, f"default {self.default!r} isn't an integer")

    def companion_names(self):
        names = []
        if self.multi:
            names.append(f"{self.c_var}__size")
        if self.has_isset:
            names.append(f"{self.c_var}__isset")
            names.append(f"{self.c_var}__default")
        return names

    def as_arg(self):
        "The parameter declaration in parse_args()."
        if self.multi:
            return f"{self.c_type} **{self.c_var}, size_t *{self.c_var}__size"
        return f"{self.c_type} *{self.c_var}"

    def as_param(self):
        "The argument passed to parse_args() from main()."
        if self.multi:
            return f"&{self.c_var}, &{self.c_var}__size"
        return f"&{self.c_var}"

    def decl_main(self):
        if self.multi:
            return f"\t{self.c_type} *{self.c_var} = NULL;\n\tsize_t {self.c_var}__size = 0;\n"
        return f"\t{self.c_type} {self.c_var} = {self.c_type.zero};\n"

    def decl_isset(self):
        if not self.has_isset:
            return ""
        return f"\tint {self.c_var}__isset = 0;\n"

    def def_default(self):
        if not self.has_isset:
            return ""
        return f"\tstatic {self.c_type} {self.c_var}__default = {self.c_type.literal(self.default)};\n"

    def assign(self, indent):
        """
        Stores the value from argv[0] (or, for multi,
        all of argv) into c_var.  indent is the leading
        whitespace for every emitted line.
        """
        c_var = self.c_var
        if self.multi:
            statements = [f"*{c_var} = argv;", f"*{c_var}__size = argc;"]
        elif self.c_type == CType.chars:
            statements = [f"*{c_var} = argv[0];"]
        else:
            statements = [f"*{c_var} = atoi(argv[0]);"]
        if self.has_isset:
            statements.append(f"{c_var}__isset = 1;")
        return "".join(f"{indent}{statement}\n" for statement in statements)

    def post_loop(self):
        if not self.has_isset:
            return ""
        c_var = self.c_var
        if self.multi:
            body = f"\t\t*{c_var} = &{c_var}__default;\n\t\t*{c_var}__size = 1;\n"
        else:
            body = f"\t\t*{c_var} = {c_var}__default;\n"
        return f"\tif (!{c_var}__isset) {{\n{body}\t}}\n"


class Option:
    __slots__ = [
        'c_var',
        'c_type',
        'long',
        'help_name',
        'help_descr',
        'aliases',
        'short',
        'required',
        'default',
        'flag',
        ]

    def __init__(self, c_var, c_type, long, help_name=None, help_descr=None, *, aliases=(), short=None, required=False, default=None, flag=False):
        self.c_var = c_var
        self.c_type = CType(c_type)
        self.long = long
        self.help_name = help_name
        self.help_descr = help_descr
        self.aliases = tuple(aliases)
        self.short = short
        self.required = required
        self.default = _default_str(default)
        self.flag = flag

    def __repr__(self):
        short_str = f" -{self.short}" if self.short is not None else ""
        required_str = "+" if self.required else "-"
        flag_str = " flag" if self.flag else ""
        default_str = f" default={self.default!r}" if self.default is not None else ""
        return f"<Option {self.c_var} --{self.long}{short_str} {self.c_type}{required_str}{default_str}{flag_str}>"

    @property
    def long_names(self):
        return (self.long,) + self.aliases

    @property
    def has_isset(self):
        return (not self.flag) and (self.required or (self.default is not None))

    def validate(self):
        c_var = self.c_var
        if not is_identifier(c_var):
            raise SpecificationError(ErrorKind.bad_identifier, c_var, f"invalid C variable name {c_var!r}")
        if not is_long_name(self.long):
            raise SpecificationError(ErrorKind.invalid_long, c_var, f"invalid long option name {self.long!r}")
        for alias in self.aliases:
            if not is_long_name(alias):
                raise SpecificationError(ErrorKind.invalid_alias, c_var, f"invalid alias {alias!r}")
        for name in self.long_names:
            if name == HELP_LONG:
                raise SpecificationError(ErrorKind.reserved_long, c_var, f"--{HELP_LONG} is reserved for the built-in help option")
        if self.short is not None:
            if not is_short_name(self.short):
                raise SpecificationError(ErrorKind.invalid_short, c_var, f"invalid short name {self.short!r}, must be exactly one character")
            if self.short in reserved_shorts:
                raise SpecificationError(ErrorKind.reserved_short, c_var, f"short name {self.short!r} is reserved")
        if self.flag:
            if self.c_type != CType.int:
                raise SpecificationError(ErrorKind.flag_must_be_int, c_var, "options that are flags must be of c_type int")
            if self.required:
                raise SpecificationError(ErrorKind.flag_cannot_be_required, c_var, "options that are flags can't also be required")
            if self.default is not None:
                raise SpecificationError(ErrorKind.flag_has_default, c_var, "options that are flags can't have a default value")
        if self.required and (self.default is not None):
            raise SpecificationError(ErrorKind.required_with_default, c_var, "required options can't have a default value")
        if (self.default is not None) and (self.c_type == CType.int) and (not _int_literal_re.fullmatch(self.default.strip())):
            raise SpecificationError(ErrorKind.default_not_integer, c_var, f"default {self.default!r} isn't an integer")

    def companion_names(self):
        names = []
        if self.has_isset:
            names.append(f"{self.c_var}__isset")
        if self.default is not None:
            names.append(f"{self.c_var}__default")
        return names

    def as_arg(self):
        return f"{self.c_type} *{self.c_var}"

    def as_param(self):
        return f"&{self.c_var}"

    def decl_main(self):
        return f"\t{self.c_type} {self.c_var} = {self.c_type.zero};\n"

    def decl_isset(self):
        if not self.has_isset:
            return ""
        return f"\tint {self.c_var}__isset = 0;\n"

    def def_default(self):
        if self.default is None:
            return ""
        return f"\tstatic {self.c_type} {self.c_var}__default = {self.c_type.literal(self.default)};\n"

    def assign(self):
        "Stores optarg into c_var inside the getopt_long switch."
        c_var = self.c_var
        if self.flag:
            return f"\t\t\t*{c_var} = 1;\n"
        if self.c_type == CType.chars:
            statements = [f"*{c_var} = optarg;"]
        else:
            statements = [f"*{c_var} = atoi(optarg);"]
        if self.has_isset:
            statements.append(f"{c_var}__isset = 1;")
        return "".join(f"\t\t\t{statement}\n" for statement in statements)

    def long_options(self, selector):
        """
        Entries for the getopt_long option table.  The long
        name and every alias share the same selector.
        """
        has_arg = "no_argument" if self.flag else "required_argument"
        return "".join(f'\t\t{{"{c_quote(name)}", {has_arg}, 0, {selector}}},\n' for name in self.long_names)

    def optstring(self):
        if self.short is None:
            return ""
        if self.flag:
            return self.short
        return self.short + ":"

    def post_loop(self):
        c_var = self.c_var
        if self.required:
            return f"\tif (!{c_var}__isset) {{\n\t\tusage(argv[0]);\n\t\texit(1);\n\t}}\n"
        if self.default is None:
            return ""
        return f"\tif (!{c_var}__isset) {{\n\t\t*{c_var} = {c_var}__default;\n\t}}\n"


##
## The specification.
##

class Spec:
    """
    A complete argument specification.

    positional is ordered: required arguments first, then
    optional ones; only the last may be multi-valued.
    non_positional (the options) has no inherent order, but
    we always emit in the order given so output is stable.
    """

    def __init__(self, positional=(), non_positional=()):
        self.positional = tuple(positional)
        self.non_positional = tuple(non_positional)

    def __repr__(self):
        return f"<Spec positional={list(self.positional)} non_positional={list(self.non_positional)}>"

    @classmethod
    def from_mapping(cls, mapping):
        return from_mapping(mapping)

    def validate(self):
        """
        Raises SpecificationError for the first rule broken.
        The ordering of the positional arguments is checked
        first, then each item in the order they appear.
        """
        saw_optional = False
        last = len(self.positional) - 1
        for i, pi in enumerate(self.positional):
            if saw_optional and pi.required:
                raise SpecificationError(ErrorKind.required_after_optional, pi.c_var, "required positional argument can't come after an optional one")
            if pi.multi and (i != last):
                raise SpecificationError(ErrorKind.multi_not_last, pi.c_var, "only the last positional argument can take multiple values")
            if not pi.required:
                saw_optional = True
        for pi in self.positional:
            pi.validate()
        for npi in self.non_positional:
            npi.validate()
        self._check_unique()

    def _check_unique(self):
        # two items sharing a name would make the generated C
        # fail to compile (or silently share storage).
        variables = {name: "the generated code" for name in generated_names}
        items = self.positional + self.non_positional
        for item in items:
            for name in [item.c_var] + item.companion_names():
                owner = variables.get(name)
                if owner is not None:
                    raise SpecificationError(ErrorKind.duplicate_name, item.c_var, f"C variable {name!r} collides with {owner}")
                variables[name] = repr(item.c_var)

        longs = {}
        shorts = {}
        for npi in self.non_positional:
            for name in npi.long_names:
                owner = longs.get(name)
                if owner is not None:
                    raise SpecificationError(ErrorKind.duplicate_name, npi.c_var, f"--{name} is already used by {owner!r}")
                longs[name] = npi.c_var
            if npi.short is not None:
                owner = shorts.get(npi.short)
                if owner is not None:
                    raise SpecificationError(ErrorKind.duplicate_name, npi.c_var, f"-{npi.short} is already used by {owner!r}")
                shorts[npi.short] = npi.c_var

    def header_fragments(self):
        return INCLUDES

    def usage_fragments(self, max_columns=80):
        """
        Returns (usage_line, help_lines).

        usage_line summarizes the positional arguments, e.g.
            " name [greeting [files...]]"
        help_lines is a list of plain (unquoted) text lines
        documenting every argument and option.
        """
        usage = []
        closing_brackets = 0
        for pi in self.positional:
            name = pi.help_name
            if pi.multi:
                name += "..."
            if pi.required:
                usage.append(" " + name)
            else:
                usage.append(" [" + name)
                closing_brackets += 1
        usage_line = "".join(usage) + ("]" * closing_brackets)

        descr_indent = " " * 8
        margin = max_columns - len(descr_indent)

        def description(s):
            if not s:
                return []
            return [descr_indent + line for line in text.wrap_paragraphs(s, margin)]

        help_lines = []
        append = help_lines.append
        extend = help_lines.extend

        for pi in self.positional:
            append("  " + pi.help_name)
            extend(description(pi.help_descr))

        append(f"  -{HELP_SHORT}  --{HELP_LONG}")
        extend(description("print this usage and exit"))

        for npi in self.non_positional:
            if npi.short is not None:
                line = [f"  -{npi.short}  --{npi.long}"]
            else:
                line = [f"      --{npi.long}"]
            if not npi.flag:
                line.append(f" <{npi.help_name or 'arg'}>")
            if npi.aliases:
                aliases = " ".join("--" + alias for alias in npi.aliases)
                line.append(f"  (aliased: {aliases})")
            append("".join(line))
            extend(description(npi.help_descr))

        return usage_line, help_lines


##
## Selector allocation.
##

def allocate_selectors(options):
    """
    Assigns every option the value getopt_long will
    return when it sees that option.

    Options with a short name use that character's byte.
    The rest draw, in order, from the ascending pool of
    bytes SELECTOR_MIN to SELECTOR_MAX that aren't claimed
    by a short name or reserved.

    Returns a tuple of ints, parallel to options.
    Raises SelectorPoolExhaustedError if the pool runs dry.
    """
    claimed = {ord(npi.short) for npi in options if npi.short is not None}
    pool = [b for b in range(SELECTOR_MIN, SELECTOR_MAX + 1) if (b not in claimed) and (b not in reserved_selectors)]

    selectors = []
    unnamed = 0
    for npi in options:
        if npi.short is not None:
            selectors.append(ord(npi.short))
            continue
        if unnamed == len(pool):
            total = sum(1 for o in options if o.short is None)
            raise SelectorPoolExhaustedError(f"too many options without a short name ({total}), only {len(pool)} selectors are available")
        selectors.append(pool[unnamed])
        unnamed += 1
    return tuple(selectors)


##
## Code generation.
##

class Generator:
    """
    Turns one Spec into C source.  A Generator handles
    a single run; make a new one for every Spec.
    """

    def __init__(self,
        spec,
        *,
        # help descriptions are word-wrapped to fit in this many columns
        usage_max_columns = 80,

        log_events = True,
        ):
        self.spec = spec
        self.usage_max_columns = usage_max_columns
        self.log = big.Log() if log_events else None
        self.selectors = None

    def generate(self):
        """
        Validates the spec, then returns the generated C:
        headers, usage(), parse_args(), and main(), in that order.
        """
        log = self.log
        if log is not None:
            log.enter("generate")
            log("validate")
        self.spec.validate()

        self.selectors = allocate_selectors(self.spec.non_positional)
        if log is not None:
            log(f"allocated selectors {list(self.selectors)}")

        h = self._emit("headers", self.headers)
        usage = self._emit("usage", self.usage)
        body = self._emit("parse_args", self.parse_args)
        main = self._emit("main", self.main)

        if log is not None:
            log.exit()
        return f"{h}\n\n{usage}\n{body}\n{main}"

    def _emit(self, name, fn):
        log = self.log
        if log is None:
            return fn()
        log.enter(f"emit {name}")
        result = fn()
        log(f"{len(result)} characters")
        log.exit()
        return result

    def headers(self):
        return "".join(f"#include<{name}.h>\n" for name in self.spec.header_fragments())

    def usage(self):
        usage_line, help_lines = self.spec.usage_fragments(self.usage_max_columns)
        # usage_line lands in the printf format string; help_lines don't.
        usage_line = c_quote(usage_line).replace("%", "%%")
        help_block = text.c_string_lines(help_lines, "", "\t       ")
        return (
            "static void usage(const char *progname) {\n"
            f'\tprintf("usage: %s [options]{usage_line}\\n%s", progname,\n'
            f"{help_block}"
            "\t       );\n"
            "}\n"
            )

    def parse_args(self):
        spec = self.spec
        positional = spec.positional
        options = spec.non_positional
        items = options + positional
        selectors = self.selectors
        assert selectors is not None, "allocate selectors before emitting parse_args"

        args = ["int argc", "char **argv"]
        args.extend(pi.as_arg() for pi in positional)
        args.extend(npi.as_arg() for npi in options)

        body = []
        append = body.append
        append(f"void parse_args({', '.join(args)}) {{\n")

        # tracking flags, then defaults
        for item in items:
            append(item.decl_isset())
        for item in items:
            append(item.def_default())

        # option table
        append("\tstatic struct option longopts[] = {\n")
        for npi, selector in zip(options, selectors):
            append(npi.long_options(selector))
        append(f'\t\t{{"{HELP_LONG}", no_argument, 0, \'{HELP_SHORT}\'}},\n')
        append("\t\t{0, 0, 0, 0}\n")
        append("\t};\n")

        optstring = "".join(npi.optstring() for npi in options) + HELP_SHORT

        # option loop
        append("\tint ch;\n")
        append(f'\twhile ((ch = getopt_long(argc, argv, "{c_quote(optstring)}", longopts, NULL)) != -1) {{\n')
        append("\t\tswitch (ch) {\n")
        for npi, selector in zip(options, selectors):
            append(f"\t\tcase {selector}:\n")
            append(npi.assign())
            append("\t\t\tbreak;\n")
        append("\t\tcase 0:\n")
        append("\t\t\tbreak;\n")
        append(f"\t\tcase '{HELP_SHORT}':\n")
        append("\t\tdefault:\n")
        append("\t\t\tusage(argv[0]);\n")
        append("\t\t\texit(1);\n")
        append("\t\t}\n")
        append("\t}\n")

        for npi in options:
            append(npi.post_loop())

        required = [pi for pi in positional if pi.required and not pi.multi]
        optional = [pi for pi in positional if not (pi.required or pi.multi)]
        multi = None
        for pi in positional:
            if pi.multi:
                multi = pi
        nrequired = len(required) + (1 if (multi is not None) and multi.required else 0)

        # required positional arguments
        append("\n")
        if nrequired:
            append(f"\tif (argc - optind < {nrequired}) {{\n")
            append("\t\tusage(argv[0]);\n")
            append("\t\texit(1);\n")
            append("\t}\n")
        append("\targv += optind;\n")
        append("\targc -= optind;\n")
        append("\n")
        if required:
            for pi in required:
                append(pi.assign("\t"))
                append("\targv++;\n")
            append(f"\targc -= {len(required)};\n")
            append("\n")
        for pi in required:
            append(pi.post_loop())

        # optional positional arguments
        for pi in optional:
            append("\tif (argc > 0) {\n")
            append(pi.assign("\t\t"))
            append("\t\targv++;\n")
            append("\t\targc--;\n")
            append("\t}\n")
        for pi in optional:
            append(pi.post_loop())

        # multi-valued positional argument
        if multi is not None:
            if multi.required:
                append(multi.assign("\t"))
            else:
                append("\tif (argc > 0) {\n")
                append(multi.assign("\t\t"))
                append("\t}\n")
            append(multi.post_loop())

        append("}\n")
        return "".join(body)

    def main(self):
        spec = self.spec
        items = spec.positional + spec.non_positional

        body = ["int main(int argc, char **argv) {\n"]
        for item in items:
            body.append(item.decl_main())

        params = ["argc", "argv"]
        params.extend(item.as_param() for item in items)
        body.append("\n")
        body.append(f"\tparse_args({', '.join(params)});\n")
        body.append("\n")
        body.append(f"\t{CALL_YOUR_CODE_HERE}\n")
        body.append("\treturn 0;\n")
        body.append("}\n")
        return "".join(body)


def generate(spec, **kwargs):
    "Validates spec and returns the generated C.  kwargs go to Generator."
    return Generator(spec, **kwargs).generate()


##
## Reading specifications.
##
## The core only ever sees a decoded mapping.  These
## helpers check its shape and build the Spec.
##

_true_strings = frozenset(("true", "yes", "1"))
_false_strings = frozenset(("false", "no", "0"))

def _string(value, key, where):
    if not isinstance(value, str):
        raise MalformedSpecError(f"{where}: {key} must be a string, not {type(value).__name__}")
    return value

def _boolean(value, key, where):
    # perky doesn't have types; everything is a string.
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _true_strings:
            return True
        if lowered in _false_strings:
            return False
    raise MalformedSpecError(f"{where}: {key} must be a boolean, not {value!r}")

def _default_value(value, key, where):
    if isinstance(value, bool):
        raise MalformedSpecError(f"{where}: {key} must be a string or an integer, not {value!r}")
    if isinstance(value, int):
        return str(value)
    return _string(value, key, where)

def _string_list(value, key, where):
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise MalformedSpecError(f"{where}: {key} must be a list of strings, not {value!r}")
    return tuple(_string(s, key, where) for s in value)

def _c_type(value, key, where):
    value = _string(value, key, where)
    try:
        return CType(value)
    except ValueError:
        legal = " or ".join(repr(t.value) for t in CType)
        raise MalformedSpecError(f"{where}: unknown {key} {value!r}, must be {legal}") from None


# field name -> (converter, required)
_positional_fields = {
    'c_var': (_string, True),
    'c_type': (_c_type, True),
    'help_name': (_string, True),
    'help_descr': (_string, False),
    'required': (_boolean, False),
    'default': (_default_value, False),
    'multi': (_boolean, False),
    }

_option_fields = {
    'c_var': (_string, True),
    'c_type': (_c_type, True),
    'long': (_string, True),
    'help_name': (_string, False),
    'help_descr': (_string, False),
    'aliases': (_string_list, False),
    'short': (_string, False),
    'required': (_boolean, False),
    'default': (_default_value, False),
    'flag': (_boolean, False),
    }

def _read_item(cls, fields, d, where):
    if not isinstance(d, Mapping):
        raise MalformedSpecError(f"{where} must be a table, not {d!r}")
    unknown = sorted(set(d) - set(fields))
    if unknown:
        raise MalformedSpecError(f"{where}: unknown field(s) {', '.join(unknown)}")
    kwargs = {}
    for key, (convert, required) in fields.items():
        if key not in d:
            if required:
                raise MalformedSpecError(f"{where}: missing required field {key!r}")
            continue
        kwargs[key] = convert(d[key], key, where)
    return cls(**kwargs)

def _read_items(mapping, key, cls, fields):
    items = mapping.get(key, [])
    if isinstance(items, str) or not isinstance(items, (list, tuple)):
        raise MalformedSpecError(f"{key} must be a list, not {items!r}")
    return [_read_item(cls, fields, d, f"{key}[{i}]") for i, d in enumerate(items)]

def from_mapping(mapping):
    """
    Builds a Spec from a decoded mapping shaped like

        {positional: [...], non_positional: [...]}

    Only checks structure; call Spec.validate() (or
    generate()) to check the rules.
    """
    if not isinstance(mapping, Mapping):
        raise MalformedSpecError(f"specification must be a mapping, not {type(mapping).__name__}")
    unknown = sorted(set(mapping) - {'positional', 'non_positional'})
    if unknown:
        raise MalformedSpecError(f"unknown top-level field(s) {', '.join(unknown)}")
    positional = _read_items(mapping, 'positional', Positional, _positional_fields)
    non_positional = _read_items(mapping, 'non_positional', Option, _option_fields)
    return Spec(positional, non_positional)


formats = ("toml", "perky")

_suffix_to_format = {
    '.toml': 'toml',
    '.pky': 'perky',
    }

def loads(s, format="toml"):
    if format == "toml":
        try:
            mapping = tomli.loads(s)
        except tomli.TOMLDecodeError as e:
            raise MalformedSpecError(f"invalid TOML: {e}") from e
    elif format == "perky":
        try:
            mapping = perky.loads(s)
        except perky.PerkyFormatError as e:
            raise MalformedSpecError(f"invalid Perky: {e}") from e
    else:
        raise ValueError(f"unknown format {format!r}, must be one of {', '.join(formats)}")
    return from_mapping(mapping)

def load(path, format=None):
    """
    Reads a specification file.  If format is None,
    it's inferred from the file's suffix.
    """
    if format is None:
        suffix = os.path.splitext(str(path))[1].lower()
        format = _suffix_to_format.get(suffix)
        if format is None:
            raise ValueError(f"can't infer format from {str(path)!r}, specify one of {', '.join(formats)}")
    with open(path, "rt", encoding="utf-8") as f:
        s = f.read()
    return loads(s, format)
