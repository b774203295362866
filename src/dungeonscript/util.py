""" Utility methods broadly applicable across the codebase. """

from __future__ import annotations

import sys
import re
import pdb
import logging
from typing import Any, Union

logger = logging.getLogger(__name__)

NUMBER_RE = re.compile(r"^-?\d+(\.\d+)?$")
IDENT_RE = re.compile(r"^[A-Za-z0-9_\-]+$")

# typographic quotes authors paste in from word processors
QUOTE_TRANSLATION = str.maketrans({
    "“": '"',
    "”": '"',
    "‘": "'",
    "’": "'",
})

Scalar = Union[bool, int, float, str, None]

def fullname(o:Any) -> str:
    # from https://stackoverflow.com/a/2020083/553580
    # o.__module__ + "." + o.__class__.__qualname__ is an example in
    # this context of H.L. Mencken's "neat, plausible, and wrong."
    # Python makes no guarantees as to whether the __module__ special
    # attribute is defined, so we take a more circumspect approach.
    # Alas, the module name is explicitly excluded from __qualname__
    # in Python 3.

    if isinstance(o, type):
        klass = o
    else:
        klass = o.__class__

    module = klass.__module__
    if module is None or module == str.__class__.__module__:
        return klass.__qualname__  # Avoid reporting __builtin__
    else:
        return module + '.' + klass.__qualname__

def is_identifier(value:str) -> bool:
    return IDENT_RE.match(value) is not None

def is_ident_char(c:str) -> bool:
    return c.isalnum() or c == "_"

def normalize_quotes(text:str) -> str:
    return text.translate(QUOTE_TRANSLATION)

def unquote(value:str) -> str:
    """ strips one matching pair of surrounding quotes, if present """
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value

def parse_number(value:str) -> Union[int, float, None]:
    """ parses value as an int or float if it looks numeric, else None """
    if not NUMBER_RE.match(value):
        return None
    if "." in value:
        return float(value)
    return int(value)

def coerce_scalar(value:str) -> Scalar:
    """ coerces an author-written literal into a python primitive

    true/false become bools, null becomes None, numeric looking text becomes a
    number and quoted text loses its quotes. Everything else is kept verbatim,
    including "!id" removal markers.
    """

    value = value.strip()
    if value == "true":
        return True
    elif value == "false":
        return False
    elif value == "null":
        return None

    number = parse_number(value)
    if number is not None:
        return number

    return unquote(value)

def truthy(value:Any) -> bool:
    if isinstance(value, str):
        return value not in ("", "0", "false")
    return bool(value)


class PDBManager:
    def __init__(self) -> None:
        self.logger = logging.getLogger(fullname(self))

    def __enter__(self) -> PDBManager:
        self.logger.info("entering PDBManager")

        return self

    def __exit__(self, e:Any, m:Any, tb:Any) -> None:
        self.logger.info("exiting PDBManager")
        if e is not None:
            self.logger.info(f'handling exception {e} {m}')
            print(m.__repr__(), file=sys.stderr)
            pdb.post_mortem(tb)
