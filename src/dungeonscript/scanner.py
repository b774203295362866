""" Depth counting lexical scanner shared by the parsers and the resolver.

Brace and block nesting in authored text is unbounded, so nothing here uses a
single regular expression to find the end of a construct. Everything counts
depth explicitly. Double quoted strings inside braces are opaque.
"""

import re
from typing import Optional, NamedTuple

from dungeonscript import util

OPEN_BLOCK_RE = re.compile(r"(?P<keyword>ifOr|if|activeOr|active)\{")
ELSE_RE = re.compile(r"else\{")
FI_RE = re.compile(r"fi\{\s*\}")

OR_KEYWORDS = frozenset(("ifOr", "activeOr"))
ACTIVE_KEYWORDS = frozenset(("active", "activeOr"))

CODE_OPEN = "[code]"
CODE_CLOSE = "[/code]"

PAIRS = {"{": "}", "(": ")", "[": "]"}


class BlockHead(NamedTuple):
    """ an if{...}, ifOr{...}, active{...} or activeOr{...} condition head """
    keyword: str
    start: int
    end: int
    condition: str


class Terminator(NamedTuple):
    """ an else{...} or fi{} inside a conditional block

    condition is the text between an else's braces, empty for a plain else{}
    (and always for fi{}).
    """
    keyword: str
    start: int
    end: int
    condition: str


class BlockBounds(NamedTuple):
    """ how a conditional block's body is divided

    branches are the else terminators at the block's own nesting level in
    source order. fi is None when the block is never closed.
    """
    branches: list[Terminator]
    fi: Optional[Terminator]


def find_matching(text:str, start:int) -> int:
    """ returns the offset of the bracket closing the one at start, or -1 """

    open_char = text[start]
    close_char = PAIRS[open_char]
    depth = 0
    in_string = False
    i = start
    n = len(text)
    while i < n:
        c = text[i]
        if in_string:
            if c == "\\":
                i += 1
            elif c == '"':
                in_string = False
        elif c == '"':
            in_string = True
        elif c == open_char:
            depth += 1
        elif c == close_char:
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1

def split_top_level(text:str, sep:str=",") -> list[str]:
    """ splits on sep where it is not nested in brackets or a quoted string

    parts are stripped of surrounding whitespace. empty parts are kept so
    callers can decide whether they are malformed.
    """

    parts:list[str] = []
    depth = 0
    in_string = False
    current:list[str] = []
    i = 0
    while i < len(text):
        c = text[i]
        if in_string:
            current.append(c)
            if c == "\\" and i + 1 < len(text):
                i += 1
                current.append(text[i])
            elif c == '"':
                in_string = False
        elif c == '"':
            in_string = True
            current.append(c)
        elif c in "{([":
            depth += 1
            current.append(c)
        elif c in "})]":
            depth = max(depth - 1, 0)
            current.append(c)
        elif c == sep and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(c)
        i += 1
    parts.append("".join(current).strip())
    return parts

def find_top_level(text:str, char:str) -> int:
    """ offset of the first occurrence of char outside brackets and strings """

    depth = 0
    in_string = False
    i = 0
    while i < len(text):
        c = text[i]
        if in_string:
            if c == "\\":
                i += 1
            elif c == '"':
                in_string = False
        elif c == '"':
            in_string = True
        elif c in "{([":
            depth += 1
        elif c in "})]":
            depth = max(depth - 1, 0)
        elif c == char and depth == 0:
            return i
        i += 1
    return -1

def at_word_start(text:str, i:int) -> bool:
    return i == 0 or not util.is_ident_char(text[i-1])

def match_block_head(text:str, i:int) -> Optional[BlockHead]:
    """ matches a condition head starting exactly at i

    Returns None when there is no head at i or when its braces never close.
    Use match_open_block to tell the two apart.
    """
    m = match_open_block(text, i)
    if not m:
        return None
    end = find_matching(text, m.end() - 1)
    if end < 0:
        return None
    return BlockHead(m.group("keyword"), i, end + 1, text[m.end():end].strip())

def match_open_block(text:str, i:int) -> Optional[re.Match]:
    """ matches the if{, ifOr{, active{ or activeOr{ opener at i """
    if not at_word_start(text, i):
        return None
    return OPEN_BLOCK_RE.match(text, i)

def match_terminator(text:str, i:int) -> Optional[Terminator]:
    """ matches else{...} or fi{} starting exactly at i """
    if not at_word_start(text, i):
        return None
    m = FI_RE.match(text, i)
    if m:
        return Terminator("fi", i, m.end(), "")
    m = ELSE_RE.match(text, i)
    if m:
        end = find_matching(text, m.end() - 1)
        if end < 0:
            return None
        return Terminator("else", i, end + 1, text[m.end():end].strip())
    return None

def skip_code(text:str, i:int) -> int:
    """ offset just past the [code] region starting at i, or end of text """
    end = text.find(CODE_CLOSE, i + len(CODE_OPEN))
    if end < 0:
        return len(text)
    return end + len(CODE_CLOSE)

def find_block_end(text:str, pos:int) -> BlockBounds:
    """ finds the else{} branches and the fi{} closing a block whose body
    starts at pos

    Nested blocks are tracked so an inner fi{} does not close the outer block.
    Condition heads, action objects and [code] regions are stepped over whole.
    """

    depth = 0
    branches:list[Terminator] = []
    i = pos
    n = len(text)
    while i < n:
        c = text[i]
        if c == "{":
            end = find_matching(text, i)
            if end < 0:
                break
            i = end + 1
            continue
        elif c == "[" and text.startswith(CODE_OPEN, i):
            i = skip_code(text, i)
            continue
        elif c in "ia":
            head = match_block_head(text, i)
            if head:
                depth += 1
                i = head.end
                continue
        elif c in "ef":
            term = match_terminator(text, i)
            if term:
                if term.keyword == "fi":
                    if depth == 0:
                        return BlockBounds(branches, term)
                    depth -= 1
                elif depth == 0:
                    branches.append(term)
                i = term.end
                continue
        i += 1

    return BlockBounds(branches, None)

def check_blocks(text:str) -> list[tuple[int, str]]:
    """ lints conditional block structure without evaluating anything

    Returns (offset, message) pairs for unterminated condition heads, blocks
    with no fi{} and terminators with no open block.
    """

    problems:list[tuple[int, str]] = []
    depth = 0
    i = 0
    n = len(text)
    while i < n:
        c = text[i]
        if c == "[" and text.startswith(CODE_OPEN, i):
            i = skip_code(text, i)
            continue
        if c in "ia" and match_open_block(text, i):
            head = match_block_head(text, i)
            if head is None:
                problems.append((i, "unterminated condition head"))
                return problems
            depth += 1
            i = head.end
            continue
        term = match_terminator(text, i) if c in "ef" else None
        if term:
            if depth == 0:
                problems.append((i, f'{term.keyword}{{}} without an open block'))
            elif term.keyword == "fi":
                depth -= 1
            i = term.end
            continue
        if c == "{":
            end = find_matching(text, i)
            if end < 0:
                problems.append((i, "unterminated {"))
                return problems
            i = end + 1
            continue
        i += 1

    if depth > 0:
        problems.append((n, f'{depth} conditional block(s) missing fi{{}}'))
    return problems
