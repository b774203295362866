""" Action Parser

Action objects are the lenient, JSON-like objects authors embed in text to
cause side effects:

    {flag: "gold+5", sound: door_creak}
    {sound: a, b, c}            sound gets ["a", "b", "c"]
    {leave}                     leave gets True
    {spawn: {id: rat, count: 2}}

Keys and values may be unquoted. Curly quotes are accepted. Nothing here
runs actions, see dispatcher.ActionDispatcher for that.
"""

import logging
from collections.abc import Collection, Iterator, MutableMapping, Mapping
from typing import Any, NamedTuple

from dungeonscript import util, scanner

logger = logging.getLogger(__name__)


class ActionParse(NamedTuple):
    """ the merged actions found in some text and where they were

    spans are (start, end) offsets of each {...} region, end exclusive.
    """
    actions: dict[str, Any]
    spans: list[tuple[int, int]]


def parse_value(raw:str) -> Any:
    raw = raw.strip()
    if raw.startswith("{") and scanner.find_matching(raw, 0) == len(raw) - 1:
        return parse_action_object(raw)
    if raw.startswith("[") and scanner.find_matching(raw, 0) == len(raw) - 1:
        inner = raw[1:-1]
        if not inner.strip():
            return []
        return [parse_value(item) for item in scanner.split_top_level(inner, ",") if item]
    return util.coerce_scalar(raw)

def parse_action_object(region:str) -> dict[str, Any]:
    """ parses a single {...} region (outer braces optional) into a dict

    Malformed segments are logged and skipped, the rest of the object still
    parses.
    """

    region = util.normalize_quotes(region).strip()
    if region.startswith("{") and scanner.find_matching(region, 0) == len(region) - 1:
        region = region[1:-1]

    result:dict[str, Any] = {}
    # raw value texts of the last explicit pair, extended by colon-less segments
    continued:list[str] = []
    last_key = None
    for segment in scanner.split_top_level(region, ","):
        if not segment:
            continue

        colon = scanner.find_top_level(segment, ":")
        if colon < 0:
            if last_key is not None:
                continued.append(util.unquote(segment))
                result[last_key] = list(continued)
            elif util.is_identifier(segment):
                result[segment] = True
            else:
                logger.warning(f'skipping malformed action segment "{segment}" in "{{{region}}}"')
            continue

        key = util.unquote(segment[:colon].strip())
        raw_value = segment[colon+1:].strip()
        if not key:
            logger.warning(f'skipping action segment with empty key "{segment}" in "{{{region}}}"')
            last_key = None
            continue

        result[key] = parse_value(raw_value)
        last_key = key
        continued = [util.unquote(raw_value)]

    return result

def merge_actions(target:MutableMapping[str, Any], source:Mapping[str, Any], accumulate:Collection[str]=()) -> MutableMapping[str, Any]:
    """ merges source into target, later keys win

    ids in accumulate collect every value into a list instead.
    """

    for key, value in source.items():
        if key in accumulate:
            existing = target.get(key, [])
            if not isinstance(existing, list):
                existing = [existing]
            target[key] = existing + (value if isinstance(value, list) else [value])
        else:
            target[key] = value
    return target

def find_action_objects(text:str) -> Iterator[tuple[int, int]]:
    """ yields the spans of top-level action objects in text

    condition heads, else{}/fi{} terminators and [code] regions are not action
    objects and are stepped over. An unterminated { ends the scan.
    """

    i = 0
    n = len(text)
    while i < n:
        c = text[i]
        if c == "[" and text.startswith(scanner.CODE_OPEN, i):
            i = scanner.skip_code(text, i)
            continue
        elif c in "ia":
            head = scanner.match_block_head(text, i)
            if head:
                i = head.end
                continue
        elif c in "ef":
            term = scanner.match_terminator(text, i)
            if term:
                i = term.end
                continue
        elif c == "{":
            end = scanner.find_matching(text, i)
            if end < 0:
                logger.warning(f'unterminated action object at offset {i}: "{text[i:i+40]}"')
                return
            yield (i, end + 1)
            i = end + 1
            continue
        i += 1

def parse_action_objects(text:str, accumulate:Collection[str]=()) -> ActionParse:
    """ finds and parses every action object in text

    Parameters
    ----------
    text : str
        arbitrary authored text
    accumulate : collection of str
        action ids whose values are collected into a list across objects
        rather than overwritten

    Returns
    -------
    out : ActionParse
        merged actions in source order plus the span of each object
    """

    actions:dict[str, Any] = {}
    spans:list[tuple[int, int]] = []
    for start, end in find_action_objects(text):
        merge_actions(actions, parse_action_object(text[start:end]), accumulate)
        spans.append((start, end))
    return ActionParse(actions, spans)

def strip_spans(text:str, spans:list[tuple[int, int]]) -> str:
    """ removes the given (sorted, non-overlapping) spans from text """
    pieces = []
    last = 0
    for start, end in spans:
        pieces.append(text[last:start])
        last = end
    pieces.append(text[last:])
    return "".join(pieces)
