""" Placeholder Resolver

Placeholders splice host supplied text into authored strings:

    |name|              registered placeholder, no arguments
    |hp(alice, max)|    registered placeholder called with "alice", "max"
    |$greeting|         template from the current dungeon (or global)
    |$town.greeting|    template from another dungeon
"""

import re
import logging
from typing import Any, Callable, Optional, NamedTuple

from dungeonscript import util, scanner

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"^(?P<template>\$)?(?P<id>[A-Za-z0-9_\-]+(?:\.[A-Za-z0-9_\-]+)*)(?:\((?P<args>.*)\))?$", re.DOTALL)


class PlaceholderCall(NamedTuple):
    placeholder_id: str
    args: list[str]
    template: bool


def parse_placeholder(body:str) -> Optional[PlaceholderCall]:
    """ parses the text between two pipes

    returns None if body isn't placeholder syntax at all (e.g. a pipe used in
    prose).
    """

    m = PLACEHOLDER_RE.match(body)
    if not m:
        return None
    args:list[str] = []
    if m.group("args") is not None and m.group("args").strip():
        args = [util.unquote(a) for a in scanner.split_top_level(m.group("args"), ",")]
    return PlaceholderCall(m.group("id"), args, m.group("template") is not None)


class PlaceholderRegistry:
    """ named text producers called while resolving strings

    Functions receive the placeholder's arguments as strings and return the
    text to splice in. None becomes empty text, anything else goes through
    str().
    """

    def __init__(self) -> None:
        self.logger = logging.getLogger(util.fullname(self))
        self.placeholders:dict[str, Callable[..., Any]] = {}

    def register(self, placeholder_id:str, fn:Callable[..., Any]) -> None:
        if not callable(fn):
            raise ValueError(f'placeholder {placeholder_id} must be callable, got {fn!r}')
        if placeholder_id in self.placeholders:
            self.logger.info(f'placeholder "{placeholder_id}" already exists - overwriting')
        self.placeholders[placeholder_id] = fn

    def __contains__(self, placeholder_id:str) -> bool:
        return placeholder_id in self.placeholders

    def call(self, placeholder_id:str, args:list[str]) -> str:
        """ produces the text for a placeholder, raises KeyError if unknown """
        value = self.placeholders[placeholder_id](*args)
        if value is None:
            return ""
        return str(value)


class TemplateRegistry:
    """ reusable text snippets referenced with |$id|

    Templates are keyed by "dungeon.id" when they belong to a dungeon and by
    bare "id" when they are global. A bare reference looks in the current
    dungeon first.
    """

    def __init__(self) -> None:
        self.logger = logging.getLogger(util.fullname(self))
        self.templates:dict[str, str] = {}

    def add(self, template_id:str, content:str, dungeon_id:Optional[str]=None) -> None:
        key = f'{dungeon_id}.{template_id}' if dungeon_id else template_id
        if key in self.templates:
            self.logger.info(f'template "{key}" already exists - overwriting')
        self.templates[key] = content

    def add_document(self, document:Any, dungeon_id:Optional[str]=None) -> int:
        """ adds every template a parsed document defines, returns the count """
        count = 0
        for node in document.templates():
            self.add(node.id, node.raw_content, dungeon_id)
            count += 1
        return count

    def lookup(self, ref:str, dungeon_id:Optional[str]=None) -> Optional[str]:
        if dungeon_id and "." not in ref:
            content = self.templates.get(f'{dungeon_id}.{ref}')
            if content is not None:
                return content
        return self.templates.get(ref)

    def __len__(self) -> int:
        return len(self.templates)
