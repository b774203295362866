""" Dungeon Content Parser

Reads dungeon markup into a Document. Markers are only recognised in the
first column:

    ^crypt {doors: hall, tower}
    The air is cold.
    @skeleton {if: !skeleton_dead}
    A skeleton blocks the way.
    %
    1. Fight {flag: "skeleton_dead=1"}
    2. Flee
    !bribe Offer gold {if: gold >= 10}
    #rumble{if: visits > 2}
    The ceiling shakes.
    $greeting
    Well met, traveller.

Everything else is content belonging to the innermost open node. Lines
starting with // are comments. [code]...[/code] regions are copied verbatim
and never scanned for markers.

Errors never abort parsing: they are collected with their line numbers and
the offending node is left out.
"""

import re
import logging
from collections.abc import Iterable
from typing import Any, Optional, NamedTuple

from dungeonscript import util, scanner, actions, config
from dungeonscript.document import (
    Document, DocumentNode, RoomNode, EncounterNode, ChoiceNode, EventNode, TemplateNode,
    ROOM, ENCOUNTER, CHOICE, EVENT, TEMPLATE,
)

MARKERS = frozenset((ROOM, ENCOUNTER, CHOICE, EVENT, TEMPLATE))
CHOICE_LIST_MARKER = "%"
COMMENT = "//"

NUMBERED_CHOICE_RE = re.compile(r"^(?P<number>\d+)[.)]?(?:\s+(?P<label>.*))?$")
TARGET_RE = re.compile(r"^(?P<title>.*)<(?P<target>[^<>]*)>$")


class ParseError(NamedTuple):
    line: int
    message: str

    def __str__(self) -> str:
        return f'{self.line}: {self.message}'


class ParseResult(NamedTuple):
    document: Document
    errors: list[ParseError]


class _Builder:
    """ a node under construction, frozen into its DocumentNode on close """

    def __init__(self, sigil:str, node_id:str, line:int, **fields:Any) -> None:
        self.sigil = sigil
        self.id = node_id
        self.line = line
        self.fields = fields
        self.lines:list[str] = []
        # line number of the first content line
        self.content_line = line + 1

    @property
    def line_id(self) -> str:
        return self.sigil + self.id

    def add(self, text:str, line:int) -> None:
        if not self.lines:
            self.content_line = line
        self.lines.append(text)

    def content(self) -> str:
        lines = list(self.lines)
        while lines and not lines[-1].strip():
            lines.pop()
        while lines and not lines[0].strip():
            lines.pop(0)
            self.content_line += 1
        return "\n".join(line.rstrip() for line in lines)


class DungeonParser:
    def __init__(self) -> None:
        self.logger = logging.getLogger(util.fullname(self))
        self.doors_param = config.Settings.parser.DOORS_PARAM
        self._reset()

    def _reset(self) -> None:
        self.nodes:list[DocumentNode] = []
        self.errors:list[ParseError] = []
        self.line_ids:set[str] = set()

        self.room:Optional[_Builder] = None
        self.encounter:Optional[_Builder] = None
        # the node currently receiving content lines
        self.current:Optional[_Builder] = None
        self.in_choice_list = False
        # content following a rejected marker is dropped without more errors
        self.discarding = False

        self.pending_params:Optional[_Builder] = None
        self.params_lines:list[str] = []
        self.params_start = 0

    def error(self, line:int, message:str) -> None:
        self.logger.debug(f'line {line}: {message}')
        self.errors.append(ParseError(line, message))

    def parse(self, raw:str) -> ParseResult:
        """ Parses dungeon markup.

        Parameters
        ----------
        raw : str
            the whole dungeon text

        Returns
        -------
        out : ParseResult
            the document plus every problem found, in line order
        """

        self._reset()
        in_code = False
        lines = raw.replace("\r\n", "\n").replace("\r", "\n").split("\n")

        for number, text in enumerate(lines, start=1):
            if in_code:
                in_code = self._code_continues(text)
                self._content(text, number)
                continue

            if self.pending_params is not None:
                if self._params_continuation(text, number):
                    continue

            if text.startswith(COMMENT):
                continue

            if text and text[0] in MARKERS:
                self._marker(text, number)
            elif text.strip() == CHOICE_LIST_MARKER:
                self._choice_list(number)
            elif self.in_choice_list and self.encounter is not None and NUMBERED_CHOICE_RE.match(text):
                self._numbered_choice(text, number)
            else:
                self._content(text, number)
                in_code = self._opens_code(text)

        if self.pending_params is not None:
            if self.params_lines:
                self.error(self.params_start, f'unterminated {{ in params of {self.pending_params.line_id}')
            self._freeze(self.pending_params)
            self.pending_params = None

        if in_code:
            self.error(len(lines), f'unterminated {scanner.CODE_OPEN}')

        self._close_room()
        self.nodes.sort(key=lambda n: n.line)

        self.logger.debug(f'parsed {len(self.nodes)} nodes with {len(self.errors)} errors')
        self.errors.sort(key=lambda e: e.line)
        return ParseResult(Document(self.nodes), self.errors)

    # code regions

    def _opens_code(self, text:str) -> bool:
        start = text.rfind(scanner.CODE_OPEN)
        return start >= 0 and text.find(scanner.CODE_CLOSE, start) < 0

    def _code_continues(self, text:str) -> bool:
        close = text.rfind(scanner.CODE_CLOSE)
        if close < 0:
            return True
        return text.find(scanner.CODE_OPEN, close) >= 0

    # content

    def _content(self, text:str, number:int) -> None:
        if self.current is not None:
            if self.in_choice_list and self.current is self.encounter:
                if text.strip():
                    self.error(number, f'stray text after {CHOICE_LIST_MARKER} in {self.encounter.line_id}')
                return
            if self.current.sigil == CHOICE:
                if text.strip():
                    self.error(number, f'stray text after choice {self.current.line_id}')
                return
            self.current.add(text, number)
        elif text.strip() and not self.discarding:
            self.error(number, "content outside of any room or template")
            self.discarding = True

    def _choice_list(self, number:int) -> None:
        if self.encounter is None:
            self.error(number, f'{CHOICE_LIST_MARKER} outside of an encounter')
            return
        self._close_event()
        self.in_choice_list = True
        self.current = self.encounter

    # markers

    def _split_marker(self, text:str, number:int) -> Optional[tuple[str, str]]:
        """ splits a marker line's text (after the sigil) into head and params """

        brace = text.find("{")
        if brace < 0:
            return text.strip(), ""
        end = scanner.find_matching(text, brace)
        if end < 0:
            self.error(number, f'unterminated {{ in "{text.strip()}"')
            return None
        trailing = text[end+1:].strip()
        if trailing:
            self.error(number, f'unexpected text "{trailing}" after params')
        return text[:brace].strip(), text[brace:end+1]

    def _valid_id(self, local_id:str, number:int, kind:str) -> bool:
        if not local_id:
            self.error(number, f'{kind} marker without an id')
            return False
        if not util.is_identifier(local_id):
            self.error(number, f'invalid {kind} id "{local_id}"')
            return False
        return True

    def _claim(self, builder:_Builder) -> bool:
        if builder.line_id in self.line_ids:
            self.error(builder.line, f'duplicate id {builder.id}')
            return False
        self.line_ids.add(builder.line_id)
        return True

    def _reject(self) -> None:
        """ drops content until the next marker that opens a node """
        self.current = None
        self.discarding = True

    def _marker(self, text:str, number:int) -> None:
        sigil = text[0]
        split = self._split_marker(text[1:], number)
        if split is None:
            if sigil in (ROOM, ENCOUNTER, TEMPLATE):
                self._close_for(sigil)
            self._reject()
            return
        head, params = split

        if sigil == ROOM:
            self._open_room(head, params, number)
        elif sigil == ENCOUNTER:
            self._open_encounter(head, params, number)
        elif sigil == CHOICE:
            self._open_choice(head, params, number)
        elif sigil == EVENT:
            self._open_event(head, params, number)
        else:
            self._open_template(head, params, number)

    def _close_for(self, sigil:str) -> None:
        if sigil == ENCOUNTER:
            self._close_encounter()
        else:
            self._close_room()

    def _open_room(self, head:str, params:str, number:int) -> None:
        self._close_room()
        self.discarding = False

        room_id = head.rstrip(".")
        if not self._valid_id(room_id, number, "room"):
            self._reject()
            return

        builder = _Builder(ROOM, room_id, number, raw_params=params, door_ids=self._door_ids(params))
        if not self._claim(builder):
            self._reject()
            return
        self.room = builder
        self.current = builder

    def _open_encounter(self, head:str, params:str, number:int) -> None:
        self._close_encounter()
        self.discarding = False

        if self.room is None:
            self.error(number, f'encounter "{head}" outside of a room')
            self._reject()
            return
        if not self._valid_id(head, number, "encounter"):
            self._reject()
            return

        builder = _Builder(
            ENCOUNTER, f'{self.room.id}.{head}', number,
            parent_room_id=self.room.id, raw_params=params, choice_ids=[],
        )
        if not self._claim(builder):
            self._reject()
            return
        self.encounter = builder
        self.current = builder
        self.in_choice_list = False

    def _open_choice(self, head:str, params:str, number:int) -> None:
        self._close_event()
        if self.encounter is None:
            self.error(number, f'choice "{head}" outside of an encounter')
            self._reject()
            return

        target = None
        m = TARGET_RE.match(head)
        if m:
            head = m.group("title").strip()
            target = m.group("target").strip() or None

        local_id, _, label = head.partition(" ")
        label = label.strip() or local_id
        if not self._valid_id(local_id, number, "choice"):
            self._reject()
            return
        self._add_choice(local_id, label, target, params, number)

    def _numbered_choice(self, text:str, number:int) -> None:
        self._close_event()
        assert self.encounter is not None
        split = self._split_marker(text, number)
        if split is None:
            return
        head, params = split
        m = NUMBERED_CHOICE_RE.match(head)
        if not m:
            self.error(number, f'invalid numbered choice "{head}"')
            return

        target = None
        label = (m.group("label") or "").strip()
        tm = TARGET_RE.match(label)
        if tm:
            label = tm.group("title").strip()
            target = tm.group("target").strip() or None
        self._add_choice(m.group("number"), label, target, params, number, order=int(m.group("number")))

    def _add_choice(self, local_id:str, label:str, target:Optional[str], params:str, number:int, order:Optional[int]=None) -> None:
        assert self.encounter is not None
        choice_ids = self.encounter.fields["choice_ids"]
        builder = _Builder(
            CHOICE, f'{self.encounter.id}.{local_id}', number,
            parent_encounter_id=self.encounter.id,
            order=order if order is not None else len(choice_ids) + 1,
            label=label, target=target, raw_params=params,
        )
        if not self._claim(builder):
            self._reject()
            return
        choice_ids.append(builder.id)
        self.in_choice_list = True
        self.discarding = False

        if params:
            self._freeze(builder)
            self.current = self.encounter
        else:
            # params may follow in a {...} block starting on the next line
            self.pending_params = builder
            self.params_lines = []
            self.params_start = number + 1
            self.current = builder

    def _params_continuation(self, text:str, number:int) -> bool:
        """ feeds a line to a choice waiting for its params block

        returns True if the line was consumed as params.
        """

        builder = self.pending_params
        assert builder is not None
        if not self.params_lines:
            if not text.startswith("{"):
                self._freeze(builder)
                self.pending_params = None
                self.current = self.encounter
                return False
            self.params_start = number

        self.params_lines.append(text)
        joined = "\n".join(self.params_lines)
        end = scanner.find_matching(joined, 0)
        if end < 0:
            return True

        trailing = joined[end+1:].strip()
        if trailing:
            self.error(number, f'unexpected text "{trailing}" after params')
        builder.fields["raw_params"] = joined[:end+1]
        self._freeze(builder)
        self.pending_params = None
        self.current = self.encounter
        return True

    def _open_event(self, head:str, params:str, number:int) -> None:
        self._close_event()
        parent = self.encounter if self.encounter is not None else self.room
        if parent is None:
            self.error(number, f'event "{head}" outside of a room')
            self._reject()
            return
        if not self._valid_id(head, number, "event"):
            self._reject()
            return

        builder = _Builder(EVENT, f'{parent.id}.{head}', number, parent_id=parent.id, raw_action_object=params)
        if not self._claim(builder):
            self._reject()
            return
        self.current = builder
        self.discarding = False

    def _open_template(self, head:str, params:str, number:int) -> None:
        self._close_room()
        self.discarding = False
        if not self._valid_id(head, number, "template"):
            self._reject()
            return
        builder = _Builder(TEMPLATE, head, number, raw_params=params)
        if not self._claim(builder):
            self._reject()
            return
        self.current = builder

    def _door_ids(self, params:str) -> tuple[str, ...]:
        if not params:
            return ()
        doors = actions.parse_action_object(params).get(self.doors_param)
        if doors is None or doors is True:
            return ()
        if isinstance(doors, list):
            return tuple(str(d).strip() for d in doors if str(d).strip())
        return tuple(d.strip() for d in str(doors).split(",") if d.strip())

    # closing scopes

    def _close_event(self) -> None:
        if self.current is not None and self.current.sigil == EVENT:
            self._freeze(self.current)
            self.current = self.encounter if self.encounter is not None else self.room
        if self.pending_params is not None:
            self._freeze(self.pending_params)
            self.pending_params = None
            self.current = self.encounter

    def _close_encounter(self) -> None:
        self._close_template()
        self._close_event()
        if self.encounter is not None:
            self._freeze(self.encounter)
            self.encounter = None
        self.in_choice_list = False
        self.current = self.room

    def _close_room(self) -> None:
        self._close_encounter()
        if self.room is not None:
            self._freeze(self.room)
            self.room = None
        self.current = None

    def _close_template(self) -> None:
        if self.current is not None and self.current.sigil == TEMPLATE:
            self._freeze(self.current)
            self.current = None

    def _check_content(self, builder:_Builder, content:str) -> None:
        for offset, message in scanner.check_blocks(content):
            line = builder.content_line + content.count("\n", 0, offset)
            self.error(line, f'{message} in {builder.line_id}')

    def _freeze(self, builder:_Builder) -> None:
        content = builder.content()
        self._check_content(builder, content)
        f = builder.fields
        node:DocumentNode
        if builder.sigil == ROOM:
            node = RoomNode(builder.id, content, f["door_ids"], f["raw_params"], builder.line)
        elif builder.sigil == ENCOUNTER:
            node = EncounterNode(
                builder.id, f["parent_room_id"], content,
                tuple(f["choice_ids"]), f["raw_params"], builder.line,
            )
        elif builder.sigil == CHOICE:
            node = ChoiceNode(
                builder.id, f["parent_encounter_id"], f["raw_params"],
                f["order"], f["label"], f["target"], builder.line,
            )
        elif builder.sigil == EVENT:
            node = EventNode(builder.id, f["parent_id"], content, f["raw_action_object"], builder.line)
        else:
            node = TemplateNode(builder.id, content, f["raw_params"], builder.line)
        self.nodes.append(node)


def parse(raw:str) -> ParseResult:
    """ parses dungeon markup into a Document, collecting errors """
    return DungeonParser().parse(raw)

def parse_files(paths:Iterable[str]) -> dict[str, ParseResult]:
    results = {}
    for path in paths:
        with open(path, "rt", encoding="utf-8") as f:
            results[path] = parse(f.read())
    return results
