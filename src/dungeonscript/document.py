""" Parsed dungeon content.

A Document maps line ids to immutable nodes, in source order. A line id is
the node's marker sigil followed by its namespaced id:

    ^crypt                room
    @crypt.entrance       encounter in room crypt
    !crypt.entrance.1     choice in that encounter
    #crypt.rumble         event in room crypt
    $greeting             template
"""

import types
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import ClassVar, Optional, Union

ROOM = "^"
ENCOUNTER = "@"
CHOICE = "!"
EVENT = "#"
TEMPLATE = "$"


@dataclass(frozen=True)
class RoomNode:
    sigil: ClassVar[str] = ROOM

    id: str
    raw_body: str = ""
    door_ids: tuple[str, ...] = ()
    raw_params: str = ""
    line: int = 0

    @property
    def line_id(self) -> str:
        return self.sigil + self.id


@dataclass(frozen=True)
class EncounterNode:
    sigil: ClassVar[str] = ENCOUNTER

    id: str
    parent_room_id: str
    raw_content: str = ""
    raw_choice_ids: tuple[str, ...] = ()
    raw_params: str = ""
    line: int = 0

    @property
    def line_id(self) -> str:
        return self.sigil + self.id


@dataclass(frozen=True)
class ChoiceNode:
    sigil: ClassVar[str] = CHOICE

    id: str
    parent_encounter_id: str
    raw_params: str = ""
    order: int = 0
    label: str = ""
    target: Optional[str] = None
    line: int = 0

    @property
    def line_id(self) -> str:
        return self.sigil + self.id


@dataclass(frozen=True)
class EventNode:
    sigil: ClassVar[str] = EVENT

    id: str
    parent_id: str
    raw_content: str = ""
    raw_action_object: str = ""
    line: int = 0

    @property
    def line_id(self) -> str:
        return self.sigil + self.id


@dataclass(frozen=True)
class TemplateNode:
    sigil: ClassVar[str] = TEMPLATE

    id: str
    raw_content: str = ""
    raw_params: str = ""
    line: int = 0

    @property
    def line_id(self) -> str:
        return self.sigil + self.id


DocumentNode = Union[RoomNode, EncounterNode, ChoiceNode, EventNode, TemplateNode]


class Document(Mapping[str, DocumentNode]):
    """ immutable, ordered mapping from line id to node """

    def __init__(self, nodes:Iterable[DocumentNode]=()) -> None:
        entries:dict[str, DocumentNode] = {}
        for node in nodes:
            if node.line_id in entries:
                raise ValueError(f'duplicate line id {node.line_id}')
            entries[node.line_id] = node
        self._nodes = types.MappingProxyType(entries)

    def __getitem__(self, line_id:str) -> DocumentNode:
        return self._nodes[line_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return f'Document({len(self._nodes)} nodes)'

    def rooms(self) -> list[RoomNode]:
        return [n for n in self._nodes.values() if isinstance(n, RoomNode)]

    def room(self, room_id:str) -> Optional[RoomNode]:
        node = self._nodes.get(ROOM + room_id)
        assert node is None or isinstance(node, RoomNode)
        return node

    def encounters(self, room_id:Optional[str]=None) -> list[EncounterNode]:
        return [
            n for n in self._nodes.values()
            if isinstance(n, EncounterNode) and (room_id is None or n.parent_room_id == room_id)
        ]

    def encounter(self, encounter_id:str) -> Optional[EncounterNode]:
        node = self._nodes.get(ENCOUNTER + encounter_id)
        assert node is None or isinstance(node, EncounterNode)
        return node

    def choices(self, encounter_id:str) -> list[ChoiceNode]:
        """ the encounter's choices in display order """
        found = [
            n for n in self._nodes.values()
            if isinstance(n, ChoiceNode) and n.parent_encounter_id == encounter_id
        ]
        return sorted(found, key=lambda n: n.order)

    def choice(self, choice_id:str) -> Optional[ChoiceNode]:
        node = self._nodes.get(CHOICE + choice_id)
        assert node is None or isinstance(node, ChoiceNode)
        return node

    def events(self, parent_id:Optional[str]=None) -> list[EventNode]:
        return [
            n for n in self._nodes.values()
            if isinstance(n, EventNode) and (parent_id is None or n.parent_id == parent_id)
        ]

    def event(self, event_id:str) -> Optional[EventNode]:
        node = self._nodes.get(EVENT + event_id)
        assert node is None or isinstance(node, EventNode)
        return node

    def templates(self) -> list[TemplateNode]:
        return [n for n in self._nodes.values() if isinstance(n, TemplateNode)]

    def template(self, template_id:str) -> Optional[TemplateNode]:
        node = self._nodes.get(TEMPLATE + template_id)
        assert node is None or isinstance(node, TemplateNode)
        return node
