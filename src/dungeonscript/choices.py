""" Play-time model built from Document nodes.

Nothing here caches condition results: visibility and availability are
recomputed from the current flags each time they are asked for. Hosts with a
reactive UI wrap the calls in whatever reactivity they use.
"""

import enum
import logging
from collections.abc import Mapping
from typing import Any, Callable, Optional, Protocol

from dungeonscript import util, conditions, actions, config
from dungeonscript.document import Document, RoomNode, EncounterNode, ChoiceNode, EventNode
from dungeonscript.resolver import StringResolver, ResolvedText

# event params that configure the event itself rather than naming actions
REPEAT_PARAM = "repeat"


class ChoiceState(enum.Enum):
    HIDDEN = enum.auto()
    VISIBLE = enum.auto()
    AVAILABLE = enum.auto()
    EXECUTED = enum.auto()


class Progress(Protocol):
    """ where visits are recorded, see state.DungeonData """
    def add_visited_room(self, room_id:str) -> None: ...
    def add_visible_room(self, room_id:str) -> None: ...
    def add_visited_choice(self, choice_id:str) -> None: ...
    def add_visited_event(self, event_id:str) -> None: ...
    def is_event_visited(self, event_id:str) -> bool: ...


def parse_params(raw_params:str) -> dict[str, Any]:
    if not raw_params.strip():
        return {}
    return actions.parse_action_object(raw_params)

def compute_visible(
    params:Optional[Mapping[str, Any]],
    flags:conditions.FlagLookup,
    registry:Optional[conditions.ConditionRegistry]=None,
) -> bool:
    """ whether a choice with params is shown at all (its if/ifOr) """
    return conditions.evaluate_params(params, flags, registry=registry)

def compute_available(
    params:Optional[Mapping[str, Any]],
    flags:conditions.FlagLookup,
    registry:Optional[conditions.ConditionRegistry]=None,
) -> bool:
    """ whether a choice with params can be taken (visible and its active/activeOr) """
    return compute_visible(params, flags, registry) and conditions.evaluate_params(params, flags, active=True, registry=registry)


class Choice:
    def __init__(
        self,
        node:ChoiceNode,
        resolver:StringResolver,
        progress:Progress,
        log:Optional[Callable[[str], None]]=None,
    ) -> None:
        self.logger = logging.getLogger(util.fullname(self))
        self.node = node
        self.id = node.id
        self.resolver = resolver
        self.progress = progress
        self.log = log
        self.params = parse_params(node.raw_params)
        self.name = resolver.resolve(node.label, no_execute_actions=True).output if node.label else ""
        self.executed = False

        resolver.dispatcher.modify_choice(self, self.params)

    @property
    def target(self) -> Optional[str]:
        return self.node.target

    def is_visible(self) -> bool:
        return compute_visible(self.params, self.resolver.flags, self.resolver.conditions)

    def is_available(self) -> bool:
        return compute_available(self.params, self.resolver.flags, self.resolver.conditions)

    @property
    def state(self) -> ChoiceState:
        if self.executed:
            return ChoiceState.EXECUTED
        elif not self.is_visible():
            return ChoiceState.HIDDEN
        elif not self.is_available():
            return ChoiceState.VISIBLE
        return ChoiceState.AVAILABLE

    def do(self) -> Optional[ResolvedText]:
        """ takes the choice if it is available

        records the visit, runs the choice's actions and logs its name.
        Returns the resolved params, or None if the choice wasn't available.
        """

        if not self.is_available():
            self.logger.debug(f'choice {self.id} is not available, ignoring')
            return None

        self.progress.add_visited_choice(self.id)
        resolved = self.resolver.resolve(self.node.raw_params)
        self.executed = True

        if self.name:
            self.logger.info(f'choice {self.id}: {self.name}')
            if self.log is not None:
                self.log(self.name)
        return resolved

    def __repr__(self) -> str:
        return f'Choice({self.id!r}, {self.name!r})'


class Encounter:
    def __init__(
        self,
        node:EncounterNode,
        document:Document,
        resolver:StringResolver,
        progress:Progress,
        log:Optional[Callable[[str], None]]=None,
    ) -> None:
        self.node = node
        self.id = node.id
        self.document = document
        self.resolver = resolver
        self.progress = progress
        self.log = log
        self.params = parse_params(node.raw_params)

    def is_visible(self) -> bool:
        return self.resolver.evaluate_params(self.params)

    def content(self) -> ResolvedText:
        return self.resolver.resolve(self.node.raw_content)

    def choices(self) -> list[Choice]:
        """ every choice, in order, whatever its state """
        return [
            Choice(n, self.resolver, self.progress, self.log)
            for n in self.document.choices(self.id)
        ]

    def visible_choices(self) -> list[Choice]:
        return [c for c in self.choices() if c.is_visible()]


class Event:
    """ a scene that fires when its condition holds

    fires at most once unless its params set repeat.
    """

    def __init__(
        self,
        node:EventNode,
        resolver:StringResolver,
        progress:Progress,
    ) -> None:
        self.logger = logging.getLogger(util.fullname(self))
        self.node = node
        self.id = node.id
        self.resolver = resolver
        self.progress = progress
        self.params = parse_params(node.raw_action_object)

    @property
    def repeat(self) -> bool:
        return util.truthy(self.params.get(REPEAT_PARAM, False))

    def rooms(self) -> list[str]:
        """ extra room ids the event fires in besides its parent's """
        rooms = self.params.get(config.Settings.parser.ROOMS_PARAM)
        if rooms is None or rooms is True:
            return []
        if isinstance(rooms, list):
            return [str(r).strip() for r in rooms]
        return [r.strip() for r in str(rooms).split(",") if r.strip()]

    def fires_in(self, room_id:str) -> bool:
        parent_room = self.node.parent_id.split(".")[0]
        return room_id == parent_room or room_id in self.rooms()

    def can_trigger(self) -> bool:
        if not self.repeat and self.progress.is_event_visited(self.id):
            return False
        return self.resolver.evaluate_params(self.params)

    def action_params(self) -> dict[str, Any]:
        reserved = (REPEAT_PARAM, config.Settings.parser.ROOMS_PARAM)
        return {k: v for k, v in self.params.items() if k not in reserved}

    def trigger(self) -> Optional[ResolvedText]:
        """ runs the event if it can fire, returns its resolved content """

        if not self.can_trigger():
            return None

        self.logger.debug(f'triggering event {self.id}')
        self.progress.add_visited_event(self.id)
        resolved = self.resolver.resolve(self.node.raw_content)
        self.resolver.dispatcher.execute_all(self.action_params())
        return resolved


class Room:
    def __init__(
        self,
        node:RoomNode,
        document:Document,
        resolver:StringResolver,
        progress:Progress,
        log:Optional[Callable[[str], None]]=None,
    ) -> None:
        self.node = node
        self.id = node.id
        self.document = document
        self.resolver = resolver
        self.progress = progress
        self.log = log

    @property
    def door_ids(self) -> tuple[str, ...]:
        return self.node.door_ids

    def enter(self) -> ResolvedText:
        """ marks the room visited and its neighbors visible, resolves its body """
        self.progress.add_visited_room(self.id)
        for door in self.node.door_ids:
            self.progress.add_visible_room(door)
        return self.resolver.resolve(self.node.raw_body)

    def encounters(self) -> list[Encounter]:
        return [
            Encounter(n, self.document, self.resolver, self.progress, self.log)
            for n in self.document.encounters(self.id)
        ]

    def visible_encounters(self) -> list[Encounter]:
        return [e for e in self.encounters() if e.is_visible()]

    def events(self) -> list[Event]:
        """ events parented here or in one of this room's encounters, plus
        events elsewhere listing this room """
        events = [Event(n, self.resolver, self.progress) for n in self.document.events()]
        return [e for e in events if e.fires_in(self.id)]

    def trigger_events(self) -> list[ResolvedText]:
        """ triggers every event that can fire here, in document order """
        fired = []
        for event in self.events():
            resolved = event.trigger()
            if resolved is not None:
                fired.append(resolved)
        return fired
