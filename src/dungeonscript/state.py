""" Flag and visited-set storage the evaluator and actions read and write.

Hosts with their own game state only need to provide get_flag/set_flag (see
conditions.FlagLookup). FlagStore is a complete in-memory implementation
keeping one DungeonData per dungeon.
"""

import logging
from typing import Optional, Union

from dungeonscript import util

Number = Union[int, float]


class DungeonData:
    """ per dungeon progress: numeric flags and what has been seen """

    def __init__(self, dungeon_id:str) -> None:
        self.dungeon_id = dungeon_id
        self.flags:dict[str, Number] = {}
        self.visited_rooms:set[str] = set()
        self.visible_rooms:set[str] = set()
        self.visited_choices:set[str] = set()
        self.visited_events:set[str] = set()

    def get_flag(self, flag_id:str) -> Number:
        return self.flags.get(flag_id, 0)

    def set_flag(self, flag_id:str, value:Number) -> None:
        self.flags[flag_id] = value

    def add_flag(self, flag_id:str, delta:Number) -> Number:
        value = self.get_flag(flag_id) + delta
        self.flags[flag_id] = value
        return value

    def remove_flag(self, flag_id:str) -> bool:
        return self.flags.pop(flag_id, None) is not None

    def add_visited_room(self, room_id:str) -> None:
        self.visited_rooms.add(room_id)
        self.visible_rooms.add(room_id)

    def add_visible_room(self, room_id:str) -> None:
        self.visible_rooms.add(room_id)

    def is_room_visited(self, room_id:str) -> bool:
        return room_id in self.visited_rooms

    def add_visited_choice(self, choice_id:str) -> None:
        self.visited_choices.add(choice_id)

    def remove_visited_choice(self, choice_id:str) -> None:
        self.visited_choices.discard(choice_id)

    def is_choice_visited(self, choice_id:str) -> bool:
        return choice_id in self.visited_choices

    def add_visited_event(self, event_id:str) -> None:
        self.visited_events.add(event_id)

    def remove_visited_event(self, event_id:str) -> None:
        self.visited_events.discard(event_id)

    def is_event_visited(self, event_id:str) -> bool:
        return event_id in self.visited_events


class FlagStore:
    """ DungeonData for every dungeon plus which one is current

    Flag paths are either "flag", meaning the current dungeon, or
    "dungeon.flag". Reading from a dungeon with no data yet gives 0.
    """

    def __init__(self, current_dungeon:Optional[str]=None) -> None:
        self.logger = logging.getLogger(util.fullname(self))
        self.dungeons:dict[str, DungeonData] = {}
        self.current_dungeon = current_dungeon

    def data(self, dungeon_id:Optional[str]=None) -> DungeonData:
        """ the data for dungeon_id (default current), created on demand """
        if dungeon_id is None:
            dungeon_id = self.current_dungeon
        if dungeon_id is None:
            raise ValueError("no dungeon given and no current dungeon set")
        if dungeon_id not in self.dungeons:
            self.dungeons[dungeon_id] = DungeonData(dungeon_id)
        return self.dungeons[dungeon_id]

    def enter(self, dungeon_id:str) -> DungeonData:
        self.current_dungeon = dungeon_id
        return self.data(dungeon_id)

    def _split(self, path:str) -> tuple[Optional[str], str]:
        dungeon_id, sep, flag_id = path.partition(".")
        if not sep:
            return self.current_dungeon, path
        return dungeon_id, flag_id

    def get_flag(self, path:str) -> Number:
        dungeon_id, flag_id = self._split(path)
        if dungeon_id is None or dungeon_id not in self.dungeons:
            return 0
        return self.dungeons[dungeon_id].get_flag(flag_id)

    def set_flag(self, path:str, value:Number) -> None:
        dungeon_id, flag_id = self._split(path)
        self.logger.debug(f'setting flag {path} = {value}')
        self.data(dungeon_id).set_flag(flag_id, value)

    def add_flag(self, path:str, delta:Number) -> Number:
        dungeon_id, flag_id = self._split(path)
        value = self.data(dungeon_id).add_flag(flag_id, delta)
        self.logger.debug(f'flag {path} += {delta} -> {value}')
        return value
