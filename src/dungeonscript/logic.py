""" Wires the registries, dispatcher and resolver together for a host.

    logic = LogicSystem()
    logic.register_placeholder("name", lambda: player.name)
    logic.register_action("give_item", inventory.give, delayed=True)
    result = logic.load_dungeon("crypt", open("crypt.txt").read())
    logic.store.enter("crypt")

    room = logic.room("crypt", "entrance")
    text = room.enter().output
    ...
    logic.flush_delayed()   # on every scene transition
"""

import logging
from collections.abc import Mapping
from typing import Any, Callable, Optional

from dungeonscript import util, standard_actions
from dungeonscript.conditions import ConditionRegistry
from dungeonscript.placeholders import PlaceholderRegistry, TemplateRegistry
from dungeonscript.dispatcher import ActionDispatcher, PendingActionQueue, ActionHandler, ChoiceModifier
from dungeonscript.resolver import StringResolver, ResolvedText
from dungeonscript.state import FlagStore
from dungeonscript.document import Document
from dungeonscript.dungeon_parser import ParseResult, parse
from dungeonscript.choices import Room


class LogicSystem:
    def __init__(
        self,
        store:Optional[FlagStore]=None,
        queue:Optional[PendingActionQueue]=None,
        with_standard_actions:bool=True,
    ) -> None:
        self.logger = logging.getLogger(util.fullname(self))
        self.store = store if store is not None else FlagStore()
        self.conditions = ConditionRegistry()
        self.placeholders = PlaceholderRegistry()
        self.templates = TemplateRegistry()
        self.dispatcher = ActionDispatcher(queue)
        self.resolver = StringResolver(
            self.store,
            self.dispatcher,
            self.placeholders,
            self.conditions,
            self.templates,
            current_dungeon=lambda: self.store.current_dungeon,
        )
        self.documents:dict[str, Document] = {}
        self.narrative_log:list[str] = []

        if with_standard_actions:
            standard_actions.register(self, self.store)

    # registration

    def register_condition(self, condition_id:str, fn:Callable[..., Any]) -> None:
        self.conditions.register(condition_id, fn)

    def register_placeholder(self, placeholder_id:str, fn:Callable[..., Any]) -> None:
        self.placeholders.register(placeholder_id, fn)

    def register_action(
        self,
        action_id:str,
        handler:ActionHandler,
        delayed:bool=False,
        accumulate:bool=False,
        on_game_load:bool=False,
        choice_modifier:Optional[ChoiceModifier]=None,
    ) -> None:
        self.dispatcher.register(action_id, handler, delayed, accumulate, on_game_load, choice_modifier)

    # content

    def load_dungeon(self, dungeon_id:str, raw:str) -> ParseResult:
        """ parses a dungeon and makes its templates available

        parse errors are logged and returned, the document is kept either way.
        """

        result = parse(raw)
        for error in result.errors:
            self.logger.warning(f'{dungeon_id}:{error.line}: {error.message}')
        self.documents[dungeon_id] = result.document
        count = self.templates.add_document(result.document, dungeon_id)
        self.logger.info(f'loaded dungeon {dungeon_id} with {len(result.document)} nodes and {count} templates')
        return result

    def room(self, dungeon_id:str, room_id:str) -> Room:
        document = self.documents[dungeon_id]
        node = document.room(room_id)
        if node is None:
            raise KeyError(f'no room {room_id} in dungeon {dungeon_id}')
        return Room(node, document, self.resolver, self.store.data(dungeon_id), self.narrative_log.append)

    # play

    def resolve(self, text:str, no_execute_actions:bool=False) -> ResolvedText:
        return self.resolver.resolve(text, no_execute_actions)

    def evaluate(self, expr:str, any_of:bool=False) -> bool:
        return self.resolver.evaluate(expr, any_of)

    def execute_actions(self, params:Optional[Mapping[str, Any]], skip_delayed:bool=False) -> None:
        self.dispatcher.execute_all(params, skip_delayed)

    def flush_delayed(self) -> int:
        """ call exactly once per scene transition, before loading the next scene """
        return self.dispatcher.flush_delayed()

    def on_game_load(self, params:Mapping[str, Any]) -> None:
        """ re-runs the actions in params that must be re-applied after a load """
        self.dispatcher.execute_all(self.dispatcher.reload_subset(params))
