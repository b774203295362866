""" Action Dispatcher

Maps action ids to host handlers and runs them, either immediately or at the
next scene transition.

    dispatcher = ActionDispatcher()
    dispatcher.register("sound", play_sound)
    dispatcher.register("give_item", give_item, delayed=True)

    dispatcher.execute_all({"sound": ["door", "wind"], "give_item": "key"})
    # play_sound("door"), play_sound("wind") now
    ...
    dispatcher.flush_delayed()
    # give_item("key") when the host changes scene
"""

import collections
import logging
from collections.abc import Iterator, Mapping, Iterable, Collection
from dataclasses import dataclass
from typing import Any, Callable, Optional

from dungeonscript import util, config

ActionHandler = Callable[[Any], Any]
ChoiceModifier = Callable[[Any, Any], Any]


@dataclass(frozen=True)
class ActionRecord:
    action_id: str
    args: Any
    delayed: bool = False


class PendingActionQueue:
    """ FIFO of delayed action records waiting for the next scene transition

    Owned by whoever constructs the dispatcher. Share one between dispatchers,
    persist it, or give each test its own.
    """

    def __init__(self, records:Optional[Iterable[ActionRecord]]=None) -> None:
        self.records:collections.deque[ActionRecord] = collections.deque(records or ())

    def enqueue(self, record:ActionRecord) -> None:
        self.records.append(record)

    def drain(self) -> list[ActionRecord]:
        """ takes every queued record, leaving the queue empty """
        records = list(self.records)
        self.records.clear()
        return records

    def clear(self) -> None:
        self.records.clear()

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[ActionRecord]:
        return iter(self.records)


@dataclass
class ActionSpec:
    handler: ActionHandler
    delayed: bool = False
    accumulate: bool = False
    on_game_load: bool = False
    choice_modifier: Optional[ChoiceModifier] = None


class ActionDispatcher:
    def __init__(
        self,
        queue:Optional[PendingActionQueue]=None,
        condition_keys:Optional[Collection[str]]=None,
    ) -> None:
        self.logger = logging.getLogger(util.fullname(self))
        self.queue = queue if queue is not None else PendingActionQueue()
        if condition_keys is None:
            condition_keys = config.Settings.logic.CONDITION_KEYS
        self.condition_keys = frozenset(condition_keys)
        self.actions:dict[str, ActionSpec] = {}

    def register(
        self,
        action_id:str,
        handler:ActionHandler,
        delayed:bool=False,
        accumulate:bool=False,
        on_game_load:bool=False,
        choice_modifier:Optional[ChoiceModifier]=None,
    ) -> None:
        """ Registers handler to run for action_id.

        Parameters
        ----------
        action_id : str
            the key authors use in action objects
        handler : callable
            called with the action's argument, once per item if the argument
            is a list
        delayed : bool
            queue the action until the next flush_delayed instead of running it
        accumulate : bool
            repeated occurrences in one resolved string collect into a list
            instead of the last one winning
        on_game_load : bool
            the action should be re-run after a saved game is loaded, see
            reload_subset
        choice_modifier : callable, optional
            called with (choice, args) when a choice carrying this action is
            built, e.g. to decorate its label with a cost
        """

        if not callable(handler):
            raise ValueError(f'action {action_id} handler must be callable, got {handler!r}')
        if choice_modifier is not None and not callable(choice_modifier):
            raise ValueError(f'action {action_id} choice modifier must be callable, got {choice_modifier!r}')
        if action_id in self.condition_keys:
            raise ValueError(f'{action_id} is reserved for conditions and cannot be an action')

        if action_id in self.actions:
            self.logger.info(f'action "{action_id}" already exists - overwriting')
        self.actions[action_id] = ActionSpec(handler, delayed, accumulate, on_game_load, choice_modifier)

    def __contains__(self, action_id:str) -> bool:
        return action_id in self.actions

    def accumulating(self) -> frozenset[str]:
        return frozenset(k for k, v in self.actions.items() if v.accumulate)

    def _invoke(self, action_id:str, spec:ActionSpec, args:Any) -> None:
        items = args if isinstance(args, list) else [args]
        for item in items:
            self.logger.debug(f'running action {action_id}({item!r})')
            try:
                spec.handler(item)
            except Exception:
                self.logger.exception(f'action {action_id} failed with args {item!r}')

    def execute(self, action_id:str, args:Any) -> None:
        """ runs action_id now, or queues it if it was registered delayed

        unknown actions are logged and skipped.
        """

        spec = self.actions.get(action_id)
        if spec is None:
            self.logger.warning(f'unknown action "{action_id}" with args {args!r}, skipping')
            return

        if spec.delayed:
            self.logger.debug(f'delaying action {action_id}({args!r}) until next transition')
            self.queue.enqueue(ActionRecord(action_id, args, delayed=True))
        else:
            self._invoke(action_id, spec, args)

    def execute_all(self, params:Optional[Mapping[str, Any]], skip_delayed:bool=False) -> None:
        """ executes every action in params in order

        condition keys (if, ifOr, active, activeOr) are not actions and are
        skipped, as are delayed actions if skip_delayed is set.
        """

        if not params:
            return
        for action_id, args in params.items():
            if action_id in self.condition_keys:
                continue
            if skip_delayed:
                spec = self.actions.get(action_id)
                if spec is not None and spec.delayed:
                    continue
            self.execute(action_id, args)

    def flush_delayed(self) -> int:
        """ runs every queued action once, in the order they were queued

        Actions queued by handlers while flushing wait for the next flush.
        Returns the number of records run.
        """

        records = self.queue.drain()
        if records:
            self.logger.debug(f'flushing {len(records)} delayed actions')
        for record in records:
            spec = self.actions.get(record.action_id)
            if spec is None:
                self.logger.warning(f'delayed action "{record.action_id}" is no longer registered, dropping')
                continue
            self._invoke(record.action_id, spec, record.args)
        return len(records)

    def delayed_subset(self, params:Mapping[str, Any]) -> dict[str, Any]:
        """ the entries of params naming delayed actions """
        return {k: v for k, v in params.items() if k in self.actions and self.actions[k].delayed}

    def reload_subset(self, params:Mapping[str, Any]) -> dict[str, Any]:
        """ the entries of params that must be re-run after loading a game """
        return {k: v for k, v in params.items() if k in self.actions and self.actions[k].on_game_load}

    def modify_choice(self, choice:Any, params:Optional[Mapping[str, Any]]) -> None:
        """ lets registered choice modifiers adjust a choice built from params """

        if not params:
            return
        for action_id, args in params.items():
            spec = self.actions.get(action_id)
            if spec is None or spec.choice_modifier is None:
                continue
            try:
                spec.choice_modifier(choice, args)
            except Exception:
                self.logger.exception(f'choice modifier for {action_id} failed with args {args!r}')
