import types
import logging
from typing import Generator

import pytest

from dungeonscript import config, conditions, placeholders
from dungeonscript.state import FlagStore
from dungeonscript.dispatcher import ActionDispatcher, PendingActionQueue
from dungeonscript.resolver import StringResolver
from dungeonscript.logic import LogicSystem

# some logging to turn on if we like
#logging.getLogger("dungeonscript.resolver").level = logging.DEBUG
#logging.getLogger("dungeonscript.dispatcher").level = logging.DEBUG

@pytest.fixture(autouse=True)
def settings() -> Generator[types.SimpleNamespace, None, None]:
    """ tests may tweak config.Settings, every test starts from the defaults """
    yield config.load_config()
    config.load_config()

@pytest.fixture
def store() -> FlagStore:
    store = FlagStore()
    store.enter("test")
    return store

@pytest.fixture
def queue() -> PendingActionQueue:
    return PendingActionQueue()

@pytest.fixture
def dispatcher(queue:PendingActionQueue) -> ActionDispatcher:
    return ActionDispatcher(queue)

@pytest.fixture
def placeholder_registry() -> placeholders.PlaceholderRegistry:
    return placeholders.PlaceholderRegistry()

@pytest.fixture
def condition_registry() -> conditions.ConditionRegistry:
    return conditions.ConditionRegistry()

@pytest.fixture
def template_registry() -> placeholders.TemplateRegistry:
    return placeholders.TemplateRegistry()

@pytest.fixture
def resolver(
    store:FlagStore,
    dispatcher:ActionDispatcher,
    placeholder_registry:placeholders.PlaceholderRegistry,
    condition_registry:conditions.ConditionRegistry,
    template_registry:placeholders.TemplateRegistry,
) -> StringResolver:
    return StringResolver(
        store,
        dispatcher,
        placeholder_registry,
        condition_registry,
        template_registry,
        current_dungeon=lambda: store.current_dungeon,
    )

@pytest.fixture
def logic() -> LogicSystem:
    return LogicSystem()
