""" Helpers shared by the dungeonscript tests. """

import logging
from typing import Any, Callable


class Flags:
    """ bare FlagLookup over a dict, for tests that don't need a FlagStore """

    def __init__(self, **flags:Any) -> None:
        self.flags = dict(flags)

    def get_flag(self, path:str) -> Any:
        return self.flags.get(path, 0)

    def set_flag(self, path:str, value:Any) -> None:
        self.flags[path] = value


class RecordingHandler:
    """ action handler that remembers what it was called with """

    def __init__(self) -> None:
        self.calls:list[Any] = []

    def __call__(self, args:Any) -> None:
        self.calls.append(args)


class CallLog:
    """ one ordered log shared by several handlers """

    def __init__(self) -> None:
        self.entries:list[tuple[str, Any]] = []

    def handler(self, action_id:str) -> Callable[[Any], None]:
        def record(args:Any) -> None:
            self.entries.append((action_id, args))
        return record


def warnings_in(caplog:Any) -> list[logging.LogRecord]:
    return [r for r in caplog.records if r.levelno == logging.WARNING]
