""" Actions every game gets.

flag manipulates numeric flags:

    {flag: "gold=10"}               set
    {flag: "gold>5, crypt.keys<1"}  add 5 to gold, subtract 1 from crypt.keys
    {flag: {gold: 10, torches: 2}}  set several
"""

import re
import logging
from collections.abc import Mapping
from typing import Any, Optional

from dungeonscript import util
from dungeonscript.state import FlagStore, Number

logger = logging.getLogger(__name__)

FLAG_OPERATION_RE = re.compile(r"^(?P<key>[^=<>]+?)\s*(?P<op>[=<>])\s*(?P<value>[^=<>]*)$")


class FlagAction:
    """ handler for the flag action, bound to a store """

    def __init__(self, store:FlagStore) -> None:
        self.logger = logging.getLogger(util.fullname(self))
        self.store = store

    def parse(self, data:Any) -> list[tuple[str, str, Number]]:
        """ turns the action's argument into (path, operator, value) triples

        invalid operations are logged and left out.
        """

        if isinstance(data, Mapping):
            operations = []
            for key, value in data.items():
                number:Optional[Number]
                if isinstance(value, bool):
                    number = int(value)
                elif isinstance(value, (int, float)):
                    number = value
                else:
                    number = self._number(str(value))
                if number is None:
                    self.logger.warning(f'invalid flag value {value!r} for "{key}", flags must be numbers')
                    continue
                operations.append((str(key), "=", number))
            return operations

        operations = []
        for pair in str(data).split(","):
            pair = pair.strip()
            if not pair:
                continue
            m = FLAG_OPERATION_RE.match(pair)
            if not m:
                self.logger.warning(f'invalid flag operation "{pair}", use key=value, key>value or key<value')
                continue
            number = self._number(m.group("value").strip())
            if number is None:
                self.logger.warning(f'invalid flag value "{m.group("value")}" for "{m.group("key")}", flags must be numbers')
                continue
            operations.append((m.group("key").strip(), m.group("op"), number))
        return operations

    def _number(self, value:str) -> Optional[Number]:
        if value in ("true", "false"):
            return 1 if value == "true" else 0
        return util.parse_number(value)

    def __call__(self, data:Any) -> None:
        for path, op, value in self.parse(data):
            if op == "=":
                self.store.set_flag(path, value)
            elif op == ">":
                self.store.add_flag(path, value)
            else:
                self.store.add_flag(path, -value)
        self.logger.info(f'flag operation(s): {data}')


def register(logic:Any, store:FlagStore) -> None:
    """ registers the standard actions on a LogicSystem """
    logic.register_action("flag", FlagAction(store))
