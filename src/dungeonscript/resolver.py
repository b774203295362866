""" String Resolver

Turns authored text into display text plus the actions it carries, in a
single left to right pass:

    "You see |name|. if{gold >= 10}{sound: coins}You are rich. else{}Poor. fi{}"

Conditional blocks whose condition fails are skipped whole: nothing inside
them is looked up, parsed or executed. Action objects run as soon as the pass
reaches them (unless the caller asks only for the text), so a flag they set
is seen by the conditions and placeholders after them.

Text the pass copies through is left exactly as written. Only the spaces
around a span that was cut out (a block head or terminator, a skipped branch,
an action object) are squeezed: "a if{x}b fi{}c" reads "a c", not "a  c".
"""

import re
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from dungeonscript import util, scanner, conditions, placeholders, actions, config
from dungeonscript.dispatcher import ActionDispatcher

SPEAKER_RE = re.compile(r"^(?P<speaker>[A-Za-z0-9_\-]+):[ \t]*(?P<text>.*)$", re.DOTALL)
ITALIC_RE = re.compile(r"\*\*(.+?)\*\*")
BOLD_RE = re.compile(r"\*(.+?)\*")
# marks where a span was cut out of the output
CUT = "\x01"
CUT_RE = re.compile(r"[ \t]*(?:\x01[ \t]*)+")
PROTECTED_RE = re.compile("\x00(\\d+)\x00")

# where something other than plain text may start
SPECIAL_RE = re.compile(r"[\[|{]|(?<![A-Za-z0-9_])(?:ifOr|if|activeOr|active|else|fi)\{")


@dataclass
class ResolvedText:
    output: str
    actions: dict[str, Any] = field(default_factory=dict)
    speaker: Optional[str] = None


class _Pass:
    """ mutable state of one resolve call """

    def __init__(self, execute:bool=True) -> None:
        self.execute = execute
        self.out:list[str] = []
        self.actions:dict[str, Any] = {}
        self.protected:list[str] = []
        self.redirect:Optional[dict[str, Any]] = None

    def protect(self, text:str) -> None:
        """ emits text that post-processing must not touch """
        self.out.append(f'\x00{len(self.protected)}\x00')
        self.protected.append(text)

    def cut(self) -> None:
        self.out.append(CUT)


def _squeeze(m:re.Match[str]) -> str:
    """ the spacing that replaces a run of cuts and the spaces around them

    keeps a line's indentation, drops spaces at the end of a line and
    otherwise leaves at most one space between the surrounding words
    """
    run = m.group(0)
    before = m.string[m.start()-1] if m.start() > 0 else "\n"
    after = m.string[m.end()] if m.end() < len(m.string) else "\n"
    if before == "\n":
        return run[:run.index(CUT)] if after != "\n" else ""
    if after == "\n" or not run.replace(CUT, ""):
        return ""
    return " "


class StringResolver:
    def __init__(
        self,
        flags:conditions.FlagLookup,
        dispatcher:Optional[ActionDispatcher]=None,
        placeholder_registry:Optional[placeholders.PlaceholderRegistry]=None,
        condition_registry:Optional[conditions.ConditionRegistry]=None,
        template_registry:Optional[placeholders.TemplateRegistry]=None,
        current_dungeon:Optional[Callable[[], Optional[str]]]=None,
    ) -> None:
        self.logger = logging.getLogger(util.fullname(self))
        self.flags = flags
        self.dispatcher = dispatcher if dispatcher is not None else ActionDispatcher()
        self.placeholders = placeholder_registry if placeholder_registry is not None else placeholders.PlaceholderRegistry()
        self.conditions = condition_registry if condition_registry is not None else conditions.ConditionRegistry()
        self.templates = template_registry if template_registry is not None else placeholders.TemplateRegistry()
        self.current_dungeon = current_dungeon

    def resolve(self, text:str, no_execute_actions:bool=False) -> ResolvedText:
        """ Resolves text against the current game state.

        Parameters
        ----------
        text : str
            authored text, possibly containing conditional blocks,
            placeholders, action objects and [code] regions
        no_execute_actions : bool
            only report the actions, don't run them

        Returns
        -------
        out : ResolvedText
            the display text, the merged actions and the speaker if the text
            starts with one (and speaker prefixes are enabled)
        """

        state = _Pass(execute=not no_execute_actions)
        self._run(util.normalize_quotes(text), state, 0)

        if state.redirect is not None:
            # whatever ran before the redirect stays done
            self.logger.debug(f'redirect in "{text[:40]}" stops resolution')
            return ResolvedText("", state.redirect)

        output, speaker = self._post_process("".join(state.out))
        output = PROTECTED_RE.sub(lambda m: state.protected[int(m.group(1))], output)
        return ResolvedText(output, state.actions, speaker)

    def evaluate(self, expr:str, any_of:bool=False) -> bool:
        """ evaluates a condition expression against this resolver's state """
        return conditions.evaluate(self._expand_placeholders(expr), self.flags, any_of, self.conditions)

    def evaluate_params(self, params:Optional[Mapping[str, Any]], active:bool=False) -> bool:
        return conditions.evaluate_params(params, self.flags, active, self.conditions)

    def _post_process(self, output:str) -> tuple[str, Optional[str]]:
        settings = config.Settings.resolver
        if settings.COLLAPSE_WHITESPACE:
            output = CUT_RE.sub(_squeeze, output)
        else:
            output = output.replace(CUT, "")

        speaker = None
        if settings.SPEAKER_PREFIX:
            m = SPEAKER_RE.match(output)
            if m:
                speaker = m.group("speaker")
                output = m.group("text")

        if settings.TEXT_STYLES:
            output = ITALIC_RE.sub(r"<i>\1</i>", output)
            output = BOLD_RE.sub(r"<b>\1</b>", output)

        return output, speaker

    def _run(self, text:str, state:_Pass, depth:int) -> None:
        i = 0
        n = len(text)
        while i < n and state.redirect is None:
            m = SPECIAL_RE.search(text, i)
            if m is None:
                state.out.append(text[i:])
                return
            if m.start() > i:
                state.out.append(text[i:m.start()])
                i = m.start()

            c = text[i]
            if c == "[":
                i = self._code(text, i, state)
            elif c in "ia":
                i = self._block(text, i, state, depth)
            elif c in "ef":
                i = self._stray_terminator(text, i, state)
            elif c == "|":
                i = self._placeholder(text, i, state, depth)
            else:
                i = self._action_object(text, i, state)

    def _code(self, text:str, i:int, state:_Pass) -> int:
        if not text.startswith(scanner.CODE_OPEN, i):
            state.out.append("[")
            return i + 1
        start = i + len(scanner.CODE_OPEN)
        end = text.find(scanner.CODE_CLOSE, start)
        if end < 0:
            self.logger.warning(f'unterminated {scanner.CODE_OPEN}, copying the rest verbatim')
            state.protect(text[start:])
            return len(text)
        state.protect(text[start:end])
        return end + len(scanner.CODE_CLOSE)

    def _stray_terminator(self, text:str, i:int, state:_Pass) -> int:
        term = scanner.match_terminator(text, i)
        if term is None:
            state.out.append(text[i])
            return i + 1
        self.logger.warning(f'dropping {term.keyword}{{}} with no open block')
        state.cut()
        return term.end

    def _block(self, text:str, i:int, state:_Pass, depth:int) -> int:
        if not scanner.match_open_block(text, i):
            state.out.append(text[i])
            return i + 1

        head = scanner.match_block_head(text, i)
        if head is None:
            self.logger.warning(f'unterminated condition head "{text[i:i+40]}", copying the rest verbatim')
            state.out.append(text[i:])
            return len(text)

        bounds = scanner.find_block_end(text, head.end)
        if bounds.fi is None:
            self.logger.warning(f'{head.keyword}{{{head.condition}}} is missing fi{{}}, block runs to the end')
            body_end = after = len(text)
        else:
            body_end, after = bounds.fi.start, bounds.fi.end

        state.cut()
        any_of = head.keyword in scanner.OR_KEYWORDS

        # (condition, start, end) for the if branch and each else branch
        branches:list[tuple[str, int, int]] = []
        condition = head.condition
        start = head.end
        for term in bounds.branches:
            branches.append((condition, start, term.start))
            condition = term.condition
            start = term.end
        branches.append((condition, start, body_end))

        for index, (condition, start, end) in enumerate(branches):
            if index > 0 and not condition:
                passes = True
            else:
                passes = self.evaluate(condition, any_of)
            if passes:
                self._run(text[start:end], state, depth)
                break

        state.cut()
        return after

    def _expand_placeholders(self, text:str) -> str:
        """ splices registered placeholders into a condition expression """
        if "|" not in text:
            return text
        state = _Pass()
        i = 0
        while i < len(text):
            j = text.find("|", i)
            if j < 0:
                state.out.append(text[i:])
                break
            state.out.append(text[i:j])
            i = self._placeholder(text, j, state, -1)
        return "".join(state.out)

    def _placeholder(self, text:str, i:int, state:_Pass, depth:int) -> int:
        close = text.find("|", i + 1)
        body = text[i+1:close] if close > 0 else ""
        call = placeholders.parse_placeholder(body) if body and "\n" not in body else None
        if call is None:
            state.out.append("|")
            return i + 1

        literal = text[i:close+1]
        if call.template:
            self._template(call, literal, state, depth)
            return close + 1

        if call.placeholder_id not in self.placeholders:
            self.logger.warning(f'unknown placeholder "{call.placeholder_id}", leaving {literal} as is')
            state.out.append(literal)
            return close + 1

        try:
            state.out.append(self.placeholders.call(call.placeholder_id, call.args))
        except Exception as e:
            self.logger.warning(f'placeholder {literal} failed: {e!r}')
            state.out.append(literal)
        return close + 1

    def _template(self, call:placeholders.PlaceholderCall, literal:str, state:_Pass, depth:int) -> None:
        # conditions may not pull in whole templates
        if depth < 0:
            state.out.append(literal)
            return

        dungeon_id = self.current_dungeon() if self.current_dungeon is not None else None
        content = self.templates.lookup(call.placeholder_id, dungeon_id)
        if content is None:
            self.logger.warning(f'unknown template "{call.placeholder_id}", leaving {literal} as is')
            state.out.append(literal)
            return

        max_depth = config.Settings.resolver.MAX_TEMPLATE_DEPTH
        if depth >= max_depth:
            self.logger.warning(f'template {literal} nested deeper than {max_depth}, not expanding')
            state.out.append(literal)
            return

        self._run(util.normalize_quotes(content), state, depth + 1)

    def _action_object(self, text:str, i:int, state:_Pass) -> int:
        end = scanner.find_matching(text, i)
        if end < 0:
            self.logger.warning(f'unterminated action object "{text[i:i+40]}", copying the rest verbatim')
            state.out.append(text[i:])
            return len(text)

        obj = actions.parse_action_object(text[i:end+1])
        redirect_key = config.Settings.resolver.REDIRECT_KEY
        if redirect_key in obj:
            state.redirect = obj
            return len(text)

        actions.merge_actions(state.actions, obj, self.dispatcher.accumulating())
        if state.execute:
            self.dispatcher.execute_all(obj)
        state.cut()
        return end + 1
