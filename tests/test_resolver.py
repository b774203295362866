""" Tests for resolving authored text into display text and actions """

import logging
import types

import pytest

from dungeonscript import placeholders, conditions
from dungeonscript.state import FlagStore
from dungeonscript.dispatcher import ActionDispatcher
from dungeonscript.resolver import StringResolver
from dungeonscript.standard_actions import FlagAction
from . import RecordingHandler, CallLog, warnings_in

def test_plain_text_unchanged(resolver:StringResolver) -> None:
    result = resolver.resolve("plain text")
    assert result.output == "plain text"
    assert result.actions == {}
    assert result.speaker is None

    assert resolver.resolve("").output == ""
    assert resolver.resolve("line one\nline two").output == "line one\nline two"
    assert resolver.resolve("a  b").output == "a  b"
    assert resolver.resolve("  indented").output == "  indented"
    assert resolver.resolve("trailing ").output == "trailing "
    assert resolver.resolve("two\n    lines\n\tand tabs").output == "two\n    lines\n\tand tabs"

def test_false_block_is_suppressed(resolver:StringResolver, dispatcher:ActionDispatcher, placeholder_registry:placeholders.PlaceholderRegistry) -> None:
    sound = RecordingHandler()
    dispatcher.register("sound", sound)
    name_calls = []
    placeholder_registry.register("name", lambda: name_calls.append(1) or "Alice")

    assert resolver.resolve("a if{cond}b fi{}c").output == "a c"

    result = resolver.resolve("a if{cond}b |name| {sound: x} fi{}c")
    assert result.output == "a c"
    assert result.actions == {}
    assert sound.calls == []
    assert name_calls == []

def test_true_block_is_kept(resolver:StringResolver, store:FlagStore) -> None:
    store.set_flag("cond", 1)
    assert resolver.resolve("a if{cond}b fi{}c").output == "a b c"

def test_nested_blocks(resolver:StringResolver, store:FlagStore) -> None:
    text = "if{A}x if{B}y fi{}z fi{}"
    store.set_flag("A", 1)
    store.set_flag("B", 0)
    assert resolver.resolve(text).output == "x z"

    store.set_flag("B", 1)
    assert resolver.resolve(text).output == "x y z"

    store.set_flag("A", 0)
    assert resolver.resolve(text).output == ""
    store.set_flag("B", 0)
    assert resolver.resolve(text).output == ""

def test_else(resolver:StringResolver, store:FlagStore) -> None:
    text = "if{gold > 5}rich else{}poor fi{}"
    store.set_flag("gold", 1)
    assert resolver.resolve(text).output == "poor"
    store.set_flag("gold", 10)
    assert resolver.resolve(text).output == "rich"

def test_else_if(resolver:StringResolver, store:FlagStore) -> None:
    text = "if{a = 1}one else{a = 2}two else{}other fi{}"
    store.set_flag("a", 1)
    assert resolver.resolve(text).output == "one"
    store.set_flag("a", 2)
    assert resolver.resolve(text).output == "two"
    store.set_flag("a", 3)
    assert resolver.resolve(text).output == "other"

    # no branch passes
    assert resolver.resolve("if{a = 1}one else{a = 2}two fi{}").output == ""

def test_else_inside_nested_block(resolver:StringResolver, store:FlagStore) -> None:
    text = "if{a}A if{b}B else{}notB fi{} else{}notA fi{}"
    store.set_flag("a", 1)
    assert resolver.resolve(text).output == "A notB"
    store.set_flag("a", 0)
    assert resolver.resolve(text).output == "notA"

def test_or_heads(resolver:StringResolver, store:FlagStore) -> None:
    store.set_flag("b", 1)
    assert resolver.resolve("ifOr{a = 1, b = 1}yes fi{}").output == "yes"
    assert resolver.resolve("if{a = 1, b = 1}yes fi{}").output == ""
    assert resolver.resolve("activeOr{a, b}yes fi{}").output == "yes"
    assert resolver.resolve("active{a}yes fi{}").output == ""

def test_keywords_inside_words_are_not_blocks(resolver:StringResolver) -> None:
    # "if{" inside a word is text, its braces are an ordinary action object
    result = resolver.resolve("motif{x}", no_execute_actions=True)
    assert result.output == "motif"
    assert result.actions == {"x": True}

def test_placeholder(resolver:StringResolver, placeholder_registry:placeholders.PlaceholderRegistry) -> None:
    placeholder_registry.register("name", lambda: "Alice")
    assert resolver.resolve("Hello |name|!").output == "Hello Alice!"
    assert resolver.resolve("Hello |name|!").output == "Hello Alice!"

def test_placeholder_args(resolver:StringResolver, placeholder_registry:placeholders.PlaceholderRegistry) -> None:
    placeholder_registry.register("hp", lambda who, kind: f'{who}-{kind}')
    placeholder_registry.register("nothing", lambda: None)
    placeholder_registry.register("count", lambda: 3)
    assert resolver.resolve("|hp(alice, max)|").output == "alice-max"
    assert resolver.resolve("[|nothing|]").output == "[]"
    assert resolver.resolve("|count| rats").output == "3 rats"

def test_unknown_placeholder(resolver:StringResolver, caplog:pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING):
        assert resolver.resolve("Hi |who|!").output == "Hi |who|!"
    assert len(warnings_in(caplog)) == 1

def test_failing_placeholder(resolver:StringResolver, placeholder_registry:placeholders.PlaceholderRegistry, caplog:pytest.LogCaptureFixture) -> None:
    def boom() -> str:
        raise RuntimeError("boom")
    placeholder_registry.register("boom", boom)
    with caplog.at_level(logging.WARNING):
        assert resolver.resolve("a |boom| b").output == "a |boom| b"
    assert len(warnings_in(caplog)) == 1

def test_placeholder_output_not_rescanned(resolver:StringResolver, dispatcher:ActionDispatcher, placeholder_registry:placeholders.PlaceholderRegistry) -> None:
    sound = RecordingHandler()
    dispatcher.register("sound", sound)
    placeholder_registry.register("raw", lambda: "|other| {sound: x}")
    result = resolver.resolve("|raw|")
    assert result.output == "|other| {sound: x}"
    assert result.actions == {}
    assert sound.calls == []

def test_pipes_in_prose(resolver:StringResolver, caplog:pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING):
        assert resolver.resolve("a | b | c").output == "a | b | c"
        assert resolver.resolve("a || b").output == "a || b"
    assert warnings_in(caplog) == []

def test_placeholder_in_condition(resolver:StringResolver, store:FlagStore, placeholder_registry:placeholders.PlaceholderRegistry) -> None:
    placeholder_registry.register("threshold", lambda: "5")
    store.set_flag("gold", 10)
    assert resolver.resolve("if{gold > |threshold|}rich fi{}").output == "rich"
    store.set_flag("gold", 1)
    assert resolver.resolve("if{gold > |threshold|}rich fi{}").output == ""
    assert not resolver.evaluate("gold > |threshold|")

def test_registered_condition_in_block(resolver:StringResolver, condition_registry:conditions.ConditionRegistry) -> None:
    condition_registry.register("_has", lambda item: item == "key")
    assert resolver.resolve("if{_has(key)}open fi{}").output == "open"
    assert resolver.resolve("if{_has(rope)}open else{}locked fi{}").output == "locked"

def test_templates(resolver:StringResolver, template_registry:placeholders.TemplateRegistry, placeholder_registry:placeholders.PlaceholderRegistry) -> None:
    placeholder_registry.register("name", lambda: "Alice")
    template_registry.add("greet", "Hello |name|", "test")
    template_registry.add("sign", "Welcome to town", "town")
    template_registry.add("shared", "global text")
    template_registry.add("shared", "local text", "test")

    assert resolver.resolve("|$greet|!").output == "Hello Alice!"
    assert resolver.resolve("|$town.sign|").output == "Welcome to town"
    assert resolver.resolve("|$shared|").output == "local text"

    template_registry.add("only_global", "global")
    assert resolver.resolve("|$only_global|").output == "global"

def test_template_actions_are_merged(resolver:StringResolver, dispatcher:ActionDispatcher, template_registry:placeholders.TemplateRegistry, store:FlagStore) -> None:
    sound = RecordingHandler()
    dispatcher.register("sound", sound)
    template_registry.add("chime", "{sound: bell}ding if{quiet}hush fi{}")

    result = resolver.resolve("|$chime| {volume: 3}")
    assert result.output == "ding"
    assert result.actions == {"sound": "bell", "volume": 3}
    assert sound.calls == ["bell"]

def test_unknown_template(resolver:StringResolver, caplog:pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING):
        assert resolver.resolve("|$nope|").output == "|$nope|"
    assert len(warnings_in(caplog)) == 1

def test_template_recursion_is_bounded(resolver:StringResolver, template_registry:placeholders.TemplateRegistry, caplog:pytest.LogCaptureFixture) -> None:
    template_registry.add("loop", "x|$loop|", "test")
    with caplog.at_level(logging.WARNING):
        assert resolver.resolve("|$loop|").output == "x" * 8 + "|$loop|"
    assert len(warnings_in(caplog)) == 1

def test_templates_not_expanded_in_conditions(resolver:StringResolver, template_registry:placeholders.TemplateRegistry) -> None:
    template_registry.add("t", "1")
    assert resolver._expand_placeholders("a = |$t|") == "a = |$t|"

def test_actions_removed_and_executed(resolver:StringResolver, dispatcher:ActionDispatcher) -> None:
    sound = RecordingHandler()
    dispatcher.register("sound", sound)
    result = resolver.resolve("The door {sound: creak}opens.")
    assert result.output == "The door opens."
    assert result.actions == {"sound": "creak"}
    assert sound.calls == ["creak"]

def test_actions_execute_in_source_order(resolver:StringResolver, dispatcher:ActionDispatcher, store:FlagStore) -> None:
    log = CallLog()
    dispatcher.register("a", log.handler("a"))
    dispatcher.register("b", log.handler("b"))
    store.set_flag("x", 1)

    result = resolver.resolve("{a: 1} if{x}{b: 2}fi{} {a: 3}")
    assert log.entries == [("a", 1), ("b", 2), ("a", 3)]
    assert result.actions == {"a": 3, "b": 2}

def test_actions_affect_later_text(resolver:StringResolver, dispatcher:ActionDispatcher, store:FlagStore, placeholder_registry:placeholders.PlaceholderRegistry) -> None:
    dispatcher.register("flag", FlagAction(store))
    placeholder_registry.register("gold", lambda: store.get_flag("gold"))

    assert resolver.resolve('{flag: "met=1"}if{met}Hi fi{}').output == "Hi"
    assert resolver.resolve('{flag: "gold=5"}You have |gold|').output == "You have 5"
    assert resolver.resolve('You had |gold| {flag: "gold>1"}if{gold = 6}and now 6 fi{}').output == "You had 5 and now 6"

    # reporting only leaves the flags alone
    result = resolver.resolve('{flag: "late=1"}if{late}late fi{}', no_execute_actions=True)
    assert result.output == ""
    assert store.get_flag("late") == 0

def test_no_execute_actions(resolver:StringResolver, dispatcher:ActionDispatcher) -> None:
    sound = RecordingHandler()
    dispatcher.register("sound", sound)
    result = resolver.resolve("{sound: a}x", no_execute_actions=True)
    assert result.output == "x"
    assert result.actions == {"sound": "a"}
    assert sound.calls == []

def test_accumulating_actions(resolver:StringResolver, dispatcher:ActionDispatcher) -> None:
    sound = RecordingHandler()
    dispatcher.register("sound", sound, accumulate=True)
    result = resolver.resolve("{sound: a}{sound: b, c}")
    assert result.actions == {"sound": ["a", "b", "c"]}
    assert sound.calls == ["a", "b", "c"]

def test_delayed_actions_across_resolves(resolver:StringResolver, dispatcher:ActionDispatcher) -> None:
    log = CallLog()
    dispatcher.register("a", log.handler("a"), delayed=True)
    dispatcher.register("b", log.handler("b"), delayed=True)

    resolver.resolve("first {a: 1}")
    resolver.resolve("second {b: 2}")
    assert log.entries == []
    dispatcher.flush_delayed()
    assert log.entries == [("a", 1), ("b", 2)]

def test_unknown_action(resolver:StringResolver, caplog:pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING):
        result = resolver.resolve("{unknown_action: 5}")
    assert result.output == ""
    assert result.actions == {"unknown_action": 5}
    assert len(warnings_in(caplog)) == 1

def test_inline_condition_keys_not_dispatched(resolver:StringResolver, dispatcher:ActionDispatcher, caplog:pytest.LogCaptureFixture) -> None:
    sound = RecordingHandler()
    dispatcher.register("sound", sound)
    with caplog.at_level(logging.WARNING):
        result = resolver.resolve("{if: a = 1, sound: x}")
    assert result.actions == {"if": "a = 1", "sound": "x"}
    assert sound.calls == ["x"]
    assert warnings_in(caplog) == []

def test_redirect(resolver:StringResolver, dispatcher:ActionDispatcher) -> None:
    sound = RecordingHandler()
    dispatcher.register("sound", sound)
    result = resolver.resolve("before {sound: a} {redirect: crypt} after {sound: b}")
    assert result.output == ""
    assert result.actions == {"redirect": "crypt"}
    # what ran before the redirect stays done, nothing after it runs
    assert sound.calls == ["a"]

    result = resolver.resolve("{sound: c} {redirect: crypt}", no_execute_actions=True)
    assert result.actions == {"redirect": "crypt"}
    assert sound.calls == ["a"]

def test_redirect_key_from_config(resolver:StringResolver, settings:types.SimpleNamespace) -> None:
    settings.resolver.REDIRECT_KEY = "goto"
    assert resolver.resolve("x {redirect: crypt}").actions == {"redirect": "crypt"}
    assert resolver.resolve("x {goto: crypt}").output == ""

def test_code_is_verbatim(resolver:StringResolver, dispatcher:ActionDispatcher) -> None:
    sound = RecordingHandler()
    dispatcher.register("sound", sound)
    result = resolver.resolve("show [code]if{x} |name|   {sound: a}[/code] done")
    assert result.output == "show if{x} |name|   {sound: a} done"
    assert result.actions == {}
    assert sound.calls == []

    assert resolver.resolve("[note] text").output == "[note] text"

def test_unterminated_code(resolver:StringResolver, caplog:pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING):
        assert resolver.resolve("a [code]b  {c").output == "a b  {c"
    assert len(warnings_in(caplog)) == 1

def test_malformed_blocks_warn(resolver:StringResolver, store:FlagStore, caplog:pytest.LogCaptureFixture) -> None:
    store.set_flag("x", 1)
    with caplog.at_level(logging.WARNING):
        assert resolver.resolve("a if{x}b").output == "a b"
    assert len(warnings_in(caplog)) == 1
    caplog.clear()

    with caplog.at_level(logging.WARNING):
        assert resolver.resolve("a fi{} b").output == "a b"
    assert len(warnings_in(caplog)) == 1
    caplog.clear()

    with caplog.at_level(logging.WARNING):
        assert resolver.resolve("a if{x b").output == "a if{x b"
    assert len(warnings_in(caplog)) == 1
    caplog.clear()

    with caplog.at_level(logging.WARNING):
        assert resolver.resolve("a {b: 1").output == "a {b: 1"
    assert len(warnings_in(caplog)) == 1

def test_whitespace_around_cuts(resolver:StringResolver, store:FlagStore, settings:types.SimpleNamespace) -> None:
    assert resolver.resolve("  a  {x: 1}  b \nc  ", no_execute_actions=True).output == "  a b \nc  "
    assert resolver.resolve("a{x: 1}b", no_execute_actions=True).output == "ab"
    assert resolver.resolve("a {x: 1}\nb", no_execute_actions=True).output == "a\nb"

    # indentation survives a cut at the start of a line
    text = "intro\n    if{lit}a lamp fi{} glows\n    if{lit}a lamp fi{}"
    assert resolver.resolve(text).output == "intro\n    glows\n"
    store.set_flag("lit", 1)
    assert resolver.resolve(text).output == "intro\n    a lamp glows\n    a lamp"

    settings.resolver.COLLAPSE_WHITESPACE = False
    assert resolver.resolve("a {x: 1} b ", no_execute_actions=True).output == "a  b "

def test_speaker_prefix(resolver:StringResolver, settings:types.SimpleNamespace) -> None:
    assert resolver.resolve("Alice: hello").speaker is None

    settings.resolver.SPEAKER_PREFIX = True
    result = resolver.resolve("Alice: hello there")
    assert result.speaker == "Alice"
    assert result.output == "hello there"
    assert resolver.resolve("no speaker here").speaker is None

def test_text_styles(resolver:StringResolver, settings:types.SimpleNamespace) -> None:
    assert resolver.resolve("*loud*").output == "*loud*"

    settings.resolver.TEXT_STYLES = True
    assert resolver.resolve("**soft** and *loud*").output == "<i>soft</i> and <b>loud</b>"

def test_curly_quotes(resolver:StringResolver, store:FlagStore) -> None:
    store.set_flag("mood", 0)
    assert resolver.resolve("if{mood = “0”}calm fi{}").output == "calm"

def test_evaluate_params(resolver:StringResolver, store:FlagStore) -> None:
    store.set_flag("gold", 3)
    assert resolver.evaluate_params({"if": "gold > 1"})
    assert not resolver.evaluate_params({"active": "gold > 5"}, active=True)

def test_default_collaborators() -> None:
    store = FlagStore("solo")
    resolver = StringResolver(store)
    store.set_flag("lit", 1)
    assert resolver.resolve("if{lit}bright fi{}").output == "bright"
