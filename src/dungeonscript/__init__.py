""" dungeonscript: markup and logic core for text based dungeon crawls

Authors write dungeons as plain text with markers for rooms (^), encounters
(@), choices (! or numbered after %), events (#) and templates ($). Inside
that text an embedded micro-language handles conditional blocks
(if{}/ifOr{}/active{}/activeOr{}/else{}/fi{}), placeholders (|id|,
|id(args)|, |$template|) and inline action objects ({key: value}).

The dungeon parser turns the markup into a Document. At play time the string
resolver resolves node text against the game's flags, producing display text
and actions. The action dispatcher runs those actions through handlers the
host registered, holding delayed ones until the next scene transition.

logic.LogicSystem wires all of it together.
"""
