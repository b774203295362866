""" Configuration for dungeonscript.

Defaults ship as package data in dungeonscript/data/config.toml and are
exposed as one namespace per section:

    config.Settings.resolver.MAX_TEMPLATE_DEPTH

An override file can only change settings that already exist, and only to a
value of the same type. A misspelt key is an error instead of a setting
nobody reads.
"""

import types
import importlib.resources
from typing import Any, Dict, Optional, TextIO

import toml # type: ignore

from dungeonscript import util

# settings that end up as keys in params or action objects
IDENTIFIER_SETTINGS = (
    ("resolver", "REDIRECT_KEY"),
    ("parser", "DOORS_PARAM"),
    ("parser", "ROOMS_PARAM"),
)


class ConfigError(ValueError):
    """ an override that doesn't fit the built-in settings """


def defaults() -> Dict[str, Dict[str, Any]]:
    return toml.loads(importlib.resources.read_text("dungeonscript.data", "config.toml"))

def apply_override(settings:Dict[str, Dict[str, Any]], override:Dict[str, Any]) -> None:
    """ copies the values of override into settings, in place

    raises ConfigError for unknown sections or keys and for values whose
    type differs from the built-in one (true is not a number, 3.0 is not a
    depth).
    """

    for section, values in override.items():
        if section not in settings:
            raise ConfigError(f'unknown config section [{section}]')
        if not isinstance(values, dict):
            raise ConfigError(f'[{section}] must be a table, got {values!r}')
        for key, value in values.items():
            if key not in settings[section]:
                raise ConfigError(f'unknown setting {section}.{key}')
            current = settings[section][key]
            if type(value) is not type(current):
                raise ConfigError(f'{section}.{key} must be a {type(current).__name__}, got {value!r}')
            if isinstance(value, list) and not all(isinstance(v, str) for v in value):
                raise ConfigError(f'{section}.{key} must be a list of strings, got {value!r}')
            settings[section][key] = value

def validate(settings:Dict[str, Dict[str, Any]]) -> None:
    if settings["resolver"]["MAX_TEMPLATE_DEPTH"] < 0:
        raise ConfigError('resolver.MAX_TEMPLATE_DEPTH must not be negative')

    for section, key in IDENTIFIER_SETTINGS:
        if not util.is_identifier(settings[section][key]):
            raise ConfigError(f'{section}.{key} must be an identifier, got "{settings[section][key]}"')

    condition_keys = settings["logic"]["CONDITION_KEYS"]
    redirect_key = settings["resolver"]["REDIRECT_KEY"]
    for key in condition_keys:
        if not util.is_identifier(key):
            raise ConfigError(f'logic.CONDITION_KEYS must hold identifiers, got "{key}"')
    if redirect_key in condition_keys:
        raise ConfigError(f'resolver.REDIRECT_KEY "{redirect_key}" is also a condition key')

def load_config(config_file:Optional[TextIO]=None) -> types.SimpleNamespace:
    """ rebuilds config.Settings from the defaults and an optional override """

    settings = defaults()
    if config_file is not None:
        apply_override(settings, toml.load(config_file))
        validate(settings)

    global Settings
    Settings = types.SimpleNamespace(**{
        section: types.SimpleNamespace(**values) for section, values in settings.items()
    })

    return Settings

Settings = load_config()
