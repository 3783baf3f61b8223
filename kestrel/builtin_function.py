import sys
from typing import Any, Dict, List, Optional, TextIO

from kestrel.environment import Environment
from kestrel.errors import KestrelError, ASSERTION_FAILURE, TYPE_MISMATCH, UNBOUND_NAME
from kestrel.types import (
    UNIT, ArrayVal, FunctionValue, ObjectVal, Parameter,
    stringify, to_array, to_bool, to_string, type_name,
)


def builtin(name: str, param_names: List[str], fn) -> FunctionValue:
    return FunctionValue([Parameter(p) for p in param_names], fn, name)


def make_root_environment(out: Optional[TextIO] = None) -> Environment:
    env = Environment()
    setup_builtin_functions(env, out)
    return env


def setup_builtin_functions(env: Environment, out: Optional[TextIO] = None):
    """Install `puts` and `assert` as immutable bindings of `env`."""

    def std_puts(call_env: Environment) -> Any:
        stream = out if out is not None else sys.stdout
        print(stringify(call_env.get('arg')), file=stream)
        return UNIT

    def std_assert(call_env: Environment) -> Any:
        if not to_bool(call_env.get('arg')):
            line = call_env.get('__LINE__')
            column = call_env.get('__COLUMN__')
            raise KestrelError(ASSERTION_FAILURE, f'assert failed at {line}:{column}')
        return UNIT

    env.initialize('puts', builtin('puts', ['arg'], std_puts), False)
    env.initialize('assert', builtin('assert', ['arg'], std_assert), False)


# Built-in methods read their receiver from the `this` binding.

def _size(call_env: Environment) -> Any:
    this = call_env.get('this')
    if isinstance(this, ArrayVal):
        return len(this.items)
    if isinstance(this, ObjectVal):
        return len(this.properties)
    return len(to_string(this))


def _push(call_env: Environment) -> Any:
    arr = to_array(call_env.get('this'))
    arr.items.append(call_env.get('value'))
    return arr


OBJECT_PROPERTIES: Dict[str, FunctionValue] = {
    'size': builtin('size', [], _size),
}

ARRAY_PROPERTIES: Dict[str, FunctionValue] = {
    'size': builtin('size', [], _size),
    'push': builtin('push', ['value'], _push),
}

STRING_PROPERTIES: Dict[str, FunctionValue] = {
    'size': builtin('size', [], _size),
}


def get_property(value: Any, name: str) -> Any:
    """Resolve `value.name`: object properties first, then built-in methods."""
    if isinstance(value, ObjectVal):
        if name in value.properties:
            return value.properties[name]
        table = OBJECT_PROPERTIES
    elif isinstance(value, ArrayVal):
        table = ARRAY_PROPERTIES
    elif isinstance(value, str):
        table = STRING_PROPERTIES
    else:
        raise KestrelError(TYPE_MISMATCH, f'{type_name(value)} has no properties')
    if name not in table:
        raise KestrelError(UNBOUND_NAME, f"undefined property '{name}' on {type_name(value)}")
    return table[name]
