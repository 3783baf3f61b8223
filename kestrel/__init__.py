# Kestrel language package
# This package provides a parser and tree-walking interpreter for the Kestrel language.
from .interpreter import run, run_program, parse_program, Interpreter
from .environment import Environment
from .builtin_function import make_root_environment
from .errors import KestrelError, ParseError
from .parser import Parser

__all__ = [
    'run',
    'run_program',
    'parse_program',
    'Interpreter',
    'Environment',
    'make_root_environment',
    'KestrelError',
    'ParseError',
    'Parser',
]
