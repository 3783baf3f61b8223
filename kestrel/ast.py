"""Syntax tree definition for the Kestrel language.

The parser produces a tree of `Ast` nodes. Every node carries a kind tag,
its ordered children, an optional token text and the 1-based source
position it starts at. The evaluator dispatches on `tag` only.

Postfix chain steps keep the rule they were produced by in
`original_tag` (`ARGUMENTS`, `INDEX` or `DOT`) so the evaluator can tell a
call from an index or a property access regardless of their contents.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


STATEMENTS = 'STATEMENTS'
WHILE = 'WHILE'
IF = 'IF'
FUNCTION = 'FUNCTION'
PARAMETERS = 'PARAMETERS'
PARAMETER = 'PARAMETER'
CALL = 'CALL'
ARGUMENTS = 'ARGUMENTS'
INDEX = 'INDEX'
DOT = 'DOT'
ASSIGNMENT = 'ASSIGNMENT'
LOGICAL_OR = 'LOGICAL_OR'
LOGICAL_AND = 'LOGICAL_AND'
CONDITION = 'CONDITION'
UNARY_PLUS = 'UNARY_PLUS'
UNARY_MINUS = 'UNARY_MINUS'
UNARY_NOT = 'UNARY_NOT'
ADDITIVE = 'ADDITIVE'
MULTIPLICATIVE = 'MULTIPLICATIVE'
IDENTIFIER = 'IDENTIFIER'
OBJECT = 'OBJECT'
OBJECT_PROPERTY = 'OBJECT_PROPERTY'
ARRAY = 'ARRAY'
NUMBER = 'NUMBER'
BOOLEAN = 'BOOLEAN'
INTERPOLATED_STRING = 'INTERPOLATED_STRING'

# token kinds
MUTABLE = 'MUTABLE'
OPERATOR = 'OPERATOR'
STRING_CONTENT = 'STRING_CONTENT'


@dataclass
class Ast:
    tag: str
    nodes: List['Ast'] = field(default_factory=list)
    token: Optional[str] = None
    line: int = 0
    column: int = 0
    original_tag: Optional[str] = None
    is_token: bool = False

    def __post_init__(self):
        if self.original_tag is None:
            self.original_tag = self.tag


def token_node(tag: str, text: str, line: int = 0, column: int = 0) -> Ast:
    return Ast(tag, [], text, line, column, is_token=True)
