"""Parser for the Kestrel language.

This module implements a two-stage parsing pipeline:

1. **Preprocessing**: The raw source code is transformed such that
   newline characters that logically terminate statements are preceded
   by semicolons. This allows us to use a grammar that requires
   semicolons to delimit statements. Comments are blanked out and strings
   are respected so that newlines inside strings or comments do not
   accidentally terminate statements. Line and column positions are
   preserved.

2. **Parsing**: The preprocessed source is fed into a Lark parser
   configured with a grammar for the Kestrel language. The resulting
   parse tree is transformed into the tagged `Ast` tree consumed by the
   interpreter.

There is no module-level parser. Callers construct a `Parser` and pass it
to whoever needs it; `Parser.parse` is the public entry point and returns
the root `STATEMENTS` node.
"""

from __future__ import annotations

from typing import Callable, List, Optional

from lark import Lark, Token, Transformer, v_args
from lark.exceptions import UnexpectedCharacters, UnexpectedInput, UnexpectedToken, VisitError

from .ast import (
    Ast, token_node,
    STATEMENTS, WHILE, IF, FUNCTION, PARAMETERS, PARAMETER, CALL, ARGUMENTS,
    INDEX, DOT, ASSIGNMENT, LOGICAL_OR, LOGICAL_AND, CONDITION, UNARY_PLUS,
    UNARY_MINUS, UNARY_NOT, ADDITIVE, MULTIPLICATIVE, IDENTIFIER, OBJECT,
    OBJECT_PROPERTY, ARRAY, NUMBER, BOOLEAN, INTERPOLATED_STRING, MUTABLE,
    OPERATOR, STRING_CONTENT,
)
from .errors import KestrelError, ParseError, STACK_OVERFLOW

# A line whose last character is one of these continues on the next line.
CONTINUATION_CHARS = set('+-*/%=<>&|!(,.:[;{')

ESCAPES = {'n': '\n', 't': '\t', 'r': '\r', '0': '\0'}


def _skip_blank(source: str, i: int) -> int:
    """Return the index of the next character that is not whitespace or comment."""
    length = len(source)
    while i < length:
        if source[i].isspace():
            i += 1
        elif source.startswith('//', i):
            end = source.find('\n', i)
            i = length if end < 0 else end
        elif source.startswith('/*', i):
            end = source.find('*/', i + 2)
            i = length if end < 0 else end + 2
        else:
            break
    return i


def _ends_statement(result: List[str]) -> bool:
    j = len(result) - 1
    while j >= 0 and result[j].isspace():
        j -= 1
    if j < 0:
        return False
    return result[j] not in CONTINUATION_CHARS


def _starts_statement(source: str, i: int) -> bool:
    i = _skip_blank(source, i)
    if i >= len(source):
        return False
    if source[i] in '}.':
        return False
    if source.startswith('&&', i) or source.startswith('||', i):
        return False
    if source.startswith('else', i):
        after = source[i + 4:i + 5]
        return after.isalnum() or after == '_'
    return True


def preprocess(source: str) -> str:
    """Insert semicolons at statement boundaries defined by newlines.

    A newline ends a statement when it is at the top level or directly
    inside a block, the line does not end with an operator or opening
    bracket, and the next line does not start with `}`, `.`, `&&`, `||` or
    `else`. Comments are replaced by spaces and newlines are kept so that
    token positions still point into the original text.
    """
    result: List[str] = []
    stack: List[str] = []  # open brackets: (, [ and {
    i = 0
    length = len(source)
    in_string = False
    escape = False
    in_line_comment = False
    in_block_comment = False
    while i < length:
        c = source[i]
        # Handle block comments
        if in_block_comment:
            if c == '*' and i + 1 < length and source[i + 1] == '/':
                in_block_comment = False
                result.append('  ')
                i += 2
                continue
            result.append('\n' if c == '\n' else ' ')
            i += 1
            continue
        # Handle line comments
        if in_line_comment:
            if c == '\n':
                in_line_comment = False
                # newline terminates comment and may terminate statement
            else:
                result.append(' ')
                i += 1
                continue
        # Handle strings
        if in_string:
            result.append(c)
            if escape:
                escape = False
            elif c == '\\':
                escape = True
            elif c == '"':
                in_string = False
            i += 1
            continue
        if c == '/' and i + 1 < length and source[i + 1] == '/':
            in_line_comment = True
            result.append('  ')
            i += 2
            continue
        if c == '/' and i + 1 < length and source[i + 1] == '*':
            in_block_comment = True
            result.append('  ')
            i += 2
            continue
        if c == '"':
            in_string = True
            result.append(c)
            i += 1
            continue
        # Track nesting
        if c in '([{':
            stack.append(c)
        elif c in ')]}':
            if stack:
                stack.pop()
        if c == '\n':
            at_statement_level = not stack or stack[-1] == '{'
            if at_statement_level and _ends_statement(result) and _starts_statement(source, i + 1):
                result.append(';')
            result.append('\n')
            i += 1
            continue
        result.append(c)
        i += 1
    return ''.join(result)


KESTREL_GRAMMAR = r"""
    ?start: statements

    statements: _sep? (statement _sep)* statement?
    _sep: ";"+

    ?statement: while_stmt
              | if_stmt
              | assignment
              | expression

    while_stmt: "while" expression block
    if_stmt: "if" expression block ("else" "if" expression block)* ("else" block)?
    assignment: [MUT] postfix "=" expression

    ?block: "{" statements "}"

    // Expressions with precedence
    ?expression: logical_or
    ?logical_or: logical_and ("||" logical_and)*
    ?logical_and: condition ("&&" condition)*
    ?condition: additive (COMPARE_OP additive)?
    ?additive: multiplicative ((PLUS | MINUS) multiplicative)*
    ?multiplicative: unary (MUL_OP unary)*
    ?unary: PLUS unary -> unary_plus
          | MINUS unary -> unary_minus
          | NOT unary -> unary_not
          | postfix
    ?postfix: primary (arguments | index | dot)*
    arguments: "(" ")"
             | "(" expression ("," expression)* ")"
    index: "[" expression "]"
    dot: "." IDENT

    ?primary: "(" expression ")"
            | function
            | object
            | array
            | NUMBER -> number
            | TRUE -> boolean
            | FALSE -> boolean
            | IDENT -> identifier
            | STRING -> string

    function: "fn" parameters block
    parameters: "(" ")"
              | "(" parameter ("," parameter)* ")"
    parameter: [MUT] IDENT

    object: "{" "}"
          | "{" property ("," property)* "}"
    property: IDENT ":" expression
    array: "[" "]"
         | "[" expression ("," expression)* "]"

    // Tokens
    MUT: "mut"
    TRUE: "true"
    FALSE: "false"
    COMPARE_OP: /==|!=|<=|>=|<|>/
    PLUS: "+"
    MINUS: "-"
    NOT: "!"
    MUL_OP: /[*\/%]/
    NUMBER: /[0-9]+/
    STRING: /"(?:[^"\\]|\\.)*"/
    IDENT: /[A-Za-z_][A-Za-z0-9_]*/

    %import common.WS
    %ignore WS
"""


def _pos(meta) -> tuple:
    return getattr(meta, 'line', 0), getattr(meta, 'column', 0)


def _op(token: Token) -> Ast:
    return token_node(OPERATOR, str(token), token.line, token.column)


def _shift_positions(node: Ast, line_offset: int, column_offset: int):
    """Move an embedded expression's positions to where it sits in the file."""
    if node.line == 1:
        node.column += column_offset
    node.line += line_offset
    for child in node.nodes:
        _shift_positions(child, line_offset, column_offset)


@v_args(meta=True)
class AstBuilder(Transformer):
    """Transforms the raw parse tree into the tagged Ast tree."""

    def __init__(self, parser: 'Parser'):
        super().__init__()
        self.parser = parser

    def statements(self, meta, items):
        return Ast(STATEMENTS, list(items), None, *_pos(meta))

    def while_stmt(self, meta, items):
        return Ast(WHILE, [items[0], items[1]], None, *_pos(meta))

    def if_stmt(self, meta, items):
        # condition, block, condition, block, ..., optional else block
        return Ast(IF, list(items), None, *_pos(meta))

    def assignment(self, meta, items):
        mut, target, value = items
        if target.tag == CALL:
            if target.nodes[-1].original_tag not in (INDEX, DOT):
                raise ParseError(target.line, target.column, 'cannot assign to a call result')
            if mut is not None:
                raise ParseError(mut.line, mut.column, "'mut' is only allowed when assigning a name")
        elif target.tag != IDENTIFIER:
            raise ParseError(target.line, target.column, 'invalid assignment target')
        qualifier = token_node(MUTABLE, str(mut) if mut is not None else '', *_pos(meta))
        return Ast(ASSIGNMENT, [qualifier, target, value], None, *_pos(meta))

    def logical_or(self, meta, items):
        return Ast(LOGICAL_OR, list(items), None, *_pos(meta))

    def logical_and(self, meta, items):
        return Ast(LOGICAL_AND, list(items), None, *_pos(meta))

    def condition(self, meta, items):
        lhs, ope, rhs = items
        return Ast(CONDITION, [lhs, _op(ope), rhs], None, *_pos(meta))

    def _binary(self, tag, meta, items):
        nodes = [_op(item) if isinstance(item, Token) else item for item in items]
        return Ast(tag, nodes, None, *_pos(meta))

    def additive(self, meta, items):
        return self._binary(ADDITIVE, meta, items)

    def multiplicative(self, meta, items):
        return self._binary(MULTIPLICATIVE, meta, items)

    def unary_plus(self, meta, items):
        return Ast(UNARY_PLUS, [_op(items[0]), items[1]], None, *_pos(meta))

    def unary_minus(self, meta, items):
        return Ast(UNARY_MINUS, [_op(items[0]), items[1]], None, *_pos(meta))

    def unary_not(self, meta, items):
        return Ast(UNARY_NOT, [_op(items[0]), items[1]], None, *_pos(meta))

    def postfix(self, meta, items):
        return Ast(CALL, list(items), None, *_pos(meta))

    def arguments(self, meta, items):
        return Ast(ARGUMENTS, list(items), None, *_pos(meta))

    def index(self, meta, items):
        return Ast(INDEX, [items[0]], None, *_pos(meta))

    def dot(self, meta, items):
        return Ast(DOT, [], str(items[0]), *_pos(meta))

    def function(self, meta, items):
        return Ast(FUNCTION, [items[0], items[1]], None, *_pos(meta))

    def parameters(self, meta, items):
        return Ast(PARAMETERS, list(items), None, *_pos(meta))

    def parameter(self, meta, items):
        mut, name = items
        qualifier = token_node(MUTABLE, str(mut) if mut is not None else '', *_pos(meta))
        return Ast(PARAMETER, [qualifier, token_node(IDENTIFIER, str(name), name.line, name.column)],
                   None, *_pos(meta))

    def object(self, meta, items):
        return Ast(OBJECT, list(items), None, *_pos(meta))

    def property(self, meta, items):
        name, value = items
        return Ast(OBJECT_PROPERTY, [token_node(IDENTIFIER, str(name), name.line, name.column), value],
                   None, *_pos(meta))

    def array(self, meta, items):
        return Ast(ARRAY, list(items), None, *_pos(meta))

    def number(self, meta, items):
        return token_node(NUMBER, str(items[0]), *_pos(meta))

    def boolean(self, meta, items):
        return token_node(BOOLEAN, str(items[0]), *_pos(meta))

    def identifier(self, meta, items):
        return token_node(IDENTIFIER, str(items[0]), *_pos(meta))

    def string(self, meta, items):
        token = items[0]
        nodes = self._split_interpolation(token.value[1:-1], token.line, token.column + 1)
        return Ast(INTERPOLATED_STRING, nodes, None, *_pos(meta))

    def _split_interpolation(self, raw: str, line: int, column: int) -> List[Ast]:
        """Split string literal contents into text and `${...}` expression segments.

        `line`/`column` give the position of the first character of `raw`.
        """
        nodes: List[Ast] = []
        text: List[str] = []
        text_line, text_column = line, column
        i = 0
        length = len(raw)

        def position(offset: int) -> tuple:
            before = raw[:offset]
            newlines = before.count('\n')
            if newlines == 0:
                return line, column + offset
            return line + newlines, offset - before.rfind('\n')

        def flush():
            if text:
                nodes.append(token_node(STRING_CONTENT, ''.join(text), text_line, text_column))
                text.clear()

        while i < length:
            c = raw[i]
            if c == '\\' and i + 1 < length:
                nxt = raw[i + 1]
                text.append(ESCAPES.get(nxt, nxt))
                i += 2
                continue
            if c == '$' and raw.startswith('${', i):
                flush()
                start = i + 2
                depth = 1
                j = start
                while j < length and depth:
                    if raw[j] == '{':
                        depth += 1
                    elif raw[j] == '}':
                        depth -= 1
                    j += 1
                if depth:
                    raise ParseError(*position(i), 'unterminated interpolation in string literal')
                expr_line, expr_column = position(start)
                try:
                    expr = self.parser.parse_expression(raw[start:j - 1])
                except ParseError as e:
                    error_column = e.column + expr_column - 1 if e.line == 1 else e.column
                    raise ParseError(e.line + expr_line - 1, error_column, e.message) from None
                _shift_positions(expr, expr_line - 1, expr_column - 1)
                nodes.append(expr)
                i = j
                text_line, text_column = position(i)
                continue
            text.append(c)
            i += 1
        flush()
        return nodes


class Parser:
    """Owns a Lark parser for Kestrel source.

    `log`, when set, is called as `log(line, column, message)` before a
    `ParseError` is raised.
    """
    def __init__(self, log: Optional[Callable[[int, int, str], None]] = None):
        self.log = log
        self.lark = Lark(
            KESTREL_GRAMMAR,
            parser='lalr',
            start=['start', 'expression'],
            propagate_positions=True,
            maybe_placeholders=True,
        )

    def parse(self, source: str) -> Ast:
        """Parse a whole program into its root STATEMENTS node."""
        try:
            return self._parse(preprocess(source), 'start')
        except ParseError as e:
            if self.log is not None:
                self.log(e.line, e.column, e.message)
            raise
        except RecursionError:
            raise KestrelError(STACK_OVERFLOW, 'program is nested too deeply to parse') from None

    def parse_expression(self, text: str) -> Ast:
        """Parse a single expression, as embedded in an interpolated string."""
        return self._parse(text, 'expression')

    def _parse(self, text: str, start: str) -> Ast:
        try:
            tree = self.lark.parse(text, start=start)
            return AstBuilder(self).transform(tree)
        except UnexpectedInput as e:
            line, column = self._error_position(e, text)
            raise ParseError(line, column, self._describe(e)) from None
        except VisitError as e:
            if isinstance(e.orig_exc, (ParseError, RecursionError)):
                raise e.orig_exc from None
            raise

    @staticmethod
    def _error_position(e: UnexpectedInput, text: str) -> tuple:
        line = getattr(e, 'line', None)
        column = getattr(e, 'column', None)
        if line is None or line < 1:
            line = text.count('\n') + 1
            column = len(text) - text.rfind('\n')
        return line, column

    @staticmethod
    def _describe(e: UnexpectedInput) -> str:
        if isinstance(e, UnexpectedCharacters):
            return f"unexpected character {e.char!r}"
        if isinstance(e, UnexpectedToken):
            if e.token.type == '$END':
                return 'unexpected end of input'
            return f"unexpected token {str(e.token)!r}"
        return 'unexpected end of input'
