"""Interpreter for the Kestrel language.

This module implements the evaluator: a recursive dispatcher over the
tagged `Ast` produced by `kestrel.parser`, threading an `Environment`
through every step. It also provides `run`, the entry point that parses a
source text, evaluates it and reports the outcome without raising.
"""

from __future__ import annotations

import sys
from typing import Any, List, Optional, TextIO, Tuple

from .ast import (
    Ast,
    STATEMENTS, WHILE, IF, FUNCTION, CALL, ARGUMENTS, INDEX, DOT, ASSIGNMENT,
    LOGICAL_OR, LOGICAL_AND, CONDITION, UNARY_PLUS, UNARY_MINUS, UNARY_NOT,
    ADDITIVE, MULTIPLICATIVE, IDENTIFIER, OBJECT, ARRAY, NUMBER, BOOLEAN,
    INTERPOLATED_STRING,
)
from .builtin_function import get_property, make_root_environment
from .environment import Environment
from .errors import (
    KestrelError, ParseError,
    ARGUMENT_ERROR, INDEX_OUT_OF_RANGE, STACK_OVERFLOW,
)
from .parser import Parser
from .types import (
    UNIT, ArrayVal, FunctionValue, ObjectVal, Parameter,
    arith, compare, number_from_literal, stringify, wrap_int,
    to_array, to_bool, to_function, to_number, to_object, to_string,
)


# Every Kestrel call nests roughly a dozen evaluator frames.
RECURSION_LIMIT = 50000


class Interpreter:
    """Core interpreter that evaluates a Kestrel Ast.

    `env` is the global environment to evaluate in; a fresh root
    environment writing `puts` output to `out` is built when it is omitted.
    While `run` evaluates, the host recursion limit is raised to at least
    `recursion_limit`.
    """
    def __init__(
        self,
        debug_level: int = 0,
        debug_file: str = 'debug.txt',
        out: Optional[TextIO] = None,
        env: Optional[Environment] = None,
        recursion_limit: int = RECURSION_LIMIT,
    ):
        self.debug_level = debug_level
        self.debug_fp = open(debug_file, 'w') if debug_level > 0 else None
        self.global_env = env if env is not None else make_root_environment(out)
        self.recursion_limit = recursion_limit

    def __enter__(self) -> 'Interpreter':
        return self

    def __exit__(self, *exc_info):
        self.close()

    def debug(self, msg: str):
        if self.debug_level > 0:
            if self.debug_fp:
                self.debug_fp.write(msg + '\n')
                self.debug_fp.flush()
            else:
                print(msg)

    def close(self):
        if self.debug_fp:
            self.debug_fp.close()
            self.debug_fp = None

    # Public API
    def run(self, program: Ast, env: Optional[Environment] = None) -> Any:
        if env is None:
            env = self.global_env
        previous_limit = sys.getrecursionlimit()
        if previous_limit < self.recursion_limit:
            sys.setrecursionlimit(self.recursion_limit)
        try:
            return self.evaluate(program, env)
        except RecursionError:
            raise KestrelError(STACK_OVERFLOW, 'maximum recursion depth exceeded') from None
        finally:
            sys.setrecursionlimit(previous_limit)

    def evaluate(self, ast: Ast, env: Environment) -> Any:
        tag = ast.tag
        if tag == STATEMENTS:
            return self.eval_statements(ast, env)
        if tag == WHILE:
            return self.eval_while(ast, env)
        if tag == IF:
            return self.eval_if(ast, env)
        if tag == FUNCTION:
            return self.eval_function(ast, env)
        if tag == CALL:
            return self.eval_call(ast, env)
        if tag == ASSIGNMENT:
            return self.eval_assignment(ast, env)
        if tag == LOGICAL_OR:
            return self.eval_logical_or(ast, env)
        if tag == LOGICAL_AND:
            return self.eval_logical_and(ast, env)
        if tag == CONDITION:
            return self.eval_condition(ast, env)
        if tag == UNARY_PLUS:
            return self.eval_unary_plus(ast, env)
        if tag == UNARY_MINUS:
            return self.eval_unary_minus(ast, env)
        if tag == UNARY_NOT:
            return self.eval_unary_not(ast, env)
        if tag in (ADDITIVE, MULTIPLICATIVE):
            return self.eval_bin_expression(ast, env)
        if tag == IDENTIFIER:
            return env.get(ast.token)
        if tag == OBJECT:
            return self.eval_object(ast, env)
        if tag == ARRAY:
            return ArrayVal([self.evaluate(node, env) for node in ast.nodes])
        if tag == NUMBER:
            return number_from_literal(ast.token)
        if tag == BOOLEAN:
            return ast.token == 'true'
        if tag == INTERPOLATED_STRING:
            return ''.join(stringify(self.evaluate(node, env)) for node in ast.nodes)
        if ast.is_token:
            return ast.token
        raise RuntimeError(f'invalid Ast type {tag}')

    def eval_statements(self, ast: Ast, env: Environment) -> Any:
        result = UNIT
        for node in ast.nodes:
            result = self.evaluate(node, env)
        return result

    def eval_while(self, ast: Ast, env: Environment) -> Any:
        while to_bool(self.evaluate(ast.nodes[0], env)):
            self.evaluate(ast.nodes[1], env)
        return UNIT

    def eval_if(self, ast: Ast, env: Environment) -> Any:
        nodes = ast.nodes
        for i in range(0, len(nodes), 2):
            if i + 1 == len(nodes):
                # trailing else
                return self.evaluate(nodes[i], env)
            if to_bool(self.evaluate(nodes[i], env)):
                return self.evaluate(nodes[i + 1], env)
        return UNIT

    def eval_function(self, ast: Ast, env: Environment) -> FunctionValue:
        params = [
            Parameter(node.nodes[1].token, node.nodes[0].token == 'mut')
            for node in ast.nodes[0].nodes
        ]
        body = ast.nodes[1]

        def invoke(call_env: Environment) -> Any:
            call_env.append_outer(env)
            return self.evaluate(body, call_env)

        return FunctionValue(params, invoke)

    def eval_call(self, ast: Ast, env: Environment) -> Any:
        val = self.evaluate(ast.nodes[0], env)
        for step in ast.nodes[1:]:
            val = self.apply_postfix(val, step, ast, env)
        return val

    def apply_postfix(self, val: Any, step: Ast, ast: Ast, env: Environment) -> Any:
        if step.original_tag == ARGUMENTS:
            return self.call_function(val, step.nodes, ast, env)
        if step.original_tag == INDEX:
            arr = to_array(val)
            idx = to_number(self.evaluate(step.nodes[0], env))
            if 0 <= idx < len(arr.items):
                return arr.items[idx]
            # out of range leaves the chain value as it was
            return val
        if step.original_tag == DOT:
            prop = get_property(val, step.token)
            if isinstance(prop, FunctionValue):
                return self.bind_method(prop, val)
            return prop
        raise RuntimeError('invalid internal condition.')

    def call_function(self, val: Any, args: List[Ast], ast: Ast, env: Environment) -> Any:
        f = to_function(val)
        if len(f.params) > len(args):
            raise KestrelError(
                ARGUMENT_ERROR,
                f'{f!r} expects at least {len(f.params)} arguments, got {len(args)}',
            )
        call_env = Environment()
        call_env.initialize('self', val, False)
        # arguments past the declared parameters are never evaluated
        for param, arg in zip(f.params, args):
            call_env.initialize(param.name, self.evaluate(arg, env), param.mutable)
        call_env.initialize('__LINE__', ast.line, False)
        call_env.initialize('__COLUMN__', ast.column, False)
        if self.debug_level >= 1:
            self.debug(f"call {f!r} at {ast.line}:{ast.column}")
        return f.fn(call_env)

    def bind_method(self, pf: FunctionValue, receiver: Any) -> FunctionValue:
        """Wrap a property function so that calling it binds `this` to the receiver."""
        def invoke(call_env: Environment) -> Any:
            call_env.initialize('this', receiver, False)
            if isinstance(receiver, ObjectVal):
                call_env.set_object(receiver)
            return pf.fn(call_env)

        return FunctionValue(pf.params, invoke, pf.name)

    def eval_assignment(self, ast: Ast, env: Environment) -> Any:
        mut = ast.nodes[0].token == 'mut'
        target = ast.nodes[1]
        val = self.evaluate(ast.nodes[2], env)
        if target.tag == IDENTIFIER:
            var = target.token
            if isinstance(val, FunctionValue) and val.name is None:
                val.name = var
            if env.has(var):
                env.assign(var, val)
                if self.debug_level >= 2:
                    self.debug(f"assign {var} = {stringify(val)}")
            else:
                env.initialize(var, val, mut)
                if self.debug_level >= 2:
                    self.debug(f"initialize {'mut ' if mut else ''}{var} = {stringify(val)}")
            return val
        # property or index target: evaluate the chain up to its last step
        container = self.evaluate(target.nodes[0], env)
        for step in target.nodes[1:-1]:
            container = self.apply_postfix(container, step, target, env)
        last = target.nodes[-1]
        if last.original_tag == DOT:
            to_object(container).properties[last.token] = val
            return val
        arr = to_array(container)
        idx = to_number(self.evaluate(last.nodes[0], env))
        if not 0 <= idx < len(arr.items):
            raise KestrelError(INDEX_OUT_OF_RANGE, f'array index {idx} out of range')
        arr.items[idx] = val
        return val

    def eval_logical_or(self, ast: Ast, env: Environment) -> Any:
        ret = UNIT
        for node in ast.nodes:
            ret = self.evaluate(node, env)
            if to_bool(ret):
                return ret
        return ret

    def eval_logical_and(self, ast: Ast, env: Environment) -> Any:
        ret = UNIT
        for node in ast.nodes:
            ret = self.evaluate(node, env)
            if not to_bool(ret):
                return ret
        return ret

    def eval_condition(self, ast: Ast, env: Environment) -> Any:
        if len(ast.nodes) == 1:
            return self.evaluate(ast.nodes[0], env)
        lhs = self.evaluate(ast.nodes[0], env)
        ope = to_string(self.evaluate(ast.nodes[1], env))
        rhs = self.evaluate(ast.nodes[2], env)
        return compare(ope, lhs, rhs)

    def eval_unary_plus(self, ast: Ast, env: Environment) -> Any:
        return self.evaluate(ast.nodes[-1], env)

    def eval_unary_minus(self, ast: Ast, env: Environment) -> Any:
        if len(ast.nodes) == 1:
            return self.evaluate(ast.nodes[0], env)
        return wrap_int(-to_number(self.evaluate(ast.nodes[1], env)))

    def eval_unary_not(self, ast: Ast, env: Environment) -> Any:
        if len(ast.nodes) == 1:
            return self.evaluate(ast.nodes[0], env)
        return not to_bool(self.evaluate(ast.nodes[1], env))

    def eval_bin_expression(self, ast: Ast, env: Environment) -> Any:
        ret = to_number(self.evaluate(ast.nodes[0], env))
        for i in range(1, len(ast.nodes), 2):
            ope = to_string(self.evaluate(ast.nodes[i], env))
            val = to_number(self.evaluate(ast.nodes[i + 1], env))
            ret = arith(ope, ret, val)
        return ret

    def eval_object(self, ast: Ast, env: Environment) -> ObjectVal:
        obj = ObjectVal()
        for prop in ast.nodes:
            name = prop.nodes[0].token
            # later duplicates overwrite earlier ones
            obj.properties[name] = self.evaluate(prop.nodes[1], env)
        return obj


def run(
    path: str,
    env: Environment,
    source: str,
    length: Optional[int] = None,
    parser: Optional[Parser] = None,
    interpreter: Optional[Interpreter] = None,
) -> Tuple[bool, Any, str]:
    """Parse and evaluate `source` in `env`.

    Returns `(success, value, message)`. On a parse failure the message is
    `path:line:col: message`; on an evaluation failure it is the error's
    description. Evaluation stops at the first error.
    """
    if length is not None:
        source = source[:length]
    if parser is None:
        parser = Parser()
    try:
        program = parser.parse(source)
    except ParseError as e:
        return False, None, f"{path}:{e.line}:{e.column}: {e.message}"
    except KestrelError as e:
        return False, None, str(e)
    if interpreter is None:
        with Interpreter(env=env) as own:
            return _evaluate(own, program, env)
    return _evaluate(interpreter, program, env)


def _evaluate(interpreter: Interpreter, program: Ast, env: Environment) -> Tuple[bool, Any, str]:
    try:
        return True, interpreter.run(program, env), ''
    except KestrelError as e:
        return False, None, str(e)


def parse_program(source: str, parser: Optional[Parser] = None) -> Ast:
    if parser is None:
        parser = Parser()
    return parser.parse(source)


def run_program(source: str, debug_level: int = 0) -> Any:
    """Convenience function to parse and run a Kestrel program from source string."""
    program = parse_program(source)
    with Interpreter(debug_level=debug_level) as interpreter:
        return interpreter.run(program)
