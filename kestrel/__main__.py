"""Command line front end for Kestrel.

Usage:
    python -m kestrel [-v|-vv] [--recursion-limit N] <program_file>
    python -m kestrel [-v...] --emit-ast <program_file>
    python -m kestrel [-v...] --ast <ast_json_file>

`-v` turns on tracing into `debug.txt` in the current directory: one `-v`
traces calls, two also trace bindings. `--emit-ast` writes the parsed tree
next to the program as `<program_file>.ast.json`; `--ast` evaluates such a
file without parsing again.
"""

import argparse
import json
import sys
from pathlib import Path

from .ast_json import ast_to_obj, ast_from_obj
from .errors import KestrelError, ParseError
from .interpreter import Interpreter, run
from .parser import Parser


def _read(path: Path) -> str:
    if not path.exists():
        print(f"Error: file {path} not found", file=sys.stderr)
        sys.exit(1)
    return path.read_text(encoding='utf-8')


def _fail(message: str):
    print(message, file=sys.stderr)
    sys.exit(1)


def _emit_ast(program_file: Path):
    try:
        program = Parser().parse(_read(program_file))
    except ParseError as e:
        _fail(f"{program_file}:{e.line}:{e.column}: {e.message}")
    except KestrelError as e:
        _fail(str(e))
    target = program_file.with_name(program_file.name + '.ast.json')
    target.write_text(json.dumps(ast_to_obj(program), ensure_ascii=False, indent=2), encoding='utf-8')
    print(target)


def _run_ast(ast_file: Path, debug_level: int):
    program = ast_from_obj(json.loads(_read(ast_file)))
    with Interpreter(debug_level=debug_level) as interpreter:
        try:
            interpreter.run(program)
        except KestrelError as e:
            _fail(str(e))


def _run_source(program_file: str, debug_level: int):
    source = _read(Path(program_file))
    with Interpreter(debug_level=debug_level) as interpreter:
        ok, _, message = run(program_file, interpreter.global_env, source, interpreter=interpreter)
    if not ok:
        _fail(message)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog='kestrel', description="Run Kestrel programs")
    parser.add_argument('-v', action='count', default=0, help='trace evaluation into debug.txt (repeat for more)')
    parser.add_argument('--recursion-limit', type=int, default=None, metavar='N',
                        help='raise the host recursion limit above the evaluator default')
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument('--emit-ast', metavar='KES_FILE', help='parse KES_FILE and write its tree as JSON')
    mode.add_argument('--ast', metavar='AST_JSON_FILE', help='evaluate a tree written by --emit-ast')
    parser.add_argument('program', nargs='?', help='Kestrel program file (.kes) to execute')
    args = parser.parse_args(argv)

    if args.recursion_limit:
        sys.setrecursionlimit(args.recursion_limit)

    if args.emit_ast:
        _emit_ast(Path(args.emit_ast))
    elif args.ast:
        _run_ast(Path(args.ast), args.v)
    elif args.program:
        _run_source(args.program, args.v)
    else:
        parser.error('a program file is required unless --emit-ast or --ast is given')


if __name__ == '__main__':
    main()
