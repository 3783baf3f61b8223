import io
import sys

from kestrel import Interpreter, Parser, make_root_environment, run
from kestrel.types import INT_MAX, INT_MIN


def test_run_success():
    ok, value, msg = run('inline.kes', make_root_environment(), 'x = 20\nx + 22')
    assert ok
    assert value == 42
    assert msg == ''


def test_run_respects_length():
    ok, value, _ = run('inline.kes', make_root_environment(), '1 + 2 + 3', length=5)
    assert ok
    assert value == 3


def test_run_parse_failure_message():
    ok, value, msg = run('bad.kes', make_root_environment(), 'x = = 1')
    assert not ok
    assert value is None
    assert msg.startswith('bad.kes:1:5: ')


def test_run_evaluation_failure_stops_at_first_error(capsys):
    ok, value, msg = run('bad.kes', make_root_environment(), 'puts(1)\nnope\nputs(2)')
    assert not ok
    assert msg == 'UnboundName: undefined variable nope'
    assert capsys.readouterr().out == '1\n'


def test_run_keeps_environment_between_calls():
    parser = Parser()
    env = make_root_environment()
    assert run('a.kes', env, 'mut total = 1', parser=parser)[0]
    ok, value, _ = run('b.kes', env, 'total = total + 1\ntotal', parser=parser)
    assert ok
    assert value == 2


def test_run_uses_given_interpreter_output():
    out = io.StringIO()
    interpreter = Interpreter(out=out)
    ok, _, _ = run('p.kes', interpreter.global_env, 'puts("to buffer")', interpreter=interpreter)
    assert ok
    assert out.getvalue() == 'to buffer\n'


def test_debug_trace(tmp_path):
    debug_file = tmp_path / 'trace.txt'
    interpreter = Interpreter(debug_level=2, debug_file=str(debug_file))
    ok, _, _ = run('p.kes', interpreter.global_env, 'f = fn(a) { a }\nf(1)', interpreter=interpreter)
    interpreter.close()
    assert ok
    trace = debug_file.read_text(encoding='utf-8')
    assert 'initialize f = [function]' in trace
    assert 'call <function f> at 2:1' in trace


def test_run_reports_deep_nesting_as_stack_overflow():
    ok, value, msg = run('deep.kes', make_root_environment(), '-' * 3000 + '1')
    assert not ok
    assert value is None
    assert msg.startswith('StackOverflow: ')


def test_run_wraps_huge_literal():
    ok, value, _ = run('big.kes', make_root_environment(), '1' * 5000)
    assert ok
    assert INT_MIN <= value <= INT_MAX


def test_run_allows_deep_recursion():
    source = 'sum = fn(n) { if n == 0 { 0 } else { n + self(n - 1) } }\nsum(1000)'
    ok, value, msg = run('sum.kes', make_root_environment(), source)
    assert ok, msg
    assert value == 500500


def test_recursion_limit_is_restored():
    before = sys.getrecursionlimit()
    run('p.kes', make_root_environment(), 'f = fn() { f() }\nf()')
    assert sys.getrecursionlimit() == before


def test_interpreter_uses_given_environment():
    env = make_root_environment()
    interpreter = Interpreter(env=env)
    assert interpreter.global_env is env


def test_interpreter_closes_debug_file_on_exit(tmp_path):
    with Interpreter(debug_level=1, debug_file=str(tmp_path / 'trace.txt')) as interpreter:
        assert interpreter.debug_fp is not None
    assert interpreter.debug_fp is None
