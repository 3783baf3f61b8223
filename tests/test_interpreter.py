import pytest

from kestrel.errors import KestrelError
from kestrel.types import UNIT, ArrayVal, ObjectVal, INT_MIN


def kind_of(evaluate, source):
    with pytest.raises(KestrelError) as exc:
        evaluate(source)
    return exc.value.kind


def test_empty_program_is_unit(evaluate):
    assert evaluate('') == UNIT
    assert evaluate('\n\n') == UNIT


def test_sequence_yields_last_value(evaluate):
    assert evaluate('1; 2; 3') == 3
    assert evaluate('fn() { 1; 2; 3 }()') == 3
    assert evaluate('fn() { }()') == UNIT


@pytest.mark.parametrize('source, expected', [
    ('2 + 3 * 4', 14),
    ('(2 + 3) * 4', 20),
    ('10 - 4 - 3', 3),
    ('7 / 2', 3),
    ('-7 / 2', -3),
    ('-7 % 3', -1),
    ('- -3', 3),
    ('+5', 5),
    ('9223372036854775807 + 1', INT_MIN),
])
def test_arithmetic(evaluate, source, expected):
    assert evaluate(source) == expected


@pytest.mark.parametrize('source', ['1 / 0', '1 % 0', 'x = 0\n5 / x'])
def test_division_by_zero(evaluate, source):
    assert kind_of(evaluate, source) == 'DivisionByZero'


@pytest.mark.parametrize('source', [
    '1 + true',
    '"a" * 2',
    'if 1 { 2 }',
    'while 0 { 1 }',
    '1 == "1"',
    '[1] < [2]',
    '!1',
    '-true',
    'false || 1',
    '5(1)',
    '5[0]',
    '5.x',
    'a = [1]\na.x = 2',
])
def test_type_mismatch(evaluate, source):
    assert kind_of(evaluate, source) == 'TypeMismatch'


def test_comparisons(evaluate):
    assert evaluate('"a" < "b"') is True
    assert evaluate('false < true') is True
    assert evaluate('3 >= 4') is False
    assert evaluate('f = fn() { 1 }\nf == f') is True
    assert evaluate('[1] == [1]') is False
    assert evaluate('a = [1]\nb = a\na == b') is True


def test_logical_operators_short_circuit(evaluate):
    assert evaluate('true || undefined_name') is True
    assert evaluate('false && undefined_name') is False
    assert evaluate('false || false') is False
    assert evaluate('true && !false') is True


def test_mutable_binding_can_be_reassigned(evaluate):
    assert evaluate('mut x = 1\nx = 2\nx = 3\nx') == 3


def test_immutable_binding_rejects_reassignment(evaluate):
    assert kind_of(evaluate, 'x = 1\nx = 2') == 'ImmutableBinding'


def test_first_assignment_defines(evaluate):
    assert evaluate('x = 1\nx') == 1
    assert kind_of(evaluate, 'y') == 'UnboundName'


def test_assignment_inside_function_updates_outer_mutable(evaluate):
    assert evaluate('mut total = 0\nadd = fn(n) { total = total + n }\nadd(2)\nadd(3)\ntotal') == 5


def test_closure_ignores_call_site_shadowing(evaluate):
    source = '''
x = "outer"
f = fn() { x }
g = fn(x) { f() }
g("caller")
'''
    assert evaluate(source) == 'outer'


def test_closure_outlives_defining_call(evaluate):
    source = '''
adder = fn(n) { fn(m) { n + m } }
add2 = adder(2)
add2(40)
'''
    assert evaluate(source) == 42


def test_extra_arguments_are_ignored_and_not_evaluated(evaluate):
    assert evaluate('f = fn(a) { a }\nf(1, 2, 3)') == 1
    assert evaluate('f = fn(a) { a }\nf(1, never_defined)') == 1


def test_missing_arguments(evaluate):
    assert kind_of(evaluate, 'f = fn(a, b) { a }\nf(1)') == 'ArgumentError'


def test_parameters_follow_their_qualifier(evaluate):
    assert evaluate('f = fn(mut a) { a = a + 1\na }\nf(1)') == 2
    assert kind_of(evaluate, 'f = fn(a) { a = a + 1 }\nf(1)') == 'ImmutableBinding'


def test_self_refers_to_called_function(evaluate):
    source = 'countdown = fn(n) { if n == 0 { "done" } else { self(n - 1) } }\ncountdown(5)'
    assert evaluate(source) == 'done'


def test_call_position_bindings(evaluate):
    source = 'where = fn() { "${__LINE__}:${__COLUMN__}" }\n\n   where()'
    assert evaluate(source) == '3:4'


def test_out_of_range_index_keeps_running_value(evaluate):
    result = evaluate('a = [1, 2]\na[5]')
    assert isinstance(result, ArrayVal)
    assert result.items == [1, 2]
    assert evaluate('a = [1, 2]\na[-1]').items == [1, 2]
    assert evaluate('a = [[1, 2], [3]]\na[1][0]') == 3


def test_index_must_be_number(evaluate):
    assert kind_of(evaluate, 'a = [1]\na["0"]') == 'TypeMismatch'


def test_index_assignment(evaluate):
    assert evaluate('a = [1, 2]\na[0] = 5\na').items == [5, 2]
    assert kind_of(evaluate, 'a = [1]\na[3] = 0') == 'IndexOutOfRange'


def test_this_mutation_visible_through_alias(evaluate):
    source = '''
counter = {
    count: 0,
    inc: fn() { this.count = this.count + 1 }
}
other = counter
counter.inc()
counter.inc()
other.count
'''
    assert evaluate(source) == 2


def test_method_sees_receiver_properties_by_name(evaluate):
    source = '''
point = { x: 3, y: 4, sum: fn() { x + y } }
point.sum()
'''
    assert evaluate(source) == 7


def test_non_function_property_is_returned_as_is(evaluate):
    assert evaluate('o = {a: [1, 2]}\no.a').items == [1, 2]


def test_object_literal_duplicates_overwrite(evaluate):
    assert evaluate('{a: 1, a: 2}.a') == 2


def test_missing_property(evaluate):
    assert kind_of(evaluate, 'o = {a: 1}\no.b') == 'UnboundName'


def test_builtin_properties(evaluate):
    assert evaluate('[1, 2, 3].size()') == 3
    assert evaluate('"hello".size()') == 5
    assert evaluate('{a: 1, b: 2}.size()') == 2
    pushed = evaluate('a = []\na.push(1).push(2)\na')
    assert pushed.items == [1, 2]


def test_interpolated_string(evaluate):
    assert evaluate('"x=${1+2}"') == 'x=3'
    assert evaluate('n = 2\n"${n} is ${n > 1}"') == '2 is true'
    assert evaluate('"list ${[1, 2]}"') == 'list [1, 2]'
    assert evaluate('""') == ''


def test_if_chain(evaluate):
    assert evaluate('if (false) { 1 } else if (true) { 2 } else { 3 }') == 2
    assert evaluate('if (false) { 1 } else if (false) { 2 }') == UNIT
    assert evaluate('if false { 1 } else { 3 }') == 3


def test_while_yields_unit(evaluate):
    assert evaluate('mut i = 0\nwhile i < 3 { i = i + 1 }') == UNIT
    assert evaluate('mut i = 0\nwhile i < 3 { i = i + 1 }\ni') == 3


def test_object_literal_evaluates_in_order(evaluate):
    obj = evaluate('mut n = 0\nnext = fn() { n = n + 1\nn }\n{a: next(), b: next()}')
    assert isinstance(obj, ObjectVal)
    assert obj.properties == {'a': 1, 'b': 2}


def test_assert_builtin(evaluate):
    assert evaluate('assert(1 < 2)') == UNIT
    with pytest.raises(KestrelError) as exc:
        evaluate('\n  assert(2 < 1)')
    assert exc.value.kind == 'AssertionFailure'
    assert exc.value.message == 'assert failed at 2:3'


def test_puts_builtin(evaluate, capsys):
    assert evaluate('puts({a: true})') == UNIT
    assert capsys.readouterr().out == '{a: true}\n'


def test_unbounded_recursion_is_stack_overflow(evaluate):
    assert kind_of(evaluate, 'f = fn() { f() }\nf()') == 'StackOverflow'
