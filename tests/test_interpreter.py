import random

import pytest

from testlang.tl_errors import TLNameError, TLTypeError, TLZeroDivisionError
from testlang.tl_lexer import lex
from testlang.tl_parser import parse
from testlang.tl_interpreter import (
    Evaluator, binary_operation, unary_operation, is_comparable, is_equal, is_less,
    to_boolean, truncating_divmod,
)
from testlang.tl_runtime import default_environment
from testlang.tl_datatypes import (
    Var, Int, String, Call, Set, Expr, Goto, Scope,
    Function, InternalFunction, Environment, JumpLocation, ProgramInfo, type_name,
)


class PickLast:
    """A stand-in random source that always picks the last candidate."""
    def __init__(self):
        self.seen = []

    def choice(self, seq):
        self.seen.append(len(seq))
        return seq[-1]


def run(source, rng=None, env=None):
    lines = []
    info = ProgramInfo()
    statements = parse(lex(source), info)
    evaluator = Evaluator(info, rng)
    base = env if env is not None else default_environment(lines.append)
    final_env = evaluator.eval_simple(statements, base)
    return lines, final_env, evaluator


FUNC_VALUE = Function("f", [], [], Environment())


# --- Value semantics ---

@pytest.mark.parametrize("value, expected", [(None, False), (0, False), (1, True), (-3, True)])
def test_to_boolean(value, expected):
    assert to_boolean(value) is expected


@pytest.mark.parametrize("value", ["", "x", FUNC_VALUE])
def test_to_boolean_rejects_other_types(value):
    with pytest.raises(TLTypeError, match="cannot be converted to true or false"):
        to_boolean(value)


@pytest.mark.parametrize("left, right", [
    (1, "1"), ("a", None), (None, 0), (FUNC_VALUE, FUNC_VALUE), (FUNC_VALUE, 1), (1, FUNC_VALUE),
])
def test_mixed_tags_never_throw_and_order_to_zero(left, right):
    assert is_comparable(left, right) is False
    assert is_equal(left, right) is False
    assert is_less(left, right) is False
    for op in ("==", "!=", "<", ">", "<=", ">="):
        assert binary_operation(op, left, right) == 0


def test_none_equals_none():
    assert binary_operation("==", None, None) == 1
    assert binary_operation("!=", None, None) == 0
    assert binary_operation("<", None, None) == 0
    assert binary_operation(">=", None, None) == 1


def test_strings_are_equal_but_not_ordered():
    assert binary_operation("==", "a", "a") == 1
    assert binary_operation("<", "a", "b") == 0
    assert binary_operation(">", "a", "b") == 1
    assert binary_operation("<=", "a", "b") == 0


@pytest.mark.parametrize("op, left, right, expected", [
    ("<", 1, 2, 1), ("<", 2, 2, 0),
    (">", 3, 2, 1), (">", 2, 2, 0),
    ("<=", 2, 2, 1), ("<=", 1, 2, 1), ("<=", 3, 2, 0),
    (">=", 2, 2, 1), (">=", 1, 2, 0),
])
def test_derived_orderings(op, left, right, expected):
    assert binary_operation(op, left, right) == expected


@pytest.mark.parametrize("op, left, right, expected", [
    ("+", 2, 3, 5), ("-", 2, 3, -1), ("*", 4, -3, -12),
    ("/", 7, 2, 3), ("/", -7, 2, -3), ("/", 7, -2, -3), ("/", 6, 3, 2),
    ("+", "ab", "cd", "abcd"), ("*", "ab", 3, "ababab"), ("*", "ab", 0, ""), ("*", "ab", -2, ""),
])
def test_arithmetic(op, left, right, expected):
    assert binary_operation(op, left, right) == expected


@pytest.mark.parametrize("op, left, right", [
    ("+", 1, "a"), ("-", "a", "b"), ("*", 3, "ab"), ("/", "a", 1), ("+", None, 1), ("+", FUNC_VALUE, 1),
])
def test_arithmetic_type_errors(op, left, right):
    with pytest.raises(TLTypeError, match=f"Cannot use operation \\{op} between"):
        binary_operation(op, left, right)


def test_division_by_zero():
    with pytest.raises(TLZeroDivisionError):
        binary_operation("/", 1, 0)


def test_truncating_divmod_keeps_dividend_sign():
    assert truncating_divmod(7, 3) == (2, 1)
    assert truncating_divmod(-7, 3) == (-2, -1)
    assert truncating_divmod(7, -3) == (-2, 1)
    assert truncating_divmod(10**30 + 1, 10**15) == (10**15, 1)


def test_unary_operations():
    assert unary_operation("-", 5) == -5
    assert unary_operation("!", 0) == 1
    assert unary_operation("!", 7) == 0
    with pytest.raises(TLTypeError, match="Cannot use unary operator - on string"):
        unary_operation("-", "x")
    with pytest.raises(TLTypeError, match="Cannot use unary operator ! on none"):
        unary_operation("!", None)


def test_type_names():
    assert [type_name(v) for v in (1, "s", None, FUNC_VALUE)] == ["int", "string", "none", "func"]
    assert type_name(InternalFunction("p", [], lambda a: None)) == "internal_func"


# --- Expressions and environments ---

def test_arguments_are_evaluated_left_to_right():
    lines, _, _ = run("print(print(1), print(2), print(3));")
    assert lines == ["1", "2", "3", "none none none"]


def test_assignment_threads_new_frames_to_later_siblings():
    evaluator = Evaluator()
    env = Environment()
    new_env, values = evaluator.eval_arguments(env, [Set("a", Int(1)), Var("a")])
    assert values == [1, 1]
    assert new_env.parent is env
    assert "a" not in env


def test_assignment_to_bound_name_keeps_environment():
    evaluator = Evaluator()
    env = Environment({"a": 1})
    new_env, value = evaluator.eval_expression(env, Set("a", String("x")))
    assert new_env is env
    assert value == "x"
    assert env.get("a") == "x"


def test_undefined_variable():
    with pytest.raises(TLNameError) as excinfo:
        run("print(nope);")
    assert excinfo.value.kind == "Variable"
    assert excinfo.value.name == "nope"
    assert "Variable nope could not be found" in str(excinfo.value)


def test_undefined_function():
    with pytest.raises(TLNameError) as excinfo:
        run("nope(1);")
    assert excinfo.value.kind == "Function"


def test_calling_a_non_callable():
    with pytest.raises(TLTypeError, match="Cannot call value of type int as a function"):
        run("x = 1; x();")


def test_scope_bindings_do_not_leak():
    with pytest.raises(TLNameError):
        run("{ inner = 1; } print(inner);")


def test_unless_condition_must_be_boolean_like():
    with pytest.raises(TLTypeError):
        run('print(1) unless "yes";')


def test_unless_none_condition_is_false():
    lines, _, _ = run("print(1) unless print(0);")
    assert lines == ["0", "1"]


def test_eval_simple_returns_final_environment():
    _, env, _ = run("a = 1; b = 2;")
    assert env.get("a") == 1 and env.get("b") == 2


def test_mod_builtin_argument_checks():
    with pytest.raises(TLTypeError, match="mod expects 2 arguments but got 1"):
        run("mod(1);")
    with pytest.raises(TLTypeError, match="mod expects two ints"):
        run('mod(1, "a");')
    with pytest.raises(TLZeroDivisionError):
        run("mod(1, 0);")


# --- User functions ---

def make_env_with_function(lines, arg_names, body_source):
    env = default_environment(lines.append)
    body = parse(lex(body_source))
    env.set_on_instance("f", Function("f", arg_names, body, env))
    return env


def test_user_function_call_binds_arguments_in_a_fresh_frame():
    lines = []
    env = make_env_with_function(lines, ["a", "b"], "print(a + b); a = 100;")
    _, final_env, _ = run("a = 1; print(f(a, 2)); print(a);", env=env)
    assert lines == ["3", "none", "1"]
    assert final_env.get("a") == 1


def test_user_function_wrong_arity_names_both_counts():
    lines = []
    env = make_env_with_function(lines, ["a", "b"], "print(a);")
    with pytest.raises(TLTypeError) as excinfo:
        run("f(1);", env=env)
    assert "with 1 arguments while the function expects 2 arguments" in str(excinfo.value)


def test_call_stack_is_unwound_after_calls():
    lines = []
    env = make_env_with_function(lines, [], "print(1);")
    _, _, evaluator = run("f(); f();", env=env)
    assert evaluator.call_stack == []


# --- Goto ---

def test_goto_to_unregistered_label_is_a_noop():
    lines, _, _ = run("// nowhere\nprint(9);")
    assert lines == ["9"]


AMBIGUOUS = """
done = 0;
come from jump;
print("A");
come from jump;
print("B");
{
  done = done + 1;
  // jump
} unless done;
"""


def test_goto_picks_among_shared_labels_with_the_random_source():
    rng = PickLast()
    lines, _, _ = run(AMBIGUOUS, rng=rng)
    assert lines == ["A", "B", "B"]
    assert rng.seen == [2]


def test_goto_with_seeded_random_is_reproducible():
    first, _, _ = run(AMBIGUOUS, rng=random.Random(1234))
    second, _, _ = run(AMBIGUOUS, rng=random.Random(1234))
    assert first == second
    assert first in (["A", "B", "A", "B"], ["A", "B", "B"])


def test_goto_carries_the_environment_at_the_jump():
    lines, _, _ = run("""
seen = 0;
come from top;
{
  k = 1;
  seen = 1;
  // top
} unless seen;
print(k);
""")
    # k was created inside the scope; the jump env keeps that frame.
    assert lines == ["1"]


def test_goto_inside_user_function_jumps_out_of_the_call():
    lines = []
    env = make_env_with_function(lines, [], 'print("in f");\n// out\nprint("unreached");')
    # Bound in the closure frame, so it stays visible after the jump.
    env.set_on_instance("n", 0)
    _, _, evaluator = run("""
come from out;
n = n + 1;
print(n);
f() unless n > 1;
print("end");
""", env=env)
    assert lines == ["1", "in f", "2", "end"]
    assert evaluator.call_stack == []


def test_goto_inside_user_function_resumes_in_the_function_environment():
    lines = []
    env = make_env_with_function(lines, [], 'print("in f");\n// out')
    with pytest.raises(TLNameError) as excinfo:
        run("""
k = 1;
come from out;
print(k);
f();
""", env=env)
    # `k` lives in a frame the function's closure cannot see.
    assert excinfo.value.name == "k"
    assert lines == ["1", "in f"]


def test_jump_from_nested_scope_resumes_in_that_scope_only():
    lines, _, _ = run("""
n = 0;
{
  come from again;
  n = n + 1;
  print(n);
}
{
  // again
} unless n > 2;
print("done");
""")
    assert lines == ["1", "2"]


def test_goto_statement_node_directly():
    info = ProgramInfo()
    target = [Expr(Call("print", [Int(5)]))]
    info.register("here", JumpLocation(target, 0))
    lines = []
    evaluator = Evaluator(info)
    evaluator.eval_simple([Scope([Goto("here"), Expr(Call("print", [Int(1)]))])], default_environment(lines.append))
    assert lines == ["5"]
