"""
The core testlang interpreter: a tree-walking Evaluator.

Expression evaluation returns an `(environment, value)` pair because an
assignment to an unbound name creates a new frame that later siblings must
see. Statement evaluation returns None on normal completion or a `Jump`
when a goto fired; `eval_simple` resumes execution at the jump target.
"""
import os
import random
import sys
from typing import Any, Callable, List, Optional, Tuple

from testlang.tl_errors import TLNameError, TLTypeError, TLZeroDivisionError
from testlang.tl_datatypes import (
    Var, Int, String, Call, Brackets, Binary, Unary, Set,
    Scope, If, Expr, Noop, Goto,
    Jump, ProgramInfo, Function, InternalFunction, Environment, type_name,
    Expression, Statement,
)


class _JumpOut(Exception):
    """Carries a Jump out of a function body through expression evaluation.

    Caught at the nearest statement boundary and turned back into a Jump
    outcome; it never leaves the Evaluator.
    """
    def __init__(self, jump: Jump):
        super().__init__("goto")
        self.jump = jump


# --- Value semantics ---

def to_boolean(value: Any) -> bool:
    match value:
        case None:
            return False
        case int():
            return value != 0
        case _:
            raise TLTypeError(f"Type {type_name(value)} cannot be converted to true or false.")


def is_comparable(left: Any, right: Any) -> bool:
    match left:
        case Function() | InternalFunction():
            return False
        case None:
            return right is None
        case int():
            return isinstance(right, int)
        case str():
            return isinstance(right, str)
    return False


def is_equal(left: Any, right: Any) -> bool:
    match left:
        case Function() | InternalFunction():
            return False
        case None:
            return right is None
        case int():
            return isinstance(right, int) and left == right
        case str():
            return isinstance(right, str) and left == right
    return False


def is_less(left: Any, right: Any) -> bool:
    # Only ints are ordered.
    if isinstance(left, int) and isinstance(right, int):
        return left < right
    return False


def truncating_divmod(a: int, b: int) -> Tuple[int, int]:
    """Quotient rounded toward zero and the remainder with the sign of `a`."""
    if b == 0:
        raise TLZeroDivisionError("Division by zero.")
    q = abs(a) // abs(b)
    if (a < 0) != (b < 0):
        q = -q
    return q, a - b * q


def binary_operation(op: str, left: Any, right: Any) -> int | str:
    if op in ("+", "-", "*", "/"):
        if isinstance(left, int) and isinstance(right, int):
            match op:
                case "+": return left + right
                case "-": return left - right
                case "*": return left * right
                case "/": return truncating_divmod(left, right)[0]
        if op == "+" and isinstance(left, str) and isinstance(right, str):
            return left + right
        if op == "*" and isinstance(left, str) and isinstance(right, int):
            return left * max(right, 0)
        raise TLTypeError(f"Cannot use operation {op} between {type_name(left)} and {type_name(right)}")

    if not is_comparable(left, right):
        return 0
    match op:
        case "==": return int(is_equal(left, right))
        case "!=": return int(not is_equal(left, right))
        case "<": return int(is_less(left, right))
        case ">=": return int(not is_less(left, right))
        case ">": return int(not is_less(left, right) and not is_equal(left, right))
        case "<=": return int(is_less(left, right) or is_equal(left, right))
    raise TLTypeError(f"Unknown binary operator {op}")


def unary_operation(op: str, value: Any) -> int:
    if not isinstance(value, int):
        raise TLTypeError(f"Cannot use unary operator {op} on {type_name(value)}")
    match op:
        case "-": return -value
        case "!": return int(not value)
    raise TLTypeError(f"Unknown unary operator {op}")


class Evaluator:
    """The testlang execution engine."""
    def __init__(self, program_info: Optional[ProgramInfo] = None, rng: Optional[random.Random] = None):
        self.program_info = program_info if program_info is not None else ProgramInfo()
        self.rng = rng if rng is not None else random.Random()
        self.side_effects: List[Any] = []
        self.call_stack = []
        self.current_node = None

    def _push_frame(self, name, func, args, call_site_node):
        self.call_stack.append({
            'name': name,
            'func': func,
            'args': args,
            'call_site': getattr(call_site_node, 'loc', None),
        })

    def _pop_frame(self):
        if self.call_stack:
            self.call_stack.pop()

    def _dbg(self, *parts):
        if os.environ.get("TESTLANG_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    # --- Expressions ---

    def eval_expression(self, env: Environment, expr: Expression) -> Tuple[Environment, Any]:
        self.current_node = expr
        match expr:
            case Var(name=name):
                found = env.get_full(name)
                if found is None:
                    raise TLNameError("Variable", name, getattr(expr, 'loc', None))
                return env, found[0]
            case Int(value=value) | String(value=value):
                return env, value
            case Set(name=name, expr=inner):
                env, value = self.eval_expression(env, inner)
                return env.set(name, value), value
            case Call():
                return self._eval_call(env, expr)
            case Brackets(inner=inner):
                return self.eval_expression(env, inner)
            case Binary(left=left_expr, right=right_expr, op=op):
                env, left = self.eval_expression(env, left_expr)
                env, right = self.eval_expression(env, right_expr)
                self.current_node = expr
                return env, binary_operation(op, left, right)
            case Unary(op=op, operand=operand):
                env, value = self.eval_expression(env, operand)
                self.current_node = expr
                return env, unary_operation(op, value)
        raise TypeError(f"Not an expression: {expr!r}")

    def eval_arguments(self, env: Environment, arguments: List[Expression]) -> Tuple[Environment, List[Any]]:
        """Evaluates arguments left to right, threading the environment through."""
        values = []
        for argument in arguments:
            env, value = self.eval_expression(env, argument)
            values.append(value)
        return env, values

    def _eval_call(self, env: Environment, expr: Call) -> Tuple[Environment, Any]:
        found = env.get_full(expr.name)
        if found is None:
            raise TLNameError("Function", expr.name, getattr(expr, 'loc', None))
        func = found[0]

        match func:
            case Function():
                if len(func.arg_names) != len(expr.arguments):
                    raise TLTypeError(
                        f"Tried calling function {func.name} with {len(expr.arguments)} arguments "
                        f"while the function expects {len(func.arg_names)} arguments."
                    )
                env, values = self.eval_arguments(env, expr.arguments)
                call_env = Environment(dict(zip(func.arg_names, values)), func.closure)
                self._push_frame(expr.name, func, values, expr)
                jump = self.eval_statements(call_env, func.body)
                self._pop_frame()
                if jump is not None:
                    raise _JumpOut(jump)
                return env, None
            case InternalFunction():
                env, values = self.eval_arguments(env, expr.arguments)
                self._push_frame(expr.name, func, values, expr)
                self.current_node = expr
                result = func.native(values)
                self._pop_frame()
                return env, result
            case _:
                raise TLTypeError(f"Cannot call value of type {type_name(func)} as a function.")

    # --- Statements ---

    def _eval_body(self, env: Environment, body) -> Optional[Jump]:
        if isinstance(body, Scope):
            return self.eval_statements(env, body.statements)
        self.eval_expression(env, body)
        return None

    def eval_if(self, env: Environment, statement: If) -> Tuple[Environment, Optional[Jump]]:
        run, unless = statement.run, statement.unless
        while True:
            if unless is None:
                return env, self._eval_body(env, run)
            env, condition = self.eval_expression(env, unless.condition)
            if not to_boolean(condition):
                return env, self._eval_body(env, run)
            if unless.then is None:
                return env, None
            run, unless = unless.then.run, unless.then.unless

    def eval_statement(self, env: Environment, statement: Statement) -> Tuple[Environment, Optional[Jump]]:
        self.current_node = statement
        try:
            match statement:
                case Noop():
                    return env, None
                case Expr(expr=expr):
                    env, _ = self.eval_expression(env, expr)
                    return env, None
                case Scope(statements=statements):
                    # A nested scope shares the chain; new frames it creates stay local to it.
                    return env, self.eval_statements(env, statements)
                case If():
                    return self.eval_if(env, statement)
                case Goto(identifier=identifier):
                    return env, self._goto(env, identifier)
        except _JumpOut as signal:
            return env, signal.jump
        raise TypeError(f"Not a statement: {statement!r}")

    def _goto(self, env: Environment, identifier: str) -> Optional[Jump]:
        locations = self.program_info.locations(identifier)
        # A comment that was never registered with `come from` is not a jump.
        if not locations:
            return None
        location = self.rng.choice(locations)
        self._dbg(f"goto {identifier} -> skip {location.num_statements_skip} of {len(location.scope)}")
        return Jump(location, env)

    def eval_statements(self, env: Environment, statements: List[Statement]) -> Optional[Jump]:
        for statement in statements:
            env, jump = self.eval_statement(env, statement)
            if jump is not None:
                return jump
        return None

    def eval_simple(self, statements: List[Statement], env: Environment) -> Environment:
        """Runs a program, following jumps until a run completes without one.

        Returns the environment in effect at the end of the last run.
        """
        while True:
            for statement in statements:
                env, jump = self.eval_statement(env, statement)
                if jump is not None:
                    break
            else:
                return env
            statements = jump.location.remaining()
            env = jump.env
