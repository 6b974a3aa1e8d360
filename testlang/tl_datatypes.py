"""
Defines the core data types for the testlang interpreter.

This module holds the AST produced by the parser, the jump table shared
between parsing and evaluation, the runtime callable values and the
Environment chain used for lexical scoping.

Scalar runtime values are plain Python objects: `int` for ints, `str` for
strings and `None` for none.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union


# =================================================================
# Expressions
# =================================================================

@dataclass
class Var:
    name: str
    loc: Any = field(default=None, compare=False, repr=False)


@dataclass
class Int:
    value: int
    loc: Any = field(default=None, compare=False, repr=False)


@dataclass
class String:
    value: str
    loc: Any = field(default=None, compare=False, repr=False)


@dataclass
class Call:
    name: str
    arguments: List["Expression"]
    loc: Any = field(default=None, compare=False, repr=False)


@dataclass
class Brackets:
    inner: "Expression"
    loc: Any = field(default=None, compare=False, repr=False)


@dataclass
class Binary:
    left: "Expression"
    right: "Expression"
    op: str
    loc: Any = field(default=None, compare=False, repr=False)


@dataclass
class Unary:
    op: str
    operand: "Expression"
    loc: Any = field(default=None, compare=False, repr=False)


@dataclass
class Set:
    """Assignment used as an expression; evaluates to the assigned value."""
    name: str
    expr: "Expression"
    loc: Any = field(default=None, compare=False, repr=False)


Expression = Union[Var, Int, String, Call, Brackets, Binary, Unary, Set]


# =================================================================
# Statements
# =================================================================

@dataclass
class Scope:
    """A `{ ... }` block."""
    statements: List["Statement"]
    loc: Any = field(default=None, compare=False, repr=False)


@dataclass
class Then:
    """The `then` link of an if chain. Without `unless` its body always runs."""
    run: Union[Scope, Expression]
    unless: Optional["Unless"] = None


@dataclass
class Unless:
    condition: Expression
    then: Optional[Then] = None


@dataclass
class If:
    """`run unless condition then run2 unless condition2 ...`

    `run` executes when the condition is false. When it is true, evaluation
    moves on to the `then` link, if there is one.
    """
    run: Union[Scope, Expression]
    unless: Unless
    loc: Any = field(default=None, compare=False, repr=False)


@dataclass
class Expr:
    expr: Expression
    loc: Any = field(default=None, compare=False, repr=False)


@dataclass
class Noop:
    loc: Any = field(default=None, compare=False, repr=False)


@dataclass
class Goto:
    identifier: str
    loc: Any = field(default=None, compare=False, repr=False)


Statement = Union[Scope, If, Expr, Noop, Goto]


# =================================================================
# Jump table
# =================================================================

class JumpLocation:
    """A resume point registered by `come from`.

    `scope` is the live statement list the parser was filling when the label
    was seen, so statements appended after the label are part of it.
    """
    def __init__(self, scope: List[Statement], num_statements_skip: int):
        self.scope = scope
        self.num_statements_skip = num_statements_skip

    def remaining(self) -> List[Statement]:
        return self.scope[self.num_statements_skip:]

    def __repr__(self) -> str:
        return f"<JumpLocation skip={self.num_statements_skip} of {len(self.scope)}>"


class ProgramInfo:
    """Per-run state built by the parser and read by the evaluator."""
    def __init__(self):
        self.jump_table: Dict[str, List[JumpLocation]] = {}

    def register(self, identifier: str, location: JumpLocation):
        self.jump_table.setdefault(identifier, []).append(location)

    def locations(self, identifier: str) -> Optional[List[JumpLocation]]:
        return self.jump_table.get(identifier)


class Jump:
    """Control outcome of statement evaluation: resume at `location` with `env`."""
    def __init__(self, location: JumpLocation, env: "Environment"):
        self.location = location
        self.env = env

    def __repr__(self) -> str:
        return f"<Jump to {self.location!r}>"


# =================================================================
# Runtime values
# =================================================================

class Function:
    """A user function: a body closed over the environment it was created in."""
    def __init__(self, name: Optional[str], arg_names: List[str], body: List[Statement], closure: "Environment"):
        self.name = name
        self.arg_names = list(arg_names)
        self.body = body
        self.closure = closure

    def __repr__(self) -> str:
        return f"<Function {self.name}({', '.join(self.arg_names)})>"


class InternalFunction:
    """A builtin implemented in Python. `native` takes the list of argument values."""
    def __init__(self, name: Optional[str], arg_names: List[str], native: Callable[[List[Any]], Any]):
        self.name = name
        self.arg_names = list(arg_names)
        self.native = native

    def __repr__(self) -> str:
        return f"<InternalFunction {self.name}>"


def type_name(value: Any) -> str:
    """The tag name of a runtime value."""
    match value:
        case None:
            return "none"
        case bool():
            raise TypeError(f"bool is not a testlang value: {value!r}")
        case int():
            return "int"
        case str():
            return "string"
        case Function():
            return "func"
        case InternalFunction():
            return "internal_func"
        case _:
            raise TypeError(f"Not a testlang value: {value!r}")


# =================================================================
# Environment
# =================================================================

class Environment:
    """One frame of variable bindings, chained to an optional parent frame.

    Lookups walk outward from this frame. `set` on a name that is already
    bound updates the owning frame in place; on an unbound name it returns a
    new child frame holding just that binding and leaves `self` untouched.
    """
    def __init__(self, bindings: Optional[Dict[str, Any]] = None, parent: Optional["Environment"] = None):
        self.bindings: Dict[str, Any] = dict(bindings or {})
        self.parent = parent

    def find_owner(self, name: str) -> Optional["Environment"]:
        env = self
        while env is not None:
            if name in env.bindings:
                return env
            env = env.parent
        return None

    def get_full(self, name: str) -> Optional[Tuple[Any, "Environment"]]:
        """Returns (value, defining frame), or None when the name is unbound."""
        owner = self.find_owner(name)
        if owner is None:
            return None
        return owner.bindings[name], owner

    def get(self, name: str, default: Any = None) -> Any:
        owner = self.find_owner(name)
        if owner is None:
            return default
        return owner.bindings[name]

    def set_on_instance(self, name: str, value: Any):
        self.bindings[name] = value

    def set(self, name: str, value: Any) -> "Environment":
        owner = self.find_owner(name)
        if owner is None:
            return Environment({name: value}, self)
        owner.set_on_instance(name, value)
        return self

    def __contains__(self, name: str) -> bool:
        return self.find_owner(name) is not None

    def keys(self):
        """Names bound in this frame only."""
        return self.bindings.keys()

    def __repr__(self) -> str:
        keys = ', '.join(self.bindings.keys())
        parent_id = f", parent=#{id(self.parent)}" if self.parent else ""
        return f"<Environment bindings=[{keys}]{parent_id}>"
