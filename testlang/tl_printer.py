"""
A pretty-printer for testlang ASTs and runtime values.
"""
from typing import Any, List

from testlang.tl_datatypes import (
    Var, Int, String, Call, Brackets, Binary, Unary, Set,
    Scope, If, Unless, Then, Expr, Noop, Goto,
    Function, InternalFunction,
)

_STRING_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\t": "\\t", "\r": "\\r", "\0": "\\0"}


class Printer:
    """Formats AST nodes as testlang source and runtime values as display text.

    Statement lists print one statement per line. `come from` labels are not
    part of the AST and are therefore not printed.
    """

    def __init__(self, indent_width=2):
        self._indent_char = " " * indent_width
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj, level)

    def _get_handler(self, obj):
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        if isinstance(obj, list):
            return self._pformat_statements
        return lambda o, l: repr(o)

    def _create_handlers(self):
        return {
            # Runtime values
            int: self._pformat_primitive,
            str: self._pformat_primitive,
            type(None): self._pformat_none,
            Function: self._pformat_function,
            InternalFunction: self._pformat_function,
            # Expressions
            Var: self._pformat_var,
            Int: self._pformat_int,
            String: self._pformat_string,
            Call: self._pformat_call,
            Brackets: self._pformat_brackets,
            Binary: self._pformat_binary,
            Unary: self._pformat_unary,
            Set: self._pformat_set,
            # Statements
            Scope: self._pformat_scope,
            If: self._pformat_if,
            Expr: self._pformat_expr,
            Noop: self._pformat_noop,
            Goto: self._pformat_goto,
        }

    # --- Values ---

    def _pformat_primitive(self, obj, level):
        return str(obj)

    def _pformat_none(self, obj, level):
        return 'none'

    def _pformat_function(self, obj, level):
        return f"{obj.name}({', '.join(obj.arg_names)})"

    # --- Expressions ---

    def _pformat_var(self, obj, level):
        return obj.name

    def _pformat_int(self, obj, level):
        return str(obj.value)

    def _pformat_string(self, obj, level):
        escaped = "".join(_STRING_ESCAPES.get(c, c) for c in obj.value)
        return f'"{escaped}"'

    def _pformat_call(self, obj, level):
        args = ", ".join(self.pformat(a, level) for a in obj.arguments)
        return f"{obj.name}({args})"

    def _pformat_brackets(self, obj, level):
        return f"({self.pformat(obj.inner, level)})"

    def _pformat_binary(self, obj, level):
        return f"{self.pformat(obj.left, level)} {obj.op} {self.pformat(obj.right, level)}"

    def _pformat_unary(self, obj, level):
        return f"{obj.op}{self.pformat(obj.operand, level)}"

    def _pformat_set(self, obj, level):
        return f"{obj.name} = {self.pformat(obj.expr, level)}"

    # --- Statements ---

    def _pformat_statements(self, statements: List[Any], level):
        indent = self._indent_char * level
        return "".join(f"{indent}{self.pformat(s, level)}\n" for s in statements)

    def _pformat_scope(self, obj, level):
        if not obj.statements:
            return "{}"
        inner = self._pformat_statements(obj.statements, level + 1)
        return "{\n" + inner + self._indent_char * level + "}"

    def _pformat_if(self, obj, level):
        parts = [self.pformat(obj.run, level)]
        unless: Unless = obj.unless
        while unless is not None:
            parts.append(f"unless {self.pformat(unless.condition, level)}")
            then: Then = unless.then
            if then is None:
                break
            parts.append(f"then {self.pformat(then.run, level)}")
            unless = then.unless
        return " ".join(parts) + ";"

    def _pformat_expr(self, obj, level):
        return f"{self.pformat(obj.expr, level)};"

    def _pformat_noop(self, obj, level):
        return ";"

    def _pformat_goto(self, obj, level):
        return f"// {obj.identifier}"


def stringify_ast(statements) -> str:
    return Printer().pformat(statements)


def to_display(value) -> str:
    """The text `print` shows for a runtime value."""
    return Printer().pformat(value)
