"""testlang: a small tree-walking interpreter for an educational scripting language."""
from testlang.tl_errors import (
    TLError, LexError, TLSyntaxError, TLNameError, TLTypeError, TLZeroDivisionError,
)
from testlang.tl_lexer import lex, Token, Location
from testlang.tl_parser import Parser, parse
from testlang.tl_datatypes import Environment, ProgramInfo
from testlang.tl_interpreter import Evaluator
from testlang.tl_runtime import execute, ScriptRunner, ExecutionResult

__version__ = "0.1.0"
