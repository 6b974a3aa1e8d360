# tl_runtime.py

import asyncio
import inspect
import random
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Optional

from testlang.tl_errors import TLTypeError, error_kind, location_of
from testlang.tl_lexer import lex, stringify_tokens
from testlang.tl_parser import Parser
from testlang.tl_printer import Printer, stringify_ast, to_display
from testlang.tl_interpreter import Evaluator, truncating_divmod
from testlang.tl_datatypes import Environment, InternalFunction, ProgramInfo, type_name

LogFunc = Callable[..., None]

RULE = "-" * 50

# ===================================================================
# 1. The Standard Library
# ===================================================================

class StdLib:
    """Python implementations of the testlang builtins.

    Every `_name` method becomes the builtin `name`. Builtins receive the list
    of evaluated argument values.
    """
    def __init__(self, log: LogFunc):
        self.log = log

    def _print(self, args: List[Any]):
        self.log(" ".join(to_display(a) for a in args))
        return None

    def _mod(self, args: List[Any]):
        if len(args) != 2:
            raise TLTypeError(f"mod expects 2 arguments but got {len(args)}.")
        a, b = args
        if not isinstance(a, int) or not isinstance(b, int):
            raise TLTypeError(f"mod expects two ints, got {type_name(a)} and {type_name(b)}.")
        return truncating_divmod(a, b)[1]


def default_environment(log: LogFunc = print) -> Environment:
    """A fresh root frame holding the builtins, printing through `log`."""
    stdlib = StdLib(log)
    env = Environment()
    for name, member in inspect.getmembers(stdlib):
        if name.startswith('_') and not name.startswith('__') and callable(member):
            builtin = name[1:]
            env.set_on_instance(builtin, InternalFunction(builtin, [], member))
    return env


# ===================================================================
# 2. Execution
# ===================================================================

def run_program(source: str, evaluator: Evaluator, env: Environment, *,
                verbose: bool = False, debug: Callable[[str], None] = print) -> Environment:
    """Lexes, parses and evaluates `source`. Returns the final environment."""
    if verbose:
        debug("Program:")
        debug(source)
        debug(RULE)
    tokens = lex(source)
    if verbose:
        debug("Tokens:")
        debug(stringify_tokens(tokens))
        debug(RULE)
    statements = Parser(tokens, evaluator.program_info).parse_program()
    if verbose:
        debug("Program from AST:")
        debug(stringify_ast(statements))
        debug(RULE)
        debug("Program output:")
    return evaluator.eval_simple(statements, env)


def execute(source: str, verbose: bool = False, log: Optional[LogFunc] = None,
            debug: Optional[Callable[[str], None]] = None, rng: Optional[random.Random] = None) -> None:
    """Runs a testlang program.

    Each `print` call invokes `log` once with the formatted line (default:
    write it to stdout). Errors propagate to the caller.
    """
    log = log if log is not None else print
    evaluator = Evaluator(ProgramInfo(), rng)
    run_program(source, evaluator, default_environment(log),
                verbose=verbose, debug=debug if debug is not None else print)


# ===================================================================
# 3. Script Runner
# ===================================================================

ErrorLocation = Dict[str, int]

@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    error_message: Optional[str] = None
    error_token: Optional[ErrorLocation] = None
    side_effects: List[Dict] = field(default_factory=list)

    @property
    def output(self) -> str:
        """Everything the script printed, one line per `print` call."""
        return "".join(f"{e['message']}\n" for e in self.side_effects if e.get('topics') == ['stdout'])

    def format_error(self) -> str:
        """Formats an error message with line and column if available."""
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")

        if self.error_token and 'line' in self.error_token:
            line = self.error_token.get('line')
            col = self.error_token.get('col')
            if not msg.startswith("Error on line "):
                col_info = f", col {col}" if col is not None else ""
                return f"Error on line {line}{col_info}: {msg}"
        return msg


class ScriptRunner:
    """Lexes, parses and executes testlang code, collecting output as side effects.

    The environment persists across `handle_script` calls; every call gets
    its own jump table.
    """

    def __init__(self, verbose: bool = False, rng: Optional[random.Random] = None):
        self.verbose = verbose
        self.rng = rng if rng is not None else random.Random()
        self.evaluator = Evaluator(ProgramInfo(), self.rng)
        self.env = default_environment(self._log)

    def reset(self):
        """Drops all user bindings."""
        self.env = default_environment(self._log)

    def _log(self, *values):
        message = " ".join(str(v) for v in values)
        self.evaluator.side_effects.append({'topics': ['stdout'], 'message': message})

    def _debug(self, text: str):
        self.evaluator.side_effects.append({'topics': ['debug'], 'message': text})

    def _format_error(self, e: Exception, source: str) -> tuple[str, Optional[ErrorLocation]]:
        msg = f"{error_kind(e)}: {e}"

        token = location_of(e)
        if token is None:
            node = self.evaluator.current_node
            loc = getattr(node, 'loc', None) if node is not None else None
            if loc is not None:
                token = {'line': loc.line, 'col': loc.column}

        if token is not None:
            context = self._source_context(source, token["line"], token["col"])
            if context:
                msg = f"{msg}\n{context}"

        st = self._format_stacktrace()
        if st:
            msg += "\n" + st
        return msg, token

    def _source_context(self, source: str, line: int, col: Optional[int], radius: int = 2) -> str:
        lines = source.splitlines()
        if not line or line < 1 or line > len(lines):
            return ""
        start = max(1, line - radius)
        end = min(len(lines), line + radius)
        width = len(str(end))
        out = []
        for i in range(start, end + 1):
            prefix = ">" if i == line else " "
            ln = str(i).rjust(width)
            out.append(f"{prefix} {ln} | {lines[i - 1]}")
            if i == line and col is not None:
                caret = " " * max(col - 1, 0)
                out.append(f"  {' ' * width} | {caret}^")
        return "\n".join(out)

    def _format_stacktrace(self) -> str:
        stack = self.evaluator.call_stack
        if not stack:
            return ""
        pf = Printer().pformat
        frames = []
        for frame in stack:
            args_s = " ".join(pf(a) for a in frame.get('args') or [])
            frames.append(f"({frame.get('name')}{' ' + args_s if args_s else ''})")
        return "Call stack: " + " ".join(frames)

    def _run(self, source_code: str) -> Environment:
        return run_program(source_code, self.evaluator, self.env, verbose=self.verbose, debug=self._debug)

    async def handle_script(self, source_code: str) -> ExecutionResult:
        """The main entry point to execute a script."""
        self.evaluator = Evaluator(ProgramInfo(), self.rng)
        try:
            # Evaluation is synchronous; keep it off the event loop.
            self.env = await asyncio.to_thread(self._run, source_code)
        except Exception as e:
            err_msg, err_token = self._format_error(e, source_code)
            self.evaluator.side_effects.append({'topics': ['stderr'], 'message': err_msg})
            return ExecutionResult(
                status='error',
                error_message=err_msg,
                error_token=err_token,
                side_effects=self.evaluator.side_effects,
            )
        return ExecutionResult(status='success', side_effects=self.evaluator.side_effects)
