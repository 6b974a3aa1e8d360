"""
Recursive-descent parser for testlang.

Statements are parsed into plain Python lists. `come from <label>;` does not
produce a node: it registers the list being filled, and how many statements
it already holds, in the ProgramInfo jump table.
"""
from typing import List, Optional, Union

from testlang.tl_errors import TLSyntaxError
from testlang.tl_lexer import Token
from testlang.tl_datatypes import (
    Var, Int, String, Call, Brackets, Binary, Unary, Set,
    Scope, If, Unless, Then, Expr, Noop, Goto,
    JumpLocation, ProgramInfo, Expression, Statement,
)


class TokenConsumer:
    """A cursor over a lexed token list. Never moves past the trailing `eof`."""
    def __init__(self, tokens: List[Token]):
        if not tokens or tokens[-1].kind != "eof":
            raise ValueError("token list must end with an eof token")
        self.tokens = tokens
        self.current = 0

    def peek(self) -> Token:
        return self.tokens[self.current]

    def previous(self) -> Token:
        return self.tokens[self.current - 1]

    def is_at_end(self) -> bool:
        return self.peek().kind == "eof"

    def check(self, *kinds: str) -> bool:
        return self.peek().kind in kinds

    def advance(self) -> Token:
        token = self.peek()
        if not self.is_at_end():
            self.current += 1
        return token

    def match(self, *kinds: str) -> Optional[Token]:
        """Consumes and returns the next token if it is one of `kinds`."""
        if self.check(*kinds):
            return self.advance()
        return None

    def consume(self, kind: str, expected: Optional[str] = None) -> Token:
        token = self.match(kind)
        if token is None:
            raise TLSyntaxError(expected or kind, self.peek())
        return token


Body = Union[Scope, Expression]


class Parser:
    """Builds the statement list of a program and fills `program_info.jump_table`."""
    def __init__(self, tokens: Union[List[Token], TokenConsumer], program_info: Optional[ProgramInfo] = None):
        self.tokens = tokens if isinstance(tokens, TokenConsumer) else TokenConsumer(tokens)
        self.program_info = program_info if program_info is not None else ProgramInfo()

    def parse_program(self) -> List[Statement]:
        statements = self.parse_statements()
        self.tokens.consume("eof", "end of program")
        return statements

    # --- Statements ---

    def parse_statements(self) -> List[Statement]:
        """Parses statements up to `eof` or a closing `}` (which is left unconsumed)."""
        statements: List[Statement] = []
        tokens = self.tokens

        while not tokens.check("eof", "curlyrbracket"):
            token = tokens.peek()
            if tokens.match("semicolon"):
                statements.append(Noop(loc=token.loc))
            elif tokens.match("comment"):
                if token.value is not None:
                    statements.append(Goto(token.value, loc=token.loc))
            elif tokens.match("come"):
                tokens.consume("from")
                label = tokens.consume("identifier", "label name")
                tokens.consume("semicolon")
                self.program_info.register(label.value, JumpLocation(statements, len(statements)))
            elif tokens.check("unless"):
                statements.append(self.parse_leading_unless())
            else:
                statements.append(self.parse_statement())

        return statements

    def parse_statement(self) -> Statement:
        start = self.tokens.peek()
        body = self.parse_body()
        if self.tokens.check("unless"):
            statement = If(body, self.parse_unless(), loc=start.loc)
            self.tokens.match("semicolon")
            return statement
        if isinstance(body, Scope):
            return body
        self.tokens.consume("semicolon")
        return Expr(body, loc=start.loc)

    def parse_body(self) -> Body:
        start = self.tokens.match("curlylbracket")
        if start is None:
            return self.parse_expression()
        statements = self.parse_statements()
        self.tokens.consume("curlyrbracket", "closing }")
        return Scope(statements, loc=start.loc)

    def parse_unless(self) -> Unless:
        """`unless <condition> [then <body> [unless ...]]`"""
        self.tokens.consume("unless")
        condition = self.parse_expression()
        then = None
        if self.tokens.match("then"):
            run = self.parse_body()
            then = Then(run, self.parse_unless() if self.tokens.check("unless") else None)
        return Unless(condition, then)

    def parse_leading_unless(self) -> If:
        """`unless C then B [unless C2 then B2 ...]`, the same chain as `B unless C then B2 unless C2`."""
        start = self.tokens.peek()
        links = []
        while self.tokens.match("unless"):
            condition = self.parse_expression()
            self.tokens.consume("then")
            links.append((condition, self.parse_body()))

        then = None
        for condition, run in reversed(links[1:]):
            then = Then(run, Unless(condition, then))
        condition, run = links[0]
        self.tokens.match("semicolon")
        return If(run, Unless(condition, then), loc=start.loc)

    # --- Expressions, lowest precedence first ---

    def parse_expression(self) -> Expression:
        return self.parse_equality()

    def parse_equality(self) -> Expression:
        left = self.parse_comparison()
        while (token := self.tokens.match("equality")) is not None:
            op = "!=" if token.value else "=="
            left = Binary(left, self.parse_comparison(), op, loc=token.loc)
        return left

    def parse_comparison(self) -> Expression:
        left = self.parse_additive()
        while (token := self.tokens.match("comparison")) is not None:
            left = Binary(left, self.parse_additive(), token.value, loc=token.loc)
        return left

    def parse_additive(self) -> Expression:
        left = self.parse_multiplicative()
        while (token := self.tokens.match("add", "subtract")) is not None:
            op = "+" if token.kind == "add" else "-"
            left = Binary(left, self.parse_multiplicative(), op, loc=token.loc)
        return left

    def parse_multiplicative(self) -> Expression:
        left = self.parse_unary()
        while (token := self.tokens.match("multiply", "divide")) is not None:
            op = "*" if token.kind == "multiply" else "/"
            left = Binary(left, self.parse_unary(), op, loc=token.loc)
        return left

    def parse_unary(self) -> Expression:
        token = self.tokens.match("bang", "subtract")
        if token is None:
            return self.parse_primary()
        op = "!" if token.kind == "bang" else "-"
        return Unary(op, self.parse_unary(), loc=token.loc)

    def parse_primary(self) -> Expression:
        tokens = self.tokens
        token = tokens.advance()

        match token.kind:
            case "identifier":
                if tokens.match("lbracket"):
                    return Call(token.value, self.parse_arguments(), loc=token.loc)
                if tokens.match("assign"):
                    return Set(token.value, self.parse_expression(), loc=token.loc)
                return Var(token.value, loc=token.loc)
            case "int":
                return Int(token.value, loc=token.loc)
            case "string":
                return String(token.value, loc=token.loc)
            case "true":
                return Int(1, loc=token.loc)
            case "false":
                return Int(0, loc=token.loc)
            case "lbracket":
                inner = self.parse_expression()
                tokens.consume("rbracket", "closing bracket")
                return Brackets(inner, loc=token.loc)
            case _:
                raise TLSyntaxError("expression", token)

    def parse_arguments(self) -> List[Expression]:
        """Comma separated arguments; the opening `(` is already consumed."""
        if self.tokens.match("rbracket"):
            return []
        arguments = [self.parse_expression()]
        while self.tokens.match("comma"):
            arguments.append(self.parse_expression())
        self.tokens.consume("rbracket", "closing bracket of function call or comma")
        return arguments


def parse(tokens: List[Token], program_info: Optional[ProgramInfo] = None) -> List[Statement]:
    return Parser(tokens, program_info).parse_program()
