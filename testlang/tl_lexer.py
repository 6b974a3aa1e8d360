"""
Turns testlang source text into a list of positioned tokens.
"""
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from testlang.tl_errors import LexError


@dataclass(frozen=True)
class Location:
    line: int
    column: int

    def __str__(self) -> str:
        return f"line {self.line}, col {self.column}"


@dataclass(frozen=True)
class Token:
    """A lexical unit. `value` holds the kind-specific payload:

    - comparison: the operator text (`<`, `>`, `<=`, `>=`)
    - equality: `reverse` flag (True for `!=`)
    - identifier, string: the text
    - int: the integer
    - comment: the jump key, or None for a plain comment
    """
    kind: str
    value: Any = None
    loc: Optional[Location] = field(default=None, compare=False)


KEYWORDS = {
    "true": "true",
    "false": "false",
    "unless": "unless",
    "then": "then",
    "come": "come",
    "from": "from",
}

# Ordered: multi-character operators must come before their prefixes.
SYMBOLS: List[Tuple[str, Optional[Tuple[str, Any]]]] = [
    ("==", ("equality", False)),
    ("!=", ("equality", True)),
    ("<=", ("comparison", "<=")),
    (">=", ("comparison", ">=")),
    (" ", None),
    ("\n", None),
    ("\t", None),
    ("\r", None),
    (";", ("semicolon", None)),
    (",", ("comma", None)),
    ("(", ("lbracket", None)),
    (")", ("rbracket", None)),
    ("{", ("curlylbracket", None)),
    ("}", ("curlyrbracket", None)),
    ("=", ("assign", None)),
    ("+", ("add", None)),
    ("-", ("subtract", None)),
    ("*", ("multiply", None)),
    ("/", ("divide", None)),
    ("<", ("comparison", "<")),
    (">", ("comparison", ">")),
    ("!", ("bang", None)),
]

COMMENT_MARKER = "//"

_STRING_RE = re.compile(r'"(?:\\.|[^"\\])*"|\'(?:\\.|[^\'\\])*\'', re.DOTALL)
_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0"}


def is_identifier_start(char: str) -> bool:
    # str.isalpha covers ASCII letters and every Unicode letter category.
    return char.isalpha()


def is_digit(char: str) -> bool:
    return "0" <= char <= "9"


def is_identifier_char(char: str) -> bool:
    return is_identifier_start(char) or is_digit(char)


def is_identifier(text: str) -> bool:
    return bool(text) and is_identifier_start(text[0]) and all(is_identifier_char(c) for c in text)


def unescape(body: str) -> str:
    return _ESCAPE_RE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), body)


class _LocationCounter:
    """Running line/column cursor advanced by each consumed substring."""
    def __init__(self):
        self.line = 1
        self.column = 1

    def count(self, text: str) -> Location:
        """Returns the location where `text` starts and moves past it."""
        start = Location(self.line, self.column)
        newlines = text.count("\n")
        if newlines == 0:
            self.column += len(text)
        else:
            self.line += newlines
            self.column = len(text) - text.rfind("\n")
        return start

    @property
    def here(self) -> Location:
        return Location(self.line, self.column)


def lex(source: str) -> List[Token]:
    """Tokenizes `source`. The result always ends with an `eof` token."""
    tokens: List[Token] = []
    counter = _LocationCounter()
    pos = 0
    length = len(source)

    while pos < length:
        # Comments run to the end of the line; the newline itself is whitespace.
        if source.startswith(COMMENT_MARKER, pos):
            end = source.find("\n", pos)
            if end == -1:
                end = length
            text = source[pos:end]
            key = text[len(COMMENT_MARKER):].strip()
            if not is_identifier(key) or key in KEYWORDS:
                key = None
            tokens.append(Token("comment", key, counter.count(text)))
            pos = end
            continue

        for symbol, spec in SYMBOLS:
            if source.startswith(symbol, pos):
                loc = counter.count(symbol)
                pos += len(symbol)
                if spec is not None:
                    kind, value = spec
                    tokens.append(Token(kind, value, loc))
                break
        else:
            char = source[pos]
            if char in "\"'":
                m = _STRING_RE.match(source, pos)
                if m is None:
                    raise LexError(char, pos, counter.here)
                text = m.group(0)
                tokens.append(Token("string", unescape(text[1:-1]), counter.count(text)))
                pos = m.end()
            elif is_digit(char):
                start = pos
                number = 0
                while pos < length and is_digit(source[pos]):
                    number = number * 10 + (ord(source[pos]) - ord("0"))
                    pos += 1
                tokens.append(Token("int", number, counter.count(source[start:pos])))
            elif is_identifier_start(char):
                start = pos
                while pos < length and is_identifier_char(source[pos]):
                    pos += 1
                word = source[start:pos]
                loc = counter.count(word)
                if word in KEYWORDS:
                    tokens.append(Token(KEYWORDS[word], None, loc))
                else:
                    tokens.append(Token("identifier", word, loc))
            else:
                raise LexError(char, pos, counter.here)

    tokens.append(Token("eof", None, counter.here))
    return tokens


def stringify_token(token: Optional[Token]) -> str:
    if token is None:
        return "nothing"

    match token.kind:
        case "identifier" | "string" | "comparison" | "int":
            extra = str(token.value)
        case "equality":
            extra = "!=" if token.value else "=="
        case "comment":
            extra = token.value or ""
        case _:
            extra = ""

    if extra != "":
        extra = f"({extra})"
    return token.kind + extra


def stringify_tokens(tokens: List[Token]) -> str:
    return "[" + ", ".join(stringify_token(t) for t in tokens) + "]"
