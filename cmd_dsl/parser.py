from __future__ import annotations

import re
from typing import Iterable, Iterator, List, Optional, Union

from .model import EnvRef, Interpolate, Literal, OptionalArg, Plan, Rule, Spread, Token

IDENT_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*")
ENV_NAME_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

# characters that end a bare word
DELIMITERS = ' \t\r\n()"'


class ParseError(Exception):
    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None):
        self.line = line
        self.column = column
        location = f" (line {line}, col {column})" if line is not None and column is not None else ""
        super().__init__(f"{message}{location}")


class Lexer:
    """
    Splits one command line into tokens.

    Outside parentheses every run of non-delimiter characters is a WORD, so
    ``../x`` and ``what?`` stay ordinary words. Inside parentheses ``?`` and
    ``..`` become markers and words that look like (dotted) identifiers are
    reported as IDENT.
    """

    def __init__(self, text: str, line: int = 1):
        self.text = text
        self.length = len(text)
        self.pos = 0
        self.line = line
        self.col = 1
        self.depth = 0

    def tokenize(self) -> Iterator[Token]:
        while self.pos < self.length:
            ch = self.text[self.pos]
            if ch in " \t\r\n":
                self._advance(1)
                continue
            if ch == "(":
                yield Token("LPAREN", ch, self.line, self.col)
                self.depth += 1
                self._advance(1)
                continue
            if ch == ")":
                if self.depth == 0:
                    raise ParseError("Unbalanced ')'", self.line, self.col)
                yield Token("RPAREN", ch, self.line, self.col)
                self.depth -= 1
                self._advance(1)
                continue
            if ch == '"':
                yield self._string()
                continue
            if self.depth > 0:
                if ch == "?":
                    yield Token("QUESTION", ch, self.line, self.col)
                    self._advance(1)
                    continue
                if self.text.startswith("..", self.pos):
                    yield Token("SPREAD", "..", self.line, self.col)
                    self._advance(2)
                    continue
            yield self._word()
        if self.depth > 0:
            raise ParseError("Unterminated group, expected ')'", self.line, self.col)
        yield Token("EOF", "", self.line, self.col)

    def _advance(self, count: int) -> None:
        for _ in range(count):
            if self.pos >= self.length:
                return
            if self.text[self.pos] == "\n":
                self.line += 1
                self.col = 1
            else:
                self.col += 1
            self.pos += 1

    def _word(self) -> Token:
        start_pos = self.pos
        start_col = self.col
        start_line = self.line
        in_group = self.depth > 0
        while self.pos < self.length:
            ch = self.text[self.pos]
            if ch in DELIMITERS:
                break
            if in_group and (ch == "?" or self.text.startswith("..", self.pos)):
                break
            self._advance(1)
        value = self.text[start_pos:self.pos]
        if in_group and IDENT_PATTERN.fullmatch(value):
            return Token("IDENT", value, start_line, start_col)
        return Token("WORD", value, start_line, start_col)

    def _string(self) -> Token:
        start_line, start_col = self.line, self.col
        self._advance(1)  # skip opening quote
        chars: List[str] = []
        while self.pos < self.length:
            ch = self.text[self.pos]
            if ch == '"':
                self._advance(1)
                return Token("STRING", "".join(chars), start_line, start_col)
            if ch == "\\":
                self._advance(1)
                if self.pos >= self.length:
                    raise ParseError("Unterminated string literal", start_line, start_col)
                esc = self.text[self.pos]
                if esc not in ('"', "\\"):
                    chars.append("\\")
                chars.append(esc)
                self._advance(1)
                continue
            chars.append(ch)
            self._advance(1)
        raise ParseError("Unterminated string literal", start_line, start_col)


class Parser:
    def __init__(self, tokens: Iterable[Token], source: str = ""):
        self.tokens = list(tokens)
        self.source = source
        self.index = 0
        self.current = self.tokens[0]

    def parse(self) -> Plan:
        if self.current.type == "EOF":
            raise ParseError("Command must start with a program name", self.current.line, self.current.column)

        start = self.current
        program = self._parse_argument()
        if isinstance(program, (Spread, OptionalArg)):
            raise ParseError("Program name must be a single value", start.line, start.column)

        rules: List[Rule] = []
        while self.current.type != "EOF":
            rules.append(self._parse_argument())
        self._expect("EOF")
        return Plan(program=program, rules=tuple(rules), source=self.source)

    def _parse_argument(self) -> Rule:
        tok = self.current
        if tok.type in ("WORD", "STRING"):
            self._advance()
            return Literal(tok.value)
        if tok.type == "LPAREN":
            return self._parse_group()
        raise ParseError(f"Unexpected token {tok.type}", tok.line, tok.column)

    def _parse_group(self) -> Rule:
        open_tok = self._expect("LPAREN")
        if self.current.type == "RPAREN":
            raise ParseError("Empty group", open_tok.line, open_tok.column)

        head = self._parse_group_head()

        if self.current.type == "RPAREN":
            self._advance()
            if isinstance(head, Token):
                return Interpolate(head.value)
            return head

        if self.current.type == "QUESTION":
            ref = self._as_ref(head, "'?'")
            self._advance()
            self._close_group("?")
            return OptionalArg(ref)

        if self.current.type == "SPREAD":
            ref = self._as_ref(head, "'..'")
            self._advance()
            self._close_group("..")
            return Spread(ref)

        if self.current.type == "IDENT":
            flag = head if not isinstance(head, Token) else Literal(head.value)
            value_tok = self._expect("IDENT")
            if self.current.type == "SPREAD":
                raise ParseError("A spread group cannot take a flag", self.current.line, self.current.column)
            if self.current.type != "QUESTION":
                raise ParseError(
                    f"Flagged group for '{value_tok.value}' must end with '?'",
                    self.current.line,
                    self.current.column,
                )
            self._advance()
            self._close_group("?")
            return OptionalArg(value_tok.value, flag=flag)

        raise ParseError("Unexpected token in group", self.current.line, self.current.column)

    def _parse_group_head(self) -> Union[Token, Literal, EnvRef]:
        """Returns an IDENT token (a value reference or a bare flag), a Literal or an EnvRef."""
        tok = self.current
        if tok.type == "IDENT":
            if tok.value == "var" and self._peek().type == "LPAREN":
                return self._parse_env()
            self._advance()
            return tok
        if tok.type in ("WORD", "STRING"):
            self._advance()
            return Literal(tok.value)
        if tok.type in ("QUESTION", "SPREAD"):
            raise ParseError(f"Marker '{tok.value}' must follow a value", tok.line, tok.column)
        if tok.type == "LPAREN":
            raise ParseError("Nested groups are only allowed as var(NAME)", tok.line, tok.column)
        raise ParseError(f"Unexpected token {tok.type} in group", tok.line, tok.column)

    def _parse_env(self) -> EnvRef:
        self._expect("IDENT")  # var
        self._expect("LPAREN")
        name_tok = self._expect("IDENT")
        if not ENV_NAME_PATTERN.fullmatch(name_tok.value):
            raise ParseError(f"Invalid environment variable name '{name_tok.value}'", name_tok.line, name_tok.column)
        self._expect("RPAREN")
        return EnvRef(name_tok.value)

    def _as_ref(self, head: Union[Token, Literal, EnvRef], marker: str) -> str:
        if not isinstance(head, Token):
            raise ParseError(
                f"Marker {marker} must follow a value reference",
                self.current.line,
                self.current.column,
            )
        return head.value

    def _close_group(self, marker: str) -> None:
        if self.current.type in ("QUESTION", "SPREAD") and self.current.value != marker:
            raise ParseError("Markers '?' and '..' are mutually exclusive", self.current.line, self.current.column)
        if self.current.type != "RPAREN":
            raise ParseError("Unexpected token in group, expected ')'", self.current.line, self.current.column)
        self._advance()

    def _expect(self, token_type: str) -> Token:
        if self.current.type != token_type:
            raise ParseError(f"Expected {token_type} but got {self.current.type}", self.current.line, self.current.column)
        tok = self.current
        self._advance()
        return tok

    def _peek(self) -> Token:
        if self.index + 1 < len(self.tokens):
            return self.tokens[self.index + 1]
        return self.tokens[-1]

    def _advance(self) -> None:
        self.index += 1
        if self.index >= len(self.tokens):
            self.current = Token("EOF", "", self.tokens[-1].line, self.tokens[-1].column)
        else:
            self.current = self.tokens[self.index]


def parse(text: str, line: int = 1) -> Plan:
    lexer = Lexer(text, line=line)
    parser = Parser(lexer.tokenize(), source=text)
    return parser.parse()


def parse_script(path: str) -> List[Plan]:
    """Parse a file holding one command per line; blank lines and ``#`` comments are skipped."""
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    plans: List[Plan] = []
    for lineno, raw in enumerate(text.splitlines(), start=1):
        stripped = raw.strip()
        if not stripped or stripped.startswith("#"):
            continue
        plans.append(parse(raw, line=lineno))
    return plans
