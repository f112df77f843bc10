from __future__ import annotations

from dataclasses import dataclass
from regalloc.tokens import (
    KEYWORDS,
    ONE_CHAR_TOKENS,
    TokenKind,
)


_BLANKS = " \t\r"
_STRING_ESCAPES = frozenset('"\\nrt')


@dataclass(frozen=True)
class SourcePos:
    path: str
    offset: int
    line: int
    column: int


@dataclass(frozen=True)
class SourceSpan:
    start: SourcePos
    end: SourcePos


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    lexeme: str
    span: SourceSpan


class LexerError(ValueError):
    def __init__(self, message: str, span: SourceSpan):
        super().__init__(f"{message} at {span.start.path}:{span.start.line}:{span.start.column}")
        self.message = message
        self.span = span


class _LineScanner:
    """Tokens of a single source line, without its line break."""

    def __init__(self, text: str, *, path: str, line: int, offset: int) -> None:
        self.text = text
        self.path = path
        self.line = line
        self.offset = offset
        self.col = 0

    def scan(self) -> list[Token]:
        tokens: list[Token] = []
        while True:
            self._skip_blanks()
            if self._done() or self.text.startswith("//", self.col):
                return tokens
            tokens.append(self._next_token())

    def pos(self, col: int) -> SourcePos:
        return SourcePos(path=self.path, offset=self.offset + col, line=self.line, column=col + 1)

    def _span(self, start: int, end: int) -> SourceSpan:
        return SourceSpan(self.pos(start), self.pos(end))

    def _token(self, kind: TokenKind, start: int) -> Token:
        return Token(kind, self.text[start : self.col], self._span(start, self.col))

    def _done(self) -> bool:
        return self.col >= len(self.text)

    def _peek(self, ahead: int = 0) -> str:
        index = self.col + ahead
        return self.text[index] if index < len(self.text) else ""

    def _skip_blanks(self) -> None:
        while not self._done() and self.text[self.col] in _BLANKS:
            self.col += 1

    def _next_token(self) -> Token:
        start = self.col
        ch = self._peek()

        if _is_ident_start(ch):
            return self._read_identifier()
        if ch.isdigit() or (ch == "-" and self._peek(1).isdigit()):
            return self._read_number()
        if ch == '"':
            return self._read_string()

        kind = ONE_CHAR_TOKENS.get(ch)
        if kind is None:
            raise LexerError(f"Unexpected character '{ch}'", self._span(start, start))
        self.col += 1
        return self._token(kind, start)

    def _read_identifier(self) -> Token:
        start = self.col
        self.col += 1
        while _is_ident_part(self._peek()):
            self.col += 1
        return self._token(KEYWORDS.get(self.text[start : self.col], TokenKind.IDENT), start)

    def _read_number(self) -> Token:
        start = self.col
        if self._peek() == "-":
            self.col += 1
        while self._peek().isdigit():
            self.col += 1

        # "12ab" is neither a number nor an identifier.
        if _is_ident_start(self._peek()):
            raise LexerError("Invalid integer literal", self._span(start, self.col))
        return self._token(TokenKind.INT_LIT, start)

    def _read_string(self) -> Token:
        start = self.col
        self.col += 1

        while not self._done():
            ch = self._peek()
            if ch == '"':
                self.col += 1
                return self._token(TokenKind.STRING_LIT, start)
            if ch == "\\":
                escape = self._peek(1)
                if not escape:
                    break
                if escape not in _STRING_ESCAPES:
                    raise LexerError("Invalid string escape sequence", self._span(start, self.col + 2))
                self.col += 2
                continue
            self.col += 1

        raise LexerError("Unterminated string literal", self._span(start, self.col))


def _is_ident_start(ch: str) -> bool:
    return ch.isalpha() or ch == "_"


def _is_ident_part(ch: str) -> bool:
    return ch.isalnum() or ch in ("_", ".")


class Lexer:
    """Splits Vapor source into tokens, one NEWLINE after each non-empty line.

    Lines holding only blanks or a ``//`` comment produce no tokens, so runs of
    blank lines never yield consecutive NEWLINE tokens.
    """

    def __init__(self, source: str, source_path: str = "<memory>"):
        self.source = source
        self.source_path = source_path

    def lex(self) -> list[Token]:
        tokens: list[Token] = []
        offset = 0
        lines = self.source.split("\n")

        for line_no, text in enumerate(lines, start=1):
            scanner = _LineScanner(text, path=self.source_path, line=line_no, offset=offset)
            line_tokens = scanner.scan()
            offset += len(text) + 1
            if not line_tokens:
                continue

            tokens.extend(line_tokens)
            line_end = scanner.pos(len(text))
            if offset <= len(self.source):
                next_line = SourcePos(path=self.source_path, offset=offset, line=line_no + 1, column=1)
                tokens.append(Token(TokenKind.NEWLINE, "\n", SourceSpan(line_end, next_line)))
            else:
                tokens.append(Token(TokenKind.NEWLINE, "", SourceSpan(line_end, line_end)))

        eof_pos = SourcePos(path=self.source_path, offset=len(self.source), line=len(lines), column=len(lines[-1]) + 1)
        tokens.append(Token(TokenKind.EOF, "", SourceSpan(eof_pos, eof_pos)))
        return tokens


def lex(source: str, source_path: str = "<memory>") -> list[Token]:
    return Lexer(source, source_path=source_path).lex()
