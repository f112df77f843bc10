import pytest

from regalloc.lexer import LexerError, TokenKind, lex


def test_lex_function_header_and_keywords() -> None:
    source = "func Fac.ComputeFac(this num)\n  ret num\n"
    kinds = [token.kind for token in lex(source)]
    assert kinds == [
        TokenKind.FUNC,
        TokenKind.IDENT,
        TokenKind.LPAREN,
        TokenKind.IDENT,
        TokenKind.IDENT,
        TokenKind.RPAREN,
        TokenKind.NEWLINE,
        TokenKind.RET,
        TokenKind.IDENT,
        TokenKind.NEWLINE,
        TokenKind.EOF,
    ]


def test_lex_identifiers_keep_dots() -> None:
    tokens = lex("t.0 = Fac.ComputeFac")
    assert [t.lexeme for t in tokens if t.kind == TokenKind.IDENT] == ["t.0", "Fac.ComputeFac"]


def test_lex_if0_is_keyword_not_identifier() -> None:
    tokens = lex("if0 t.1 goto :else")
    assert [t.kind for t in tokens] == [
        TokenKind.IF0,
        TokenKind.IDENT,
        TokenKind.GOTO,
        TokenKind.COLON,
        TokenKind.IDENT,
        TokenKind.NEWLINE,
        TokenKind.EOF,
    ]


def test_lex_memory_reference_and_negative_literal() -> None:
    tokens = lex("[t.0+4] = -12")
    assert [(t.kind, t.lexeme) for t in tokens[:-2]] == [
        (TokenKind.LBRACKET, "["),
        (TokenKind.IDENT, "t.0"),
        (TokenKind.PLUS, "+"),
        (TokenKind.INT_LIT, "4"),
        (TokenKind.RBRACKET, "]"),
        (TokenKind.ASSIGN, "="),
        (TokenKind.INT_LIT, "-12"),
    ]


def test_lex_collapses_blank_lines_and_comments() -> None:
    source = "\n\n// header\nfunc Main()\n\n\n  ret // done\n\n"
    kinds = [t.kind for t in lex(source)]
    assert kinds == [
        TokenKind.FUNC,
        TokenKind.IDENT,
        TokenKind.LPAREN,
        TokenKind.RPAREN,
        TokenKind.NEWLINE,
        TokenKind.RET,
        TokenKind.NEWLINE,
        TokenKind.EOF,
    ]


def test_lex_string_literal_with_escapes() -> None:
    tokens = lex('Error("null \\"pointer\\"\\n")')
    string_token = tokens[2]
    assert string_token.kind == TokenKind.STRING_LIT
    assert string_token.lexeme == '"null \\"pointer\\"\\n"'


def test_lex_tracks_line_and_column() -> None:
    tokens = lex("func Main()\n  ret\n", source_path="main.vapor")
    ret = next(t for t in tokens if t.kind == TokenKind.RET)
    assert ret.span.start.path == "main.vapor"
    assert ret.span.start.line == 2
    assert ret.span.start.column == 3


def test_lex_rejects_unexpected_character() -> None:
    with pytest.raises(LexerError, match="Unexpected character '\\$'"):
        lex("$t0 = 1")


def test_lex_rejects_unterminated_string() -> None:
    with pytest.raises(LexerError, match="Unterminated string literal"):
        lex('Error("oops)\n')


def test_lex_rejects_number_running_into_identifier() -> None:
    with pytest.raises(LexerError, match="Invalid integer literal"):
        lex("x = 12ab")


def test_lex_accepts_crlf_line_endings() -> None:
    kinds = [t.kind for t in lex("func Main()\r\n  ret\r\n")]
    assert kinds == [
        TokenKind.FUNC,
        TokenKind.IDENT,
        TokenKind.LPAREN,
        TokenKind.RPAREN,
        TokenKind.NEWLINE,
        TokenKind.RET,
        TokenKind.NEWLINE,
        TokenKind.EOF,
    ]


def test_lex_rejects_unknown_string_escape() -> None:
    with pytest.raises(LexerError, match="Invalid string escape sequence"):
        lex('Error("\\x41")')


def test_lex_newline_spans_point_at_line_break() -> None:
    tokens = lex("ret\nret")
    newlines = [t for t in tokens if t.kind == TokenKind.NEWLINE]

    assert [(t.lexeme, t.span.start.line, t.span.start.column) for t in newlines] == [("\n", 1, 4), ("", 2, 4)]
    assert tokens[-1].span.start.offset == 7
