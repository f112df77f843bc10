from __future__ import annotations

from enum import Enum


class TokenKind(str, Enum):
    EOF = "EOF"
    NEWLINE = "NEWLINE"

    IDENT = "IDENT"
    INT_LIT = "INT_LIT"
    STRING_LIT = "STRING_LIT"

    FUNC = "FUNC"
    CONST = "CONST"
    VAR = "VAR"
    CALL = "CALL"
    IF = "IF"
    IF0 = "IF0"
    GOTO = "GOTO"
    RET = "RET"

    LPAREN = "LPAREN"
    RPAREN = "RPAREN"
    LBRACKET = "LBRACKET"
    RBRACKET = "RBRACKET"
    PLUS = "PLUS"
    ASSIGN = "ASSIGN"
    COLON = "COLON"


KEYWORDS: dict[str, TokenKind] = {
    "func": TokenKind.FUNC,
    "const": TokenKind.CONST,
    "var": TokenKind.VAR,
    "call": TokenKind.CALL,
    "if": TokenKind.IF,
    "if0": TokenKind.IF0,
    "goto": TokenKind.GOTO,
    "ret": TokenKind.RET,
}


ONE_CHAR_TOKENS: dict[str, TokenKind] = {
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    "[": TokenKind.LBRACKET,
    "]": TokenKind.RBRACKET,
    "+": TokenKind.PLUS,
    "=": TokenKind.ASSIGN,
    ":": TokenKind.COLON,
}


TOP_LEVEL_TOKENS: set[TokenKind] = {
    TokenKind.FUNC,
    TokenKind.CONST,
    TokenKind.VAR,
}
