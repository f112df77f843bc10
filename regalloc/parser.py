from __future__ import annotations

from dataclasses import dataclass

from regalloc.ir_nodes import (
    Assign,
    BuiltIn,
    Branch,
    Call,
    CallTarget,
    CodeLabel,
    DataSegment,
    FunctionIr,
    Goto,
    Instruction,
    IntLit,
    LabelRef,
    MemRead,
    MemRef,
    MemWrite,
    Operand,
    ProgramIr,
    Return,
    StaticValue,
    StringLit,
    VarRef,
)
from regalloc.lexer import SourceSpan, Token
from regalloc.tokens import TOP_LEVEL_TOKENS, TokenKind


class ParserError(ValueError):
    def __init__(self, message: str, span: SourceSpan):
        super().__init__(f"{message} at {span.start.path}:{span.start.line}:{span.start.column}")
        self.message = message
        self.span = span


@dataclass
class TokenStream:
    tokens: list[Token]
    index: int = 0

    def __post_init__(self) -> None:
        if not self.tokens:
            raise ValueError("TokenStream requires at least one token (EOF)")

    def is_at_end(self) -> bool:
        return self.peek().kind == TokenKind.EOF

    def peek(self, offset: int = 0) -> Token:
        target = self.index + offset
        if target < 0:
            return self.tokens[0]
        if target >= len(self.tokens):
            return self.tokens[-1]
        return self.tokens[target]

    def previous(self) -> Token:
        return self.peek(-1)

    def advance(self) -> Token:
        current = self.peek()
        if not self.is_at_end():
            self.index += 1
        return current

    def check(self, kind: TokenKind) -> bool:
        return self.peek().kind == kind

    def check_any(self, *kinds: TokenKind) -> bool:
        return self.peek().kind in kinds

    def match(self, *kinds: TokenKind) -> bool:
        if self.check_any(*kinds):
            self.advance()
            return True
        return False

    def expect(self, kind: TokenKind, message: str) -> Token:
        if self.check(kind):
            return self.advance()
        raise ParserError(message, self.peek().span)

    def at_top_level_item(self) -> bool:
        return self.is_at_end() or self.peek().kind in TOP_LEVEL_TOKENS


def parse(tokens: list[Token]) -> ProgramIr:
    stream = TokenStream(tokens)
    data_segments: list[DataSegment] = []
    functions: list[FunctionIr] = []

    start = stream.peek().span.start

    while not stream.is_at_end():
        if stream.match(TokenKind.NEWLINE):
            continue

        if stream.match(TokenKind.CONST, TokenKind.VAR):
            data_segments.append(_parse_data_segment(stream, segment_token=stream.previous()))
            continue

        if stream.match(TokenKind.FUNC):
            functions.append(_parse_function(stream, func_token=stream.previous()))
            continue

        raise ParserError("Expected 'func', 'const' or 'var' at top level", stream.peek().span)

    _check_unique_names(data_segments, functions)

    end = stream.peek().span.end
    return ProgramIr(
        data_segments=data_segments,
        functions=functions,
        span=SourceSpan(start=start, end=end),
    )


def _check_unique_names(data_segments: list[DataSegment], functions: list[FunctionIr]) -> None:
    seen: set[str] = set()
    for item in [*data_segments, *functions]:
        if item.name in seen:
            raise ParserError(f"Duplicate top-level name '{item.name}'", item.span)
        seen.add(item.name)


def _expect_line_end(stream: TokenStream, message: str) -> Token:
    if stream.check(TokenKind.EOF):
        return stream.peek()
    return stream.expect(TokenKind.NEWLINE, message)


def _parse_data_segment(stream: TokenStream, *, segment_token: Token) -> DataSegment:
    name = stream.expect(TokenKind.IDENT, "Expected data segment name")
    last = _expect_line_end(stream, "Expected end of line after data segment name")

    values: list[StaticValue] = []
    while not stream.at_top_level_item():
        if stream.match(TokenKind.NEWLINE):
            continue
        values.append(_parse_static_value(stream))
        if not stream.check_any(TokenKind.IDENT, TokenKind.COLON, TokenKind.INT_LIT):
            last = _expect_line_end(stream, "Expected end of line after data value")

    return DataSegment(
        name=name.lexeme,
        is_mutable=segment_token.kind == TokenKind.VAR,
        values=values,
        span=SourceSpan(start=segment_token.span.start, end=last.span.end),
    )


def _parse_static_value(stream: TokenStream) -> StaticValue:
    if stream.check(TokenKind.COLON):
        return _parse_label_ref(stream)
    if stream.check(TokenKind.INT_LIT):
        return _parse_int_lit(stream)
    raise ParserError("Expected label reference or integer in data segment", stream.peek().span)


def _parse_function(stream: TokenStream, *, func_token: Token) -> FunctionIr:
    name = stream.expect(TokenKind.IDENT, "Expected function name")
    stream.expect(TokenKind.LPAREN, "Expected '(' after function name")

    params: list[VarRef] = []
    seen_params: set[str] = set()
    while not stream.check(TokenKind.RPAREN):
        param_token = stream.expect(TokenKind.IDENT, "Expected parameter name")
        if param_token.lexeme in seen_params:
            raise ParserError(f"Duplicate parameter '{param_token.lexeme}'", param_token.span)
        seen_params.add(param_token.lexeme)
        params.append(VarRef(name=param_token.lexeme, span=param_token.span))

    rparen = stream.expect(TokenKind.RPAREN, "Expected ')' after parameters")
    _expect_line_end(stream, "Expected end of line after function header")

    body: list[Instruction] = []
    labels: list[CodeLabel] = []
    seen_labels: set[str] = set()
    last_span = rparen.span

    while not stream.at_top_level_item():
        if stream.match(TokenKind.NEWLINE):
            continue

        if stream.check(TokenKind.IDENT) and stream.peek(1).kind == TokenKind.COLON:
            label_token = stream.advance()
            stream.advance()
            if label_token.lexeme in seen_labels:
                raise ParserError(f"Duplicate label '{label_token.lexeme}'", label_token.span)
            seen_labels.add(label_token.lexeme)
            labels.append(CodeLabel(name=label_token.lexeme, instr_index=len(body), span=label_token.span))
            last_span = label_token.span
            _expect_line_end(stream, "Expected end of line after label")
            continue

        instr = _parse_instruction(stream)
        body.append(instr)
        last_span = instr.span
        _expect_line_end(stream, "Expected end of line after instruction")

    return FunctionIr(
        name=name.lexeme,
        params=params,
        body=body,
        labels=labels,
        span=SourceSpan(start=func_token.span.start, end=last_span.end),
    )


def _parse_instruction(stream: TokenStream) -> Instruction:
    token = stream.peek()

    if token.kind == TokenKind.IDENT and stream.peek(1).kind == TokenKind.ASSIGN:
        dest_token = stream.advance()
        stream.advance()
        dest = VarRef(name=dest_token.lexeme, span=dest_token.span)
        return _parse_assignment_rhs(stream, dest)

    if token.kind == TokenKind.IDENT and stream.peek(1).kind == TokenKind.LPAREN:
        return _parse_builtin(stream, dest=None, start=token.span)

    if token.kind == TokenKind.LBRACKET:
        mem_ref = _parse_mem_ref(stream)
        stream.expect(TokenKind.ASSIGN, "Expected '=' after memory reference")
        source = _parse_operand(stream)
        return MemWrite(dest=mem_ref, source=source, span=_join(mem_ref.span, source.span))

    if token.kind == TokenKind.CALL:
        return _parse_call(stream, dest=None, start=token.span)

    if token.kind in {TokenKind.IF, TokenKind.IF0}:
        stream.advance()
        value = _parse_operand(stream)
        stream.expect(TokenKind.GOTO, "Expected 'goto' in branch")
        target = _parse_label_ref(stream)
        return Branch(
            value=value,
            positive=token.kind == TokenKind.IF,
            target=target,
            span=_join(token.span, target.span),
        )

    if token.kind == TokenKind.GOTO:
        stream.advance()
        target = _parse_label_ref(stream)
        return Goto(target=target, span=_join(token.span, target.span))

    if token.kind == TokenKind.RET:
        stream.advance()
        if stream.check_any(TokenKind.NEWLINE, TokenKind.EOF):
            return Return(value=None, span=token.span)
        value = _parse_operand(stream)
        return Return(value=value, span=_join(token.span, value.span))

    raise ParserError("Expected instruction", token.span)


def _parse_assignment_rhs(stream: TokenStream, dest: VarRef) -> Instruction:
    if stream.check(TokenKind.LBRACKET):
        mem_ref = _parse_mem_ref(stream)
        return MemRead(dest=dest, source=mem_ref, span=_join(dest.span, mem_ref.span))

    if stream.check(TokenKind.CALL):
        return _parse_call(stream, dest=dest, start=dest.span)

    if stream.check(TokenKind.IDENT) and stream.peek(1).kind == TokenKind.LPAREN:
        return _parse_builtin(stream, dest=dest, start=dest.span)

    source = _parse_operand(stream)
    return Assign(dest=dest, source=source, span=_join(dest.span, source.span))


def _parse_call(stream: TokenStream, *, dest: VarRef | None, start: SourceSpan) -> Call:
    stream.expect(TokenKind.CALL, "Expected 'call'")
    addr: CallTarget
    if stream.check(TokenKind.COLON):
        addr = _parse_label_ref(stream)
    else:
        addr_token = stream.expect(TokenKind.IDENT, "Expected call target")
        addr = VarRef(name=addr_token.lexeme, span=addr_token.span)
    args, rparen = _parse_args(stream)
    return Call(dest=dest, addr=addr, args=args, span=_join(start, rparen.span))


def _parse_builtin(stream: TokenStream, *, dest: VarRef | None, start: SourceSpan) -> BuiltIn:
    op_token = stream.expect(TokenKind.IDENT, "Expected built-in operation name")
    args, rparen = _parse_args(stream)
    return BuiltIn(dest=dest, op_name=op_token.lexeme, args=args, span=_join(start, rparen.span))


def _parse_args(stream: TokenStream) -> tuple[list[Operand], Token]:
    stream.expect(TokenKind.LPAREN, "Expected '(' before arguments")
    args: list[Operand] = []
    while not stream.check(TokenKind.RPAREN):
        if stream.check_any(TokenKind.NEWLINE, TokenKind.EOF):
            raise ParserError("Unterminated argument list", stream.peek().span)
        args.append(_parse_operand(stream))
    rparen = stream.expect(TokenKind.RPAREN, "Expected ')' after arguments")
    return args, rparen


def _parse_mem_ref(stream: TokenStream) -> MemRef:
    lbracket = stream.expect(TokenKind.LBRACKET, "Expected '['")
    base_token = stream.expect(TokenKind.IDENT, "Expected base variable in memory reference")

    offset = 0
    if stream.match(TokenKind.PLUS):
        offset = int(stream.expect(TokenKind.INT_LIT, "Expected integer offset after '+'").lexeme)
    elif stream.check(TokenKind.INT_LIT) and stream.peek().lexeme.startswith("-"):
        offset = int(stream.advance().lexeme)

    rbracket = stream.expect(TokenKind.RBRACKET, "Expected ']' after memory reference")
    return MemRef(
        base=VarRef(name=base_token.lexeme, span=base_token.span),
        byte_offset=offset,
        span=_join(lbracket.span, rbracket.span),
    )


def _parse_operand(stream: TokenStream) -> Operand:
    token = stream.peek()
    if token.kind == TokenKind.IDENT:
        stream.advance()
        return VarRef(name=token.lexeme, span=token.span)
    if token.kind == TokenKind.INT_LIT:
        return _parse_int_lit(stream)
    if token.kind == TokenKind.STRING_LIT:
        stream.advance()
        return StringLit(lexeme=token.lexeme, span=token.span)
    if token.kind == TokenKind.COLON:
        return _parse_label_ref(stream)
    raise ParserError("Expected operand", token.span)


def _parse_int_lit(stream: TokenStream) -> IntLit:
    token = stream.expect(TokenKind.INT_LIT, "Expected integer literal")
    return IntLit(value=int(token.lexeme), span=token.span)


def _parse_label_ref(stream: TokenStream) -> LabelRef:
    colon = stream.expect(TokenKind.COLON, "Expected ':' before label reference")
    name = stream.expect(TokenKind.IDENT, "Expected label name after ':'")
    return LabelRef(name=name.lexeme, span=_join(colon.span, name.span))


def _join(first: SourceSpan, last: SourceSpan) -> SourceSpan:
    return SourceSpan(start=first.start, end=last.end)
