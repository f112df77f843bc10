from __future__ import annotations

import argparse
import sys
from pathlib import Path

from regalloc.allocation import AllocationMap, allocate_registers
from regalloc.ir_dump import ir_to_debug_json
from regalloc.ir_nodes import ProgramIr
from regalloc.lexer import Token, lex
from regalloc.liveness import Liveness, analyze_liveness
from regalloc.lowering import emit_vaporm
from regalloc.parser import parse


STOP_PHASES = ["lex", "parse", "liveness", "alloc", "lower"]


def _format_token(token: Token) -> str:
    start = token.span.start
    return f"{token.kind.name:<14} {token.lexeme!r:<18} {start.path}:{start.line}:{start.column}"


def _print_tokens(tokens: list[Token]) -> None:
    for token in tokens:
        print(_format_token(token))


def _format_names(names: frozenset[str]) -> str:
    return "{" + ", ".join(sorted(names)) + "}"


def _print_liveness(fn_name: str, liveness: Liveness) -> None:
    print(f"liveness {fn_name}")
    for index in range(len(liveness)):
        print(
            f"  {index:>4}  in={_format_names(liveness.live_in(index))}"
            f"  out={_format_names(liveness.out(index))}"
            f"  use={_format_names(liveness.uses(index))}"
            f"  def={_format_names(liveness.defs(index))}"
        )


def _print_allocation(fn_name: str, allocation: AllocationMap) -> None:
    callee = ", ".join(register.name for register in allocation.used_callee_registers())
    print(f"allocation {fn_name} [stack {allocation.stack_size()}, callee {{{callee}}}]")
    for line in allocation.describe():
        print(f"  {line}")


def _read_source(input_arg: str) -> tuple[str, str]:
    if input_arg == "-":
        return sys.stdin.read(), "<stdin>"
    input_path = Path(input_arg)
    return input_path.read_text(encoding="utf-8"), str(input_path)


def _analyze_program(program: ProgramIr, args: argparse.Namespace) -> None:
    for fn in program.functions:
        liveness = analyze_liveness(fn)
        if args.print_liveness:
            _print_liveness(fn.name, liveness)
        if args.stop_after == "liveness":
            continue
        allocation = allocate_registers(fn, liveness)
        if args.print_allocation:
            _print_allocation(fn.name, allocation)


def main() -> int:
    parser = argparse.ArgumentParser(
        prog="v2vm",
        description="Vapor register allocator (default: emit Vapor-M).",
    )
    parser.add_argument("input", help="Input .vapor source file ('-' reads stdin)")
    parser.add_argument("-o", "--output", help="Output .vaporm file path (default: stdout)")
    parser.add_argument(
        "--stop-after",
        choices=STOP_PHASES,
        default="lower",
        help="Stop after a compiler phase for debugging",
    )
    parser.add_argument("--indent", type=int, default=2, help="Spaces per indentation level in the output")
    parser.add_argument("--print-tokens", action="store_true", help="Print tokens after lexing")
    parser.add_argument("--print-ir", action="store_true", help="Print parsed IR as JSON")
    parser.add_argument("--print-ir-spans", action="store_true", help="Include spans in --print-ir output")
    parser.add_argument("--print-liveness", action="store_true", help="Print per-instruction liveness sets")
    parser.add_argument("--print-allocation", action="store_true", help="Print the register/stack assignment")
    parser.add_argument("--print-vaporm", action="store_true", help="Also print emitted Vapor-M to stdout")
    args = parser.parse_args()

    try:
        if args.indent < 0:
            raise ValueError("--indent must not be negative")

        source, source_path = _read_source(args.input)

        tokens = lex(source, source_path=source_path)
        if args.print_tokens:
            _print_tokens(tokens)
        if args.stop_after == "lex":
            return 0

        program = parse(tokens)
        if args.print_ir:
            print(ir_to_debug_json(program, include_spans=args.print_ir_spans))
        if args.stop_after == "parse":
            return 0

        if args.print_liveness or args.print_allocation or args.stop_after in {"liveness", "alloc"}:
            _analyze_program(program, args)
        if args.stop_after in {"liveness", "alloc"}:
            return 0

        vaporm = emit_vaporm(program, indent_unit=" " * args.indent)
        if args.output:
            Path(args.output).write_text(vaporm, encoding="utf-8")
        if args.print_vaporm or not args.output:
            print(vaporm, end="" if vaporm.endswith("\n") or not vaporm else "\n")
        return 0
    except Exception as error:
        print(f"v2vm: {error}", file=sys.stderr)
        return 1
