from __future__ import annotations


class Output:
    """Append-only text sink with an indentation level."""

    def __init__(self, indent_unit: str = "  ") -> None:
        self.indent_unit = indent_unit
        self.level = 0
        self._lines: list[str] = []
        self._pending = ""

    def increase_indent(self) -> None:
        self.level += 1

    def decrease_indent(self) -> None:
        if self.level == 0:
            raise ValueError("cannot decrease indentation below zero")
        self.level -= 1

    def write(self, fragment: str) -> None:
        if not self._pending:
            self._pending = self.indent_unit * self.level
        self._pending += fragment

    def write_line(self, text: str = "") -> None:
        if not text and not self._pending:
            self._lines.append("")
            return
        self.write(text)
        self._lines.append(self._pending)
        self._pending = ""

    def lines(self) -> list[str]:
        return list(self._lines)

    def text(self) -> str:
        lines = list(self._lines)
        if self._pending:
            lines.append(self._pending)
        return "\n".join(lines) + "\n" if lines else ""
