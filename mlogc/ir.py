"""IR Design — mlog operands, instructions and symbolic jump targets."""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict

from . import constants


class SourceLocation(BaseModel):
    """Structured source span from tree-sitter AST nodes."""

    start_line: int
    start_col: int
    end_line: int
    end_col: int

    def is_unknown(self) -> bool:
        return (
            self.start_line == 0
            and self.start_col == 0
            and self.end_line == 0
            and self.end_col == 0
        )

    def __str__(self) -> str:
        if self.is_unknown():
            return "<unknown>"
        return f"{self.start_line}:{self.start_col}-{self.end_line}:{self.end_col}"


NO_SOURCE_LOCATION = SourceLocation(start_line=0, start_col=0, end_line=0, end_col=0)


# ── operands ─────────────────────────────────────────────────────


class Resolvable(BaseModel, ABC):
    """An instruction operand that renders to exactly one token."""

    model_config = ConfigDict(frozen=True)

    @abstractmethod
    def render(self) -> str: ...

    def __str__(self) -> str:
        return self.render()


class Value(Resolvable):
    """A literal token (number, string, keyword) emitted verbatim."""

    value: str

    def render(self) -> str:
        return self.value


class NormalVariable(Resolvable):
    """A source-level identifier."""

    name: str

    def render(self) -> str:
        return self.name


class DynamicVariable(Resolvable):
    """A compiler temporary with no source-level name."""

    index: int

    def render(self) -> str:
        return f"{constants.DYNAMIC_VARIABLE_PREFIX}{self.index}"


def lit(text: str) -> Value:
    return Value(value=text)


# ── instructions ─────────────────────────────────────────────────


class JumpTarget(BaseModel):
    """Symbolic reference to an instruction, resolved when rendering.

    With ``after`` set the target is the address one past the last row the
    referenced instruction expands to.
    """

    instruction_id: int
    after: bool = False


class MLOGInstruction(BaseModel):
    id: int
    comment: str = ""
    statement: list[list[Resolvable]] = []
    source_location: SourceLocation = NO_SOURCE_LOCATION

    def __str__(self) -> str:
        base = "; ".join(
            " ".join(op.render() for op in row) for row in self.statement
        )
        if not self.source_location.is_unknown():
            return f"{base}  # {self.source_location}"
        return base


class MLOGJump(MLOGInstruction):
    """Conditional or unconditional jump.

    ``target`` may stay ``None`` while the enclosing compound statement is
    being lowered; it must be set before that statement's list is returned.
    """

    condition: list[Resolvable] = []
    target: JumpTarget | None = None

    def __str__(self) -> str:
        if self.target is None:
            where = "<pending>"
        else:
            where = f"{'after ' if self.target.after else ''}#{self.target.instruction_id}"
        cond = " ".join(op.render() for op in self.condition)
        return f"jump {where} {cond}"


class MLOGTrampolineBack(MLOGInstruction):
    """Marker for returning control to the dynamic caller."""

    comment: str = "Trampoline back"

    def __str__(self) -> str:
        return "trampoline back"
