"""Lowering pipeline data types (pure data, no lowering logic)."""

from __future__ import annotations

from dataclasses import dataclass, field

from . import constants
from .ir import (
    NO_SOURCE_LOCATION,
    DynamicVariable,
    JumpTarget,
    MLOGInstruction,
    MLOGJump,
    MLOGTrampolineBack,
    Resolvable,
    SourceLocation,
)


@dataclass(frozen=True)
class LoweringOptions:
    """Groups lowering and rendering configuration."""

    numbers: bool = False
    comments: bool = False
    stack_cell: str = constants.DEFAULT_STACK_CELL


@dataclass
class LoweringContext:
    """State threaded through one top-level lowering invocation.

    Owns the instruction-id and temporary counters, so two contexts never
    share identities.
    """

    source: bytes = b""
    options: LoweringOptions = field(default_factory=LoweringOptions)
    instruction_counter: int = 0
    temporary_counter: int = 0

    def node_text(self, node) -> str:
        return self.source[node.start_byte : node.end_byte].decode("utf-8")

    def source_loc(self, node) -> SourceLocation:
        if node is None:
            return NO_SOURCE_LOCATION
        s, e = node.start_point, node.end_point
        return SourceLocation(
            start_line=s[0] + 1,
            start_col=s[1],
            end_line=e[0] + 1,
            end_col=e[1],
        )

    def fresh_id(self) -> int:
        i = self.instruction_counter
        self.instruction_counter += 1
        return i

    def fresh_temporary(self) -> DynamicVariable:
        tmp = DynamicVariable(index=self.temporary_counter)
        self.temporary_counter += 1
        return tmp

    def new_instruction(
        self,
        statement: list[list[Resolvable]],
        comment: str = "",
        node=None,
    ) -> MLOGInstruction:
        return MLOGInstruction(
            id=self.fresh_id(),
            comment=comment,
            statement=statement,
            source_location=self.source_loc(node),
        )

    def new_jump(
        self,
        condition: list[Resolvable],
        comment: str = "",
        target: JumpTarget | None = None,
        node=None,
    ) -> MLOGJump:
        return MLOGJump(
            id=self.fresh_id(),
            comment=comment,
            condition=condition,
            target=target,
            source_location=self.source_loc(node),
        )

    def new_trampoline(self, node=None) -> MLOGTrampolineBack:
        return MLOGTrampolineBack(id=self.fresh_id(), source_location=self.source_loc(node))
