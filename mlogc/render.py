"""Linearization & rendering — concrete addresses and mlog text."""

from __future__ import annotations

import logging

from . import constants
from .errors import DanglingJumpTargetError
from .ir import JumpTarget, MLOGInstruction, MLOGJump, MLOGTrampolineBack
from .lowering_types import LoweringOptions

logger = logging.getLogger(__name__)

# instruction id -> (first row address, number of rows)
AddressTable = dict[int, tuple[int, int]]


def trampoline_rows(options: LoweringOptions) -> list[list[str]]:
    stack = constants.STACK_POINTER_VARIABLE
    return [
        ["op", "sub", stack, stack, "1"],
        ["read", constants.COUNTER_VARIABLE, options.stack_cell, stack],
    ]


def row_count(inst: MLOGInstruction, options: LoweringOptions) -> int:
    if isinstance(inst, MLOGJump):
        return 1
    if isinstance(inst, MLOGTrampolineBack):
        return len(trampoline_rows(options))
    return len(inst.statement)


def assign_addresses(
    instructions: list[MLOGInstruction],
    options: LoweringOptions,
    start: int = 0,
) -> AddressTable:
    """Assign every instruction its first address in one linear scan."""
    table: AddressTable = {}
    address = start
    for inst in instructions:
        count = row_count(inst, options)
        table[inst.id] = (address, count)
        address += count
    return table


def resolve_target(target: JumpTarget, table: AddressTable) -> int:
    if target.instruction_id not in table:
        raise DanglingJumpTargetError(
            f"jump target #{target.instruction_id} is not in the instruction stream"
        )
    first, count = table[target.instruction_id]
    return first + count if target.after else first


def instruction_rows(
    inst: MLOGInstruction, table: AddressTable, options: LoweringOptions
) -> list[list[str]]:
    if isinstance(inst, MLOGJump):
        if inst.target is None:
            raise DanglingJumpTargetError(f"jump #{inst.id} has no target")
        address = resolve_target(inst.target, table)
        return [["jump", str(address)] + [op.render() for op in inst.condition]]
    if isinstance(inst, MLOGTrampolineBack):
        return trampoline_rows(options)
    return [[op.render() for op in row] for row in inst.statement]


def render(
    instructions: list[MLOGInstruction],
    options: LoweringOptions | None = None,
    start: int = 0,
) -> str:
    """Render *instructions* as mlog text, one physical row per line."""
    options = options or LoweringOptions()
    table = assign_addresses(instructions, options, start)
    logger.info("Rendering %d instructions from address %d", len(instructions), start)

    result: list[str] = []
    line_number = start
    for inst in instructions:
        for row in instruction_rows(inst, table, options):
            line = " ".join(row)
            prefix = f"{line_number:3d}: " if options.numbers else ""
            if options.comments:
                line = f"{line:<{constants.RENDER_COMMENT_WIDTH}} // {inst.comment}"
            result.append(f"{prefix}{line}\n")
            line_number += 1
    return "".join(result)
