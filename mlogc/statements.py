"""StatementLowerer — structured Go statements -> linear mlog with symbolic jumps."""

from __future__ import annotations

import logging
from typing import Callable

from . import constants
from .errors import (
    DanglingJumpTargetError,
    InvalidOperandError,
    MalformedAssignmentError,
    UnsupportedConstructError,
    UnsupportedOperatorError,
)
from .expressions import ExpressionLowerer, GoExpressionLowerer, leaf_operand
from .ir import (
    JumpTarget,
    MLOGInstruction,
    MLOGJump,
    NormalVariable,
    Resolvable,
    lit,
)
from .lowering_types import LoweringContext

logger = logging.getLogger(__name__)


class StatementLowerer:
    """Lowers one statement node into an ordered instruction list.

    The lowerer holds no per-invocation state; everything mutable lives in
    the ``LoweringContext`` passed to each call.
    """

    SKIPPED_TYPES: frozenset[str] = frozenset({"comment", "empty_statement"})

    def __init__(self, expressions: ExpressionLowerer | None = None):
        self._expressions = expressions or GoExpressionLowerer()
        self._STMT_DISPATCH: dict[str, Callable] = {
            "source_file": self._lower_block,
            "block": self._lower_block,
            "statement_list": self._lower_block,
            "expression_statement": self._lower_expression_statement,
            "assignment_statement": self._lower_assignment,
            "short_var_declaration": self._lower_assignment,
            "var_declaration": self._lower_var_declaration,
            "inc_statement": self._lower_inc_dec,
            "dec_statement": self._lower_inc_dec,
            "return_statement": self._lower_return,
            "if_statement": self._lower_if,
            "for_statement": self._lower_for,
        }

    def lower(self, node, ctx: LoweringContext) -> list[MLOGInstruction]:
        if node.type in self.SKIPPED_TYPES:
            return []
        handler = self._STMT_DISPATCH.get(node.type, self._lower_unsupported)
        return handler(node, ctx)

    def _lower_unsupported(self, node, ctx: LoweringContext) -> list[MLOGInstruction]:
        raise UnsupportedConstructError(
            f"statement type not supported: {node.type}", node.type
        )

    # ── helpers ──────────────────────────────────────────────────

    def _finalize(self, instructions: list[MLOGInstruction]) -> list[MLOGInstruction]:
        """Check that every jump in a compound statement points inside it."""
        ids = {inst.id for inst in instructions}
        for inst in instructions:
            if not isinstance(inst, MLOGJump):
                continue
            if inst.target is None or inst.target.instruction_id not in ids:
                raise DanglingJumpTargetError(f"unresolved jump target in {inst}")
        return instructions

    def _expression_list(self, node) -> list:
        if node is None:
            return []
        if node.type == "expression_list":
            return [c for c in node.children if c.is_named]
        return [node]

    # ── blocks and simple statements ─────────────────────────────

    def _lower_block(self, node, ctx: LoweringContext) -> list[MLOGInstruction]:
        instructions: list[MLOGInstruction] = []
        for child in node.children:
            if child.is_named:
                instructions.extend(self.lower(child, ctx))
        return instructions

    def _lower_expression_statement(self, node, ctx: LoweringContext):
        expr = next(c for c in node.children if c.is_named)
        return self._expressions.lower([], expr, ctx)

    def _lower_inc_dec(self, node, ctx: LoweringContext):
        operand = next(c for c in node.children if c.is_named)
        if operand.type != "identifier":
            raise UnsupportedConstructError(
                f"increment/decrement target must be an identifier, got {operand.type}",
                operand.type,
            )
        name = NormalVariable(name=ctx.node_text(operand))
        op = "add" if node.type == "inc_statement" else "sub"
        return [
            ctx.new_instruction(
                [[lit("op"), lit(op), name, name, lit("1")]],
                comment="Execute increment/decrement",
                node=node,
            )
        ]

    def _lower_return(self, node, ctx: LoweringContext):
        values: list = []
        for child in node.children:
            if child.is_named:
                values.extend(self._expression_list(child))
        if len(values) > 1:
            raise UnsupportedConstructError(
                "only single value returns are supported", node.type
            )

        instructions: list[MLOGInstruction] = []
        if values:
            result = leaf_operand(values[0], ctx)
            if result is None:
                result = ctx.fresh_temporary()
                instructions.extend(self._expressions.lower([result], values[0], ctx))
            instructions.append(
                ctx.new_instruction(
                    [
                        [
                            lit("set"),
                            lit(constants.FUNCTION_RETURN_VARIABLE),
                            result,
                        ]
                    ],
                    comment="Set return data",
                    node=node,
                )
            )
        instructions.append(ctx.new_trampoline(node))
        return instructions

    # ── assignment ───────────────────────────────────────────────

    def _lower_assignment(self, node, ctx: LoweringContext):
        if node.type == "short_var_declaration":
            operator = ":="
        else:
            operator = ctx.node_text(node.child_by_field_name("operator"))
        targets = self._expression_list(node.child_by_field_name("left"))
        values = self._expression_list(node.child_by_field_name("right"))
        return self._lower_assignment_sides(targets, values, operator, ctx)

    def _lower_var_declaration(self, node, ctx: LoweringContext):
        specs = []
        for child in node.children:
            if child.type == "var_spec":
                specs.append(child)
            elif child.type == "var_spec_list":
                specs.extend(c for c in child.children if c.type == "var_spec")

        instructions: list[MLOGInstruction] = []
        for spec in specs:
            names = spec.children_by_field_name("name")
            values = self._expression_list(spec.child_by_field_name("value"))
            if values:
                instructions.extend(
                    self._lower_assignment_sides(names, values, ":=", ctx)
                )
                continue
            for name in names:
                instructions.append(
                    ctx.new_instruction(
                        [
                            [
                                lit("set"),
                                NormalVariable(name=ctx.node_text(name)),
                                lit(constants.NULL_LITERAL),
                            ]
                        ],
                        comment="Declare variable",
                        node=spec,
                    )
                )
        return instructions

    def _assignment_target(self, node, ctx: LoweringContext) -> Resolvable:
        if node.type != "identifier":
            raise UnsupportedConstructError(
                f"left side variable assignment can only contain identifiers, got {node.type}",
                node.type,
            )
        return NormalVariable(name=ctx.node_text(node))

    def _lower_assignment_sides(
        self, targets: list, values: list, operator: str, ctx: LoweringContext
    ) -> list[MLOGInstruction]:
        if operator not in constants.DIRECT_ASSIGNMENT_OPERATORS:
            raise UnsupportedConstructError(
                f"only direct assignment is supported, got {operator}",
                "assignment_statement",
            )

        if len(targets) != len(values):
            if len(values) != 1:
                raise MalformedAssignmentError(
                    f"mismatched variable assignment sides: "
                    f"{len(targets)} targets, {len(values)} values",
                    "assignment_statement",
                )
            destinations = [self._assignment_target(t, ctx) for t in targets]
            return self._expressions.lower(destinations, values[0], ctx)

        instructions: list[MLOGInstruction] = []
        for target, value in zip(targets, values):
            destination = self._assignment_target(target, ctx)
            instructions.extend(self._expressions.lower([destination], value, ctx))
        return instructions

    # ── if / else ────────────────────────────────────────────────

    def _lower_if(self, node, ctx: LoweringContext):
        instructions: list[MLOGInstruction] = []

        init_node = node.child_by_field_name("initializer")
        if init_node is not None:
            instructions.extend(self.lower(init_node, ctx))

        cond_node = node.child_by_field_name("condition")
        if cond_node.type == "identifier":
            cond_var: Resolvable = NormalVariable(name=ctx.node_text(cond_node))
        else:
            cond_var = ctx.fresh_temporary()
            instructions.extend(self._expressions.lower([cond_var], cond_node, ctx))

        body = self.lower(node.child_by_field_name("consequence"), ctx)
        if not body:
            raise UnsupportedConstructError("if statement with an empty body", node.type)

        instructions.append(
            ctx.new_jump(
                [lit(constants.JUMP_EQUAL), cond_var, lit(constants.TRUE_LITERAL)],
                comment="Jump to if block if true",
                target=JumpTarget(instruction_id=body[0].id),
                node=node,
            )
        )
        skip_jump = ctx.new_jump(
            [lit(constants.JUMP_ALWAYS)], comment="Jump to after if block", node=node
        )
        instructions.append(skip_jump)
        instructions.extend(body)

        alt_node = node.child_by_field_name("alternative")
        if alt_node is None:
            skip_jump.target = JumpTarget(instruction_id=body[-1].id, after=True)
            logger.debug("Lowered if without else (%d instructions)", len(body))
            return self._finalize(instructions)

        # alt_node is a block (else) or an if_statement (else if)
        alternative = self.lower(alt_node, ctx)
        if not alternative:
            raise UnsupportedConstructError("else branch with an empty body", node.type)
        after_else_jump = ctx.new_jump(
            [lit(constants.JUMP_ALWAYS)],
            comment="Jump to after else block",
            target=JumpTarget(instruction_id=alternative[-1].id, after=True),
            node=alt_node,
        )
        instructions.append(after_else_jump)
        skip_jump.target = JumpTarget(instruction_id=after_else_jump.id, after=True)
        instructions.extend(alternative)
        logger.debug(
            "Lowered if/else (%d then, %d else instructions)",
            len(body),
            len(alternative),
        )
        return self._finalize(instructions)

    # ── for ──────────────────────────────────────────────────────

    def _loop_operand(self, node, side: str, ctx: LoweringContext) -> Resolvable:
        operand = leaf_operand(node, ctx)
        if operand is None:
            raise InvalidOperandError(
                f"unknown {side} side expression type: {node.type}", node.type
            )
        return operand

    def _lower_for(self, node, ctx: LoweringContext):
        # TODO: check the condition before the first iteration (while-do)
        body_node = node.child_by_field_name("body")
        if not any(
            c.is_named and c.type not in self.SKIPPED_TYPES
            for c in _block_statements(body_node)
        ):
            logger.debug("Omitting for loop with empty body")
            return []

        clause = next((c for c in node.children if c.type == "for_clause"), None)
        if clause is None:
            raise UnsupportedConstructError(
                "only C-style for loops are supported", node.type
            )

        instructions: list[MLOGInstruction] = []
        init_node = clause.child_by_field_name("initializer")
        if init_node is not None:
            instructions.extend(self.lower(init_node, ctx))

        cond_node = clause.child_by_field_name("condition")
        if cond_node is None or cond_node.type != "binary_expression":
            raise UnsupportedConstructError(
                "for loop can only have binary conditional expressions", node.type
            )
        op_text = ctx.node_text(cond_node.child_by_field_name("operator"))
        jump_op = constants.JUMP_OPERATORS.get(op_text)
        if jump_op is None:
            raise UnsupportedOperatorError(
                f"jump statement cannot use this operation: {op_text}", cond_node.type
            )
        left = self._loop_operand(cond_node.child_by_field_name("left"), "left", ctx)
        right = self._loop_operand(cond_node.child_by_field_name("right"), "right", ctx)

        body = self.lower(body_node, ctx)
        if not body:
            logger.debug("Omitting for loop whose body lowers to nothing")
            return []
        instructions.extend(body)

        update_node = clause.child_by_field_name("update")
        if update_node is not None:
            instructions.extend(self.lower(update_node, ctx))

        instructions.append(
            ctx.new_jump(
                [lit(jump_op), left, right],
                comment="Jump to start of loop",
                target=JumpTarget(instruction_id=body[0].id),
                node=node,
            )
        )
        return self._finalize(instructions)


def _block_statements(block_node) -> list:
    """Statement nodes of a block, looking through a statement_list wrapper."""
    statements = []
    for child in block_node.children:
        if child.type == "statement_list":
            statements.extend(child.children)
        else:
            statements.append(child)
    return statements
