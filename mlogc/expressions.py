"""Expression lowering — tree-sitter Go expressions -> mlog instructions."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable

from . import constants
from .errors import UnsupportedConstructError, UnsupportedOperatorError
from .ir import MLOGInstruction, NormalVariable, Resolvable, Value, lit
from .lowering_types import LoweringContext

logger = logging.getLogger(__name__)


def literal_text(node, ctx: LoweringContext) -> str:
    """Translate a Go literal token into its mlog spelling."""
    if node.type == "nil":
        return constants.NULL_LITERAL
    text = ctx.node_text(node)
    if node.type == "raw_string_literal":
        return '"' + text.strip("`") + '"'
    return text


def leaf_operand(node, ctx: LoweringContext) -> Resolvable | None:
    """Return the operand for a bare identifier or literal, else ``None``."""
    if node.type == "identifier":
        return NormalVariable(name=ctx.node_text(node))
    if node.type in constants.LITERAL_NODE_TYPES:
        return Value(value=literal_text(node, ctx))
    return None


class ExpressionLowerer(ABC):
    """Lowers one expression so that ``destinations`` hold its result(s)."""

    @abstractmethod
    def lower(
        self, destinations: list[Resolvable], node, ctx: LoweringContext
    ) -> list[MLOGInstruction]: ...


class GoExpressionLowerer(ExpressionLowerer):
    """Lowers the Go expression subset understood by the target machine."""

    def __init__(self):
        self._EXPR_DISPATCH: dict[str, Callable] = {
            "identifier": self._lower_leaf,
            "parenthesized_expression": self._lower_paren,
            "binary_expression": self._lower_binary,
            "unary_expression": self._lower_unary,
            "call_expression": self._lower_call,
        }
        for literal_type in constants.LITERAL_NODE_TYPES:
            self._EXPR_DISPATCH[literal_type] = self._lower_leaf

    def lower(
        self, destinations: list[Resolvable], node, ctx: LoweringContext
    ) -> list[MLOGInstruction]:
        handler = self._EXPR_DISPATCH.get(node.type)
        if handler is None:
            raise UnsupportedConstructError(
                f"expression type not supported: {node.type}", node.type
            )
        return handler(destinations, node, ctx)

    # ── helpers ──────────────────────────────────────────────────

    def _single_destination(
        self, destinations: list[Resolvable], node
    ) -> Resolvable | None:
        if len(destinations) > 1:
            raise UnsupportedConstructError(
                f"{node.type} cannot produce {len(destinations)} values", node.type
            )
        return destinations[0] if destinations else None

    def _operand(
        self, node, ctx: LoweringContext
    ) -> tuple[Resolvable, list[MLOGInstruction]]:
        """Resolve *node* to an operand, spilling into a temporary if compound."""
        if node.type == "parenthesized_expression":
            return self._operand(self._paren_inner(node), ctx)
        operand = leaf_operand(node, ctx)
        if operand is not None:
            return operand, []
        tmp = ctx.fresh_temporary()
        return tmp, self.lower([tmp], node, ctx)

    def _paren_inner(self, node):
        inner = next((c for c in node.children if c.is_named), None)
        if inner is None:
            raise UnsupportedConstructError("empty parenthesized expression", node.type)
        return inner

    # ── lowerers ─────────────────────────────────────────────────

    def _lower_leaf(self, destinations, node, ctx):
        dest = self._single_destination(destinations, node)
        if dest is None:
            return []
        return [
            ctx.new_instruction(
                [[lit("set"), dest, leaf_operand(node, ctx)]],
                comment="Set variable",
                node=node,
            )
        ]

    def _lower_paren(self, destinations, node, ctx):
        return self.lower(destinations, self._paren_inner(node), ctx)

    def _lower_binary(self, destinations, node, ctx):
        dest = self._single_destination(destinations, node)
        op_text = ctx.node_text(node.child_by_field_name("operator"))
        op_name = constants.BINARY_OPERATORS.get(op_text)
        if op_name is None:
            raise UnsupportedOperatorError(
                f"binary operator not supported: {op_text}", node.type
            )
        left, instructions = self._operand(node.child_by_field_name("left"), ctx)
        right, right_instructions = self._operand(node.child_by_field_name("right"), ctx)
        instructions.extend(right_instructions)
        if dest is None:
            return instructions
        instructions.append(
            ctx.new_instruction(
                [[lit("op"), lit(op_name), dest, left, right]],
                comment=f"Execute operation {op_text}",
                node=node,
            )
        )
        return instructions

    def _lower_unary(self, destinations, node, ctx):
        dest = self._single_destination(destinations, node)
        op_text = ctx.node_text(node.child_by_field_name("operator"))
        operand, instructions = self._operand(node.child_by_field_name("operand"), ctx)
        if op_text == "-":
            row = [lit("op"), lit("sub"), dest, lit("0"), operand]
        elif op_text == "!":
            row = [lit("op"), lit("equal"), dest, operand, lit(constants.FALSE_LITERAL)]
        elif op_text == "^":
            row = [lit("op"), lit("not"), dest, operand]
        elif op_text == "+":
            row = [lit("set"), dest, operand]
        else:
            raise UnsupportedOperatorError(
                f"unary operator not supported: {op_text}", node.type
            )
        if dest is None:
            return instructions
        instructions.append(
            ctx.new_instruction([row], comment=f"Execute unary {op_text}", node=node)
        )
        return instructions

    def _lower_call(self, destinations, node, ctx):
        func_node = node.child_by_field_name("function")
        if func_node is None or func_node.type != "identifier":
            raise UnsupportedConstructError(
                "only calls to native functions are supported", node.type
            )
        name = ctx.node_text(func_node)
        args_node = node.child_by_field_name("arguments")
        arg_nodes = [c for c in args_node.children if c.is_named] if args_node else []

        instructions: list[MLOGInstruction] = []
        args: list[Resolvable] = []
        for arg in arg_nodes:
            operand, arg_instructions = self._operand(arg, ctx)
            instructions.extend(arg_instructions)
            args.append(operand)

        if name == "print":
            if destinations:
                raise UnsupportedConstructError("print does not return a value", node.type)
            if args:
                instructions.append(
                    ctx.new_instruction(
                        [[lit("print"), arg] for arg in args],
                        comment="Call to native function print",
                        node=node,
                    )
                )
            return instructions

        if name == "printflush":
            if destinations or len(args) != 1:
                raise UnsupportedConstructError(
                    "printflush takes exactly one block and returns nothing", node.type
                )
            instructions.append(
                ctx.new_instruction(
                    [[lit("printflush"), args[0]]],
                    comment="Call to native function printflush",
                    node=node,
                )
            )
            return instructions

        if name in constants.MATH_FUNCTIONS:
            dest = self._single_destination(destinations, node)
            if dest is None:
                logger.debug("Discarding result of %s()", name)
                return instructions
            instructions.append(
                ctx.new_instruction(
                    [[lit("op"), lit(name), dest] + args],
                    comment=f"Call to math function {name}",
                    node=node,
                )
            )
            return instructions

        raise UnsupportedConstructError(f"call to unknown function: {name}", node.type)
