"""Composable API functions for the Go -> mlog lowering pipeline.

Each function corresponds to a CLI workflow but is callable programmatically
without argparse.
"""

from __future__ import annotations

import logging
from typing import Optional

from tree_sitter import Node

from .errors import FunctionNotFoundError
from .expressions import ExpressionLowerer
from .ir import MLOGInstruction
from .lowering_types import LoweringContext, LoweringOptions
from .parser import Parser, TreeSitterParserFactory
from .render import render
from .statements import StatementLowerer
from . import constants

logger = logging.getLogger(__name__)

_FUNCTION_NODE_TYPES: frozenset[str] = frozenset(
    {"function_declaration", "method_declaration"}
)


def lower_statement(
    node: Node,
    source: bytes,
    options: Optional[LoweringOptions] = None,
    expressions: Optional[ExpressionLowerer] = None,
) -> list[MLOGInstruction]:
    """Lower one statement node with a fresh lowering context.

    Args:
        node: A tree-sitter Go statement (or block) node.
        source: The source bytes the node was parsed from.
        options: Lowering options; defaults apply when omitted.
        expressions: Expression lowering collaborator.

    Returns:
        The ordered instruction list.
    """
    ctx = LoweringContext(source=source, options=options or LoweringOptions())
    return StatementLowerer(expressions).lower(node, ctx)


def _find_function_node(node: Node, name: str) -> Optional[Node]:
    """Recursively walk the AST to find a function/method node matching *name*."""
    if node.type in _FUNCTION_NODE_TYPES:
        name_node = node.child_by_field_name("name")
        if name_node is not None and name_node.text.decode("utf-8") == name:
            return node

    return next(
        (
            found
            for child in node.children
            if (found := _find_function_node(child, name)) is not None
        ),
        None,
    )


def _parse_function(source: str, function_name: str) -> Node:
    tree = Parser(TreeSitterParserFactory()).parse(source)
    match = _find_function_node(tree.root_node, function_name)
    if match is None:
        raise FunctionNotFoundError(f"Function '{function_name}' not found in source")
    return match


def lower_function(
    source: str,
    function_name: str = constants.DEFAULT_FUNCTION_NAME,
    options: Optional[LoweringOptions] = None,
) -> list[MLOGInstruction]:
    """Parse Go source and lower the body of one function.

    Raises:
        FunctionNotFoundError: If no function with the given name exists.
    """
    logger.info("Lowering function '%s'", function_name)
    func_node = _parse_function(source, function_name)
    body = func_node.child_by_field_name("body")
    if body is None:
        return []
    instructions = lower_statement(body, source.encode("utf-8"), options)
    logger.info(
        "Lowered '%s' into %d instructions", function_name, len(instructions)
    )
    return instructions


def dump_mlog(
    source: str,
    function_name: str = constants.DEFAULT_FUNCTION_NAME,
    options: Optional[LoweringOptions] = None,
    start_address: int = 0,
) -> str:
    """Lower one function and return its rendered mlog text."""
    options = options or LoweringOptions()
    instructions = lower_function(source, function_name, options)
    return render(instructions, options, start_address)


def extract_function_source(source: str, function_name: str) -> str:
    """Extract the raw source text of a named function from Go source.

    Raises:
        FunctionNotFoundError: If no function with the given name is found.
    """
    logger.info("Extracting function source for '%s'", function_name)
    match = _parse_function(source, function_name)
    source_bytes = source.encode("utf-8")
    return source_bytes[match.start_byte : match.end_byte].decode("utf-8")
