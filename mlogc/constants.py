"""Named constants — eliminates magic strings across the codebase."""

from __future__ import annotations

GO_LANGUAGE = "go"
DEFAULT_FUNCTION_NAME = "main"

FUNCTION_RETURN_VARIABLE = "@return"
STACK_POINTER_VARIABLE = "@stack"
COUNTER_VARIABLE = "@counter"
DEFAULT_STACK_CELL = "bank1"

DYNAMIC_VARIABLE_PREFIX = "_dyn"

TRUE_LITERAL = "true"
FALSE_LITERAL = "false"
NULL_LITERAL = "null"

JUMP_ALWAYS = "always"
JUMP_EQUAL = "equal"

# Comparison operator -> jump condition
JUMP_OPERATORS: dict[str, str] = {
    "==": "equal",
    "!=": "notEqual",
    "<": "lessThan",
    "<=": "lessThanEq",
    ">": "greaterThan",
    ">=": "greaterThanEq",
}

# Binary operator -> `op` instruction name
BINARY_OPERATORS: dict[str, str] = {
    "+": "add",
    "-": "sub",
    "*": "mul",
    "/": "div",
    "%": "mod",
    "==": "equal",
    "!=": "notEqual",
    "<": "lessThan",
    "<=": "lessThanEq",
    ">": "greaterThan",
    ">=": "greaterThanEq",
    "&&": "land",
    "||": "or",
    "&": "and",
    "|": "or",
    "^": "xor",
    "<<": "shl",
    ">>": "shr",
}

MATH_FUNCTIONS: frozenset[str] = frozenset(
    {"abs", "floor", "ceil", "sqrt", "max", "min", "pow", "log", "sin", "cos", "tan", "rand"}
)

DIRECT_ASSIGNMENT_OPERATORS: frozenset[str] = frozenset({"=", ":="})

LITERAL_NODE_TYPES: frozenset[str] = frozenset(
    {
        "int_literal",
        "float_literal",
        "imaginary_literal",
        "rune_literal",
        "interpreted_string_literal",
        "raw_string_literal",
        "true",
        "false",
        "nil",
    }
)

MEMORY_CELL_SIZE = 512
RENDER_COMMENT_WIDTH = 45
