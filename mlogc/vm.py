"""mlog machine — executes rendered mlog text one row per step."""

from __future__ import annotations

import logging
import math
import random
import re
from dataclasses import dataclass, field
from typing import Any, Callable

from . import constants

logger = logging.getLogger(__name__)

_TOKEN_PATTERN = re.compile(r'"[^"]*"|\S+')
_ADDRESS_PREFIX = re.compile(r"^\s*\d+:\s*")


@dataclass
class MachineState:
    variables: dict[str, Any] = field(default_factory=dict)
    cells: dict[str, list[float]] = field(default_factory=dict)
    counter: int = 0
    steps: int = 0
    halted: bool = False
    print_buffer: str = ""
    printed: list[str] = field(default_factory=list)
    trace: list[int] = field(default_factory=list)


def parse_program(text: str) -> list[list[str]]:
    """Split rendered mlog into token rows, dropping address prefixes and comments."""
    program = []
    for raw in text.splitlines():
        line = _ADDRESS_PREFIX.sub("", raw)
        line = line.split("//", 1)[0].strip()
        if line:
            program.append(_TOKEN_PATTERN.findall(line))
    return program


def _as_number(v: Any) -> float:
    if v is None:
        return 0.0
    if isinstance(v, str):
        return 1.0
    return float(v)


def _format(v: Any) -> str:
    if v is None:
        return constants.NULL_LITERAL
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v)


def _div(a: float, b: float) -> float | None:
    return a / b if b != 0 else None


def _idiv(a: float, b: float) -> float | None:
    return float(math.floor(a / b)) if b != 0 else None


def _mod(a: float, b: float) -> float | None:
    return math.fmod(a, b) if b != 0 else None


def _log(a: float, b: float) -> float | None:
    return math.log(a) if a > 0 else None


_BINARY_OPS: dict[str, Callable[[float, float], Any]] = {
    "add": lambda a, b: a + b,
    "sub": lambda a, b: a - b,
    "mul": lambda a, b: a * b,
    "div": _div,
    "idiv": _idiv,
    "mod": _mod,
    "pow": lambda a, b: a**b,
    "equal": lambda a, b: float(a == b),
    "notEqual": lambda a, b: float(a != b),
    "land": lambda a, b: float(a != 0 and b != 0),
    "lessThan": lambda a, b: float(a < b),
    "lessThanEq": lambda a, b: float(a <= b),
    "greaterThan": lambda a, b: float(a > b),
    "greaterThanEq": lambda a, b: float(a >= b),
    "shl": lambda a, b: float(int(a) << int(b)),
    "shr": lambda a, b: float(int(a) >> int(b)),
    "or": lambda a, b: float(int(a) | int(b)),
    "and": lambda a, b: float(int(a) & int(b)),
    "xor": lambda a, b: float(int(a) ^ int(b)),
    "not": lambda a, b: float(~int(a)),
    "max": max,
    "min": min,
    "abs": lambda a, b: abs(a),
    "log": _log,
    "floor": lambda a, b: float(math.floor(a)),
    "ceil": lambda a, b: float(math.ceil(a)),
    "sqrt": lambda a, b: math.sqrt(a) if a >= 0 else None,
    "sin": lambda a, b: math.sin(math.radians(a)),
    "cos": lambda a, b: math.cos(math.radians(a)),
    "tan": lambda a, b: math.tan(math.radians(a)),
    "rand": lambda a, b: random.random() * a,
}

_JUMP_CONDITIONS = ("equal", "notEqual", "lessThan", "lessThanEq", "greaterThan", "greaterThanEq")


class MlogMachine:
    """Interprets a parsed mlog program against a ``MachineState``."""

    def __init__(self, program: list[list[str]], state: MachineState | None = None):
        self._program = program
        self.state = state or MachineState()

    def _value(self, token: str) -> Any:
        if token.startswith('"') and token.endswith('"') and len(token) >= 2:
            return token[1:-1]
        if token == constants.COUNTER_VARIABLE:
            return float(self.state.counter)
        if token == constants.TRUE_LITERAL:
            return 1.0
        if token == constants.FALSE_LITERAL:
            return 0.0
        if token == constants.NULL_LITERAL:
            return None
        try:
            return float(int(token, 0))
        except ValueError:
            pass
        try:
            return float(token)
        except ValueError:
            return self.state.variables.get(token)

    def _assign(self, name: str, value: Any) -> bool:
        """Store *value*; returns True if the program counter was written."""
        if name == constants.COUNTER_VARIABLE:
            self.state.counter = int(_as_number(value))
            return True
        self.state.variables[name] = value
        return False

    def _condition(self, cond: str, left: str, right: str) -> bool:
        if cond == constants.JUMP_ALWAYS:
            return True
        if cond == "strictEqual":
            a, b = self._value(left), self._value(right)
            return type(a) is type(b) and a == b
        if cond not in _JUMP_CONDITIONS:
            raise ValueError(f"Unknown jump condition: {cond}")
        a, b = self._value(left), self._value(right)
        return bool(_BINARY_OPS[cond](_as_number(a), _as_number(b)))

    def step(self) -> None:
        state = self.state
        row = self._program[state.counter]
        state.trace.append(state.counter)
        state.steps += 1
        opcode, args = row[0], row[1:]
        jumped = False

        if opcode == "set":
            jumped = self._assign(args[0], self._value(args[1]))
        elif opcode == "op":
            name, dest = args[0], args[1]
            if name not in _BINARY_OPS:
                raise ValueError(f"Unknown operation: {name}")
            a = _as_number(self._value(args[2])) if len(args) > 2 else 0.0
            b = _as_number(self._value(args[3])) if len(args) > 3 else 0.0
            jumped = self._assign(dest, _BINARY_OPS[name](a, b))
        elif opcode == "jump":
            padded = args + [constants.NULL_LITERAL] * (4 - len(args))
            if self._condition(padded[1], padded[2], padded[3]):
                state.counter = int(padded[0])
                jumped = True
        elif opcode == "read":
            cell = state.cells.setdefault(args[1], [0.0] * constants.MEMORY_CELL_SIZE)
            jumped = self._assign(args[0], cell[int(_as_number(self._value(args[2])))])
        elif opcode == "write":
            cell = state.cells.setdefault(args[1], [0.0] * constants.MEMORY_CELL_SIZE)
            cell[int(_as_number(self._value(args[2])))] = _as_number(self._value(args[0]))
        elif opcode == "print":
            state.print_buffer += _format(self._value(args[0]))
        elif opcode == "printflush":
            state.printed.append(state.print_buffer)
            state.print_buffer = ""
        elif opcode == "end":
            state.halted = True
            return
        else:
            raise ValueError(f"Unknown instruction: {opcode}")

        if not jumped:
            state.counter += 1
        if not 0 <= state.counter < len(self._program):
            state.halted = True

    def run(self, max_steps: int = 1000) -> MachineState:
        if not self._program:
            self.state.halted = True
        while not self.state.halted and self.state.steps < max_steps:
            self.step()
        if not self.state.halted:
            logger.warning("mlog machine stopped after %d steps", self.state.steps)
        return self.state


def execute(
    text: str,
    variables: dict[str, Any] | None = None,
    cells: dict[str, list[float]] | None = None,
    max_steps: int = 1000,
    start: int = 0,
) -> MachineState:
    """Parse and run rendered mlog text.

    ``start`` is the address the text's first row was rendered at; jump
    addresses are interpreted relative to it.
    """
    program = parse_program(text)
    if start:
        program = [["end"]] * start + program
    state = MachineState(
        variables=dict(variables or {}),
        cells={name: list(cell) for name, cell in (cells or {}).items()},
        counter=start,
    )
    return MlogMachine(program, state).run(max_steps)
