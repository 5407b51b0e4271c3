"""Go -> Mindustry logic lowering package."""

from .api import (  # noqa: F401
    lower_statement,
    lower_function,
    dump_mlog,
    extract_function_source,
)
from .render import render  # noqa: F401
from .vm import MachineState, MlogMachine, execute  # noqa: F401
