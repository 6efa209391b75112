"""Four-function calculator tool."""

from __future__ import annotations

import math
import operator
from collections.abc import Callable

from pydantic import BaseModel, Field

from social_mcp.auth.models import Principal
from social_mcp.tools.registry import InvalidArguments, ToolError, ToolRegistry

OPERATIONS: dict[str, tuple[str, Callable[[float, float], float]]] = {
    "add": ("+", operator.add),
    "subtract": ("-", operator.sub),
    "multiply": ("*", operator.mul),
    "divide": ("/", operator.truediv),
}


class SimpleCalculatorArgs(BaseModel):
    # Plain str so an unknown operation reaches the tool as ``unknown_operation``.
    operation: str = Field(
        description="Arithmetic operation to perform",
        json_schema_extra={"enum": list(OPERATIONS)},
    )
    a: float = Field(description="First operand", allow_inf_nan=False)
    b: float = Field(description="Second operand", allow_inf_nan=False)


def format_number(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return repr(value)


def simple_calculator(principal: Principal, args: SimpleCalculatorArgs) -> str:
    if args.operation not in OPERATIONS:
        raise InvalidArguments("unknown_operation", f"Unknown operation: {args.operation}")
    symbol, fn = OPERATIONS[args.operation]
    if args.operation == "divide" and args.b == 0:
        raise ToolError("division_by_zero", "Division by zero is not allowed")

    result = fn(args.a, args.b)
    if not math.isfinite(result):
        raise ToolError("overflow", f"Result of {args.operation} is not a finite number")

    expression = f"{format_number(args.a)} {symbol} {format_number(args.b)}"
    return f"{expression} = {format_number(result)}"


def register_calculator_tools(registry: ToolRegistry) -> None:
    registry.tool(
        "simple_calculator",
        "Perform basic arithmetic: add, subtract, multiply or divide two numbers",
        SimpleCalculatorArgs,
    )(simple_calculator)
