"""
Kleenito MCP tools

Sales reporting stub: "getLastMonthSale" always reports the same figure for
whichever month is requested.
"""

from pydantic import BaseModel, ConfigDict, Field

from .base import ToolDescriptor, ToolRegistry

SERVER_NAME = "kleenito-mcp-server"
DEFAULT_PORT = 3001

LAST_MONTH_SALES = 500


class LastMonthSaleInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    month: str = Field(description="Month to get sales for")


def get_last_month_sale(args: LastMonthSaleInput) -> str:
    return f"Sales for {args.month}: {LAST_MONTH_SALES}"


GET_LAST_MONTH_SALE = ToolDescriptor(
    name="getLastMonthSale",
    title="Last month's sales",
    description="Returns last month's sales for Kleenito",
    input_model=LastMonthSaleInput,
    handler=get_last_month_sale,
)


def create_registry() -> ToolRegistry:
    return ToolRegistry([GET_LAST_MONTH_SALE])
