"""
PoshCare MCP tools

Exposes a single tool, "how-was-day", that returns a short friendly summary
of the day at a PoshCare location. No authentication: the reply is always
positive, optionally mentioning the location and date it was asked about.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .base import ToolDescriptor, ToolRegistry

SERVER_NAME = "poshcare-day-server"
DEFAULT_PORT = 3000


class HowWasDayInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    location: Optional[str] = Field(default=None, description="PoshCare location, e.g. a clinic name")
    date: Optional[str] = Field(default=None, description="Day to summarise, e.g. 2024-01-01")


def how_was_day(args: HowWasDayInput) -> str:
    location_part = f" at {args.location}" if args.location else ""
    date_part = f" on {args.date}" if args.date else ""
    return f"It was awesome{location_part}{date_part}"


HOW_WAS_DAY = ToolDescriptor(
    name="how-was-day",
    title="How was the day at PoshCare",
    description="Return a short summary of how the day was at PoshCare",
    input_model=HowWasDayInput,
    handler=how_was_day,
)


def create_registry() -> ToolRegistry:
    return ToolRegistry([HOW_WAS_DAY])
