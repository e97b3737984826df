"""
Shift Earnings Calculation Engines - MCP Server

FastMCP server exposing the pure calculation tools:
- Bonus Engine: per-deposit commission, grid tier and motivation bonus
- Business Calendar: shift type, canonical day and start-window lookups
"""

import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Importing the tool module registers its tools with the MCP server
from engines.tools.bonus_engine import mcp  # noqa: E402

# Configure the MCP server
mcp.name = "Shift Earnings Engines"
mcp.description = """
Calculation engines for processor shifts and earnings.

1. **Bonus Engine** (calculate_deposit_bonus)
   - Selects the bonus grid tier from the day's cumulative volume
   - Adds the tier's fixed bonus and every satisfied motivation

2. **Business Calendar** (describe_business_time)
   - Classifies instants into MORNING, DAY and NIGHT shifts
   - Resolves the canonical day (UTC+3, turning over at 06:00)
   - Checks the 30-minute early-start window for a shift definition

Both tools are pure: they read nothing from and write nothing to storage.
"""


def main():
    """Run the MCP server."""
    logger.info("Starting Shift Earnings Engines MCP Server")
    mcp.run()


if __name__ == "__main__":
    main()
