#!/usr/bin/env python
"""Script to repair order totals that disagree with their items.

This script:
1. Pages through every order
2. Recomputes each order's total from its current items
3. Writes the corrected total where the stored one differs

Usage:
    python scripts/repair_order_totals.py

Requirements:
    - SUPABASE_URL and SUPABASE_SECRET_KEY environment variables must be set

Note:
    - Safe to run repeatedly; a second run reports zero corrections
"""

import asyncio
import logging
import sys
from pathlib import Path

# Add the project root to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.core.config import get_settings
from src.services.order_service import OrderService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


async def main() -> int:
    """Run the repair pass.

    Returns:
        int: Process exit code.
    """
    settings = get_settings()
    logger.info("Repairing order totals in %s", settings.app_env)

    result = await OrderService().recalculate_all_totals()

    logger.info(
        "Done: %d orders checked, %d totals corrected",
        result["checked"],
        result["corrected"],
    )
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
