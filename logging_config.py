"""
Log output for the API process: one stdout stream shared by every module
logger, with multipart parsing and access-log chatter turned down.
"""

import logging
import sys


def setup_logging(level: str = "INFO"):
    """Configure the root logger from the LOG_LEVEL setting."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Per-request noise from the server stack
    logging.getLogger("multipart").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
