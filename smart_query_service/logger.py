"""
Shared service logger.

Every module logs through ``from logger import logger`` so a single
handler / level governs the whole pipeline.  Output goes to stderr, which
keeps stdout free when the service is driven by a tool host.
"""

import logging
import sys

from config import LOG_LEVEL

logger = logging.getLogger("smart_query_service")

if not logger.handlers:
    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    logger.addHandler(_handler)

logger.setLevel(getattr(logging, LOG_LEVEL.upper(), logging.INFO))
logger.propagate = False
