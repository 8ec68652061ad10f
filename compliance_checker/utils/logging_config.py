"""
Logging setup for the Compliance Checker.

Library modules only create loggers; the host process calls
``setup_logging`` once at start-up.
"""

import logging
from typing import Optional

from .config import ComplianceConfig, get_config

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(config: Optional[ComplianceConfig] = None) -> None:
    """Configure the root logger from the compliance configuration."""
    config = config or get_config()

    handlers = [logging.StreamHandler()]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file))

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

    # httpx logs every provider request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
