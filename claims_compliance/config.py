"""Shared configuration for the claims compliance engine.

This module centralizes environment variable access and default values
to prevent drift between modules.
"""

import logging
import os

# Rule catalog file (YAML or JSON); the built-in catalog is used when unset
RULE_CATALOG_PATH = os.getenv("CLAIMS_RULE_CATALOG_PATH") or None

# Run category validators on a thread pool
PARALLEL_VALIDATION = os.getenv("CLAIMS_PARALLEL_VALIDATION", "false").lower() == "true"
MAX_WORKERS = int(os.getenv("CLAIMS_MAX_WORKERS", "6"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for scripts and host processes."""
    logging.basicConfig(level=(level or LOG_LEVEL).upper(), format=LOG_FORMAT)
